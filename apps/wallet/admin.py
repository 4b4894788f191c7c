# ==========================================
# apps/wallet/admin.py
# ==========================================

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from .models import (
    ConfirmationState,
    DealRedemption,
    PendingConfirmation,
    WalletItem,
    WalletItemStatus,
)


STATUS_COLORS = {
    WalletItemStatus.ACTIVE: ('#6B8E5E', 'white'),
    WalletItemStatus.REDEEMED: ('#3B82F6', 'white'),
    WalletItemStatus.EXPIRED: ('#B85C5C', 'white'),
}


def _badge(bg, fg, label):
    return format_html(
        '<span style="background: {}; color: {}; padding: 3px 8px; '
        'border-radius: 10px; font-size: 11px;">{}</span>',
        bg, fg, label
    )


@admin.register(WalletItem)
class WalletItemAdmin(admin.ModelAdmin):
    """
    Admin interface for wallet items.

    Status is read-only: items only move active -> redeemed/expired
    through the services, never back.
    """

    list_display = [
        'user',
        'deal',
        'status_badge',
        'acquired_at',
        'redeemed_at',
    ]
    list_filter = ['status', 'acquired_at']
    search_fields = ['user__email', 'deal__title', 'redemption_code']
    raw_id_fields = ['user', 'deal']
    readonly_fields = ['redemption_code', 'status', 'acquired_at', 'redeemed_at']
    date_hierarchy = 'acquired_at'

    def status_badge(self, obj):
        """Display effective status as colored badge."""
        current = obj.effective_status(timezone.now())
        bg, fg = STATUS_COLORS.get(current, ('#ccc', '#666'))
        return _badge(bg, fg, current.label)
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'


@admin.register(PendingConfirmation)
class PendingConfirmationAdmin(admin.ModelAdmin):
    list_display = ['wallet_item', 'initiated_by', 'state_badge', 'created_at', 'expires_at', 'resolved_at']
    list_filter = ['state', 'created_at']
    readonly_fields = [
        'wallet_item',
        'initiated_by',
        'state',
        'created_at',
        'expires_at',
        'resolved_at',
    ]
    exclude = ['token']

    def state_badge(self, obj):
        current = obj.effective_state(timezone.now())
        colors = {
            ConfirmationState.PENDING: ('#E5C49A', '#2C1810'),
            ConfirmationState.CONFIRMED: ('#6B8E5E', 'white'),
            ConfirmationState.DENIED: ('#B85C5C', 'white'),
        }
        bg, fg = colors.get(current, ('#ccc', '#666'))
        return _badge(bg, fg, current.label)
    state_badge.short_description = 'State'

    def has_add_permission(self, request):
        """Confirmations are only opened by vendor scans."""
        return False


@admin.register(DealRedemption)
class DealRedemptionAdmin(admin.ModelAdmin):
    list_display = ['deal', 'user', 'redeemed_by', 'redeemed_at']
    list_filter = ['redeemed_at']
    search_fields = ['deal__title', 'user__email']
    raw_id_fields = ['deal', 'user', 'wallet_item', 'redeemed_by']
    date_hierarchy = 'redeemed_at'
