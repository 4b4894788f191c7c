# ==========================================
# apps/accounts/admin.py
# ==========================================

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from .models import User, SubscriptionPlan, SubscriptionTier


TIER_COLORS = {
    SubscriptionTier.NONE: ('#ccc', '#666'),
    SubscriptionTier.FREE: ('#E5E7EB', '#111827'),
    SubscriptionTier.BASIC: ('#3B82F6', 'white'),
    SubscriptionTier.PREMIUM: ('#8B5CF6', 'white'),
    SubscriptionTier.VIP: ('#D4A017', '#1F1300'),
}


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for members and partners.

    Support staff adjust entitlements here:
    - Tier and subscription start date
    - Extra monthly redemptions
    - Per-user wallet ceiling override
    """

    list_display = [
        'email',
        'display_name',
        'tier_badge',
        'extra_redemptions',
        'wallet_limit',
        'is_partner',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'tier',
        'is_partner',
        'is_active',
        'is_staff',
        'created_at',
    ]

    search_fields = [
        'email',
        'display_name',
    ]

    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    # Remove username field references from BaseUserAdmin
    fieldsets = (
        ('Basic Information', {
            'fields': ('email', 'display_name', 'password')
        }),
        ('Subscription', {
            'fields': ('tier', 'subscription_start_date', 'extra_redemptions', 'wallet_limit'),
        }),
        ('Permissions', {
            'fields': ('is_partner', 'is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'last_login'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        ('Create User', {
            'classes': ('wide',),
            'fields': ('email', 'display_name', 'password1', 'password2'),
        }),
        ('Subscription', {
            'fields': ('tier', 'is_partner'),
        }),
    )

    readonly_fields = [
        'created_at',
        'last_login',
    ]

    filter_horizontal = ['groups', 'user_permissions']

    def tier_badge(self, obj):
        """Display subscription tier as colored badge."""
        bg, fg = TIER_COLORS.get(obj.tier, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_tier_display()
        )
    tier_badge.short_description = 'Tier'
    tier_badge.admin_order_field = 'tier'

    actions = [
        'grant_extra_redemption',
        'clear_wallet_limit_override',
    ]

    @admin.action(description='Grant one extra monthly redemption')
    def grant_extra_redemption(self, request, queryset):
        from django.db.models import F
        count = queryset.update(extra_redemptions=F('extra_redemptions') + 1)
        self.message_user(request, f'Granted an extra redemption to {count} user(s).')

    @admin.action(description='Reset wallet ceiling to tier default')
    def clear_wallet_limit_override(self, request, queryset):
        count = queryset.update(wallet_limit=None)
        self.message_user(request, f'Cleared wallet override for {count} user(s).')


@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    list_display = ['name', 'tier', 'price', 'billing_period', 'redemptions_per_period', 'is_active']
    list_filter = ['billing_period', 'is_active']
    ordering = ['price']
