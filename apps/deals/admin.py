# ==========================================
# apps/deals/admin.py
# ==========================================

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from .models import Deal, SavedDeal


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    """
    Admin interface for deals.

    Redemption counters are read-only here; they only move through
    the redemption service.
    """

    list_display = [
        'title',
        'vendor',
        'category',
        'required_tier',
        'partner',
        'get_redemptions_display',
        'availability_badge',
        'expires_at',
    ]

    list_filter = [
        'required_tier',
        'category',
        'is_active',
        'is_sold_out',
        'requires_confirmation',
    ]

    search_fields = [
        'title',
        'title_tr',
        'vendor',
        'partner__email',
    ]

    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Content', {
            'fields': ('title', 'title_tr', 'description', 'description_tr', 'category', 'vendor', 'image_url')
        }),
        ('Partner', {
            'fields': ('partner',)
        }),
        ('Pricing', {
            'fields': ('original_price', 'discounted_price', 'discount_percentage')
        }),
        ('Redemption rules', {
            'fields': (
                'required_tier',
                'expires_at',
                'max_redemptions',
                'max_redemptions_per_user',
                'requires_confirmation',
                'is_sold_out',
                'redemption_code',
            )
        }),
        ('Status', {
            'fields': ('is_active', 'redemptions_count', 'created_at', 'updated_at'),
        }),
    )

    readonly_fields = ['redemptions_count', 'created_at', 'updated_at']

    def get_redemptions_display(self, obj):
        if obj.max_redemptions is None:
            return f"{obj.redemptions_count}"
        return f"{obj.redemptions_count} / {obj.max_redemptions}"
    get_redemptions_display.short_description = 'Redeemed'

    def availability_badge(self, obj):
        """Display availability as colored badge."""
        if obj.is_expired(timezone.now()):
            bg, fg, label = '#B85C5C', 'white', 'Expired'
        elif obj.sold_out:
            bg, fg, label = '#E5C49A', '#2C1810', 'Sold out'
        elif not obj.is_active:
            bg, fg, label = '#ccc', '#666', 'Hidden'
        else:
            bg, fg, label = '#6B8E5E', 'white', 'Available'
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, label
        )
    availability_badge.short_description = 'Availability'

    actions = ['mark_sold_out', 'hide_deals']

    @admin.action(description='Mark selected deals as sold out')
    def mark_sold_out(self, request, queryset):
        count = queryset.update(is_sold_out=True)
        self.message_user(request, f'Marked {count} deal(s) as sold out.')

    @admin.action(description='Hide selected deals from the catalog')
    def hide_deals(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f'Hid {count} deal(s).')


@admin.register(SavedDeal)
class SavedDealAdmin(admin.ModelAdmin):
    list_display = ['user', 'deal', 'saved_at']
    search_fields = ['user__email', 'deal__title']
    raw_id_fields = ['user', 'deal']
