# ==========================================
# apps/deals/models.py
# ==========================================

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils import timezone
import uuid

from apps.accounts.models import SubscriptionTier


# Sentinel expiry for deals that never expire
NEVER_EXPIRES = datetime(9999, 12, 31, tzinfo=dt_timezone.utc)


def never_expires():
    return NEVER_EXPIRES


class Deal(models.Model):
    """Discounted offer listed by a partner."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Bilingual content
    title = models.CharField(max_length=200)
    title_tr = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True)
    description_tr = models.TextField(blank=True)
    category = models.CharField(max_length=100, db_index=True)
    vendor = models.CharField(max_length=200, blank=True)
    image_url = models.URLField(blank=True)

    # Owning partner account (scans and redeems this deal's wallet items)
    partner = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='partner_deals'
    )

    # Pricing
    original_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    discounted_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    discount_percentage = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MaxValueValidator(100)]
    )

    # Entitlement
    required_tier = models.CharField(
        max_length=10,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.FREE
    )
    expires_at = models.DateTimeField(default=never_expires, db_index=True)

    # Legacy deal-level code shared by every claimant; wallet items carry their own
    redemption_code = models.CharField(max_length=64, blank=True, db_index=True)

    # Caps (null = unlimited)
    max_redemptions = models.PositiveIntegerField(null=True, blank=True)
    max_redemptions_per_user = models.PositiveIntegerField(null=True, blank=True)
    redemptions_count = models.PositiveIntegerField(default=0)
    is_sold_out = models.BooleanField(default=False)

    # Forces user approval on vendor scans regardless of value
    requires_confirmation = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'deals'
        indexes = [
            models.Index(fields=['required_tier', 'expires_at'], name='deals_tier_expiry_idx'),
            models.Index(fields=['partner', 'created_at'], name='deals_partner_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def sold_out(self):
        if self.is_sold_out:
            return True
        return self.max_redemptions is not None and self.redemptions_count >= self.max_redemptions

    @property
    def never_expires(self):
        return self.expires_at >= NEVER_EXPIRES

    def is_expired(self, now=None):
        now = now or timezone.now()
        return self.expires_at <= now

    @property
    def savings_amount(self):
        """Absolute saving per redemption, or None when only a percentage is known."""
        if self.original_price is not None and self.discounted_price is not None:
            return max(Decimal('0.00'), self.original_price - self.discounted_price)
        if self.original_price is not None and self.discount_percentage is not None:
            return (self.original_price * self.discount_percentage / Decimal(100)).quantize(Decimal('0.01'))
        return None

    @property
    def effective_discount_percentage(self):
        if self.discount_percentage is not None:
            return self.discount_percentage
        if self.original_price and self.discounted_price is not None:
            saved = self.original_price - self.discounted_price
            return int((saved / self.original_price * 100).to_integral_value())
        return 0


class SavedDeal(models.Model):
    """Bookmark of a deal by a user."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='saved_deals')
    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='saved_by')
    saved_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'saved_deals'
        unique_together = [['user', 'deal']]
        ordering = ['-saved_at']

    def __str__(self):
        return f"{self.user} saved {self.deal}"
