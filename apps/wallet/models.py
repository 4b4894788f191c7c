# ==========================================
# apps/wallet/models.py
# ==========================================

from django.db import models
from django.utils import timezone
import uuid


class WalletItemStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    REDEEMED = 'redeemed', 'Redeemed'
    EXPIRED = 'expired', 'Expired'


TERMINAL_STATUSES = (WalletItemStatus.REDEEMED, WalletItemStatus.EXPIRED)


class ConfirmationState(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    DENIED = 'denied', 'Denied'
    EXPIRED = 'expired', 'Expired'
    SUPERSEDED = 'superseded', 'Superseded'


class WalletItem(models.Model):
    """
    One deal instance acquired by one user.

    Status only moves forward: active -> redeemed or active -> expired.
    Transitions are conditional UPDATEs in the services layer, never
    read-modify-write on an instance.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='wallet_items')
    deal = models.ForeignKey('deals.Deal', on_delete=models.CASCADE, related_name='wallet_items')

    # Unique per instance, unlike the deal's shared legacy code
    redemption_code = models.CharField(max_length=32, unique=True, editable=False)

    status = models.CharField(
        max_length=10,
        choices=WalletItemStatus.choices,
        default=WalletItemStatus.ACTIVE,
        db_index=True
    )
    acquired_at = models.DateTimeField(auto_now_add=True)
    redeemed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'wallet_items'
        indexes = [
            models.Index(fields=['user', 'status'], name='wallet_user_status_idx'),
            models.Index(fields=['user', 'deal'], name='wallet_user_deal_idx'),
        ]
        ordering = ['-acquired_at']

    def __str__(self):
        return f"{self.user} - {self.deal} ({self.status})"

    def effective_status(self, now=None):
        """Stored status, with an active item past its deal's expiry reported as expired."""
        if self.status == WalletItemStatus.ACTIVE and self.deal.is_expired(now or timezone.now()):
            return WalletItemStatus.EXPIRED
        return WalletItemStatus(self.status)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES


class PendingConfirmation(models.Model):
    """
    Vendor-initiated redemption awaiting the owner's approval.

    Only a PENDING row whose expires_at is in the future can be confirmed.
    Resolved and overdue rows are swept by ``purge_confirmations``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    wallet_item = models.ForeignKey(WalletItem, on_delete=models.CASCADE, related_name='confirmations')
    token = models.CharField(max_length=64, unique=True, editable=False)
    initiated_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        related_name='initiated_confirmations'
    )
    state = models.CharField(
        max_length=12,
        choices=ConfirmationState.choices,
        default=ConfirmationState.PENDING
    )
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'pending_confirmations'
        indexes = [
            models.Index(fields=['wallet_item', 'state'], name='confirm_item_state_idx'),
            models.Index(fields=['state', 'expires_at'], name='confirm_state_expiry_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Confirmation for {self.wallet_item_id} ({self.state})"

    def seconds_remaining(self, now=None):
        now = now or timezone.now()
        return max(0, int((self.expires_at - now).total_seconds()))

    def effective_state(self, now=None):
        """Stored state, with an overdue pending row reported as expired."""
        if self.state == ConfirmationState.PENDING and self.expires_at <= (now or timezone.now()):
            return ConfirmationState.EXPIRED
        return ConfirmationState(self.state)


class DealRedemption(models.Model):
    """Historical record of a consumed deal; the user's redemption history."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    deal = models.ForeignKey('deals.Deal', on_delete=models.CASCADE, related_name='redemptions')
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='redemptions')
    wallet_item = models.OneToOneField(
        WalletItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='redemption'
    )
    redeemed_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processed_redemptions'
    )
    redeemed_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'deal_redemptions'
        indexes = [
            models.Index(fields=['user', 'redeemed_at'], name='redemption_user_time_idx'),
            models.Index(fields=['deal', 'redeemed_at'], name='redemption_deal_time_idx'),
        ]
        ordering = ['-redeemed_at']

    def __str__(self):
        return f"{self.user} redeemed {self.deal} at {self.redeemed_at:%Y-%m-%d %H:%M}"
