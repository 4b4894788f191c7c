"""
Wallet capacity manager.

Only active wallet items occupy slots. A per-user ``wallet_limit``
replaces the tier default entirely when set.
"""

from dataclasses import dataclass
from typing import Optional

from django.utils import timezone

from apps.accounts.models import SubscriptionTier
from apps.wallet.models import WalletItem, WalletItemStatus


# Stand-in for "unlimited" that keeps slot and percentage arithmetic finite
UNLIMITED_WALLET = 999999

DEFAULT_WALLET_LIMITS = {
    SubscriptionTier.NONE: 0,
    SubscriptionTier.FREE: 3,
    SubscriptionTier.BASIC: 10,
    SubscriptionTier.PREMIUM: 25,
    SubscriptionTier.VIP: UNLIMITED_WALLET,
}

NEAR_CAPACITY_PERCENT = 80


def get_wallet_limit(tier: str, custom_limit: Optional[int] = None) -> int:
    if custom_limit is not None:
        return custom_limit
    return DEFAULT_WALLET_LIMITS.get(tier, DEFAULT_WALLET_LIMITS[SubscriptionTier.FREE])


def can_add_to_wallet(active_count: int, tier: str, custom_limit: Optional[int] = None) -> bool:
    return active_count < get_wallet_limit(tier, custom_limit)


def is_wallet_full(active_count: int, tier: str, custom_limit: Optional[int] = None) -> bool:
    return not can_add_to_wallet(active_count, tier, custom_limit)


def get_remaining_wallet_slots(active_count: int, tier: str, custom_limit: Optional[int] = None) -> int:
    return max(0, get_wallet_limit(tier, custom_limit) - active_count)


def get_wallet_usage_percent(active_count: int, tier: str, custom_limit: Optional[int] = None) -> float:
    """Progress-bar fill; the unlimited sentinel always reports 0."""
    limit = get_wallet_limit(tier, custom_limit)
    if limit >= UNLIMITED_WALLET:
        return 0.0
    if limit <= 0:
        return 100.0
    return min(100.0, active_count / limit * 100)


def is_wallet_near_capacity(active_count: int, tier: str, custom_limit: Optional[int] = None) -> bool:
    return get_wallet_usage_percent(active_count, tier, custom_limit) >= NEAR_CAPACITY_PERCENT


def format_wallet_limit(tier: str, custom_limit: Optional[int] = None, language: str = 'en') -> str:
    limit = get_wallet_limit(tier, custom_limit)
    if limit >= UNLIMITED_WALLET:
        return 'Sınırsız' if language == 'tr' else 'Unlimited'
    return str(limit)


def count_active_items(user, now=None) -> int:
    """Active wallet items whose deal has not expired yet."""
    now = now or timezone.now()
    return WalletItem.objects.filter(
        user=user,
        status=WalletItemStatus.ACTIVE,
        deal__expires_at__gt=now,
    ).count()


@dataclass(frozen=True)
class WalletCapacity:
    active_count: int
    limit: int
    limit_label: str
    remaining_slots: int
    usage_percent: float
    is_full: bool
    is_near_capacity: bool

    @property
    def is_unlimited(self):
        return self.limit >= UNLIMITED_WALLET


def get_wallet_capacity(user, now=None) -> WalletCapacity:
    active = count_active_items(user, now)
    tier, custom = user.tier, user.wallet_limit
    return WalletCapacity(
        active_count=active,
        limit=get_wallet_limit(tier, custom),
        limit_label=format_wallet_limit(tier, custom),
        remaining_slots=get_remaining_wallet_slots(active, tier, custom),
        usage_percent=round(get_wallet_usage_percent(active, tier, custom), 1),
        is_full=is_wallet_full(active, tier, custom),
        is_near_capacity=is_wallet_near_capacity(active, tier, custom),
    )
