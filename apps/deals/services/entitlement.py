"""
Tier & entitlement resolver.

Two predicates that look alike but must stay separate:

- ``is_locked`` drives display. An anonymous visitor previews FREE deals
  as unlocked.
- ``can_claim`` gates actions (claim, redeem). It always requires a user.
"""

from typing import Optional

from apps.accounts.models import SubscriptionTier, TIER_RANK


def tier_rank(tier: str) -> int:
    """Rank of a tier in NONE < FREE < BASIC < PREMIUM < VIP."""
    return TIER_RANK[SubscriptionTier(tier)]


def _member(user) -> Optional[object]:
    """Return the user when authenticated, otherwise None."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return user


def can_claim(user, deal) -> bool:
    """True iff a user exists and their tier ranks at or above the deal's."""
    member = _member(user)
    if member is None:
        return False
    return tier_rank(member.tier) >= tier_rank(deal.required_tier)


def is_locked(user, deal) -> bool:
    """Display lock state; anonymous visitors may preview FREE deals."""
    member = _member(user)
    if member is None:
        return deal.required_tier != SubscriptionTier.FREE
    return not can_claim(member, deal)
