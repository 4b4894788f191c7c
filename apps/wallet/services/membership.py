"""Membership summary shown on the profile and wallet screens."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from django.utils import timezone

from .capacity import WalletCapacity, get_wallet_capacity
from .quota import Quota, get_quota_summary


@dataclass(frozen=True)
class MembershipSummary:
    tier: str
    quota: Quota
    resets_on: date
    renews_on: date
    wallet: WalletCapacity


def get_membership_summary(user, now: Optional[datetime] = None) -> MembershipSummary:
    now = now or timezone.now()
    quota_summary = get_quota_summary(user, now)
    return MembershipSummary(
        tier=user.tier,
        quota=quota_summary.quota,
        resets_on=quota_summary.resets_on,
        renews_on=quota_summary.renews_on,
        wallet=get_wallet_capacity(user, now),
    )
