"""
Redemption quota accountant.

A user's monthly allowance is the tier base plus admin-granted extras.
Usage counts redemptions whose ``redeemed_at`` falls in the same local
calendar month as ``now``; the allowance resets on the first day of each
month. The subscription renewal date is reported for display only and
does not move the quota window.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from django.utils import timezone

from apps.accounts.models import BillingPeriod, SubscriptionPlan, SubscriptionTier, User
from apps.wallet.models import DealRedemption


# Monthly redemptions per tier when no active plan overrides it; None = unlimited
TIER_MONTHLY_REDEMPTIONS = {
    SubscriptionTier.NONE: 0,
    SubscriptionTier.FREE: 1,
    SubscriptionTier.BASIC: 5,
    SubscriptionTier.PREMIUM: 20,
    SubscriptionTier.VIP: None,
}

# Plan allowances at or above this are stored stand-ins for "unlimited"
UNLIMITED_PLAN_THRESHOLD = 999999


@dataclass(frozen=True)
class Quota:
    used: int
    total: Optional[int]
    remaining: Optional[int]

    @property
    def is_unlimited(self):
        return self.total is None

    @property
    def allows_redemption(self):
        return self.is_unlimited or self.remaining > 0


def get_monthly_base_allowance(tier: str) -> Optional[int]:
    """
    Monthly base allotment for a tier.

    An active SubscriptionPlan for the tier wins over the built-in table.
    Yearly plans spread their allowance evenly (floor) over 12 months.

    Returns:
        Allowed redemptions per month, or None when unlimited
    """
    plan = SubscriptionPlan.objects.filter(tier=tier, is_active=True).first()
    if plan is None:
        return TIER_MONTHLY_REDEMPTIONS.get(SubscriptionTier(tier), 0)

    if plan.redemptions_per_period >= UNLIMITED_PLAN_THRESHOLD:
        return None
    if plan.billing_period == BillingPeriod.YEARLY:
        return plan.redemptions_per_period // 12
    return plan.redemptions_per_period


def calculate_quota(
    *,
    base_allowance: Optional[int],
    extra_redemptions: int,
    redeemed_at: Iterable[datetime],
    now: datetime
) -> Quota:
    """
    Pure quota arithmetic.

    Args:
        base_allowance: Tier base per month, None when unlimited
        extra_redemptions: Admin-granted bonus, additive to the base
        redeemed_at: Timestamps of the user's historical redemptions
        now: Reference time; its local calendar month is the window

    Returns:
        Quota with used/total/remaining (total and remaining None if unlimited)
    """
    local_now = timezone.localtime(now)
    used = sum(
        1 for stamp in redeemed_at
        if _same_local_month(stamp, local_now)
    )

    return _build_quota(base_allowance, extra_redemptions, used)


def get_remaining_redemptions(user, now: Optional[datetime] = None) -> Quota:
    """Quota for a stored user, counting their redemptions this month."""
    now = now or timezone.now()
    start, end = month_bounds(now)
    used = DealRedemption.objects.filter(
        user=user,
        redeemed_at__gte=start,
        redeemed_at__lt=end,
    ).count()

    return _build_quota(get_monthly_base_allowance(user.tier), user.extra_redemptions, used)


def _build_quota(base_allowance, extra_redemptions, used) -> Quota:
    if base_allowance is None:
        return Quota(used=used, total=None, remaining=None)
    total = base_allowance + (extra_redemptions or 0)
    return Quota(used=used, total=total, remaining=max(0, total - used))


def month_bounds(now: datetime):
    """Aware [start, end) of the local calendar month containing ``now``."""
    local_now = timezone.localtime(now)
    start = timezone.make_aware(
        datetime.combine(local_now.date().replace(day=1), time.min),
        local_now.tzinfo,
    )
    return start, timezone.make_aware(
        datetime.combine(next_quota_reset(now), time.min),
        local_now.tzinfo,
    )


def next_quota_reset(now: datetime) -> date:
    """First day of the next local calendar month."""
    local_day = timezone.localtime(now).date()
    last_day = calendar.monthrange(local_day.year, local_day.month)[1]
    return local_day.replace(day=last_day) + timedelta(days=1)


def next_renewal_date(subscription_start: Optional[date], today: date) -> date:
    """
    Next subscription anniversary strictly after ``today``.

    Without a start date, falls back to one year from today (display only).
    """
    if subscription_start is None:
        return _add_years(today, 1)

    years = max(0, today.year - subscription_start.year)
    renewal = _add_years(subscription_start, years)
    while renewal <= today:
        years += 1
        renewal = _add_years(subscription_start, years)
    return renewal


def _add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 in a non-leap year
        return day.replace(year=day.year + years, day=28)


def _same_local_month(stamp: datetime, local_now: datetime) -> bool:
    local_stamp = timezone.localtime(stamp)
    return local_stamp.year == local_now.year and local_stamp.month == local_now.month


@dataclass(frozen=True)
class QuotaSummary:
    quota: Quota
    resets_on: date
    renews_on: date


def get_quota_summary(user, now: Optional[datetime] = None) -> QuotaSummary:
    """Quota with the monthly reset date and the subscription renewal date."""
    now = now or timezone.now()
    return QuotaSummary(
        quota=get_remaining_redemptions(user, now),
        resets_on=next_quota_reset(now),
        renews_on=next_renewal_date(user.subscription_start_date, timezone.localtime(now).date()),
    )


def check_monthly_limit(*, user_id, now: Optional[datetime] = None) -> Quota:
    """
    Quota for a user by id.

    Raises:
        User.DoesNotExist: Unknown user id
    """
    return get_remaining_redemptions(User.objects.get(pk=user_id), now)
