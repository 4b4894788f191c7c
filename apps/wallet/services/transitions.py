"""
Wallet item state transitions.

The only writer of ``active -> redeemed``. Every step is a conditional
UPDATE inside one transaction, so two racing redeemers cannot both win
and a rejected redemption leaves nothing behind.
"""

import logging
import secrets
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F, Q

from apps.accounts.models import User
from apps.deals.models import Deal
from apps.wallet.models import DealRedemption, WalletItem, WalletItemStatus

from .exceptions import (
    AlreadyRedeemedError,
    DealSoldOutError,
    InsufficientPermissionsError,
    InvalidOrExpiredCodeError,
    MonthlyLimitReachedError,
    WalletBusyError,
    WalletItemExpiredError,
)
from .quota import get_remaining_redemptions


logger = logging.getLogger(__name__)


def is_high_value(deal: Deal) -> bool:
    """Vendor scans of these deals need the owner's approval."""
    if deal.requires_confirmation:
        return True
    savings = deal.savings_amount
    threshold = Decimal(str(settings.REDEMPTION_CONFIRMATION_THRESHOLD))
    return savings is not None and savings >= threshold


def is_self_redemption(item: WalletItem, acting_party: User) -> bool:
    return item.user_id == acting_party.pk


def authorize_acting_party(item: WalletItem, acting_party: User) -> None:
    """
    The owner, the deal's partner, or staff may redeem.

    Raises:
        InsufficientPermissionsError: Anyone else
    """
    if acting_party is None or not acting_party.is_authenticated:
        raise InsufficientPermissionsError()
    if is_self_redemption(item, acting_party) or acting_party.is_staff:
        return
    if acting_party.is_partner and item.deal.partner_id == acting_party.pk:
        return
    raise InsufficientPermissionsError()


def codes_match(supplied: str, stored: str) -> bool:
    return secrets.compare_digest((supplied or '').encode(), stored.encode())


def check_redeemable(item: WalletItem, redemption_code: str, now: datetime) -> None:
    """
    Pre-flight checks against a read of the item.

    Raises:
        InvalidOrExpiredCodeError: Code mismatch
        AlreadyRedeemedError: Item consumed
        WalletItemExpiredError: Item or deal expired
    """
    if not codes_match(redemption_code, item.redemption_code):
        raise InvalidOrExpiredCodeError()
    status = item.effective_status(now)
    if status == WalletItemStatus.REDEEMED:
        raise AlreadyRedeemedError()
    if status == WalletItemStatus.EXPIRED:
        raise WalletItemExpiredError()


def finalize_redemption(
    *,
    wallet_item_id: UUID,
    redemption_code: str,
    redeemed_by: User,
    now: datetime
) -> DealRedemption:
    """
    Consume a wallet item.

    In one transaction:
    1. Lock the owner row and re-check the monthly quota
    2. Flip the item active -> redeemed if code and expiry still hold
    3. Increment the deal counter if below its cap
    4. Record the redemption

    Any failure rolls back all of it.

    Raises:
        MonthlyLimitReachedError: Owner has no redemptions left this month
        DealSoldOutError: Deal cap reached
        AlreadyRedeemedError, WalletItemExpiredError, InvalidOrExpiredCodeError:
            Item no longer redeemable
        WalletBusyError: Write blocked and the item is still active
    """
    try:
        with transaction.atomic():
            return _consume(wallet_item_id, redemption_code, redeemed_by, now)
    except DatabaseError:
        logger.warning(
            "Redemption of wallet item %s blocked by a concurrent write",
            wallet_item_id, exc_info=True
        )
        raise _classify_failed_transition(wallet_item_id, redemption_code, now, blocked=True)


def _consume(wallet_item_id, redemption_code, redeemed_by, now):
    item = (
        WalletItem.objects
        .select_related('deal')
        .filter(id=wallet_item_id)
        .first()
    )
    if item is None:
        raise InvalidOrExpiredCodeError()

    owner = User.objects.select_for_update().get(pk=item.user_id)
    quota = get_remaining_redemptions(owner, now)
    if not quota.allows_redemption:
        raise MonthlyLimitReachedError()

    updated = WalletItem.objects.filter(
        id=wallet_item_id,
        status=WalletItemStatus.ACTIVE,
        redemption_code=redemption_code,
        deal__expires_at__gt=now,
    ).update(status=WalletItemStatus.REDEEMED, redeemed_at=now)

    if updated != 1:
        raise _classify_failed_transition(wallet_item_id, redemption_code, now)

    incremented = (
        Deal.objects
        .filter(id=item.deal_id, is_sold_out=False)
        .filter(Q(max_redemptions__isnull=True) | Q(redemptions_count__lt=F('max_redemptions')))
        .update(redemptions_count=F('redemptions_count') + 1)
    )
    if incremented != 1:
        logger.info("Redemption rejected, deal %s sold out", item.deal_id)
        raise DealSoldOutError()

    redemption = DealRedemption.objects.create(
        deal_id=item.deal_id,
        user=owner,
        wallet_item_id=item.id,
        redeemed_by=redeemed_by,
        redeemed_at=now,
    )

    logger.info(
        "Wallet item %s redeemed for deal %s by %s",
        item.id, item.deal_id, redeemed_by.pk if redeemed_by else None
    )
    return redemption


def _classify_failed_transition(wallet_item_id, redemption_code, now, blocked=False):
    item = WalletItem.objects.select_related('deal').filter(id=wallet_item_id).first()
    if item is None or not codes_match(redemption_code, item.redemption_code):
        return InvalidOrExpiredCodeError()

    status = item.effective_status(now)
    if status == WalletItemStatus.REDEEMED:
        return AlreadyRedeemedError()
    if status == WalletItemStatus.EXPIRED:
        return WalletItemExpiredError()
    if blocked:
        # Still active: the write lost a lock, not the race
        return WalletBusyError()
    return InvalidOrExpiredCodeError()
