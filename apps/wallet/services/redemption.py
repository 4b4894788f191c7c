"""
Claim and redemption service.

Claiming puts a deal instance in the user's wallet. Redeeming consumes it,
either directly (owner self-redeem, ordinary vendor scan) or through a
confirmation round-trip for high-value vendor scans.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.deals.models import Deal
from apps.deals.services import can_claim
from apps.wallet.models import (
    DealRedemption,
    PendingConfirmation,
    WalletItem,
    WalletItemStatus,
)

from .capacity import can_add_to_wallet, count_active_items
from .codes import generate_redemption_code
from .confirmation import initiate_confirmation
from .exceptions import (
    AlreadyOwnedError,
    DealSoldOutError,
    DealUnavailableError,
    InvalidOrExpiredCodeError,
    LegacyPayloadError,
    MonthlyLimitReachedError,
    TierNotEntitledError,
    WalletFullError,
    WalletItemExpiredError,
    WalletBusyError,
    WalletItemNotFoundError,
    WalletServiceError,
)
from .qr_codec import ManualCode, decode
from .quota import get_remaining_redemptions
from .transitions import (
    authorize_acting_party,
    check_redeemable,
    finalize_redemption,
    is_high_value,
    is_self_redemption,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionOutcome:
    wallet_item: WalletItem
    redemption: Optional[DealRedemption] = None
    confirmation: Optional[PendingConfirmation] = None

    @property
    def requires_confirmation(self):
        return self.confirmation is not None

    @property
    def success(self):
        return self.redemption is not None

    @property
    def message(self):
        if self.requires_confirmation:
            return 'Waiting for the customer to confirm.'
        return f"{self.wallet_item.deal.title} redeemed."


def claim_deal(
    *,
    user: User,
    deal_id: UUID,
    now: Optional[datetime] = None,
    max_retries: Optional[int] = None
) -> WalletItem:
    """
    Put a new instance of a deal in the user's wallet.

    Checks, in order, under a lock on the user row: tier entitlement,
    deal expiry, sold-out, per-user limit, wallet capacity, monthly quota.
    Claiming does not consume quota or touch the deal counter.

    Raises:
        TierNotEntitledError, WalletItemExpiredError, DealSoldOutError,
        AlreadyOwnedError, WalletFullError, MonthlyLimitReachedError,
        DealUnavailableError
        WalletBusyError: No unique code after retries, or the write was blocked
    """
    if user is None or not user.is_authenticated:
        raise TierNotEntitledError('Sign in to claim deals.')
    try:
        deal_id = deal_id if isinstance(deal_id, UUID) else UUID(str(deal_id))
    except ValueError:
        raise DealUnavailableError()

    now = now or timezone.now()
    max_retries = max_retries or settings.WALLET_CODE_MAX_RETRIES

    for attempt in range(max_retries):
        try:
            with transaction.atomic():
                member = User.objects.select_for_update().get(pk=user.pk)
                deal = Deal.objects.filter(id=deal_id, is_active=True).first()
                if deal is None:
                    raise DealUnavailableError()

                _check_claim(member, deal, now)

                item = WalletItem.objects.create(
                    user=member,
                    deal=deal,
                    redemption_code=generate_redemption_code(deal.category, deal.vendor),
                )
        except WalletServiceError as e:
            logger.info("Claim of deal %s by user %s rejected: %s", deal_id, user.pk, e.default_code)
            raise
        except IntegrityError:
            # Code collision
            if attempt == max_retries - 1:
                logger.error(
                    "No unique redemption code for deal %s after %d attempts",
                    deal_id, max_retries
                )
                raise WalletBusyError()
            continue
        except DatabaseError:
            logger.warning(
                "Claim of deal %s by user %s blocked by a concurrent write",
                deal_id, user.pk, exc_info=True
            )
            raise WalletBusyError()

        logger.info("User %s claimed deal %s as wallet item %s", member.pk, deal.id, item.id)
        return item


def _check_claim(member: User, deal: Deal, now: datetime) -> None:
    if not can_claim(member, deal):
        raise TierNotEntitledError()
    if deal.is_expired(now):
        raise WalletItemExpiredError()
    if deal.sold_out:
        raise DealSoldOutError()

    if deal.max_redemptions_per_user is not None:
        held = WalletItem.objects.filter(
            user=member,
            deal=deal,
            status__in=[WalletItemStatus.ACTIVE, WalletItemStatus.REDEEMED],
        ).count()
        if held >= deal.max_redemptions_per_user:
            raise AlreadyOwnedError()

    if not can_add_to_wallet(count_active_items(member, now), member.tier, member.wallet_limit):
        raise WalletFullError()

    if not get_remaining_redemptions(member, now).allows_redemption:
        raise MonthlyLimitReachedError()


def redeem_wallet_item(
    *,
    wallet_item_id: UUID,
    redemption_code: str,
    acting_party: User,
    now: Optional[datetime] = None
) -> RedemptionOutcome:
    """
    Redeem a wallet item, or open a confirmation for high-value vendor scans.

    Args:
        wallet_item_id: Item to consume
        redemption_code: Code presented with the item; must match exactly
        acting_party: Owner (self-redeem), the deal's partner, or staff

    Returns:
        RedemptionOutcome with either ``redemption`` or ``confirmation`` set

    Raises:
        InvalidOrExpiredCodeError: Unknown item or code mismatch
        InsufficientPermissionsError: Acting party may not redeem this item
        AlreadyRedeemedError, WalletItemExpiredError, MonthlyLimitReachedError,
        DealSoldOutError
    """
    now = now or timezone.now()

    item = (
        WalletItem.objects
        .select_related('deal', 'user')
        .filter(id=wallet_item_id)
        .first()
    )
    if item is None:
        raise InvalidOrExpiredCodeError()

    try:
        authorize_acting_party(item, acting_party)
        check_redeemable(item, redemption_code, now)

        if not is_self_redemption(item, acting_party) and is_high_value(item.deal):
            confirmation = initiate_confirmation(item=item, initiated_by=acting_party, now=now)
            return RedemptionOutcome(wallet_item=item, confirmation=confirmation)

        redemption = finalize_redemption(
            wallet_item_id=item.id,
            redemption_code=redemption_code,
            redeemed_by=acting_party,
            now=now,
        )
    except WalletServiceError as e:
        logger.info("Redemption of wallet item %s rejected: %s", item.id, e.default_code)
        raise

    item.refresh_from_db()
    return RedemptionOutcome(wallet_item=item, redemption=redemption)


def resolve_scan(raw: str, *, now: Optional[datetime] = None):
    """
    Turn scanned or typed input into ``(wallet_item_id, redemption_code)``.

    A manual code must match exactly one active, unexpired item. A code
    that only matches a deal's shared legacy code is reported as legacy.

    Raises:
        LegacyPayloadError, InvalidOrExpiredCodeError
    """
    now = now or timezone.now()
    payload = decode(raw)
    if not isinstance(payload, ManualCode):
        return payload.wallet_item_id, payload.redemption_code

    matches = list(
        WalletItem.objects.filter(
            redemption_code=payload.redemption_code,
            status=WalletItemStatus.ACTIVE,
            deal__expires_at__gt=now,
        ).values_list('id', flat=True)[:2]
    )
    if len(matches) == 1:
        return matches[0], payload.redemption_code

    if not matches and Deal.objects.filter(redemption_code__iexact=payload.redemption_code).exists():
        raise LegacyPayloadError()
    raise InvalidOrExpiredCodeError()


def scan_and_redeem(*, raw: str, acting_party: User, now: Optional[datetime] = None) -> RedemptionOutcome:
    """Vendor entry point: decode a QR or manual code and redeem it."""
    now = now or timezone.now()
    try:
        wallet_item_id, code = resolve_scan(raw, now=now)
    except (LegacyPayloadError, InvalidOrExpiredCodeError) as e:
        logger.info("Scan rejected for %s: %s", acting_party.pk, e.default_code)
        raise

    try:
        wallet_item_id = UUID(str(wallet_item_id))
    except ValueError:
        raise InvalidOrExpiredCodeError()

    return redeem_wallet_item(
        wallet_item_id=wallet_item_id,
        redemption_code=code,
        acting_party=acting_party,
        now=now,
    )


def get_wallet_items(*, user: User, status: Optional[str] = None, now: Optional[datetime] = None) -> QuerySet[WalletItem]:
    """
    User's wallet, newest first.

    ``status`` filters on effective status: an active item whose deal has
    expired is listed under expired.
    """
    now = now or timezone.now()
    queryset = WalletItem.objects.filter(user=user).select_related('deal')

    if status == WalletItemStatus.ACTIVE:
        queryset = queryset.filter(status=WalletItemStatus.ACTIVE, deal__expires_at__gt=now)
    elif status == WalletItemStatus.EXPIRED:
        queryset = queryset.filter(
            Q(status=WalletItemStatus.EXPIRED) |
            Q(status=WalletItemStatus.ACTIVE, deal__expires_at__lte=now)
        )
    elif status == WalletItemStatus.REDEEMED:
        queryset = queryset.filter(status=WalletItemStatus.REDEEMED)

    return queryset


def get_wallet_item(*, user: User, wallet_item_id: UUID) -> WalletItem:
    """
    Raises:
        WalletItemNotFoundError: Missing or owned by someone else
    """
    item = WalletItem.objects.select_related('deal').filter(id=wallet_item_id, user=user).first()
    if item is None:
        raise WalletItemNotFoundError()
    return item


def get_redemption_history(*, user: User) -> QuerySet[DealRedemption]:
    return DealRedemption.objects.filter(user=user).select_related('deal')


def get_partner_redemptions(*, partner: User) -> QuerySet[DealRedemption]:
    """Redemptions of deals a partner owns; staff see all."""
    queryset = DealRedemption.objects.select_related('deal', 'user')
    if partner.is_staff:
        return queryset
    return queryset.filter(deal__partner=partner)


def expire_wallet_items(*, now: Optional[datetime] = None) -> int:
    """Persist expiry for active items whose deal has expired. Returns the count."""
    now = now or timezone.now()
    expired = WalletItem.objects.filter(
        status=WalletItemStatus.ACTIVE,
        deal__expires_at__lte=now,
    ).update(status=WalletItemStatus.EXPIRED)

    if expired:
        logger.info("Expired %d wallet item(s)", expired)
    return expired
