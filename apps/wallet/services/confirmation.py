"""
Redemption confirmation service.

High-value vendor scans open a short-lived PendingConfirmation instead of
redeeming. The owner approves or declines it from their wallet; the
vendor polls the item's status until it settles.

Confirming never raises. It returns a ConfirmationResult, and anything
short of a clean, in-window approval leaves the item untouched.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.wallet.models import (
    ConfirmationState,
    PendingConfirmation,
    WalletItem,
    WalletItemStatus,
)

from .exceptions import (
    AlreadyRedeemedError,
    ConfirmationDeniedError,
    ConfirmationExpiredError,
    InsufficientPermissionsError,
    InvalidOrExpiredCodeError,
    WalletBusyError,
    WalletItemNotFoundError,
    WalletServiceError,
)
from .transitions import authorize_acting_party, finalize_redemption


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmationResult:
    success: bool
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class RedemptionStatus:
    wallet_item_id: UUID
    status: str
    confirmation_state: Optional[str] = None
    confirmation_expires_at: Optional[datetime] = None

    @property
    def is_settled(self):
        return (
            self.status != WalletItemStatus.ACTIVE
            or self.confirmation_state not in (None, ConfirmationState.PENDING)
        )


def initiate_confirmation(
    *,
    item: WalletItem,
    initiated_by: User,
    now: datetime,
    max_retries: int = 5
) -> PendingConfirmation:
    """
    Open a confirmation window for a wallet item.

    Earlier pending confirmations for the item are superseded, so only the
    latest scan can be approved.

    Raises:
        WalletBusyError: If cannot generate a unique token after retries
    """
    window = timedelta(seconds=settings.REDEMPTION_CONFIRMATION_WINDOW_SECONDS)

    for attempt in range(max_retries):
        try:
            with transaction.atomic():
                PendingConfirmation.objects.filter(
                    wallet_item=item,
                    state=ConfirmationState.PENDING,
                ).update(state=ConfirmationState.SUPERSEDED, resolved_at=now)

                confirmation = PendingConfirmation.objects.create(
                    wallet_item=item,
                    token=secrets.token_urlsafe(32),
                    initiated_by=initiated_by,
                    expires_at=now + window,
                )
        except IntegrityError:
            if attempt == max_retries - 1:
                logger.error(
                    "No unique confirmation token for wallet item %s after %d attempts",
                    item.id, max_retries
                )
                raise WalletBusyError()
            continue

        logger.info(
            "Confirmation requested for wallet item %s by %s",
            item.id, initiated_by.pk
        )
        return confirmation


def get_pending_confirmation(
    *,
    wallet_item_id: UUID,
    user: User,
    now: Optional[datetime] = None
) -> Optional[PendingConfirmation]:
    """Latest in-window confirmation on the user's own item, if any."""
    now = now or timezone.now()
    return (
        PendingConfirmation.objects
        .filter(
            wallet_item_id=wallet_item_id,
            wallet_item__user=user,
            state=ConfirmationState.PENDING,
            expires_at__gt=now,
        )
        .select_related('wallet_item__deal', 'initiated_by')
        .order_by('-created_at')
        .first()
    )


def confirm_redemption(
    *,
    wallet_item_id: UUID,
    token: str,
    user: User,
    now: Optional[datetime] = None
) -> ConfirmationResult:
    """
    Owner approves a vendor-initiated redemption.

    The confirmation is claimed PENDING -> CONFIRMED and the item redeemed
    in the same transaction, so a failed redemption also un-confirms.
    """
    now = now or timezone.now()

    try:
        with transaction.atomic():
            claimed = PendingConfirmation.objects.filter(
                wallet_item_id=wallet_item_id,
                wallet_item__user=user,
                token=token,
                state=ConfirmationState.PENDING,
                expires_at__gt=now,
            ).update(state=ConfirmationState.CONFIRMED, resolved_at=now)

            if claimed != 1:
                raise _classify_confirmation_failure(wallet_item_id, token, user, now)

            confirmation = PendingConfirmation.objects.select_related(
                'wallet_item', 'initiated_by'
            ).get(token=token)
            finalize_redemption(
                wallet_item_id=confirmation.wallet_item_id,
                redemption_code=confirmation.wallet_item.redemption_code,
                redeemed_by=confirmation.initiated_by,
                now=now,
            )
    except WalletServiceError as e:
        logger.info(
            "Confirmation failed for wallet item %s: %s",
            wallet_item_id, e.default_code
        )
        return ConfirmationResult(success=False, message=str(e.detail), code=e.default_code)
    except DatabaseError:
        logger.warning(
            "Confirmation for wallet item %s blocked by a concurrent write",
            wallet_item_id, exc_info=True
        )
        busy = WalletBusyError()
        return ConfirmationResult(success=False, message=str(busy.detail), code=busy.default_code)

    logger.info("Confirmation accepted for wallet item %s", wallet_item_id)
    return ConfirmationResult(success=True, message='Redemption confirmed.')


def deny_redemption(
    *,
    wallet_item_id: UUID,
    token: str,
    user: User,
    now: Optional[datetime] = None
) -> ConfirmationResult:
    """Owner declines a vendor-initiated redemption. The item stays active."""
    now = now or timezone.now()

    denied = PendingConfirmation.objects.filter(
        wallet_item_id=wallet_item_id,
        wallet_item__user=user,
        token=token,
        state=ConfirmationState.PENDING,
        expires_at__gt=now,
    ).update(state=ConfirmationState.DENIED, resolved_at=now)

    if denied != 1:
        error = _classify_confirmation_failure(wallet_item_id, token, user, now)
        return ConfirmationResult(success=False, message=str(error.detail), code=error.default_code)

    logger.info("Confirmation denied for wallet item %s", wallet_item_id)
    return ConfirmationResult(success=True, message='Redemption declined.')


def _classify_confirmation_failure(wallet_item_id, token, user, now) -> WalletServiceError:
    confirmation = (
        PendingConfirmation.objects
        .select_related('wallet_item')
        .filter(wallet_item_id=wallet_item_id, token=token)
        .first()
    )
    if confirmation is None:
        return InvalidOrExpiredCodeError('Invalid confirmation request.')
    if confirmation.wallet_item.user_id != user.pk:
        return InsufficientPermissionsError('Only the wallet owner can respond to this request.')

    state = confirmation.effective_state(now)
    if state == ConfirmationState.DENIED:
        return ConfirmationDeniedError()
    if state == ConfirmationState.CONFIRMED:
        return AlreadyRedeemedError()
    return ConfirmationExpiredError()


def get_redemption_status(
    *,
    wallet_item_id: UUID,
    viewer: User,
    now: Optional[datetime] = None
) -> RedemptionStatus:
    """
    Item status plus its latest confirmation, for vendor polling.

    Raises:
        WalletItemNotFoundError: Unknown item
        InsufficientPermissionsError: Viewer is not owner, the deal's partner, or staff
    """
    now = now or timezone.now()
    item = WalletItem.objects.select_related('deal').filter(id=wallet_item_id).first()
    if item is None:
        raise WalletItemNotFoundError()
    authorize_acting_party(item, viewer)

    latest = item.confirmations.order_by('-created_at').first()
    return RedemptionStatus(
        wallet_item_id=item.id,
        status=item.effective_status(now),
        confirmation_state=latest.effective_state(now) if latest else None,
        confirmation_expires_at=latest.expires_at if latest else None,
    )


def expire_overdue_confirmations(now: Optional[datetime] = None) -> int:
    """Mark overdue pending confirmations expired. Returns the count."""
    now = now or timezone.now()
    return PendingConfirmation.objects.filter(
        state=ConfirmationState.PENDING,
        expires_at__lte=now,
    ).update(state=ConfirmationState.EXPIRED, resolved_at=now)


def purge_resolved_confirmations(*, older_than: datetime) -> int:
    """Delete non-pending confirmations resolved before ``older_than``."""
    deleted, _ = PendingConfirmation.objects.exclude(
        state=ConfirmationState.PENDING
    ).filter(resolved_at__lt=older_than).delete()
    return deleted


def get_wallet_item_status(*, wallet_item_id: UUID, viewer: User, now: Optional[datetime] = None) -> str:
    """Effective status of a wallet item: active, redeemed or expired."""
    return get_redemption_status(wallet_item_id=wallet_item_id, viewer=viewer, now=now).status
