"""
Vendor-side status poller.

After a scan opens a confirmation, the vendor polls the item's status at a
fixed interval until it settles or the attempt ceiling is hit. The wait
between attempts is interruptible through a CancellationToken, so a
closed screen stops polling immediately.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from django.conf import settings
from django.db import models

from apps.wallet.models import ConfirmationState, WalletItemStatus

from .confirmation import RedemptionStatus


logger = logging.getLogger(__name__)


class PollOutcome(models.TextChoices):
    REDEEMED = 'redeemed', 'Redeemed'
    DENIED = 'denied', 'Denied by customer'
    EXPIRED = 'expired', 'Expired'
    TIMED_OUT = 'timed_out', 'Timed out'
    CANCELLED = 'cancelled', 'Cancelled'


class CancellationToken:
    """Thread-safe cancel flag with an interruptible wait."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


@dataclass(frozen=True)
class PollResult:
    outcome: str
    attempts: int
    last_status: Optional[RedemptionStatus] = None

    @property
    def success(self):
        return self.outcome == PollOutcome.REDEEMED


class RedemptionStatusPoller:
    """
    Poll ``fetch_status(wallet_item_id)`` until the redemption settles.

    Stops on:
    - redeemed item (success)
    - denied, expired or superseded confirmation, or expired item (failure)
    - attempt ceiling (timed out)
    - cancellation
    """

    def __init__(
        self,
        fetch_status: Callable[[object], RedemptionStatus],
        *,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None
    ):
        self.fetch_status = fetch_status
        self.interval = settings.VENDOR_POLL_INTERVAL_SECONDS if interval is None else interval
        self.max_attempts = settings.VENDOR_POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts

    def poll(self, wallet_item_id, cancel_token: Optional[CancellationToken] = None) -> PollResult:
        token = cancel_token or CancellationToken()
        status = None

        for attempt in range(1, self.max_attempts + 1):
            if token.cancelled:
                return PollResult(PollOutcome.CANCELLED, attempt - 1, status)

            status = self.fetch_status(wallet_item_id)
            outcome = self._settled_outcome(status)
            if outcome is not None:
                logger.info("Polling wallet item %s settled: %s", wallet_item_id, outcome)
                return PollResult(outcome, attempt, status)

            if attempt < self.max_attempts and token.wait(self.interval):
                return PollResult(PollOutcome.CANCELLED, attempt, status)

        logger.info("Polling wallet item %s timed out after %d attempts", wallet_item_id, self.max_attempts)
        return PollResult(PollOutcome.TIMED_OUT, self.max_attempts, status)

    @staticmethod
    def _settled_outcome(status: RedemptionStatus) -> Optional[str]:
        if status.status == WalletItemStatus.REDEEMED:
            return PollOutcome.REDEEMED
        if status.status == WalletItemStatus.EXPIRED:
            return PollOutcome.EXPIRED
        if status.confirmation_state == ConfirmationState.DENIED:
            return PollOutcome.DENIED
        if status.confirmation_state in (ConfirmationState.EXPIRED, ConfirmationState.SUPERSEDED):
            return PollOutcome.EXPIRED
        return None
