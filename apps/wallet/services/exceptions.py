"""
Domain exceptions for the wallet app.

Every failure the client must tell apart has its own ``ErrorKind``. The
kind travels as the exception's ``default_code`` and is rendered as
``code`` in API error bodies, so callers never match on message text.
"""
from django.db import models
from rest_framework.exceptions import APIException


class ErrorKind(models.TextChoices):
    SOLD_OUT = 'sold_out', 'Sold out'
    LIMIT_REACHED = 'limit_reached', 'Monthly limit reached'
    WALLET_FULL = 'wallet_full', 'Wallet full'
    ALREADY_OWNED = 'already_owned', 'Already owned'
    ALREADY_REDEEMED = 'already_redeemed', 'Already redeemed'
    ITEM_EXPIRED = 'item_expired', 'Expired'
    INVALID_OR_EXPIRED_CODE = 'invalid_or_expired_code', 'Invalid or expired code'
    LEGACY_FORMAT = 'legacy_format', 'Legacy code format'
    NOT_ENTITLED = 'not_entitled', 'Tier too low'
    CONFIRMATION_EXPIRED = 'confirmation_expired', 'Confirmation expired'
    CONFIRMATION_DENIED = 'confirmation_denied', 'Confirmation denied'
    NOT_FOUND = 'not_found', 'Not found'
    PERMISSION_DENIED = 'permission_denied', 'Permission denied'
    TRY_AGAIN = 'try_again', 'Try again'


class WalletServiceError(APIException):
    """Base exception for wallet service errors."""
    status_code = 400
    default_detail = 'The wallet operation could not be completed.'
    default_code = 'wallet_error'

    @property
    def kind(self):
        return ErrorKind(self.default_code)


class DealSoldOutError(WalletServiceError):
    """Deal-level redemption cap reached."""
    status_code = 409
    default_detail = 'This deal is sold out.'
    default_code = ErrorKind.SOLD_OUT.value


class MonthlyLimitReachedError(WalletServiceError):
    """User's monthly redemption quota exhausted."""
    status_code = 403
    default_detail = 'You have reached your monthly redemption limit.'
    default_code = ErrorKind.LIMIT_REACHED.value


class WalletFullError(WalletServiceError):
    """Wallet capacity ceiling hit."""
    status_code = 403
    default_detail = 'Your wallet is full. Redeem or remove a deal, or upgrade your plan.'
    default_code = ErrorKind.WALLET_FULL.value


class AlreadyOwnedError(WalletServiceError):
    """Per-user usage limit for the deal already used up."""
    status_code = 409
    default_detail = 'You already own this deal.'
    default_code = ErrorKind.ALREADY_OWNED.value


class AlreadyRedeemedError(WalletServiceError):
    """Wallet item was already consumed."""
    status_code = 409
    default_detail = 'This deal has already been redeemed.'
    default_code = ErrorKind.ALREADY_REDEEMED.value


class WalletItemExpiredError(WalletServiceError):
    """Wallet item or its deal has expired."""
    status_code = 410
    default_detail = 'This deal has expired.'
    default_code = ErrorKind.ITEM_EXPIRED.value


class InvalidOrExpiredCodeError(WalletServiceError):
    """Scanned or typed code does not resolve to exactly one active item."""
    status_code = 400
    default_detail = 'Invalid or expired code.'
    default_code = ErrorKind.INVALID_OR_EXPIRED_CODE.value


class LegacyPayloadError(WalletServiceError):
    """Deal-level code or {dealId, userId} payload from the old scanner flow."""
    status_code = 400
    default_detail = 'This code uses a legacy format. Please regenerate the code from the wallet.'
    default_code = ErrorKind.LEGACY_FORMAT.value


class TierNotEntitledError(WalletServiceError):
    """User's tier is below the deal's required tier, or no user."""
    status_code = 403
    default_detail = 'Your subscription tier does not include this deal.'
    default_code = ErrorKind.NOT_ENTITLED.value


class ConfirmationExpiredError(WalletServiceError):
    status_code = 410
    default_detail = 'The confirmation window has closed. Please scan again.'
    default_code = ErrorKind.CONFIRMATION_EXPIRED.value


class ConfirmationDeniedError(WalletServiceError):
    status_code = 409
    default_detail = 'The customer declined this redemption.'
    default_code = ErrorKind.CONFIRMATION_DENIED.value


class WalletItemNotFoundError(WalletServiceError):
    status_code = 404
    default_detail = 'Wallet item not found.'
    default_code = ErrorKind.NOT_FOUND.value


class InsufficientPermissionsError(WalletServiceError):
    """Acting party may not perform this operation on the item."""
    status_code = 403
    default_detail = 'You do not have permission to redeem this deal.'
    default_code = ErrorKind.PERMISSION_DENIED.value


class DealUnavailableError(WalletServiceError):
    """Deal does not exist or is no longer listed."""
    status_code = 404
    default_detail = 'Deal not found.'
    default_code = ErrorKind.NOT_FOUND.value


class WalletBusyError(WalletServiceError):
    """Write could not be completed right now; nothing was changed."""
    status_code = 503
    default_detail = 'The wallet is busy. Please try again.'
    default_code = ErrorKind.TRY_AGAIN.value
