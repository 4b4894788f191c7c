"""
Wallet app services layer.

Claiming, redeeming and confirming wallet items, plus the quota and
capacity rules that gate them. Every state change is a conditional
update inside a transaction.
"""

from .exceptions import (
    ErrorKind,
    WalletServiceError,
    DealSoldOutError,
    MonthlyLimitReachedError,
    WalletFullError,
    AlreadyOwnedError,
    AlreadyRedeemedError,
    WalletItemExpiredError,
    InvalidOrExpiredCodeError,
    LegacyPayloadError,
    TierNotEntitledError,
    ConfirmationExpiredError,
    ConfirmationDeniedError,
    WalletItemNotFoundError,
    InsufficientPermissionsError,
    DealUnavailableError,
    WalletBusyError,
)

from .quota import (
    Quota,
    QuotaSummary,
    calculate_quota,
    get_remaining_redemptions,
    get_quota_summary,
    check_monthly_limit,
    next_quota_reset,
    next_renewal_date,
)

from .capacity import (
    UNLIMITED_WALLET,
    get_wallet_limit,
    can_add_to_wallet,
    is_wallet_full,
    get_remaining_wallet_slots,
    get_wallet_usage_percent,
    is_wallet_near_capacity,
    format_wallet_limit,
    count_active_items,
    WalletCapacity,
    get_wallet_capacity,
)

from .membership import (
    MembershipSummary,
    get_membership_summary,
)

from .qr_codec import (
    QRPayload,
    ManualCode,
    encode,
    decode,
    render_qr_png,
)

from .confirmation import (
    ConfirmationResult,
    RedemptionStatus,
    get_pending_confirmation,
    confirm_redemption,
    deny_redemption,
    get_redemption_status,
    get_wallet_item_status,
    expire_overdue_confirmations,
    purge_resolved_confirmations,
)

from .redemption import (
    RedemptionOutcome,
    claim_deal,
    redeem_wallet_item,
    resolve_scan,
    scan_and_redeem,
    get_wallet_items,
    get_wallet_item,
    get_redemption_history,
    get_partner_redemptions,
    expire_wallet_items,
)

from .polling import (
    PollOutcome,
    PollResult,
    CancellationToken,
    RedemptionStatusPoller,
)


__all__ = [
    # Exceptions
    'ErrorKind',
    'WalletServiceError',
    'DealSoldOutError',
    'MonthlyLimitReachedError',
    'WalletFullError',
    'AlreadyOwnedError',
    'AlreadyRedeemedError',
    'WalletItemExpiredError',
    'InvalidOrExpiredCodeError',
    'LegacyPayloadError',
    'TierNotEntitledError',
    'ConfirmationExpiredError',
    'ConfirmationDeniedError',
    'WalletItemNotFoundError',
    'InsufficientPermissionsError',
    'DealUnavailableError',
    'WalletBusyError',

    # Quota
    'Quota',
    'QuotaSummary',
    'calculate_quota',
    'get_remaining_redemptions',
    'get_quota_summary',
    'check_monthly_limit',
    'next_quota_reset',
    'next_renewal_date',

    # Capacity
    'UNLIMITED_WALLET',
    'get_wallet_limit',
    'can_add_to_wallet',
    'is_wallet_full',
    'get_remaining_wallet_slots',
    'get_wallet_usage_percent',
    'is_wallet_near_capacity',
    'format_wallet_limit',
    'count_active_items',
    'WalletCapacity',
    'get_wallet_capacity',

    # Membership
    'MembershipSummary',
    'get_membership_summary',

    # QR codec
    'QRPayload',
    'ManualCode',
    'encode',
    'decode',
    'render_qr_png',

    # Confirmation
    'ConfirmationResult',
    'RedemptionStatus',
    'get_pending_confirmation',
    'confirm_redemption',
    'deny_redemption',
    'get_redemption_status',
    'get_wallet_item_status',
    'expire_overdue_confirmations',
    'purge_resolved_confirmations',

    # Redemption
    'RedemptionOutcome',
    'claim_deal',
    'redeem_wallet_item',
    'resolve_scan',
    'scan_and_redeem',
    'get_wallet_items',
    'get_wallet_item',
    'get_redemption_history',
    'get_partner_redemptions',
    'expire_wallet_items',

    # Polling
    'PollOutcome',
    'PollResult',
    'CancellationToken',
    'RedemptionStatusPoller',
]
