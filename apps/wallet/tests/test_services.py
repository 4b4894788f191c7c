"""
Tests for the wallet services layer.

Covers claiming, direct and confirmed redemption, scanning, expiry and
the status reads used by vendor polling. Service calls take ``now``
explicitly so time-dependent rules are deterministic.
"""

import pytest
import threading
import uuid
from datetime import timedelta
from unittest.mock import patch
from decimal import Decimal

from django.contrib.auth.models import AnonymousUser
from django.db import OperationalError, connection
from django.test import TransactionTestCase

from apps.accounts.models import SubscriptionTier, User
from apps.deals.models import Deal
from apps.wallet.models import (
    ConfirmationState,
    DealRedemption,
    PendingConfirmation,
    WalletItem,
    WalletItemStatus,
)
from apps.wallet.services import (
    claim_deal,
    confirm_redemption,
    deny_redemption,
    encode,
    expire_overdue_confirmations,
    expire_wallet_items,
    get_partner_redemptions,
    get_pending_confirmation,
    get_redemption_history,
    get_redemption_status,
    get_wallet_item_status,
    get_wallet_items,
    purge_resolved_confirmations,
    redeem_wallet_item,
    scan_and_redeem,
)
from apps.wallet.services.exceptions import (
    AlreadyOwnedError,
    AlreadyRedeemedError,
    DealSoldOutError,
    DealUnavailableError,
    ErrorKind,
    InsufficientPermissionsError,
    InvalidOrExpiredCodeError,
    LegacyPayloadError,
    MonthlyLimitReachedError,
    TierNotEntitledError,
    WalletBusyError,
    WalletFullError,
    WalletItemExpiredError,
    WalletItemNotFoundError,
)
from apps.wallet.services.transitions import finalize_redemption


# =============================================================================
# Claim
# =============================================================================

@pytest.mark.django_db
class TestClaimDeal:
    """Tests for claim_deal()."""

    def test_claim_creates_active_item(self, free_user, deal, now):
        """Claiming reserves an instance with its own code."""
        item = claim_deal(user=free_user, deal_id=deal.id, now=now)

        assert item.user == free_user
        assert item.deal == deal
        assert item.status == WalletItemStatus.ACTIVE
        assert item.redemption_code.startswith('FOOB-')
        assert item.redemption_code != deal.redemption_code

    def test_claim_does_not_consume_anything(self, free_user, deal, now):
        """Claim is a reservation: no counter, no quota use."""
        claim_deal(user=free_user, deal_id=deal.id, now=now)

        deal.refresh_from_db()
        assert deal.redemptions_count == 0
        assert DealRedemption.objects.count() == 0

    def test_each_claim_gets_a_distinct_code(self, basic_user, deal, now):
        first = claim_deal(user=basic_user, deal_id=deal.id, now=now)
        second = claim_deal(user=basic_user, deal_id=deal.id, now=now)

        assert first.redemption_code != second.redemption_code

    def test_anonymous_cannot_claim_free_deal(self, deal, now):
        with pytest.raises(TierNotEntitledError):
            claim_deal(user=AnonymousUser(), deal_id=deal.id, now=now)

    def test_tier_too_low(self, free_user, premium_deal, now):
        with pytest.raises(TierNotEntitledError) as exc_info:
            claim_deal(user=free_user, deal_id=premium_deal.id, now=now)
        assert exc_info.value.kind == ErrorKind.NOT_ENTITLED

    def test_higher_tier_can_claim(self, vip_user, premium_deal, now):
        assert claim_deal(user=vip_user, deal_id=premium_deal.id, now=now).deal == premium_deal

    def test_unlisted_deal(self, free_user, make_deal, now):
        hidden = make_deal(is_active=False)

        with pytest.raises(DealUnavailableError):
            claim_deal(user=free_user, deal_id=hidden.id, now=now)

    def test_expired_deal(self, free_user, make_deal, now):
        ended = make_deal(expires_at=now - timedelta(days=1))

        with pytest.raises(WalletItemExpiredError):
            claim_deal(user=free_user, deal_id=ended.id, now=now)

    def test_sold_out_by_count(self, free_user, make_deal, now):
        capped = make_deal(max_redemptions=2, redemptions_count=2)

        with pytest.raises(DealSoldOutError) as exc_info:
            claim_deal(user=free_user, deal_id=capped.id, now=now)
        assert exc_info.value.status_code == 409

    def test_sold_out_by_flag(self, free_user, make_deal, now):
        flagged = make_deal(is_sold_out=True)

        with pytest.raises(DealSoldOutError):
            claim_deal(user=free_user, deal_id=flagged.id, now=now)

    def test_single_use_deal_blocks_second_claim(self, basic_user, make_deal, now):
        single = make_deal(max_redemptions_per_user=1)
        claim_deal(user=basic_user, deal_id=single.id, now=now)

        with pytest.raises(AlreadyOwnedError):
            claim_deal(user=basic_user, deal_id=single.id, now=now)

    def test_single_use_deal_blocked_after_redemption(self, basic_user, make_deal, make_item, now):
        """A redeemed item still counts as having used the deal."""
        single = make_deal(max_redemptions_per_user=1)
        make_item(basic_user, single, status=WalletItemStatus.REDEEMED)

        with pytest.raises(AlreadyOwnedError):
            claim_deal(user=basic_user, deal_id=single.id, now=now)

    def test_expired_item_does_not_block_single_use_deal(self, basic_user, make_deal, make_item, now):
        single = make_deal(max_redemptions_per_user=1)
        make_item(basic_user, single, status=WalletItemStatus.EXPIRED)

        assert claim_deal(user=basic_user, deal_id=single.id, now=now).status == WalletItemStatus.ACTIVE

    def test_per_user_cap_above_one(self, basic_user, make_deal, make_item, now):
        double = make_deal(max_redemptions_per_user=2)
        make_item(basic_user, double, status=WalletItemStatus.REDEEMED)
        claim_deal(user=basic_user, deal_id=double.id, now=now)

        with pytest.raises(AlreadyOwnedError):
            claim_deal(user=basic_user, deal_id=double.id, now=now)

    def test_wallet_full(self, free_user, deal, make_item, now):
        for _ in range(3):
            make_item(free_user, deal)

        with pytest.raises(WalletFullError):
            claim_deal(user=free_user, deal_id=deal.id, now=now)

    def test_redeemed_items_free_wallet_slots(self, free_user, deal, make_item, now):
        make_item(free_user, deal)
        make_item(free_user, deal)
        make_item(free_user, deal, status=WalletItemStatus.REDEEMED)

        assert claim_deal(user=free_user, deal_id=deal.id, now=now)

    def test_wallet_override(self, basic_user, deal, make_item, now):
        basic_user.wallet_limit = 1
        basic_user.save()
        make_item(basic_user, deal)

        with pytest.raises(WalletFullError):
            claim_deal(user=basic_user, deal_id=deal.id, now=now)

    def test_monthly_limit_reached(self, free_user, deal, record_redemption, now):
        record_redemption(free_user, deal, now - timedelta(days=3))

        with pytest.raises(MonthlyLimitReachedError) as exc_info:
            claim_deal(user=free_user, deal_id=deal.id, now=now)
        assert exc_info.value.kind == ErrorKind.LIMIT_REACHED

    def test_extra_redemptions_extend_quota(self, free_user, deal, record_redemption, now):
        free_user.extra_redemptions = 1
        free_user.save()
        record_redemption(free_user, deal, now - timedelta(days=3))

        assert claim_deal(user=free_user, deal_id=deal.id, now=now)


# =============================================================================
# Direct redemption
# =============================================================================

@pytest.mark.django_db
class TestDirectRedemption:
    """Tests for redeem_wallet_item() on the direct path."""

    def test_owner_self_redeem(self, free_user, deal, now):
        item = claim_deal(user=free_user, deal_id=deal.id, now=now)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=free_user,
            now=now,
        )

        assert outcome.success is True
        assert outcome.requires_confirmation is False
        assert outcome.message == 'Coffee for two redeemed.'

        item.refresh_from_db()
        deal.refresh_from_db()
        assert item.status == WalletItemStatus.REDEEMED
        assert item.redeemed_at == now
        assert deal.redemptions_count == 1

        redemption = DealRedemption.objects.get(wallet_item=item)
        assert redemption.user == free_user
        assert redemption.redeemed_by == free_user
        assert redemption.redeemed_at == now

    def test_partner_redeems_low_value_item(self, free_user, partner, deal, make_item, now):
        item = make_item(free_user, deal)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=partner,
            now=now,
        )

        assert outcome.success is True
        assert DealRedemption.objects.get(wallet_item=item).redeemed_by == partner

    def test_staff_may_redeem_any_deal(self, free_user, staff_user, deal, make_item, now):
        item = make_item(free_user, deal)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=staff_user,
            now=now,
        )

        assert outcome.success is True

    def test_partner_of_another_deal_is_rejected(self, free_user, other_partner, deal, make_item, now):
        item = make_item(free_user, deal)

        with pytest.raises(InsufficientPermissionsError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=other_partner,
                now=now,
            )

        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE

    def test_other_member_is_rejected(self, free_user, basic_user, deal, make_item, now):
        item = make_item(free_user, deal)

        with pytest.raises(InsufficientPermissionsError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=basic_user,
                now=now,
            )

    def test_wrong_code(self, free_user, deal, make_item, now):
        item = make_item(free_user, deal)

        with pytest.raises(InvalidOrExpiredCodeError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code='FOOB-WRONG123',
                acting_party=free_user,
                now=now,
            )

        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE

    def test_unknown_item(self, free_user, now):
        with pytest.raises(InvalidOrExpiredCodeError):
            redeem_wallet_item(
                wallet_item_id=uuid.uuid4(),
                redemption_code='FOOB-ABCDEFGH',
                acting_party=free_user,
                now=now,
            )

    def test_second_redemption_is_already_redeemed(self, basic_user, deal, make_item, now):
        item = make_item(basic_user, deal)
        redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=basic_user,
            now=now,
        )

        with pytest.raises(AlreadyRedeemedError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=basic_user,
                now=now,
            )

        deal.refresh_from_db()
        assert deal.redemptions_count == 1

    def test_expired_deal(self, free_user, make_deal, make_item, now):
        ended = make_deal(expires_at=now - timedelta(minutes=1))
        item = make_item(free_user, ended)

        with pytest.raises(WalletItemExpiredError) as exc_info:
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=free_user,
                now=now,
            )
        assert exc_info.value.kind == ErrorKind.ITEM_EXPIRED

    def test_sold_out_at_redemption_rolls_back(self, free_user, make_deal, make_item, now):
        """Hitting the deal cap leaves the item active and nothing recorded."""
        capped = make_deal(max_redemptions=1, redemptions_count=1)
        item = make_item(free_user, capped)

        with pytest.raises(DealSoldOutError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=free_user,
                now=now,
            )

        item.refresh_from_db()
        capped.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE
        assert item.redeemed_at is None
        assert capped.redemptions_count == 1
        assert DealRedemption.objects.count() == 0

    def test_last_unit_can_be_redeemed(self, free_user, make_deal, make_item, now):
        capped = make_deal(max_redemptions=3, redemptions_count=2)
        item = make_item(free_user, capped)

        redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=free_user,
            now=now,
        )

        capped.refresh_from_db()
        assert capped.redemptions_count == 3
        assert capped.sold_out is True

    def test_quota_exhausted_at_redemption(self, free_user, deal, make_item, record_redemption, now):
        item = make_item(free_user, deal)
        record_redemption(free_user, deal, now - timedelta(days=1))

        with pytest.raises(MonthlyLimitReachedError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=free_user,
                now=now,
            )

        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE

    def test_stale_reader_cannot_redeem_twice(self, basic_user, deal, make_item, now):
        """Two callers that both saw the item active: only the first flips it."""
        item = make_item(basic_user, deal)
        kwargs = dict(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            redeemed_by=basic_user,
            now=now,
        )

        finalize_redemption(**kwargs)
        with pytest.raises(AlreadyRedeemedError):
            finalize_redemption(**kwargs)

        deal.refresh_from_db()
        assert deal.redemptions_count == 1
        assert DealRedemption.objects.filter(wallet_item=item).count() == 1


# =============================================================================
# Confirmation protocol
# =============================================================================

@pytest.fixture
def scanned(free_user, partner, high_value_deal, make_item, now):
    """A high-value item the partner has scanned, awaiting approval."""
    item = make_item(free_user, high_value_deal)
    outcome = redeem_wallet_item(
        wallet_item_id=item.id,
        redemption_code=item.redemption_code,
        acting_party=partner,
        now=now,
    )
    return item, outcome.confirmation


@pytest.mark.django_db
class TestConfirmationProtocol:
    """Tests for high-value vendor scans and confirm/deny."""

    def test_high_value_scan_requires_confirmation(self, free_user, partner, high_value_deal, make_item, now):
        item = make_item(free_user, high_value_deal)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=partner,
            now=now,
        )

        assert outcome.requires_confirmation is True
        assert outcome.success is False
        assert outcome.confirmation.state == ConfirmationState.PENDING
        assert outcome.confirmation.expires_at == now + timedelta(seconds=60)
        assert outcome.confirmation.initiated_by == partner

        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE
        assert DealRedemption.objects.count() == 0

    def test_flagged_deal_requires_confirmation(self, free_user, partner, make_deal, make_item, now):
        flagged = make_deal(requires_confirmation=True)
        item = make_item(free_user, flagged)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=partner,
            now=now,
        )

        assert outcome.requires_confirmation is True

    def test_threshold_is_inclusive(self, free_user, partner, make_deal, make_item, now):
        at_threshold = make_deal(original_price=Decimal('150.00'), discounted_price=Decimal('50.00'))
        item = make_item(free_user, at_threshold)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=partner,
            now=now,
        )

        assert outcome.requires_confirmation is True

    def test_owner_self_redeem_skips_confirmation(self, free_user, high_value_deal, make_item, now):
        item = make_item(free_user, high_value_deal)

        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=free_user,
            now=now,
        )

        assert outcome.success is True
        assert PendingConfirmation.objects.count() == 0

    def test_confirm_within_window(self, scanned, free_user, partner, high_value_deal, now):
        item, confirmation = scanned

        result = confirm_redemption(
            wallet_item_id=item.id,
            token=confirmation.token,
            user=free_user,
            now=now + timedelta(seconds=10),
        )

        assert result.success is True
        assert result.code is None

        item.refresh_from_db()
        confirmation.refresh_from_db()
        high_value_deal.refresh_from_db()
        assert item.status == WalletItemStatus.REDEEMED
        assert confirmation.state == ConfirmationState.CONFIRMED
        assert high_value_deal.redemptions_count == 1
        assert DealRedemption.objects.get(wallet_item=item).redeemed_by == partner

    def test_confirm_after_timeout_fails_closed(self, scanned, free_user, now):
        item, confirmation = scanned

        result = confirm_redemption(
            wallet_item_id=item.id,
            token=confirmation.token,
            user=free_user,
            now=now + timedelta(seconds=61),
        )

        assert result.success is False
        assert result.code == ErrorKind.CONFIRMATION_EXPIRED
        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE
        assert DealRedemption.objects.count() == 0

    def test_confirm_with_wrong_token(self, scanned, free_user, now):
        item, _ = scanned

        result = confirm_redemption(wallet_item_id=item.id, token='not-the-token', user=free_user, now=now)

        assert result.success is False
        assert result.code == ErrorKind.INVALID_OR_EXPIRED_CODE

    def test_only_owner_can_confirm(self, scanned, basic_user, now):
        item, confirmation = scanned

        result = confirm_redemption(
            wallet_item_id=item.id,
            token=confirmation.token,
            user=basic_user,
            now=now,
        )

        assert result.success is False
        assert result.code == ErrorKind.PERMISSION_DENIED
        confirmation.refresh_from_db()
        assert confirmation.state == ConfirmationState.PENDING

    def test_token_is_single_use(self, scanned, free_user, now):
        item, confirmation = scanned
        confirm_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)

        result = confirm_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)

        assert result.success is False
        assert result.code == ErrorKind.ALREADY_REDEEMED

    def test_deny_keeps_item_active(self, scanned, free_user, now):
        item, confirmation = scanned

        denied = deny_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)
        confirmed = confirm_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)

        assert denied.success is True
        assert confirmed.success is False
        assert confirmed.code == ErrorKind.CONFIRMATION_DENIED
        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE

    def test_deny_after_window(self, scanned, free_user, now):
        item, confirmation = scanned

        result = deny_redemption(
            wallet_item_id=item.id,
            token=confirmation.token,
            user=free_user,
            now=now + timedelta(minutes=5),
        )

        assert result.success is False
        assert result.code == ErrorKind.CONFIRMATION_EXPIRED

    def test_rescan_supersedes_previous_request(self, scanned, free_user, partner, now):
        item, first = scanned
        second = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=partner,
            now=now + timedelta(seconds=5),
        ).confirmation

        stale = confirm_redemption(wallet_item_id=item.id, token=first.token, user=free_user, now=now)
        fresh = confirm_redemption(wallet_item_id=item.id, token=second.token, user=free_user, now=now)

        first.refresh_from_db()
        assert first.state == ConfirmationState.SUPERSEDED
        assert stale.success is False
        assert stale.code == ErrorKind.CONFIRMATION_EXPIRED
        assert fresh.success is True

    def test_failed_redemption_leaves_confirmation_pending(self, scanned, free_user, deal, record_redemption, now):
        """Quota spent between scan and approval: nothing is consumed."""
        item, confirmation = scanned
        record_redemption(free_user, deal, now - timedelta(days=1))

        result = confirm_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)

        assert result.success is False
        assert result.code == ErrorKind.LIMIT_REACHED
        item.refresh_from_db()
        confirmation.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE
        assert confirmation.state == ConfirmationState.PENDING

    def test_pending_confirmation_for_owner(self, scanned, free_user, basic_user, now):
        item, confirmation = scanned

        assert get_pending_confirmation(wallet_item_id=item.id, user=free_user, now=now) == confirmation
        assert get_pending_confirmation(wallet_item_id=item.id, user=basic_user, now=now) is None
        assert get_pending_confirmation(
            wallet_item_id=item.id,
            user=free_user,
            now=now + timedelta(seconds=60),
        ) is None


# =============================================================================
# Status reads for polling
# =============================================================================

@pytest.mark.django_db
class TestRedemptionStatus:

    def test_pending_after_scan(self, scanned, partner, now):
        item, confirmation = scanned

        status = get_redemption_status(wallet_item_id=item.id, viewer=partner, now=now)

        assert status.status == WalletItemStatus.ACTIVE
        assert status.confirmation_state == ConfirmationState.PENDING
        assert status.confirmation_expires_at == confirmation.expires_at
        assert status.is_settled is False

    def test_denied(self, scanned, free_user, partner, now):
        item, confirmation = scanned
        deny_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)

        status = get_redemption_status(wallet_item_id=item.id, viewer=partner, now=now)

        assert status.confirmation_state == ConfirmationState.DENIED
        assert status.is_settled is True

    def test_overdue_confirmation_reads_as_expired(self, scanned, partner, now):
        item, _ = scanned

        status = get_redemption_status(wallet_item_id=item.id, viewer=partner, now=now + timedelta(seconds=90))

        assert status.confirmation_state == ConfirmationState.EXPIRED

    def test_redeemed(self, scanned, free_user, partner, now):
        item, confirmation = scanned
        confirm_redemption(wallet_item_id=item.id, token=confirmation.token, user=free_user, now=now)

        assert get_wallet_item_status(wallet_item_id=item.id, viewer=partner, now=now) == WalletItemStatus.REDEEMED

    def test_viewer_must_be_involved(self, scanned, other_partner, now):
        item, _ = scanned

        with pytest.raises(InsufficientPermissionsError):
            get_redemption_status(wallet_item_id=item.id, viewer=other_partner, now=now)

    def test_unknown_item(self, partner, now):
        with pytest.raises(WalletItemNotFoundError):
            get_redemption_status(wallet_item_id=uuid.uuid4(), viewer=partner, now=now)


# =============================================================================
# Scanning
# =============================================================================

@pytest.mark.django_db
class TestScanAndRedeem:
    """Tests for scan_and_redeem() with QR and manual input."""

    def test_qr_payload(self, free_user, partner, deal, make_item, now):
        item = make_item(free_user, deal)

        outcome = scan_and_redeem(raw=encode(item.id, item.redemption_code), acting_party=partner, now=now)

        assert outcome.success is True
        assert outcome.wallet_item.status == WalletItemStatus.REDEEMED

    def test_manual_code_typed_in_lowercase(self, free_user, partner, deal, make_item, now):
        item = make_item(free_user, deal)

        outcome = scan_and_redeem(raw=item.redemption_code.lower(), acting_party=partner, now=now)

        assert outcome.success is True

    def test_manual_code_of_redeemed_item(self, free_user, partner, deal, make_item, now):
        item = make_item(free_user, deal, status=WalletItemStatus.REDEEMED)

        with pytest.raises(InvalidOrExpiredCodeError):
            scan_and_redeem(raw=item.redemption_code, acting_party=partner, now=now)

    def test_unknown_manual_code(self, partner, now):
        with pytest.raises(InvalidOrExpiredCodeError):
            scan_and_redeem(raw='ZZZZ-ABCDEFGH', acting_party=partner, now=now)

    def test_legacy_deal_code(self, partner, make_deal, now):
        make_deal(redemption_code='SUMMER24')

        with pytest.raises(LegacyPayloadError):
            scan_and_redeem(raw='summer24', acting_party=partner, now=now)

    def test_legacy_json_payload(self, free_user, partner, deal, now):
        raw = f'{{"dealId": "{deal.id}", "userId": "{free_user.id}"}}'

        with pytest.raises(LegacyPayloadError):
            scan_and_redeem(raw=raw, acting_party=partner, now=now)

        deal.refresh_from_db()
        assert deal.redemptions_count == 0

    def test_payload_with_malformed_item_id(self, partner, now):
        with pytest.raises(InvalidOrExpiredCodeError):
            scan_and_redeem(raw=encode('not-a-uuid', 'FOOB-ABCDEFGH'), acting_party=partner, now=now)

    def test_high_value_scan_opens_confirmation(self, free_user, partner, high_value_deal, make_item, now):
        item = make_item(free_user, high_value_deal)

        outcome = scan_and_redeem(raw=encode(item.id, item.redemption_code), acting_party=partner, now=now)

        assert outcome.requires_confirmation is True
        assert outcome.message == 'Waiting for the customer to confirm.'


# =============================================================================
# Terminal states and expiry
# =============================================================================

@pytest.mark.django_db
class TestTerminalStates:

    def test_expire_sweep_only_touches_overdue_active_items(self, free_user, basic_user, deal, make_deal, make_item, now):
        ended = make_deal(expires_at=now - timedelta(hours=1))
        overdue = make_item(free_user, ended)
        redeemed = make_item(basic_user, ended, status=WalletItemStatus.REDEEMED)
        live = make_item(free_user, deal)

        assert expire_wallet_items(now=now) == 1

        for item in (overdue, redeemed, live):
            item.refresh_from_db()
        assert overdue.status == WalletItemStatus.EXPIRED
        assert redeemed.status == WalletItemStatus.REDEEMED
        assert live.status == WalletItemStatus.ACTIVE

    def test_expired_item_stays_expired_when_deal_is_extended(self, free_user, make_deal, make_item, now):
        extended = make_deal(expires_at=now - timedelta(hours=1))
        item = make_item(free_user, extended)
        expire_wallet_items(now=now)

        extended.expires_at = now + timedelta(days=30)
        extended.save()

        with pytest.raises(WalletItemExpiredError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=free_user,
                now=now,
            )
        item.refresh_from_db()
        assert item.status == WalletItemStatus.EXPIRED
        assert item.effective_status(now) == WalletItemStatus.EXPIRED

    def test_redeemed_item_cannot_be_redeemed_or_expired(self, basic_user, deal, make_item, now):
        item = make_item(basic_user, deal)
        redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=basic_user,
            now=now,
        )
        Deal.objects.filter(id=deal.id).update(expires_at=now - timedelta(seconds=1))

        expire_wallet_items(now=now)
        with pytest.raises(AlreadyRedeemedError):
            redeem_wallet_item(
                wallet_item_id=item.id,
                redemption_code=item.redemption_code,
                acting_party=basic_user,
                now=now,
            )

        item.refresh_from_db()
        assert item.status == WalletItemStatus.REDEEMED

    def test_overdue_confirmations_are_expired_and_purged(self, scanned, now):
        _, confirmation = scanned

        assert expire_overdue_confirmations(now=now + timedelta(minutes=2)) == 1
        confirmation.refresh_from_db()
        assert confirmation.state == ConfirmationState.EXPIRED

        assert purge_resolved_confirmations(older_than=now + timedelta(days=2)) == 1
        assert PendingConfirmation.objects.count() == 0

    def test_pending_confirmations_are_never_purged(self, scanned, now):
        assert purge_resolved_confirmations(older_than=now + timedelta(days=2)) == 0


# =============================================================================
# Listings
# =============================================================================

@pytest.mark.django_db
class TestListings:

    def test_wallet_status_filter_uses_effective_status(self, free_user, deal, make_deal, make_item, now):
        ended = make_deal(expires_at=now - timedelta(days=1))
        active = make_item(free_user, deal)
        derived_expired = make_item(free_user, ended)
        stored_expired = make_item(free_user, deal, status=WalletItemStatus.EXPIRED)
        redeemed = make_item(free_user, deal, status=WalletItemStatus.REDEEMED)

        def ids(status):
            return set(get_wallet_items(user=free_user, status=status, now=now).values_list('id', flat=True))

        assert ids(WalletItemStatus.ACTIVE) == {active.id}
        assert ids(WalletItemStatus.EXPIRED) == {derived_expired.id, stored_expired.id}
        assert ids(WalletItemStatus.REDEEMED) == {redeemed.id}
        assert len(ids(None)) == 4

    def test_redemption_history_is_per_user(self, free_user, basic_user, deal, record_redemption, now):
        mine = record_redemption(free_user, deal, now)
        record_redemption(basic_user, deal, now)

        assert list(get_redemption_history(user=free_user)) == [mine]

    def test_partner_sees_only_own_deals(self, free_user, partner, other_partner, staff_user, deal, make_deal, record_redemption, now):
        own = record_redemption(free_user, deal, now)
        record_redemption(free_user, make_deal(partner=other_partner), now)

        assert list(get_partner_redemptions(partner=partner)) == [own]
        assert get_partner_redemptions(partner=staff_user).count() == 2


# =============================================================================
# Concurrency
# =============================================================================

class TestConcurrentRedemption(TransactionTestCase):
    """
    Racing redemptions of one wallet item.

    TransactionTestCase is required so each thread commits real
    transactions against the same rows.
    """

    def setUp(self):
        self.owner = User.objects.create_user(
            email='owner@test.com',
            password='TestPass123!',
            display_name='Owner',
            tier=SubscriptionTier.VIP,
        )
        self.deal = Deal.objects.create(
            title='Two for one',
            category='Food',
            vendor='Bean Bar',
            original_price=Decimal('20.00'),
            discounted_price=Decimal('10.00'),
        )
        self.item = WalletItem.objects.create(
            user=self.owner,
            deal=self.deal,
            redemption_code='FOOB-RACE2345',
        )

    def _race(self, item):
        outcomes = []
        barrier = threading.Barrier(2)

        def redeem():
            try:
                barrier.wait(timeout=5)
                redeem_wallet_item(
                    wallet_item_id=item.id,
                    redemption_code=item.redemption_code,
                    acting_party=self.owner,
                )
                outcomes.append('ok')
            except AlreadyRedeemedError:
                outcomes.append(ErrorKind.ALREADY_REDEEMED.value)
            except Exception as e:
                outcomes.append(repr(e))
            finally:
                connection.close()

        threads = [threading.Thread(target=redeem) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return sorted(outcomes)

    def test_double_redemption_counts_once(self):
        """Exactly one racer wins; the other is told the item is already redeemed."""
        items = [self.item] + [
            WalletItem.objects.create(
                user=self.owner,
                deal=self.deal,
                redemption_code=f'FOOB-RACE{n}XYZ',
            )
            for n in range(2, 5)
        ]

        for item in items:
            assert self._race(item) == [ErrorKind.ALREADY_REDEEMED.value, 'ok']

            item.refresh_from_db()
            assert item.status == WalletItemStatus.REDEEMED
            assert DealRedemption.objects.filter(wallet_item=item).count() == 1

        self.deal.refresh_from_db()
        assert self.deal.redemptions_count == len(items)

    def test_sequential_retry_is_already_redeemed(self):
        redeem_wallet_item(
            wallet_item_id=self.item.id,
            redemption_code=self.item.redemption_code,
            acting_party=self.owner,
        )

        with self.assertRaises(AlreadyRedeemedError):
            redeem_wallet_item(
                wallet_item_id=self.item.id,
                redemption_code=self.item.redemption_code,
                acting_party=self.owner,
            )

        self.deal.refresh_from_db()
        self.assertEqual(self.deal.redemptions_count, 1)


# =============================================================================
# Storage failures
# =============================================================================

@pytest.mark.django_db
class TestStorageFailures:
    """Database errors surface as typed wallet errors and change nothing."""

    LOCKED = OperationalError('database table is locked: wallet_items')

    def test_blocked_redemption_of_active_item_is_busy(self, free_user, deal, make_item, now):
        item = make_item(free_user, deal)

        with patch('apps.wallet.services.transitions._consume', side_effect=self.LOCKED):
            with pytest.raises(WalletBusyError) as exc_info:
                redeem_wallet_item(
                    wallet_item_id=item.id,
                    redemption_code=item.redemption_code,
                    acting_party=free_user,
                    now=now,
                )

        assert exc_info.value.default_code == ErrorKind.TRY_AGAIN
        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE
        deal.refresh_from_db()
        assert deal.redemptions_count == 0

    def test_blocked_write_after_winner_is_already_redeemed(self, free_user, deal, make_item, now):
        item = make_item(free_user, deal, status=WalletItemStatus.REDEEMED, redeemed_at=now)

        with pytest.raises(AlreadyRedeemedError):
            with patch('apps.wallet.services.transitions._consume', side_effect=self.LOCKED):
                finalize_redemption(
                    wallet_item_id=item.id,
                    redemption_code=item.redemption_code,
                    redeemed_by=free_user,
                    now=now,
                )

    def test_blocked_confirm_returns_failure(self, free_user, partner, high_value_deal, make_item, now):
        item = make_item(free_user, high_value_deal)
        outcome = redeem_wallet_item(
            wallet_item_id=item.id,
            redemption_code=item.redemption_code,
            acting_party=partner,
            now=now,
        )

        with patch('apps.wallet.services.confirmation.finalize_redemption', side_effect=self.LOCKED):
            result = confirm_redemption(
                wallet_item_id=item.id,
                token=outcome.confirmation.token,
                user=free_user,
                now=now + timedelta(seconds=5),
            )

        assert result.success is False
        assert result.code == ErrorKind.TRY_AGAIN
        outcome.confirmation.refresh_from_db()
        assert outcome.confirmation.state == ConfirmationState.PENDING
        item.refresh_from_db()
        assert item.status == WalletItemStatus.ACTIVE

    def test_blocked_claim_is_busy(self, free_user, deal, now):
        with patch('apps.wallet.services.redemption._check_claim', side_effect=self.LOCKED):
            with pytest.raises(WalletBusyError):
                claim_deal(user=free_user, deal_id=deal.id, now=now)

        assert not WalletItem.objects.exists()

    def test_claim_code_collisions_exhausted(self, free_user, deal, now):
        with patch('apps.wallet.services.redemption.generate_redemption_code') as mock_code:
            mock_code.return_value = 'FOOB-SAMECODE'
            claim_deal(user=free_user, deal_id=deal.id, now=now)

            with pytest.raises(WalletBusyError):
                claim_deal(user=free_user, deal_id=deal.id, now=now, max_retries=2)

        assert WalletItem.objects.count() == 1

    def test_confirmation_token_collisions_exhausted(self, free_user, partner, high_value_deal, make_item, now):
        first = make_item(free_user, high_value_deal)
        second = make_item(free_user, high_value_deal)

        with patch('apps.wallet.services.confirmation.secrets.token_urlsafe') as mock_token:
            mock_token.return_value = 'same-token'
            redeem_wallet_item(
                wallet_item_id=first.id,
                redemption_code=first.redemption_code,
                acting_party=partner,
                now=now,
            )

            with pytest.raises(WalletBusyError):
                redeem_wallet_item(
                    wallet_item_id=second.id,
                    redemption_code=second.redemption_code,
                    acting_party=partner,
                    now=now,
                )

        assert PendingConfirmation.objects.count() == 1

    def test_claim_with_malformed_deal_id(self, free_user, now):
        with pytest.raises(DealUnavailableError):
            claim_deal(user=free_user, deal_id='not-a-uuid', now=now)
