import pytest
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import SubscriptionTier, User
from apps.deals.models import Deal
from apps.wallet.models import DealRedemption, WalletItem


# Mid-month so month-boundary arithmetic never interferes by accident
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for service calls."""
    return NOW


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory for users of a given tier."""
    def _make(email, tier=SubscriptionTier.FREE, **extra):
        return User.objects.create_user(
            email=email,
            password='TestPass123!',
            display_name=email.split('@')[0].title(),
            tier=tier,
            **extra
        )
    return _make


@pytest.fixture
def free_user(make_user):
    return make_user('free@example.com', SubscriptionTier.FREE)


@pytest.fixture
def basic_user(make_user):
    return make_user('basic@example.com', SubscriptionTier.BASIC)


@pytest.fixture
def vip_user(make_user):
    return make_user('vip@example.com', SubscriptionTier.VIP)


@pytest.fixture
def partner(make_user):
    """Partner account that owns the test deals."""
    return make_user('partner@example.com', SubscriptionTier.NONE, is_partner=True)


@pytest.fixture
def other_partner(make_user):
    return make_user('other.partner@example.com', SubscriptionTier.NONE, is_partner=True)


@pytest.fixture
def staff_user(make_user):
    return make_user('staff@example.com', SubscriptionTier.NONE, is_staff=True)


@pytest.fixture
def make_deal(db, partner):
    """Factory for deals owned by ``partner``."""
    def _make(**fields):
        defaults = {
            'title': 'Coffee for two',
            'title_tr': 'İki kişilik kahve',
            'category': 'Food',
            'vendor': 'Bean Bar',
            'partner': partner,
            'original_price': Decimal('50.00'),
            'discounted_price': Decimal('40.00'),
            'required_tier': SubscriptionTier.FREE,
        }
        defaults.update(fields)
        return Deal.objects.create(**defaults)
    return _make


@pytest.fixture
def deal(make_deal):
    """Low-value FREE deal (saves 10.00)."""
    return make_deal()


@pytest.fixture
def high_value_deal(make_deal):
    """Deal saving 150.00, above the confirmation threshold."""
    return make_deal(
        title='Spa weekend',
        category='Wellness',
        vendor='Thermal Springs',
        original_price=Decimal('300.00'),
        discounted_price=Decimal('150.00'),
    )


@pytest.fixture
def premium_deal(make_deal):
    return make_deal(title='Lounge pass', required_tier=SubscriptionTier.PREMIUM)


@pytest.fixture
def make_item(db):
    """Factory for wallet items inserted directly (bypassing claim checks)."""
    counter = {'n': 0}

    def _make(user, deal, **fields):
        counter['n'] += 1
        fields.setdefault('redemption_code', f"TSTX-{counter['n']:08d}")
        return WalletItem.objects.create(user=user, deal=deal, **fields)
    return _make


@pytest.fixture
def record_redemption(db):
    """Insert a historical redemption at a given time."""
    def _record(user, deal, redeemed_at):
        return DealRedemption.objects.create(user=user, deal=deal, redeemed_at=redeemed_at)
    return _record


@pytest.fixture
def make_client():
    """Factory for API clients authenticated as a user."""
    def _make(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return client
    return _make
