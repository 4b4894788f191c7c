import pytest
from decimal import Decimal
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import SubscriptionTier, User
from apps.deals.models import Deal


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def make_user(db):
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
def premium_user(make_user):
    return make_user('premium@example.com', SubscriptionTier.PREMIUM)


@pytest.fixture
def lapsed_user(make_user):
    """Account without any subscription."""
    return make_user('lapsed@example.com', SubscriptionTier.NONE)


@pytest.fixture
def partner(make_user):
    return make_user('partner@example.com', SubscriptionTier.NONE, is_partner=True)


@pytest.fixture
def make_deal(db, partner):
    """Factory for deals owned by ``partner``."""
    def _make(**fields):
        defaults = {
            'title': 'Coffee for two',
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
def free_deal(make_deal):
    return make_deal()


@pytest.fixture
def premium_deal(make_deal):
    return make_deal(title='Lounge pass', category='Travel', vendor='Sky Lounge', required_tier=SubscriptionTier.PREMIUM)


@pytest.fixture
def make_client():
    """Factory for API clients authenticated as a user."""
    def _make(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return client
    return _make
