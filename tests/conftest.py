"""
Shared fixtures for the marketplace test suite.
"""

import pytest
from decimal import Decimal
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from marketplace.models import HeavyMachine, Mine

User = get_user_model()

PASSWORD = 'Quarry!Pass2024'


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    cache.clear()


@pytest.fixture(autouse=True)
def media_root(tmp_path, settings):
    """Keep uploaded documents out of the project tree."""
    settings.MEDIA_ROOT = tmp_path / 'media'


@pytest.fixture
def password():
    """Password shared by every fixture user."""
    return PASSWORD


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory creating users of a given role with unique emails."""
    created = []

    def _make(role=User.ROLE_CUSTOMER, email=None, **extra):
        email = email or f'{role}{len(created) + 1}@mining.test'
        user = User.objects.create_user(
            username=email,
            email=email,
            password=PASSWORD,
            role=role,
            **extra
        )
        created.append(user)
        return user

    return _make


@pytest.fixture
def client_for():
    """Factory returning an APIClient authenticated with a JWT for the user."""
    def _client(user):
        client = APIClient()
        token = RefreshToken.for_user(user).access_token
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client

    return _client


@pytest.fixture
def mine_owner(make_user):
    return make_user(User.ROLE_MINE_OWNER)


@pytest.fixture
def investor(make_user):
    return make_user(User.ROLE_INVESTOR)


@pytest.fixture
def admin_user(make_user):
    return make_user(User.ROLE_ADMIN)


@pytest.fixture
def manager(make_user):
    return make_user(User.ROLE_MINERAL_MANAGER)


@pytest.fixture
def mine(mine_owner):
    return Mine.objects.create(
        owner=mine_owner,
        name='Witbank Colliery',
        location='Mpumalanga',
        commodity_type='Coal',
        status=Mine.STATUS_ACTIVE,
        price=Decimal('2500000.00'),
    )


@pytest.fixture
def machine(manager):
    return HeavyMachine.objects.create(
        name='CAT 320 Excavator',
        category='excavator',
        brand='Caterpillar',
        model_name='320',
        year=2019,
        purchase_price=Decimal('1500000.00'),
        rental_price_per_day=Decimal('4500.00'),
        owner=manager,
        created_by=manager,
    )
