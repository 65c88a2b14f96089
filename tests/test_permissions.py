"""
Tests for the role and ownership rules behind ``authorize``.
"""

import inspect
from types import SimpleNamespace

import pytest
from django.contrib.auth.models import AnonymousUser

from marketplace.models import User
from marketplace import views
from marketplace.permissions import IsAdminRole, RULES, authorize


def user(role, pk=1, is_superuser=False):
    return User(pk=pk, username=f'{role}{pk}', email=f'{role}{pk}@mining.test', role=role,
                is_superuser=is_superuser)


def offer(investor_id=2, owner_id=1):
    return SimpleNamespace(investor_id=investor_id, mine=SimpleNamespace(owner_id=owner_id))


class TestAuthorize:

    def test_unknown_action_raises(self):
        with pytest.raises(KeyError):
            authorize(user(User.ROLE_ADMIN), 'mine.teleport')

    @pytest.mark.parametrize('action', sorted(RULES))
    def test_anonymous_always_denied(self, action):
        assert authorize(AnonymousUser(), action, SimpleNamespace()) is False
        assert authorize(None, action) is False

    @pytest.mark.parametrize('action', sorted(RULES))
    def test_every_rule_is_checked_by_a_view(self, action):
        assert f"'{action}'" in inspect.getsource(views)

    @pytest.mark.parametrize('role,allowed', [
        (User.ROLE_MINE_OWNER, True),
        (User.ROLE_ADMIN, True),
        (User.ROLE_INVESTOR, False),
        (User.ROLE_MINERAL_MANAGER, False),
    ])
    def test_mine_create(self, role, allowed):
        assert authorize(user(role), 'mine.create') is allowed

    def test_superuser_is_admin(self):
        assert authorize(user(User.ROLE_CUSTOMER, is_superuser=True), 'mine.create') is True

    def test_mine_update_owner_only(self):
        mine = SimpleNamespace(owner_id=1)
        assert authorize(user(User.ROLE_MINE_OWNER, pk=1), 'mine.update', mine) is True
        assert authorize(user(User.ROLE_MINE_OWNER, pk=2), 'mine.update', mine) is False
        assert authorize(user(User.ROLE_ADMIN, pk=3), 'mine.delete', mine) is True

    @pytest.mark.parametrize('role,allowed', [
        (User.ROLE_MINERAL_MANAGER, True),
        (User.ROLE_MINERAL_OWNER, True),
        (User.ROLE_ADMIN, True),
        (User.ROLE_MINE_OWNER, False),
        (User.ROLE_CUSTOMER, False),
    ])
    def test_mineral_create(self, role, allowed):
        assert authorize(user(role), 'mineral.create') is allowed

    def test_mineral_update(self):
        mineral = SimpleNamespace(created_by_id=1)
        assert authorize(user(User.ROLE_MINERAL_OWNER, pk=1), 'mineral.update', mineral) is True
        assert authorize(user(User.ROLE_MINERAL_OWNER, pk=2), 'mineral.update', mineral) is False
        assert authorize(user(User.ROLE_MINERAL_MANAGER, pk=3), 'mineral.update', mineral) is True

    def test_soft_delete_is_admin_only(self):
        for action in ('mineral.delete', 'machine.delete'):
            assert authorize(user(User.ROLE_MINERAL_MANAGER), action, SimpleNamespace(owner_id=1)) is False
            assert authorize(user(User.ROLE_ADMIN), action, SimpleNamespace(owner_id=1)) is True

    def test_machine_management(self):
        machine = SimpleNamespace(owner_id=1)
        assert authorize(user(User.ROLE_CUSTOMER, pk=1), 'machine.sell', machine) is True
        assert authorize(user(User.ROLE_CUSTOMER, pk=2), 'machine.sell', machine) is False
        assert authorize(user(User.ROLE_MINERAL_MANAGER, pk=2), 'machine.set_status', machine) is True
        assert authorize(user(User.ROLE_CUSTOMER, pk=2), 'machine.rent', machine) is True

    def test_machine_return_parties(self):
        rental = SimpleNamespace(renter_id=2, machine=SimpleNamespace(owner_id=1))
        assert authorize(user(User.ROLE_CUSTOMER, pk=2), 'machine.return', rental) is True
        assert authorize(user(User.ROLE_MINERAL_MANAGER, pk=1), 'machine.return', rental) is True
        assert authorize(user(User.ROLE_CUSTOMER, pk=3), 'machine.return', rental) is False

    def test_offer_rules(self):
        owner = user(User.ROLE_MINE_OWNER, 1)
        investor = user(User.ROLE_INVESTOR, 2)
        stranger = user(User.ROLE_INVESTOR, 3)

        assert authorize(investor, 'offer.submit', SimpleNamespace()) is True
        assert authorize(owner, 'offer.submit', SimpleNamespace()) is False

        assert authorize(owner, 'offer.decide', offer()) is True
        assert authorize(investor, 'offer.decide', offer()) is False

        assert authorize(investor, 'offer.view', offer()) is True
        assert authorize(stranger, 'offer.view', offer()) is False

        assert authorize(investor, 'offer.update', offer()) is True
        assert authorize(user(User.ROLE_ADMIN, 4), 'offer.update', offer()) is False
        assert authorize(user(User.ROLE_ADMIN, 4), 'offer.delete', offer()) is True

    def test_self_or_admin(self):
        target = user(User.ROLE_INVESTOR, pk=2)
        assert authorize(target, 'user.update', target) is True
        assert authorize(user(User.ROLE_INVESTOR, pk=3), 'user.update', target) is False
        assert authorize(user(User.ROLE_ADMIN, pk=4), 'offers.for_investor', target) is True

    def test_admin_analytics(self):
        assert authorize(user(User.ROLE_ADMIN), 'analytics.admin') is True
        assert authorize(user(User.ROLE_CONSULTANT), 'analytics.admin') is False


class TestIsAdminRole:

    def test_permission(self):
        check = IsAdminRole()
        assert check.has_permission(SimpleNamespace(user=user(User.ROLE_ADMIN)), None) is True
        assert check.has_permission(SimpleNamespace(user=user(User.ROLE_INVESTOR)), None) is False
        assert check.has_permission(SimpleNamespace(user=AnonymousUser()), None) is False
