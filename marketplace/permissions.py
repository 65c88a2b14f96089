"""
Authorization rules for the Mining Marketplace.

Every handler asks ``authorize(user, action, resource)`` before it mutates or
reveals anything that is not public. The rules live in one table so that the
role model can be read in one place.
"""

from rest_framework import permissions


ADMIN = 'admin'
MINE_OWNER = 'mine_owner'
INVESTOR = 'investor'
MINERAL_OWNER = 'mineral_owner'
MINERAL_MANAGER = 'mineral_manager'


def _is_admin(user):
    return user.is_admin()


def _owns_mine(user, mine):
    return mine is not None and mine.owner_id == user.id


def _owns_machine(user, machine):
    return machine is not None and machine.owner_id == user.id


def _role_in(*roles):
    def check(user, resource):
        return user.role in roles or _is_admin(user)
    return check


def _mine_owner_or_admin(user, mine):
    return _owns_mine(user, mine) or _is_admin(user)


def _machine_manager(user, machine):
    return _owns_machine(user, machine) or user.role == MINERAL_MANAGER or _is_admin(user)


def _mineral_editor(user, mineral):
    return (
        (mineral is not None and mineral.created_by_id == user.id)
        or user.role == MINERAL_MANAGER
        or _is_admin(user)
    )


def _rental_party(user, rental):
    return (
        rental.renter_id == user.id
        or rental.machine.owner_id == user.id
        or _is_admin(user)
    )


def _offer_investor(user, offer):
    return offer.investor_id == user.id


def _offer_investor_or_admin(user, offer):
    return offer.investor_id == user.id or _is_admin(user)


def _offer_party(user, offer):
    return (
        offer.investor_id == user.id
        or offer.mine.owner_id == user.id
        or _is_admin(user)
    )


def _offer_decider(user, offer):
    return offer.mine.owner_id == user.id or _is_admin(user)


def _self_or_admin(user, target):
    return target is not None and (target.pk == user.pk or _is_admin(user))


RULES = {
    # Mines
    'mine.create': _role_in(MINE_OWNER),
    'mine.update': _mine_owner_or_admin,
    'mine.delete': _mine_owner_or_admin,
    'mine.attach': _mine_owner_or_admin,

    # Minerals
    'mineral.create': _role_in(MINERAL_MANAGER, MINERAL_OWNER),
    'mineral.update': _mineral_editor,
    'mineral.delete': lambda user, mineral: _is_admin(user),

    # Heavy machines
    'machine.create': _role_in(MINERAL_MANAGER),
    'machine.update': _machine_manager,
    'machine.sell': _machine_manager,
    'machine.maintenance': _machine_manager,
    'machine.set_status': _machine_manager,
    'machine.delete': lambda user, machine: _is_admin(user),
    'machine.rent': lambda user, machine: True,
    'machine.return': _rental_party,

    # Offers
    'offer.submit': lambda user, mine: user.role == INVESTOR,
    'offer.view': _offer_party,
    'offer.decide': _offer_decider,
    'offer.update': _offer_investor,
    'offer.delete': _offer_investor_or_admin,
    'offers.for_mine': _mine_owner_or_admin,
    'offers.for_owner': _self_or_admin,
    'offers.for_investor': _self_or_admin,

    # Users
    'user.update': _self_or_admin,
    'user.delete': _self_or_admin,

    # Analytics
    'analytics.admin': lambda user, resource: _is_admin(user),
}


def authorize(user, action, resource=None):
    """
    Check whether ``user`` may perform ``action`` on ``resource``.

    Args:
        user: Authenticated user (anonymous users are always denied)
        action: Capability name, e.g. 'offer.decide' or 'machine.sell'
        resource: Object the action applies to (mine, offer, machine, ...)

    Returns:
        bool: True if the action is allowed

    Raises:
        KeyError: If the action is unknown
    """
    rule = RULES[action]
    if user is None or not user.is_authenticated:
        return False
    return bool(rule(user, resource))


class IsAdminRole(permissions.BasePermission):
    """
    Permission class that allows only marketplace administrators.

    Administrators are users with role='admin' or Django superusers.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsAdminRole]
    """

    message = 'You do not have permission to perform this action. Administrator role required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.is_admin()
