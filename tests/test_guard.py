"""
Authorization Guard decisions.
"""

import pytest

from food_ordering.core.exceptions import AuthorizationError
from food_ordering.core.guard import (
    INSUFFICIENT_ROLE,
    NOT_THE_OWNER,
    Action,
    Identity,
    Resource,
    authorize,
    authorize_role,
    enforce,
)
from food_ordering.models import Role

CUSTOMER = Identity(user_id=1, email="c@example.com", role=Role.CUSTOMER)
OWNER = Identity(user_id=2, email="o@example.com", role=Role.RESTAURANT_OWNER)
OTHER_OWNER = Identity(user_id=3, email="o2@example.com", role=Role.RESTAURANT_OWNER)
ADMIN = Identity(user_id=9, email="a@example.com", role=Role.ADMIN)


class TestRoleGatedActions:

    def test_only_admin_lists_users(self):
        assert authorize(ADMIN, Action.USER_LIST)
        for identity in (CUSTOMER, OWNER):
            decision = authorize(identity, Action.USER_LIST)
            assert not decision
            assert decision.reason == INSUFFICIENT_ROLE

    def test_customers_cannot_create_restaurants(self):
        assert authorize(OWNER, Action.RESTAURANT_CREATE)
        assert authorize(ADMIN, Action.RESTAURANT_CREATE)
        assert authorize(CUSTOMER, Action.RESTAURANT_CREATE).reason == INSUFFICIENT_ROLE

    def test_role_check_runs_before_ownership(self):
        # A customer somehow recorded as owner still lacks the role
        resource = Resource.restaurant(owner_id=CUSTOMER.user_id)
        decision = authorize(CUSTOMER, Action.RESTAURANT_UPDATE, resource)
        assert decision.reason == INSUFFICIENT_ROLE

    def test_authorize_role_ignores_ownership(self):
        assert authorize_role(OTHER_OWNER, Action.ORDER_SET_STATUS)
        assert not authorize_role(CUSTOMER, Action.ORDER_SET_STATUS)


class TestOwnershipGatedActions:

    def test_owner_may_update_own_restaurant(self):
        resource = Resource.restaurant(owner_id=OWNER.user_id)
        assert authorize(OWNER, Action.RESTAURANT_UPDATE, resource)
        assert authorize(OWNER, Action.RESTAURANT_DELETE, resource)

    def test_other_owner_is_denied(self):
        resource = Resource.restaurant(owner_id=OWNER.user_id)
        decision = authorize(OTHER_OWNER, Action.RESTAURANT_DELETE, resource)
        assert not decision
        assert decision.reason == NOT_THE_OWNER

    def test_admin_bypasses_ownership(self):
        resource = Resource.restaurant(owner_id=OWNER.user_id)
        assert authorize(ADMIN, Action.RESTAURANT_UPDATE, resource)
        assert authorize(ADMIN, Action.USER_DELETE, Resource.user(CUSTOMER.user_id))

    def test_user_self_access(self):
        assert authorize(CUSTOMER, Action.USER_READ, Resource.user(CUSTOMER.user_id))
        assert authorize(CUSTOMER, Action.USER_UPDATE, Resource.user(OWNER.user_id)).reason == NOT_THE_OWNER

    def test_missing_resource_denies(self):
        assert authorize(OWNER, Action.RESTAURANT_UPDATE).reason == NOT_THE_OWNER

    def test_order_read_allows_customer_and_restaurant_owner(self):
        resource = Resource.order(user_id=CUSTOMER.user_id, restaurant_owner_id=OWNER.user_id)
        assert authorize(CUSTOMER, Action.ORDER_READ, resource)
        assert authorize(OWNER, Action.ORDER_READ, resource)
        assert not authorize(OTHER_OWNER, Action.ORDER_READ, resource)

    def test_status_change_needs_restaurant_ownership(self):
        resource = Resource.order(user_id=CUSTOMER.user_id, restaurant_owner_id=OWNER.user_id)
        assert authorize(OWNER, Action.ORDER_SET_STATUS, resource)
        assert authorize(OTHER_OWNER, Action.ORDER_SET_STATUS, resource).reason == NOT_THE_OWNER
        assert authorize(CUSTOMER, Action.ORDER_SET_STATUS, resource).reason == INSUFFICIENT_ROLE

    def test_only_order_owner_cancels(self):
        resource = Resource.order(user_id=CUSTOMER.user_id, restaurant_owner_id=OWNER.user_id)
        assert authorize(CUSTOMER, Action.ORDER_CANCEL, resource)
        assert not authorize(OWNER, Action.ORDER_CANCEL, resource)


def test_enforce_raises_403_with_reason():
    with pytest.raises(AuthorizationError) as exc_info:
        enforce(CUSTOMER, Action.USER_LIST)
    assert exc_info.value.status_code == 403
    assert INSUFFICIENT_ROLE in exc_info.value.detail


def test_enforce_allows_silently():
    assert enforce(ADMIN, Action.USER_LIST) is None
