from datetime import date, timedelta

import pytest

from approvalflow.api.core.errors import ForbiddenError, NotFoundError, ValidationError
from approvalflow.api.core.security import Actor
from approvalflow.api.services.delegation_registry import DelegationRegistry

TODAY = date(2026, 10, 19)


def _create(registry, **overrides):
    fields = dict(
        delegator_id="mgr-1",
        delegator_role="Manager",
        delegate_id="deputy-1",
        start_date=TODAY,
        end_date=TODAY + timedelta(days=7),
    )
    fields.update(overrides)
    return registry.create_delegation(**fields)


def test_create_delegation(db):
    delegation = _create(DelegationRegistry(db), workflow_type="purchase")
    assert delegation.is_active
    assert delegation.workflow_type == "purchase"


def test_end_before_start_rejected(db):
    with pytest.raises(ValidationError) as exc_info:
        _create(DelegationRegistry(db), end_date=TODAY - timedelta(days=1))
    assert exc_info.value.errors[0]["field"] == "endDate"


def test_self_delegation_rejected(db):
    with pytest.raises(ValidationError):
        _create(DelegationRegistry(db), delegate_id="mgr-1")


def test_bad_delegator_role_rejected(db):
    with pytest.raises(ValidationError):
        _create(DelegationRegistry(db), delegator_role=" Manager")


def test_find_active_for_respects_window_and_scope(db):
    registry = DelegationRegistry(db)
    _create(registry, workflow_type="purchase")

    assert registry.find_active_for("deputy-1", "Manager", "purchase", TODAY) is not None
    assert registry.find_active_for("deputy-1", "Manager", "purchase", TODAY + timedelta(days=7)) is not None
    assert registry.find_active_for("deputy-1", "Manager", "purchase", TODAY + timedelta(days=8)) is None
    assert registry.find_active_for("deputy-1", "Manager", "purchase", TODAY - timedelta(days=1)) is None
    assert registry.find_active_for("deputy-1", "Manager", "travel", TODAY) is None
    assert registry.find_active_for("deputy-1", "Director", "purchase", TODAY) is None


def test_open_ended_unscoped_delegation(db):
    registry = DelegationRegistry(db)
    _create(registry, end_date=None)

    assert registry.find_active_for("deputy-1", "Manager", "anything", TODAY + timedelta(days=365)) is not None
    assert [d.delegate_id for d in registry.active_for_delegate("deputy-1", TODAY)] == ["deputy-1"]


def test_update_revalidates_window(db):
    registry = DelegationRegistry(db)
    delegation = _create(registry)

    with pytest.raises(ValidationError):
        registry.update_delegation(delegation.id, {"start_date": TODAY + timedelta(days=30)})

    updated = registry.update_delegation(delegation.id, {"end_date": None, "is_active": False})
    assert updated.end_date is None
    assert not updated.is_active
    assert registry.find_active_for("deputy-1", "Manager", None, TODAY) is None


def test_list_and_delete(db):
    registry = DelegationRegistry(db)
    first = _create(registry)
    _create(registry, delegator_id="dir-1", delegator_role="Director")

    assert registry.list_delegations().total == 2
    assert registry.list_delegations(delegator_id="dir-1").total == 1
    assert registry.list_involving("deputy-1").total == 2

    registry.delete_delegation(first.id)
    with pytest.raises(NotFoundError):
        registry.get_delegation(first.id)


def test_ensure_can_manage(db):
    delegation = _create(DelegationRegistry(db))

    DelegationRegistry.ensure_can_manage(delegation, Actor(id="mgr-1", role="Manager"))
    DelegationRegistry.ensure_can_manage(delegation, Actor(id="root", role="admin"))
    with pytest.raises(ForbiddenError):
        DelegationRegistry.ensure_can_manage(delegation, Actor(id="deputy-1", role="Analyst"))
