from datetime import date, datetime, timedelta

import pytest

from approvalflow.api.core.errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidWorkflowError,
    NotFoundError,
    ValidationError,
)
from approvalflow.api.core.security import Actor
from approvalflow.api.models.approval_history import ApprovalHistoryEntry
from approvalflow.api.models.approval_request import ApprovalRequest, Priority, RequestStatus
from approvalflow.api.services.delegation_registry import DelegationRegistry
from approvalflow.api.services.request_store import RequestStore
from approvalflow.api.services.transition_engine import TransitionEngine
from approvalflow.api.services.workflow_catalog import WorkflowCatalog

from conftest import DIRECTOR, MANAGER, REQUESTER, THREE_STEPS, VP


@pytest.fixture
def template(db):
    return WorkflowCatalog(db).create_template(name="Purchase", steps=THREE_STEPS, workflow_type="purchase")


@pytest.fixture
def engine(db):
    return TransitionEngine(db)


@pytest.fixture
def request_(engine, template):
    return engine.create_request(template.id, REQUESTER.id, "New laptop", priority=Priority.HIGH)


def test_create_request_starts_at_first_step(request_, template):
    assert request_.status == RequestStatus.PENDING
    assert request_.current_step == 1
    assert request_.current_approver_role == "Manager"
    assert request_.request_type == "purchase"
    assert request_.total_steps == 3
    assert request_.history == []


def test_create_request_rejects_inactive_template(db, engine):
    template = WorkflowCatalog(db).create_template(name="Old", steps=THREE_STEPS, is_active=False)
    with pytest.raises(InvalidWorkflowError):
        engine.create_request(template.id, REQUESTER.id, "Anything")


def test_create_request_rejects_unknown_template(engine):
    import uuid

    with pytest.raises(InvalidWorkflowError):
        engine.create_request(uuid.uuid4(), REQUESTER.id, "Anything")


def test_create_request_requires_title(engine, template):
    with pytest.raises(ValidationError):
        engine.create_request(template.id, REQUESTER.id, "   ")


def test_auto_approve_without_steps(db, engine):
    template = WorkflowCatalog(db).create_template(name="Instant", steps=[], auto_approve=True)
    request = engine.create_request(template.id, REQUESTER.id, "Coffee")

    assert request.status == RequestStatus.APPROVED
    assert request.current_step is None
    assert request.current_approver_role is None
    assert request.completed_at is not None
    assert db.query(ApprovalHistoryEntry).count() == 0


def test_three_step_approval(engine, request_):
    result = engine.approve(request_.id, MANAGER, "ok")
    assert (result.status, result.current_step, result.current_approver_role) == (
        RequestStatus.IN_PROGRESS, 2, "Director",
    )

    result = engine.approve(request_.id, DIRECTOR)
    assert (result.status, result.current_step, result.current_approver_role) == (
        RequestStatus.IN_PROGRESS, 3, "VP",
    )

    result = engine.approve(request_.id, VP)
    assert result.status == RequestStatus.APPROVED
    assert result.current_step is None
    assert result.current_approver_role is None
    assert result.completed_at is not None

    history = result.history
    assert [h.action for h in history] == ["approved", "approved", "approved"]
    assert [h.step_number for h in history] == [1, 2, 3]
    assert [h.actor_id for h in history] == [MANAGER.id, DIRECTOR.id, VP.id]
    assert result.version == 4


def test_reject_at_second_step(engine, request_):
    engine.approve(request_.id, MANAGER)
    result = engine.reject(request_.id, DIRECTOR, "Budget exceeded")

    assert result.status == RequestStatus.REJECTED
    assert result.current_step is None
    assert [(h.action, h.step_number) for h in result.history] == [("approved", 1), ("rejected", 2)]
    assert result.history[-1].comments == "Budget exceeded"

    with pytest.raises(InvalidStateError):
        engine.approve(request_.id, VP)


def test_return_for_revision(engine, request_):
    result = engine.return_for_revision(request_.id, MANAGER, "Add a quote")
    assert result.status == RequestStatus.RETURNED
    assert result.current_approver_role is None
    assert result.history[-1].action == "returned"


@pytest.mark.parametrize("action", ["reject", "return_for_revision"])
@pytest.mark.parametrize("comments", [None, "", "   "])
def test_comments_required(engine, request_, action, comments):
    with pytest.raises(ValidationError):
        getattr(engine, action)(request_.id, MANAGER, comments)

    assert request_.status == RequestStatus.PENDING


def test_comments_checked_before_lookup(engine):
    import uuid

    with pytest.raises(ValidationError):
        engine.reject(uuid.uuid4(), MANAGER, "")


def test_unknown_request(engine):
    import uuid

    with pytest.raises(NotFoundError):
        engine.approve(uuid.uuid4(), MANAGER)


@pytest.mark.parametrize(
    "action, args",
    [("approve", ()), ("reject", ("Too expensive",)), ("return_for_revision", ("Needs a quote",))],
)
def test_wrong_role_is_forbidden(db, engine, request_, action, args):
    with pytest.raises(ForbiddenError):
        getattr(engine, action)(request_.id, DIRECTOR, *args)

    db.refresh(request_)
    assert request_.status == RequestStatus.PENDING
    assert request_.current_step == 1
    assert request_.history == []


def test_role_match_is_case_sensitive(engine, request_):
    with pytest.raises(ForbiddenError):
        engine.approve(request_.id, Actor(id="mgr-2", role="manager"))


@pytest.mark.parametrize("finish", ["approve", "reject", "return", "cancel"])
def test_terminal_requests_are_immutable(engine, request_, finish):
    if finish == "approve":
        for actor in (MANAGER, DIRECTOR, VP):
            engine.approve(request_.id, actor)
    elif finish == "reject":
        engine.reject(request_.id, MANAGER, "no")
    elif finish == "return":
        engine.return_for_revision(request_.id, MANAGER, "fix")
    else:
        engine.cancel(request_.id, REQUESTER)

    with pytest.raises(InvalidStateError):
        engine.approve(request_.id, MANAGER)
    with pytest.raises(InvalidStateError):
        engine.reject(request_.id, MANAGER, "again")
    with pytest.raises(InvalidStateError):
        engine.return_for_revision(request_.id, MANAGER, "again")
    with pytest.raises(InvalidStateError):
        engine.cancel(request_.id, REQUESTER)


def test_cancel_by_requester(engine, request_):
    engine.approve(request_.id, MANAGER)
    result = engine.cancel(request_.id, REQUESTER, "No longer needed")

    assert result.status == RequestStatus.CANCELLED
    assert result.current_step is None
    entry = result.history[-1]
    assert (entry.action, entry.actor_id, entry.step_number) == ("cancelled", REQUESTER.id, 2)


def test_cancel_by_other_is_forbidden(engine, request_):
    with pytest.raises(ForbiddenError):
        engine.cancel(request_.id, MANAGER)


def test_delegate_can_act_for_role(db, engine, request_):
    DelegationRegistry(db).create_delegation(
        delegator_id=MANAGER.id,
        delegator_role="Manager",
        delegate_id="deputy-1",
        start_date=date.today() - timedelta(days=1),
        end_date=date.today() + timedelta(days=1),
    )
    deputy = Actor(id="deputy-1", role="Analyst")

    result = engine.approve(request_.id, deputy)

    assert result.current_step == 2
    entry = result.history[-1]
    assert entry.actor_id == "deputy-1"
    assert entry.actor_role == "Analyst"
    assert entry.on_behalf_of == MANAGER.id


def test_delegation_scope_and_window(db, engine, request_):
    registry = DelegationRegistry(db)
    deputy = Actor(id="deputy-1", role="Analyst")
    registry.create_delegation(
        delegator_id=MANAGER.id,
        delegator_role="Manager",
        delegate_id="deputy-1",
        workflow_type="travel",
        start_date=date.today(),
    )
    registry.create_delegation(
        delegator_id=MANAGER.id,
        delegator_role="Manager",
        delegate_id="deputy-1",
        start_date=date.today() - timedelta(days=10),
        end_date=date.today() - timedelta(days=1),
    )

    with pytest.raises(ForbiddenError):
        engine.approve(request_.id, deputy)


def test_delegation_scope_uses_type_at_creation(db, engine, template, request_):
    DelegationRegistry(db).create_delegation(
        delegator_id=MANAGER.id,
        delegator_role="Manager",
        delegate_id="deputy-1",
        workflow_type="purchase",
        start_date=date.today() - timedelta(days=1),
    )
    WorkflowCatalog(db).update_template(template.id, {"workflow_type": "travel"})
    deputy = Actor(id="deputy-1", role="Analyst")

    assert [r.id for r in RequestStore(db).list_assigned(deputy).items] == [request_.id]

    result = engine.approve(request_.id, deputy)

    assert result.workflow_type == "purchase"
    assert result.current_step == 2
    assert result.history[-1].on_behalf_of == MANAGER.id


def test_history_ties_keep_step_order(db, engine, request_):
    engine.approve(request_.id, MANAGER)
    engine.approve(request_.id, DIRECTOR)
    db.query(ApprovalHistoryEntry).update(
        {ApprovalHistoryEntry.created_at: datetime(2026, 1, 1, 9, 0)}, synchronize_session=False
    )
    db.commit()
    db.expire_all()

    request = db.query(ApprovalRequest).filter(ApprovalRequest.id == request_.id).one()
    assert [h.step_number for h in request.history] == [1, 2]


def test_inactive_delegation_grants_nothing(db, engine, request_):
    registry = DelegationRegistry(db)
    delegation = registry.create_delegation(
        delegator_id=MANAGER.id,
        delegator_role="Manager",
        delegate_id="deputy-1",
        start_date=date.today(),
    )
    registry.update_delegation(delegation.id, {"is_active": False})

    with pytest.raises(ForbiddenError):
        engine.approve(request_.id, Actor(id="deputy-1", role="Analyst"))


def test_resolve_authorized_direct(engine):
    authorization = engine.resolve_authorized(MANAGER, "Manager", "purchase")
    assert not authorization.is_delegated
    assert authorization.on_behalf_of is None


class StaleReadEngine(TransitionEngine):
    """Lets a competing engine commit between this engine's read and write."""

    def __init__(self, db, competitor, competitor_actor):
        super().__init__(db)
        self.competitor = competitor
        self.competitor_actor = competitor_actor

    def _get_request(self, request_id):
        request = super()._get_request(request_id)
        self.competitor.approve(request_id, self.competitor_actor)
        return request


def test_concurrent_approvals_one_wins(session_factory, template):
    setup = session_factory()
    request_id = TransitionEngine(setup).create_request(template.id, REQUESTER.id, "Race").id
    setup.close()

    winner_session = session_factory()
    loser_session = session_factory()
    try:
        winner = TransitionEngine(winner_session)
        loser = StaleReadEngine(loser_session, winner, Actor(id="mgr-2", role="Manager"))

        with pytest.raises(InvalidStateError):
            loser.approve(request_id, MANAGER)
    finally:
        winner_session.close()
        loser_session.close()

    check = session_factory()
    try:
        request = check.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).one()
        assert request.current_step == 2
        assert request.version == 2
        assert [h.actor_id for h in request.history] == ["mgr-2"]
    finally:
        check.close()
