import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from approvalflow.api.core.security import Actor
from approvalflow.api.db.base import Base
from approvalflow.api.db.session import get_db
from approvalflow.api.main import app
from approvalflow.api.models.workflow import WorkflowTemplate  # noqa: F401
from approvalflow.api.models.approval_request import ApprovalRequest  # noqa: F401
from approvalflow.api.models.approval_history import ApprovalHistoryEntry  # noqa: F401
from approvalflow.api.models.delegation import Delegation  # noqa: F401


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'approvals.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def headers(user_id, role):
    return {"X-User-ID": user_id, "X-User-Role": role}


ADMIN = headers("admin-1", "admin")

REQUESTER = Actor(id="emp-1", role="Employee")
MANAGER = Actor(id="mgr-1", role="Manager")
DIRECTOR = Actor(id="dir-1", role="Director")
VP = Actor(id="vp-1", role="VP")

THREE_STEPS = [
    {"stepName": "Manager review", "approverRole": "Manager", "order": 1},
    {"stepName": "Director review", "approverRole": "Director", "order": 2},
    {"stepName": "VP sign-off", "approverRole": "VP", "order": 3},
]
