import pytest
import os
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from onboarding_hub.core.security import create_access_token
from onboarding_hub.database import Base, get_db
from onboarding_hub.main import app
from onboarding_hub.models.onboarding import AssigneeRole, StepCategory
from onboarding_hub.models.user import User, UserRole
from onboarding_hub.schemas.onboarding import OnboardingRecord, Step
from onboarding_hub.services.access_policy import Actor
from fastapi.testclient import TestClient

HR_ID = 10
OTHER_HR_ID = 11
ADMIN_ID = 1
EMPLOYEE_ID = 20
BUDDY_ID = 30
STRANGER_ID = 40


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database per test. Services commit, so no rollback wrapper."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def users(db_session):
    """Admin, two HR users, an employee, a buddy and an unrelated employee."""
    rows = {
        "admin": User(id=ADMIN_ID, email="admin@example.com", full_name="Ada Admin", role=UserRole.ADMIN),
        "hr": User(id=HR_ID, email="hr@example.com", full_name="Harriet HR", role=UserRole.HR),
        "other_hr": User(id=OTHER_HR_ID, email="hr2@example.com", full_name="Hugo HR", role=UserRole.HR),
        "employee": User(id=EMPLOYEE_ID, email="new.hire@example.com", full_name="Nia Newhire", role=UserRole.EMPLOYEE),
        "buddy": User(id=BUDDY_ID, email="buddy@example.com", full_name="Bo Buddy", role=UserRole.EMPLOYEE),
        "stranger": User(id=STRANGER_ID, email="stranger@example.com", full_name="Sam Stranger", role=UserRole.EMPLOYEE),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture(scope="function")
def actors():
    return {
        "admin": Actor(id=ADMIN_ID, role=UserRole.ADMIN),
        "hr": Actor(id=HR_ID, role=UserRole.HR),
        "other_hr": Actor(id=OTHER_HR_ID, role=UserRole.HR),
        "employee": Actor(id=EMPLOYEE_ID, role=UserRole.EMPLOYEE),
        "buddy": Actor(id=BUDDY_ID, role=UserRole.EMPLOYEE),
        "stranger": Actor(id=STRANGER_ID, role=UserRole.EMPLOYEE),
    }


@pytest.fixture(scope="function")
def make_step():
    """Helper fixture to build pending steps."""
    def _make_step(step_id, dependencies=(), role=AssigneeRole.employee, identity=None):
        return Step(
            step_id=step_id,
            title=f"Step {step_id}",
            category=StepCategory.training,
            estimated_duration_hours=1,
            dependencies=list(dependencies),
            assigned_to_role=role,
            assigned_to_identity=identity,
        )
    return _make_step


@pytest.fixture(scope="function")
def make_record(make_step):
    """Helper fixture to build an in-memory record; defaults to steps A and B(deps=[A])."""
    def _make_record(steps=None, buddy_id=BUDDY_ID):
        if steps is None:
            steps = [make_step("A"), make_step("B", dependencies=["A"])]
        return OnboardingRecord(
            id=1,
            employee_id=EMPLOYEE_ID,
            start_date=date.today(),
            expected_completion_date=date.today() + timedelta(days=30),
            assigned_hr_id=HR_ID,
            assigned_buddy_id=buddy_id,
            steps=steps,
        )
    return _make_record


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a user."""
    def _get_token(user):
        return create_access_token(data={"sub": str(user.id), "role": user.role.value})
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(session_factory):
    """TestClient whose requests each get their own session on the test database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
