"""Test configuration and fixtures."""

import os
import sys
import tempfile
import uuid

import pytest

# Add paths
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Point the module-level engine at a throwaway SQLite file BEFORE
# grievance.config is imported. Store tests use their own per-test engine.
_default_db_dir = tempfile.mkdtemp(prefix="grievance-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_default_db_dir, 'default.db')}"

from grievance.config import Settings
from grievance.database import Base, build_engine, build_session_factory
from grievance.models import AppRole
from grievance.principal import Principal
from grievance.services import PolicyEnforcedStore, RoleRegistry
from grievance.unit_of_work import unit_of_work


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'grievance.db'}", lock_timeout=10.0)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def test_settings():
    return Settings(
        LOCK_TIMEOUT_SECONDS=10.0,
        CONFLICT_RETRY_ATTEMPTS=3,
        CONFLICT_RETRY_BACKOFF_SECONDS=0.01,
    )


@pytest.fixture
def store(session_factory, test_settings):
    return PolicyEnforcedStore(session_factory=session_factory, config=test_settings)


@pytest.fixture
def make_principal(store, session_factory):
    """
    Register a profile and leave it holding exactly ``roles``.

    Role changes go straight through the registry (operator authority), the
    same way the CLI bootstraps the first admin.
    """

    def _make(*roles: AppRole, name: str = "Test Person") -> Principal:
        principal = store.register_profile(
            uuid.uuid4(),
            {"name": name, "email": f"{uuid.uuid4().hex[:8]}@example.edu"},
        )
        with unit_of_work(session_factory, 10.0) as db:
            registry = RoleRegistry(db)
            for role in roles:
                registry.grant_role(principal.id, role)
            if AppRole.STUDENT not in roles:
                registry.revoke_role(principal.id, AppRole.STUDENT)
        return principal

    return _make


@pytest.fixture
def student(make_principal):
    return make_principal(AppRole.STUDENT, name="Student One")


@pytest.fixture
def other_student(make_principal):
    return make_principal(AppRole.STUDENT, name="Student Two")


@pytest.fixture
def staff(make_principal):
    return make_principal(AppRole.STAFF, name="Staff Member")


@pytest.fixture
def other_staff(make_principal):
    return make_principal(AppRole.STAFF, name="Other Staff")


@pytest.fixture
def admin(make_principal):
    return make_principal(AppRole.ADMIN, name="Administrator")


def make_draft(**overrides) -> dict:
    """Valid complaint draft with optional field overrides."""
    draft = {
        "category": "hostel",
        "severity": "medium",
        "title": "Broken water heater",
        "description": "The water heater on the second floor has been broken for a week.",
        "anonymous": False,
    }
    draft.update(overrides)
    return draft
