"""
Tests for the grievance-admin CLI.

Runs against the module-level engine (DATABASE_URL set in conftest).
"""

import json
import uuid

import pytest

from grievance.cli import main
from grievance.database import SessionLocal
from grievance.models import AppRole
from grievance.services import RoleRegistry


@pytest.fixture(autouse=True)
def tables():
    assert main(["init-db"]) == 0


def _roles(principal_id):
    with SessionLocal() as db:
        return RoleRegistry(db).roles_for(principal_id)


def test_register_grants_student(capsys):
    principal_id = uuid.uuid4()
    assert main(["register", str(principal_id), "--name", "Ada", "--email", "ada@example.edu"]) == 0
    assert f"Registered {principal_id}" in capsys.readouterr().out
    assert _roles(principal_id) == frozenset({AppRole.STUDENT})


def test_bootstrap_admin(capsys):
    principal_id = uuid.uuid4()
    main(["register", str(principal_id), "--name", "Root", "--email", "root@example.edu"])

    assert main(["grant-role", str(principal_id), "admin"]) == 0
    assert main(["revoke-role", str(principal_id), "student"]) == 0
    assert _roles(principal_id) == frozenset({AppRole.ADMIN})

    assert main(["grant-role", str(principal_id), "admin"]) == 0
    assert "unchanged" in capsys.readouterr().out


def test_grant_to_unknown_principal(capsys):
    assert main(["grant-role", str(uuid.uuid4()), "staff"]) == 1
    error = json.loads(capsys.readouterr().err)
    assert error["error_code"] == "NOT_FOUND"


def test_invalid_principal_id(capsys):
    assert main(["grant-role", "not-a-uuid", "staff"]) == 1
    assert json.loads(capsys.readouterr().err)["error_code"] == "VALIDATION_FAILED"


def test_unknown_role_rejected_by_parser():
    with pytest.raises(SystemExit) as exc_info:
        main(["grant-role", str(uuid.uuid4()), "superuser"])
    assert exc_info.value.code == 2
