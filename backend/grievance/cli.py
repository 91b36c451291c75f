#!/usr/bin/env python3
"""
grievance/cli.py - Operator command-line interface.

Usage:
    grievance-admin init-db
    grievance-admin register <principal-id> --name "Ada" --email ada@example.edu
    grievance-admin grant-role <principal-id> admin
    grievance-admin revoke-role <principal-id> staff

Role commands act with operator authority (direct database access) and exist
to bootstrap the first administrator; afterwards roles are managed by admins
through the store.

Exit Codes:
    0 = OK
    1 = Rejected (typed store error)
"""

import argparse
import json
import logging
import sys
import uuid

from grievance.config import settings
from grievance.database import Base, SessionLocal, engine
from grievance.errors import GrievanceError, NotFound, ValidationFailed
from grievance.models import AppRole, Profile
from grievance.services import PolicyEnforcedStore, RoleRegistry
from grievance.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def main(argv=None):
    """
    Parse command-line arguments and dispatch to the matching subcommand.

    Returns the process exit code.
    """
    parser = argparse.ArgumentParser(
        prog="grievance-admin",
        description="Operator tooling for the grievance desk core",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create all tables")

    register_parser = subparsers.add_parser("register", help="Register a principal profile")
    register_parser.add_argument("principal_id")
    register_parser.add_argument("--name", required=True)
    register_parser.add_argument("--email", required=True)
    register_parser.add_argument("--phone")
    register_parser.add_argument("--hostel")

    for name in ("grant-role", "revoke-role"):
        role_parser = subparsers.add_parser(name, help=f"{name.split('-')[0].title()} a role")
        role_parser.add_argument("principal_id")
        role_parser.add_argument("role", choices=[r.value for r in AppRole])

    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL)

    try:
        if args.command == "init-db":
            run_init_db()
        elif args.command == "register":
            run_register(args)
        else:
            run_role_change(args, grant=args.command == "grant-role")
    except GrievanceError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    return 0


def run_init_db():
    Base.metadata.create_all(bind=engine)
    print("Tables created")


def run_register(args):
    store = PolicyEnforcedStore()
    principal = store.register_profile(
        args.principal_id,
        {"name": args.name, "email": args.email, "phone": args.phone, "hostel": args.hostel},
    )
    print(f"Registered {principal.id}")


def run_role_change(args, grant: bool):
    try:
        principal_id = uuid.UUID(args.principal_id)
    except ValueError as exc:
        raise ValidationFailed(f"Invalid principal id: {args.principal_id}") from exc
    role = AppRole(args.role)

    with unit_of_work(SessionLocal, settings.LOCK_TIMEOUT_SECONDS) as db:
        if db.get(Profile, principal_id) is None:
            raise NotFound(f"Principal {principal_id} not found")
        registry = RoleRegistry(db)
        changed = registry.grant_role(principal_id, role) if grant else registry.revoke_role(principal_id, role)

    verb = "granted" if grant else "revoked"
    print(f"Role {role.value} {verb if changed else 'unchanged'} for {principal_id}")


if __name__ == "__main__":
    sys.exit(main())
