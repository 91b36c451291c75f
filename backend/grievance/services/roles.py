"""
roles.py - Role registry.

Pure predicate/mutation surface over user_roles. It performs no
authorization of its own; the store decides who may grant or revoke.
"""

import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session as DBSession

from grievance.models import AppRole, UserRole

logger = logging.getLogger(__name__)


class RoleRegistry:
    def __init__(self, db: DBSession):
        self.db = db

    def has_role(self, principal_id: uuid.UUID, role: AppRole) -> bool:
        stmt = select(UserRole.id).where(
            UserRole.user_id == principal_id, UserRole.role == role
        )
        return self.db.execute(stmt.limit(1)).first() is not None

    def roles_for(self, principal_id: uuid.UUID) -> frozenset[AppRole]:
        stmt = select(UserRole.role).where(UserRole.user_id == principal_id)
        return frozenset(self.db.execute(stmt).scalars())

    def grant_role(self, principal_id: uuid.UUID, role: AppRole) -> bool:
        """Grant ``role``. Returns False (no-op) if it is already held."""
        if self.has_role(principal_id, role):
            return False
        self.db.add(UserRole(user_id=principal_id, role=role))
        self.db.flush()
        logger.info("Role granted: principal=%s role=%s", principal_id, role.value)
        return True

    def revoke_role(self, principal_id: uuid.UUID, role: AppRole) -> bool:
        """Revoke ``role``. Returns False (no-op) if it was not held."""
        result = self.db.execute(
            delete(UserRole).where(UserRole.user_id == principal_id, UserRole.role == role)
        )
        if result.rowcount:
            logger.info("Role revoked: principal=%s role=%s", principal_id, role.value)
            return True
        return False
