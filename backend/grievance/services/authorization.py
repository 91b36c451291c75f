"""
authorization.py - Every access rule the store applies, in one place.

RULES:
- read / timeline:  admin any; staff when assigned; submitter when owner.
  Anything else is NotFound, whether or not the complaint exists.
- update_status:    admin any; staff when assigned.
- withdraw / rate:  owner only.
- submit:           student role.
- assign, roles, identity reveal: admin role.
- Submitter identity of an anonymous complaint is visible only to the admin
  who completed the reveal (``revealed_by``). This covers every surface that
  carries it: complaint views and timeline authorship.

Mutations on a complaint the caller has no relation to raise Unauthorized;
for non-admin callers the same is raised when the complaint does not exist,
so the response does not disclose existence.

Roles are read through the RoleRegistry bound to the operating transaction,
never from the principal or profile.
"""

import uuid
from collections.abc import Iterable

from grievance.errors import Unauthorized, complaint_not_found
from grievance.models import AppRole, Complaint, IdentityLocker, RevealStatus
from grievance.principal import Principal
from grievance.services.roles import RoleRegistry


class AccessPolicy:
    def __init__(self, roles: RoleRegistry):
        self.roles = roles
        self._cache: dict[uuid.UUID, frozenset[AppRole]] = {}

    def roles_of(self, principal: Principal) -> frozenset[AppRole]:
        if principal.id not in self._cache:
            self._cache[principal.id] = self.roles.roles_for(principal.id)
        return self._cache[principal.id]

    def is_admin(self, principal: Principal) -> bool:
        return AppRole.ADMIN in self.roles_of(principal)

    def is_staff(self, principal: Principal) -> bool:
        return AppRole.STAFF in self.roles_of(principal)

    # --- role gates ---

    def require_role(self, principal: Principal, role: AppRole, action: str) -> None:
        self.require_any_role(principal, (role,), action)

    def require_any_role(
        self, principal: Principal, roles: Iterable[AppRole], action: str
    ) -> None:
        required = frozenset(roles)
        if not required & self.roles_of(principal):
            raise Unauthorized(
                f"Principal is not permitted to {action}",
                details={"required_roles": sorted(r.value for r in required)},
            )

    # --- record gates ---

    def can_read(self, principal: Principal, complaint: Complaint) -> bool:
        if complaint.student_id == principal.id:
            return True
        if self.is_admin(principal):
            return True
        return self.is_staff(principal) and complaint.staff_assigned == principal.id

    def require_readable(
        self, principal: Principal, complaint: Complaint | None, complaint_id
    ) -> Complaint:
        if complaint is None or not self.can_read(principal, complaint):
            raise complaint_not_found(complaint_id)
        return complaint

    def require_handler(
        self, principal: Principal, complaint: Complaint | None, complaint_id
    ) -> Complaint:
        """Assigned staff member or admin."""
        if self.is_admin(principal):
            if complaint is None:
                raise complaint_not_found(complaint_id)
            return complaint
        if (
            complaint is not None
            and self.is_staff(principal)
            and complaint.staff_assigned == principal.id
        ):
            return complaint
        raise Unauthorized(
            "Only the assigned staff member or an admin may update this complaint",
            details={"complaint_id": str(complaint_id)},
        )

    def require_owner(
        self, principal: Principal, complaint: Complaint | None, complaint_id
    ) -> Complaint:
        if complaint is not None and complaint.student_id == principal.id:
            return complaint
        if complaint is None and self.is_admin(principal):
            raise complaint_not_found(complaint_id)
        raise Unauthorized(
            "Only the submitter may perform this action",
            details={"complaint_id": str(complaint_id)},
        )

    # --- identity ---

    def may_see_submitter(
        self, principal: Principal, complaint: Complaint, locker: IdentityLocker | None
    ) -> bool:
        if not complaint.is_anonymous:
            return True
        return (
            locker is not None
            and locker.reveal_status == RevealStatus.REVEALED
            and locker.revealed_by == principal.id
            and self.is_admin(principal)
        )
