"""
store.py - Policy-enforced store.

The only sanctioned read/write surface for complaints, timelines, identity
lockers and role assignments.

CRITICAL INVARIANTS:
1. Every mutation is one unit of work: the write, its timeline entry and (for
   anonymous submissions) its identity locker commit together or not at all
2. A submitter never holds more than ACTIVE_COMPLAINT_LIMIT active complaints,
   even under concurrent submission (profile row is locked before counting)
3. Status transitions lock the complaint row; resolved is terminal
4. Authorization decisions read roles inside the operating transaction
5. Anonymous submitter identity (complaint views and timeline authorship) is
   redacted for everyone but the admin who completed the reveal

FAILURE SEMANTICS:
- Unauthorized / NotFound / ValidationFailed / LimitExceeded /
  InvalidTransition are surfaced as-is
- Conflict is retried up to CONFLICT_RETRY_ATTEMPTS, then surfaced
"""

import json
import logging
import uuid
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import or_, select
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import joinedload, sessionmaker

from grievance.config import Settings, settings as default_settings
from grievance.database import SessionLocal
from grievance.errors import (
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationFailed,
    complaint_not_found,
)
from grievance.models import AppRole, Complaint, ComplaintStatus, Profile, TimelineEntry
from grievance.principal import Principal
from grievance.schemas.complaint import (
    AssignmentRequest,
    ComplaintDraft,
    ComplaintView,
    RatingRequest,
    RevealRequest,
    StatusUpdate,
    TimelineEntryView,
    WithdrawRequest,
)
from grievance.schemas.profile import ProfileCreate, ProfileUpdate
from grievance.services.audit import AuditRecorder
from grievance.services.authorization import AccessPolicy
from grievance.services.identity import IdentityLocker
from grievance.services.limits import InvariantEnforcer
from grievance.services.roles import RoleRegistry
from grievance.unit_of_work import run_with_retry, unit_of_work

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

ALLOWED_TRANSITIONS: frozenset[tuple[ComplaintStatus, ComplaintStatus]] = frozenset(
    {
        (ComplaintStatus.SUBMITTED, ComplaintStatus.IN_PROGRESS),
        (ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED),
        (ComplaintStatus.SUBMITTED, ComplaintStatus.RESOLVED),
    }
)


def _now() -> datetime:
    return datetime.now(UTC)


def _parse_id(value: Any) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _validate(model: type[M], payload: Any) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailed(
            f"Invalid {model.__name__} payload",
            details={"errors": json.loads(exc.json())},
        ) from exc


class _Context:
    """Collaborators bound to one database session."""

    def __init__(self, db: DBSession, active_limit: int):
        self.db = db
        self.roles = RoleRegistry(db)
        self.policy = AccessPolicy(self.roles)
        self.limits = InvariantEnforcer(db, active_limit)
        self.audit = AuditRecorder(db)
        self.lockers = IdentityLocker(db)


class PolicyEnforcedStore:
    """
    Composition root for the grievance core.

    Every public method takes the calling principal first. Mutations run in a
    unit of work; reads use an ordinary session.
    """

    def __init__(
        self,
        session_factory: sessionmaker[DBSession] | None = None,
        config: Settings | None = None,
    ):
        self._session_factory = session_factory or SessionLocal
        config = config or default_settings
        self.active_limit = config.ACTIVE_COMPLAINT_LIMIT
        self._lock_timeout = config.LOCK_TIMEOUT_SECONDS
        self._retry_attempts = config.CONFLICT_RETRY_ATTEMPTS
        self._retry_backoff = config.CONFLICT_RETRY_BACKOFF_SECONDS

    # =========================================================
    # TRANSACTION PLUMBING
    # =========================================================

    def _write(self, label: str, operation: Callable[[_Context], T]) -> T:
        def attempt() -> T:
            with unit_of_work(self._session_factory, self._lock_timeout) as db:
                return operation(_Context(db, self.active_limit))

        return run_with_retry(attempt, self._retry_attempts, self._retry_backoff, label)

    def _read(self) -> DBSession:
        return self._session_factory()

    @staticmethod
    def _lock_complaint(ctx: _Context, complaint_id: uuid.UUID | None) -> Complaint | None:
        if complaint_id is None:
            return None
        stmt = select(Complaint).where(Complaint.id == complaint_id).with_for_update()
        return ctx.db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _lock_profile(ctx: _Context, principal_id: uuid.UUID) -> Profile | None:
        stmt = select(Profile).where(Profile.id == principal_id).with_for_update()
        return ctx.db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_view(ctx: _Context, principal: Principal, complaint: Complaint) -> ComplaintView:
        view = ComplaintView.model_validate(complaint)
        if not complaint.is_anonymous:
            return view
        locker = complaint.identity_locker
        if ctx.policy.may_see_submitter(principal, complaint, locker):
            return view.model_copy(update={"student_id": locker.real_student_id})
        return view.model_copy(update={"student_id": None})

    @staticmethod
    def _to_entry_views(
        ctx: _Context,
        principal: Principal,
        complaint: Complaint,
        entries: list[TimelineEntry],
    ) -> list[TimelineEntryView]:
        views = [TimelineEntryView.model_validate(e) for e in entries]
        if not complaint.is_anonymous:
            return views
        if ctx.policy.may_see_submitter(principal, complaint, complaint.identity_locker):
            return views
        # Entries the submitter wrote would otherwise name them
        return [
            v.model_copy(update={"updated_by": None}) if v.updated_by == complaint.student_id else v
            for v in views
        ]

    # =========================================================
    # SUBMISSION
    # =========================================================

    def submit(self, principal: Principal, draft: ComplaintDraft | dict[str, Any]) -> uuid.UUID:
        """
        File a new complaint.

        SEQUENCE (single unit of work):
        1. Lock submitter profile (serializes this submitter's writers)
        2. Require student role
        3. Enforce active-complaint cap
        4. Insert complaint
        5. Record "Complaint submitted" on the timeline
        6. Vault the real submitter if anonymous

        Raises:
            ValidationFailed: malformed draft
            Unauthorized: caller is not a student
            LimitExceeded: caller already holds the maximum active complaints
            Conflict: concurrent writers kept colliding after retries
        """
        draft = _validate(ComplaintDraft, draft)

        def operation(ctx: _Context) -> uuid.UUID:
            if self._lock_profile(ctx, principal.id) is None:
                raise Unauthorized("Unknown principal may not submit complaints")
            ctx.policy.require_role(principal, AppRole.STUDENT, "submit complaints")
            ctx.limits.before_create(principal.id)

            created_at = _now()
            complaint = Complaint(
                id=uuid.uuid4(),
                student_id=principal.id,
                category=draft.category,
                severity=draft.severity,
                title=draft.title,
                description=draft.description,
                is_anonymous=draft.anonymous,
                status=ComplaintStatus.SUBMITTED,
                created_at=created_at,
            )
            ctx.db.add(complaint)
            ctx.db.flush()

            ctx.audit.record_creation(complaint.id, principal.id, created_at)
            if draft.anonymous:
                ctx.lockers.vault(complaint.id, principal.id)
            ctx.db.flush()
            return complaint.id

        complaint_id = self._write("submit", operation)
        if draft.anonymous:
            logger.info("Complaint submitted: id=%s anonymous=True", complaint_id)
        else:
            logger.info("Complaint submitted: id=%s student=%s", complaint_id, principal.id)
        return complaint_id

    # =========================================================
    # READS
    # =========================================================

    def read(self, principal: Principal, complaint_id: Any) -> ComplaintView:
        """
        Return one complaint if the caller may see it.

        Raises:
            NotFound: unknown id, or the caller has no read rights (identical
                response in both cases)
        """
        parsed = _parse_id(complaint_id)
        with self._read() as db:
            ctx = _Context(db, self.active_limit)
            complaint = db.get(Complaint, parsed) if parsed is not None else None
            complaint = ctx.policy.require_readable(principal, complaint, complaint_id)
            return self._to_view(ctx, principal, complaint)

    def timeline(self, principal: Principal, complaint_id: Any) -> list[TimelineEntryView]:
        """Timeline entries in creation order; same visibility as read()."""
        parsed = _parse_id(complaint_id)
        with self._read() as db:
            ctx = _Context(db, self.active_limit)
            complaint = db.get(Complaint, parsed) if parsed is not None else None
            complaint = ctx.policy.require_readable(principal, complaint, complaint_id)
            entries = ctx.audit.timeline(complaint.id)
            return self._to_entry_views(ctx, principal, complaint, entries)

    def list_mine(self, principal: Principal) -> Iterator[ComplaintView]:
        """Caller's own complaints, newest first. Each call starts a fresh scan."""
        return self._iter_views(principal, Complaint.student_id == principal.id)

    def list_active(self, principal: Principal) -> Iterator[ComplaintView]:
        """Caller's complaints that still count toward the cap."""
        return self._iter_views(
            principal,
            Complaint.student_id == principal.id,
            Complaint.status != ComplaintStatus.RESOLVED,
            Complaint.withdrawn_at.is_(None),
        )

    def list_resolved(self, principal: Principal) -> Iterator[ComplaintView]:
        return self._iter_views(
            principal,
            Complaint.student_id == principal.id,
            Complaint.status == ComplaintStatus.RESOLVED,
        )

    def list_visible(self, principal: Principal) -> Iterator[ComplaintView]:
        """Everything the caller may read: all for admins, own plus assigned otherwise."""
        with self._read() as db:
            policy = AccessPolicy(RoleRegistry(db))
            if policy.is_admin(principal):
                criteria = []
            elif policy.is_staff(principal):
                criteria = [
                    or_(
                        Complaint.student_id == principal.id,
                        Complaint.staff_assigned == principal.id,
                    )
                ]
            else:
                criteria = [Complaint.student_id == principal.id]
        return self._iter_views(principal, *criteria)

    def _iter_views(self, principal: Principal, *criteria) -> Iterator[ComplaintView]:
        stmt = (
            select(Complaint)
            .options(joinedload(Complaint.identity_locker))
            .where(*criteria)
            .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        )
        with self._read() as db:
            ctx = _Context(db, self.active_limit)
            for complaint in db.execute(stmt).scalars():
                yield self._to_view(ctx, principal, complaint)

    # =========================================================
    # LIFECYCLE MUTATIONS
    # =========================================================

    def update_status(
        self,
        principal: Principal,
        complaint_id: Any,
        new_status: ComplaintStatus | str,
        note: str | None = None,
    ) -> ComplaintView:
        """
        Move a complaint along submitted -> in_progress -> resolved.

        Raises:
            Unauthorized: caller is neither the assigned staff member nor an admin
            NotFound: admin caller, unknown complaint
            InvalidTransition: transition not allowed (including any move out
                of resolved, or any move of a withdrawn complaint)
        """
        request = _validate(StatusUpdate, {"status": new_status, "note": note})
        parsed = _parse_id(complaint_id)

        def operation(ctx: _Context) -> ComplaintView:
            ctx.policy.require_any_role(
                principal, (AppRole.STAFF, AppRole.ADMIN), "update complaint status"
            )
            complaint = ctx.policy.require_handler(
                principal, self._lock_complaint(ctx, parsed), complaint_id
            )

            if complaint.withdrawn_at is not None:
                raise InvalidTransition(
                    "Withdrawn complaints cannot change status",
                    details={"complaint_id": str(complaint.id)},
                )
            current = complaint.status
            if (current, request.status) not in ALLOWED_TRANSITIONS:
                raise InvalidTransition(
                    f"Cannot move complaint from {current.value} to {request.status.value}",
                    details={
                        "complaint_id": str(complaint.id),
                        "from": current.value,
                        "to": request.status.value,
                    },
                )

            at = _now()
            complaint.status = request.status
            if request.status == ComplaintStatus.RESOLVED:
                complaint.resolved_at = at
            message = request.note or f"Status changed to {request.status.value}"
            ctx.audit.record_transition(complaint.id, principal.id, message, at)
            ctx.db.flush()
            return self._to_view(ctx, principal, complaint)

        view = self._write("update_status", operation)
        logger.info(
            "Complaint status changed: id=%s status=%s by=%s",
            view.id,
            view.status.value,
            principal.id,
        )
        return view

    def withdraw(self, principal: Principal, complaint_id: Any, reason: str) -> ComplaintView:
        """
        Soft-withdraw the caller's own unresolved complaint.

        Raises:
            Unauthorized: caller does not own the complaint
            InvalidTransition: already resolved or already withdrawn
        """
        request = _validate(WithdrawRequest, {"reason": reason})
        parsed = _parse_id(complaint_id)

        def operation(ctx: _Context) -> ComplaintView:
            complaint = ctx.policy.require_owner(
                principal, self._lock_complaint(ctx, parsed), complaint_id
            )
            if complaint.status == ComplaintStatus.RESOLVED:
                raise InvalidTransition(
                    "Resolved complaints cannot be withdrawn",
                    details={"complaint_id": str(complaint.id)},
                )
            if complaint.withdrawn_at is not None:
                raise InvalidTransition(
                    "Complaint is already withdrawn",
                    details={"complaint_id": str(complaint.id)},
                )

            at = _now()
            complaint.withdrawn_at = at
            complaint.withdrawal_reason = request.reason
            ctx.audit.record_transition(
                complaint.id, principal.id, f"Complaint withdrawn: {request.reason}", at
            )
            ctx.db.flush()
            return self._to_view(ctx, principal, complaint)

        view = self._write("withdraw", operation)
        logger.info("Complaint withdrawn: id=%s", view.id)
        return view

    def rate(self, principal: Principal, complaint_id: Any, score: int) -> ComplaintView:
        """
        Rate the resolution of the caller's own complaint, once.

        Raises:
            ValidationFailed: score outside 1-5
            Unauthorized: caller does not own the complaint
            InvalidTransition: not resolved yet, or already rated
        """
        request = _validate(RatingRequest, {"score": score})
        parsed = _parse_id(complaint_id)

        def operation(ctx: _Context) -> ComplaintView:
            complaint = ctx.policy.require_owner(
                principal, self._lock_complaint(ctx, parsed), complaint_id
            )
            if complaint.status != ComplaintStatus.RESOLVED:
                raise InvalidTransition(
                    "Only resolved complaints can be rated",
                    details={"complaint_id": str(complaint.id), "status": complaint.status.value},
                )
            if complaint.rating is not None:
                raise InvalidTransition(
                    "Complaint has already been rated",
                    details={"complaint_id": str(complaint.id), "rating": complaint.rating},
                )

            complaint.rating = request.score
            ctx.audit.record_transition(
                complaint.id, principal.id, f"Resolution rated {request.score}/5", _now()
            )
            ctx.db.flush()
            return self._to_view(ctx, principal, complaint)

        view = self._write("rate", operation)
        logger.info("Complaint rated: id=%s score=%d", view.id, request.score)
        return view

    def assign(self, principal: Principal, complaint_id: Any, staff_id: Any) -> ComplaintView:
        """
        Assign a staff member to handle a complaint (admin only).

        Raises:
            Unauthorized: caller is not an admin
            NotFound: unknown complaint
            ValidationFailed: target does not hold the staff role
            InvalidTransition: complaint is resolved or withdrawn
        """
        request = _validate(AssignmentRequest, {"staff_id": staff_id})
        parsed = _parse_id(complaint_id)

        def operation(ctx: _Context) -> ComplaintView:
            ctx.policy.require_role(principal, AppRole.ADMIN, "assign complaints")
            complaint = self._lock_complaint(ctx, parsed)
            if complaint is None:
                raise complaint_not_found(complaint_id)
            if not complaint.is_active:
                raise InvalidTransition(
                    "Only active complaints can be assigned",
                    details={"complaint_id": str(complaint.id)},
                )
            if not ctx.roles.has_role(request.staff_id, AppRole.STAFF):
                raise ValidationFailed(
                    "Assignee does not hold the staff role",
                    details={"staff_id": str(request.staff_id)},
                )
            if complaint.staff_assigned == request.staff_id:
                return self._to_view(ctx, principal, complaint)

            complaint.staff_assigned = request.staff_id
            ctx.audit.record_transition(
                complaint.id, principal.id, "Complaint assigned to staff", _now()
            )
            ctx.db.flush()
            return self._to_view(ctx, principal, complaint)

        view = self._write("assign", operation)
        logger.info("Complaint assigned: id=%s staff=%s", view.id, view.staff_assigned)
        return view

    # =========================================================
    # IDENTITY REVEAL (admin only, audited)
    # =========================================================

    def request_reveal(self, principal: Principal, complaint_id: Any, reason: str) -> bool:
        """
        Open the reveal workflow for an anonymous complaint.

        Returns:
            True if the request was recorded, False if one already exists.

        Raises:
            Unauthorized: caller is not an admin
            NotFound: unknown complaint, or complaint is not anonymous
        """
        request = _validate(RevealRequest, {"reason": reason})
        parsed = _parse_id(complaint_id)

        def operation(ctx: _Context) -> bool:
            ctx.policy.require_role(principal, AppRole.ADMIN, "request identity reveals")
            complaint = self._lock_complaint(ctx, parsed)
            if complaint is None:
                raise complaint_not_found(complaint_id)
            changed = ctx.lockers.request_reveal(complaint.id, principal.id, request.reason)
            if changed:
                ctx.audit.record_transition(
                    complaint.id,
                    principal.id,
                    f"Identity reveal requested: {request.reason}",
                    _now(),
                )
            return changed

        return self._write("request_reveal", operation)

    def reveal(self, principal: Principal, complaint_id: Any) -> uuid.UUID:
        """
        Complete a previously requested reveal and return the real submitter id.

        Raises:
            Unauthorized: caller is not an admin
            NotFound: unknown complaint, or complaint is not anonymous
            InvalidTransition: no reveal was requested, or another admin
                already completed it
        """
        parsed = _parse_id(complaint_id)

        def operation(ctx: _Context) -> uuid.UUID:
            ctx.policy.require_role(principal, AppRole.ADMIN, "reveal identities")
            complaint = self._lock_complaint(ctx, parsed)
            if complaint is None:
                raise complaint_not_found(complaint_id)
            locker, changed = ctx.lockers.reveal(complaint.id, principal.id)
            if changed:
                ctx.audit.record_transition(
                    complaint.id, principal.id, "Identity revealed to administration", _now()
                )
            return locker.real_student_id

        return self._write("reveal", operation)

    # =========================================================
    # ROLES & PROFILES
    # =========================================================

    def grant_role(self, principal: Principal, target_id: Any, role: AppRole | str) -> bool:
        """Admin-only. Returns False when the role was already held."""
        return self._change_role(principal, target_id, role, grant=True)

    def revoke_role(self, principal: Principal, target_id: Any, role: AppRole | str) -> bool:
        """Admin-only. Returns False when the role was not held."""
        return self._change_role(principal, target_id, role, grant=False)

    def _change_role(self, principal: Principal, target_id: Any, role: Any, grant: bool) -> bool:
        try:
            role = AppRole(role)
        except ValueError as exc:
            raise ValidationFailed(f"Unknown role: {role}", details={"role": str(role)}) from exc
        target = _parse_id(target_id)

        def operation(ctx: _Context) -> bool:
            ctx.policy.require_role(principal, AppRole.ADMIN, "manage roles")
            if target is None or ctx.db.get(Profile, target) is None:
                raise NotFound(f"Principal {target_id} not found", details={"principal_id": str(target_id)})
            if grant:
                return ctx.roles.grant_role(target, role)
            return ctx.roles.revoke_role(target, role)

        return self._write("grant_role" if grant else "revoke_role", operation)

    def register_profile(
        self, principal_id: Any, profile: ProfileCreate | dict[str, Any]
    ) -> Principal:
        """
        Create the profile for a newly signed-up principal and grant it the
        student role. Called by the identity provider, not by end users.
        Idempotent: an existing profile is left untouched.
        """
        data = _validate(ProfileCreate, profile)
        parsed = _parse_id(principal_id)
        if parsed is None:
            raise ValidationFailed("Invalid principal id", details={"principal_id": str(principal_id)})

        def operation(ctx: _Context) -> bool:
            if ctx.db.get(Profile, parsed) is not None:
                return False
            ctx.db.add(Profile(id=parsed, **data.model_dump()))
            ctx.db.flush()
            ctx.roles.grant_role(parsed, AppRole.STUDENT)
            return True

        if self._write("register_profile", operation):
            logger.info("Profile registered: principal=%s", parsed)
        return Principal(id=parsed)

    def update_profile(
        self, principal: Principal, changes: ProfileUpdate | dict[str, Any]
    ) -> None:
        """
        Edit the caller's own profile. Profile data never confers authority;
        unknown fields (including ``role``) are rejected.
        """
        update = _validate(ProfileUpdate, changes)

        def operation(ctx: _Context) -> None:
            profile = self._lock_profile(ctx, principal.id)
            if profile is None:
                raise NotFound(f"Principal {principal.id} not found")
            for field, value in update.model_dump(exclude_unset=True).items():
                setattr(profile, field, value)
            profile.updated_at = _now()

        self._write("update_profile", operation)
