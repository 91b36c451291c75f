"""
identity.py - Identity locker for anonymous complaints.

STATE MACHINE (monotonic, no back-transitions):
    not_revealed -> requested -> revealed

- vault() is idempotent so a retried unit of work cannot fail on it
- request_reveal() is a no-op once requested or revealed
- reveal() without a prior request is an ordering error
- revealed is bound to the admin who completed it (revealed_by); a repeat by
  that admin is a no-op, any other admin is refused

Admin-only access is enforced by the store, not here.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from grievance.errors import InvalidTransition, NotFound
from grievance.models import IdentityLocker as LockerRow
from grievance.models import RevealStatus

logger = logging.getLogger(__name__)


class IdentityLocker:
    def __init__(self, db: DBSession):
        self.db = db

    def get(self, complaint_id: uuid.UUID, for_update: bool = False) -> LockerRow | None:
        stmt = select(LockerRow).where(LockerRow.complaint_id == complaint_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def vault(self, complaint_id: uuid.UUID, real_submitter_id: uuid.UUID) -> LockerRow:
        existing = self.get(complaint_id)
        if existing is not None:
            return existing

        locker = LockerRow(
            complaint_id=complaint_id,
            real_student_id=real_submitter_id,
            reveal_status=RevealStatus.NOT_REVEALED,
        )
        self.db.add(locker)
        return locker

    def request_reveal(
        self, complaint_id: uuid.UUID, requesting_admin_id: uuid.UUID, reason: str
    ) -> bool:
        """
        Move not_revealed -> requested.

        Returns:
            True if the state changed, False if the request was already made.

        Raises:
            NotFound: the complaint has no locker (it is not anonymous).
        """
        locker = self._require(complaint_id)
        if locker.reveal_status != RevealStatus.NOT_REVEALED:
            return False

        locker.reveal_status = RevealStatus.REQUESTED
        locker.reveal_reason = reason
        locker.reveal_requested_by = requesting_admin_id
        logger.info(
            "Identity reveal requested: complaint=%s admin=%s",
            complaint_id,
            requesting_admin_id,
        )
        return True

    def reveal(
        self, complaint_id: uuid.UUID, requesting_admin_id: uuid.UUID
    ) -> tuple[LockerRow, bool]:
        """
        Move requested -> revealed, stamping revealed_at and revealed_by.

        Returns:
            (locker, changed) where changed is False if this admin already
            completed the reveal.

        Raises:
            NotFound: the complaint has no locker.
            InvalidTransition: no reveal has been requested yet, or another
                admin already completed it.
        """
        locker = self._require(complaint_id)
        if locker.reveal_status == RevealStatus.REVEALED:
            if locker.revealed_by != requesting_admin_id:
                raise InvalidTransition(
                    "Identity was already revealed to another admin",
                    details={"complaint_id": str(complaint_id), "reveal_status": "revealed"},
                )
            return locker, False
        if locker.reveal_status != RevealStatus.REQUESTED:
            raise InvalidTransition(
                "Identity reveal must be requested before it can be performed",
                details={
                    "complaint_id": str(complaint_id),
                    "reveal_status": locker.reveal_status.value,
                },
            )

        locker.reveal_status = RevealStatus.REVEALED
        locker.revealed_at = datetime.now(UTC)
        locker.revealed_by = requesting_admin_id
        logger.info(
            "Identity revealed: complaint=%s admin=%s", complaint_id, requesting_admin_id
        )
        return locker, True

    def _require(self, complaint_id: uuid.UUID) -> LockerRow:
        locker = self.get(complaint_id, for_update=True)
        if locker is None:
            raise NotFound(
                f"No identity locker for complaint {complaint_id}",
                details={"complaint_id": str(complaint_id)},
            )
        return locker
