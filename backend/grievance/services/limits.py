"""
limits.py - Active-complaint cap.

The count and the insert that follows it must run in the same unit of work,
after the submitter's profile row has been locked; otherwise two concurrent
submissions can both observe count = limit - 1 and both succeed.
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DBSession

from grievance.errors import LimitExceeded
from grievance.models import Complaint, ComplaintStatus


class InvariantEnforcer:
    def __init__(self, db: DBSession, active_limit: int):
        self.db = db
        self.active_limit = active_limit

    def active_count(self, submitter_id: uuid.UUID) -> int:
        stmt = select(func.count(Complaint.id)).where(
            Complaint.student_id == submitter_id,
            Complaint.status != ComplaintStatus.RESOLVED,
            Complaint.withdrawn_at.is_(None),
        )
        return int(self.db.execute(stmt).scalar_one())

    def before_create(self, submitter_id: uuid.UUID) -> None:
        """Raise LimitExceeded if the submitter is already at the cap."""
        count = self.active_count(submitter_id)
        if count >= self.active_limit:
            raise LimitExceeded(current_count=count, limit=self.active_limit)
