"""
audit.py - Timeline recorder.

Entries are only ever added. Both record methods write into the caller's
session and rely on the caller's commit, so an entry exists exactly when the
change it describes does.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from grievance.models import TimelineEntry

SUBMITTED_MESSAGE = "Complaint submitted"


class AuditRecorder:
    def __init__(self, db: DBSession):
        self.db = db

    def record_creation(
        self, complaint_id: uuid.UUID, submitter_id: uuid.UUID, created_at: datetime
    ) -> TimelineEntry:
        return self._append(complaint_id, submitter_id, SUBMITTED_MESSAGE, created_at)

    def record_transition(
        self,
        complaint_id: uuid.UUID,
        author_id: uuid.UUID | None,
        message: str,
        at: datetime,
    ) -> TimelineEntry:
        return self._append(complaint_id, author_id, message, at)

    def timeline(self, complaint_id: uuid.UUID) -> list[TimelineEntry]:
        stmt = (
            select(TimelineEntry)
            .where(TimelineEntry.complaint_id == complaint_id)
            .order_by(TimelineEntry.created_at, TimelineEntry.id)
        )
        return list(self.db.execute(stmt).scalars())

    def _append(
        self,
        complaint_id: uuid.UUID,
        author_id: uuid.UUID | None,
        message: str,
        at: datetime,
    ) -> TimelineEntry:
        entry = TimelineEntry(
            complaint_id=complaint_id,
            updated_by=author_id,
            message=message,
            created_at=at,
        )
        self.db.add(entry)
        return entry
