"""
timeline.py - Complaint timeline (audit trail).

Append-only: entries are written in the same unit of work as the change they
describe and are never updated. Rows only disappear through the cascade if
their complaint is purged.
"""

import uuid

from sqlalchemy import DDL, Column, DateTime, ForeignKey, Text, Uuid, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from grievance.database import Base


class TimelineEntry(Base):
    __tablename__ = "complaint_timeline"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    complaint_id = Column(
        Uuid, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Null for system-generated entries
    updated_by = Column(Uuid, ForeignKey("profiles.id"), nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    complaint = relationship("Complaint", back_populates="timeline")


class TimelineMutationError(RuntimeError):
    """Raised when code attempts to rewrite a timeline entry."""


@event.listens_for(TimelineEntry, "before_update")
def _reject_timeline_update(mapper, connection, target):
    raise TimelineMutationError(
        f"Timeline entries are append-only; refusing to update entry {target.id}"
    )


# Database-level guard for writers that bypass the ORM
prevent_mutation_trigger = DDL("""
    CREATE OR REPLACE FUNCTION reject_timeline_mutation()
    RETURNS TRIGGER AS $$
    BEGIN
        RAISE EXCEPTION 'Timeline entries are append-only. Operation % is forbidden on complaint_timeline.', TG_OP;
    END;
    $$ LANGUAGE plpgsql;

    CREATE TRIGGER prevent_timeline_mutation
    BEFORE UPDATE ON complaint_timeline
    FOR EACH ROW EXECUTE FUNCTION reject_timeline_mutation();
""")

event.listen(
    TimelineEntry.__table__,
    "after_create",
    prevent_mutation_trigger.execute_if(dialect="postgresql"),
)
