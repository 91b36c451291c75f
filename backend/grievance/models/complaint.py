import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from grievance.database import Base
from grievance.models.enums import ComplaintCategory, ComplaintSeverity, ComplaintStatus


def _pg_enum(enum_cls, name):
    return SAEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


class Complaint(Base):
    """
    A grievance filed by a student.

    Complaints are never deleted. Withdrawal is recorded by stamping
    withdrawn_at; the row stays for the audit trail.
    """

    __tablename__ = "complaints"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category = Column(_pg_enum(ComplaintCategory, "complaint_category"), nullable=False)
    severity = Column(_pg_enum(ComplaintSeverity, "complaint_severity"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    status = Column(
        _pg_enum(ComplaintStatus, "complaint_status"),
        nullable=False,
        default=ComplaintStatus.SUBMITTED,
        index=True,
    )
    staff_assigned = Column(Uuid, ForeignKey("profiles.id"), nullable=True, index=True)
    rating = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)
    withdrawal_reason = Column(Text, nullable=True)

    timeline = relationship(
        "TimelineEntry",
        back_populates="complaint",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TimelineEntry.created_at",
    )
    identity_locker = relationship(
        "IdentityLocker",
        back_populates="complaint",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="complaint_rating_range"),
        Index("idx_complaints_student_created", "student_id", "created_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.status != ComplaintStatus.RESOLVED and self.withdrawn_at is None
