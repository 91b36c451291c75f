"""
identity_locker.py - Vault for the real submitter of anonymous complaints.

One row per anonymous complaint, created together with the complaint.
Only the admin reveal workflow reads or changes it.
"""

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from grievance.database import Base
from grievance.models.enums import RevealStatus


class IdentityLocker(Base):
    __tablename__ = "identity_lockers"

    complaint_id = Column(
        Uuid, ForeignKey("complaints.id", ondelete="CASCADE"), primary_key=True
    )
    real_student_id = Column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    reveal_status = Column(
        SAEnum(RevealStatus, name="reveal_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=RevealStatus.NOT_REVEALED,
    )
    reveal_reason = Column(Text, nullable=True)
    reveal_requested_by = Column(Uuid, ForeignKey("profiles.id"), nullable=True)
    revealed_by = Column(Uuid, ForeignKey("profiles.id"), nullable=True)
    revealed_at = Column(DateTime(timezone=True), nullable=True)

    complaint = relationship("Complaint", back_populates="identity_locker")
