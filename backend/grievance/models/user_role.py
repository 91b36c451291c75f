import uuid

from sqlalchemy import Column, Enum as SAEnum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from grievance.database import Base
from grievance.models.enums import AppRole


class UserRole(Base):
    """Role assignment. A principal holds each role at most once."""

    __tablename__ = "user_roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(
        SAEnum(AppRole, name="app_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    profile = relationship("Profile", back_populates="roles")

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)
