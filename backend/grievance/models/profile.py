"""
profile.py - Principal profile.

Profiles carry contact data only. There is no role column here:
authority lives exclusively in user_roles.
"""

import uuid

from sqlalchemy import Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from grievance.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(String(32), nullable=True)
    hostel = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    roles = relationship("UserRole", back_populates="profile", cascade="all, delete-orphan")
