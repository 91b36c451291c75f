"""
complaint.py - Pydantic schemas for complaint payloads and views.

Field limits mirror the submission form: title 5-100 characters,
description 20-1000 characters.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grievance.models.enums import (
    ComplaintCategory,
    ComplaintSeverity,
    ComplaintStatus,
)


# --- Inbound payloads ---


class ComplaintDraft(BaseModel):
    """Draft complaint as submitted by a student."""

    model_config = ConfigDict(extra="forbid")

    category: ComplaintCategory
    severity: ComplaintSeverity
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=1000)
    anonymous: bool = False

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class StatusUpdate(BaseModel):
    status: ComplaintStatus
    note: str | None = Field(None, max_length=1000)


class WithdrawRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RatingRequest(BaseModel):
    score: int = Field(..., ge=1, le=5)


class AssignmentRequest(BaseModel):
    staff_id: uuid.UUID


class RevealRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


# --- Outbound views ---


class ComplaintView(BaseModel):
    """
    Complaint as returned to a caller.

    student_id is None whenever the submitter's identity is redacted.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: uuid.UUID | None
    category: ComplaintCategory
    severity: ComplaintSeverity
    title: str
    description: str
    is_anonymous: bool
    status: ComplaintStatus
    staff_assigned: uuid.UUID | None = None
    rating: int | None = None
    created_at: datetime
    resolved_at: datetime | None = None
    withdrawn_at: datetime | None = None
    withdrawal_reason: str | None = None


class TimelineEntryView(BaseModel):
    """updated_by is None for system entries and for entries by a redacted submitter."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    complaint_id: uuid.UUID
    updated_by: uuid.UUID | None
    message: str
    created_at: datetime


class SubmitResponse(BaseModel):
    complaint_id: uuid.UUID
