"""
complaints.py - Complaint endpoints.

Thin adapter over PolicyEnforcedStore. Typed store errors propagate to the
application-level handler in grievance.main.
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, status

from grievance.api.deps import get_principal, get_store
from grievance.principal import Principal
from grievance.schemas.complaint import (
    AssignmentRequest,
    ComplaintDraft,
    ComplaintView,
    RatingRequest,
    RevealRequest,
    StatusUpdate,
    SubmitResponse,
    TimelineEntryView,
    WithdrawRequest,
)
from grievance.services import PolicyEnforcedStore

router = APIRouter()


@router.post("", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_complaint(
    draft: ComplaintDraft,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return SubmitResponse(complaint_id=store.submit(principal, draft))


@router.get("", response_model=list[ComplaintView])
def list_visible(
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return list(store.list_visible(principal))


@router.get("/mine", response_model=list[ComplaintView])
def list_mine(
    view: Literal["all", "active", "resolved"] = "all",
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    """Caller's own complaints. ``view`` is one of all, active, resolved."""
    listings = {
        "all": store.list_mine,
        "active": store.list_active,
        "resolved": store.list_resolved,
    }
    return list(listings[view](principal))


@router.get("/{complaint_id}", response_model=ComplaintView)
def read_complaint(
    complaint_id: str,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return store.read(principal, complaint_id)


@router.get("/{complaint_id}/timeline", response_model=list[TimelineEntryView])
def read_timeline(
    complaint_id: str,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return store.timeline(principal, complaint_id)


@router.post("/{complaint_id}/status", response_model=ComplaintView)
def update_status(
    complaint_id: str,
    request: StatusUpdate,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return store.update_status(principal, complaint_id, request.status, request.note)


@router.post("/{complaint_id}/withdraw", response_model=ComplaintView)
def withdraw(
    complaint_id: str,
    request: WithdrawRequest,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return store.withdraw(principal, complaint_id, request.reason)


@router.post("/{complaint_id}/rating", response_model=ComplaintView)
def rate(
    complaint_id: str,
    request: RatingRequest,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return store.rate(principal, complaint_id, request.score)


@router.post("/{complaint_id}/assignment", response_model=ComplaintView)
def assign(
    complaint_id: str,
    request: AssignmentRequest,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    return store.assign(principal, complaint_id, request.staff_id)


@router.post("/{complaint_id}/identity/reveal-request")
def request_reveal(
    complaint_id: str,
    request: RevealRequest,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    created = store.request_reveal(principal, complaint_id, request.reason)
    return {"status": "requested", "created": created}


@router.post("/{complaint_id}/identity/reveal")
def reveal(
    complaint_id: str,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    student_id: uuid.UUID = store.reveal(principal, complaint_id)
    return {"status": "revealed", "student_id": str(student_id)}
