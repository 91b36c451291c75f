"""
test_lifecycle.py - Status transitions, assignment, withdrawal and rating.
"""

import uuid

import pytest

from conftest import make_draft
from grievance.errors import InvalidTransition, NotFound, Unauthorized, ValidationFailed
from grievance.models import ComplaintStatus


@pytest.fixture
def complaint_id(store, student):
    return store.submit(student, make_draft())


class TestScenarioB:
    def test_unassigned_staff_then_assigned(self, store, staff, admin, complaint_id):
        with pytest.raises(Unauthorized):
            store.update_status(staff, complaint_id, "resolved", "Fixed the heater")

        store.assign(admin, complaint_id, staff.id)
        view = store.update_status(staff, complaint_id, "resolved", "Fixed the heater")

        assert view.status == ComplaintStatus.RESOLVED
        assert view.resolved_at is not None

        timeline = store.timeline(staff, complaint_id)
        assert timeline[-1].message == "Fixed the heater"
        assert timeline[-1].updated_by == staff.id


class TestStatusTransitions:
    def test_allowed_path(self, store, admin, complaint_id):
        view = store.update_status(admin, complaint_id, ComplaintStatus.IN_PROGRESS, "Looking into it")
        assert view.status == ComplaintStatus.IN_PROGRESS
        assert view.resolved_at is None

        view = store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        assert view.status == ComplaintStatus.RESOLVED
        assert view.resolved_at is not None

    def test_resolved_is_terminal(self, store, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")

        for target in (ComplaintStatus.SUBMITTED, ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED):
            with pytest.raises(InvalidTransition):
                store.update_status(admin, complaint_id, target, "again")

    def test_no_backwards_move(self, store, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.IN_PROGRESS)
        with pytest.raises(InvalidTransition) as exc_info:
            store.update_status(admin, complaint_id, ComplaintStatus.SUBMITTED)
        assert exc_info.value.details["from"] == "in_progress"
        assert exc_info.value.details["to"] == "submitted"

    def test_default_note(self, store, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.IN_PROGRESS)
        assert store.timeline(admin, complaint_id)[-1].message == "Status changed to in_progress"

    def test_unknown_status_rejected(self, store, admin, complaint_id):
        with pytest.raises(ValidationFailed):
            store.update_status(admin, complaint_id, "closed", "bad")

    def test_failed_transition_writes_nothing(self, store, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        before = len(store.timeline(admin, complaint_id))
        with pytest.raises(InvalidTransition):
            store.update_status(admin, complaint_id, ComplaintStatus.IN_PROGRESS, "reopen")
        assert len(store.timeline(admin, complaint_id)) == before

    def test_students_cannot_update_status(self, store, student, complaint_id):
        with pytest.raises(Unauthorized):
            store.update_status(student, complaint_id, ComplaintStatus.RESOLVED, "self-resolve")

    def test_other_staff_cannot_update(self, store, staff, other_staff, admin, complaint_id):
        store.assign(admin, complaint_id, staff.id)
        with pytest.raises(Unauthorized):
            store.update_status(other_staff, complaint_id, ComplaintStatus.IN_PROGRESS)

    def test_staff_missing_complaint_is_unauthorized(self, store, staff):
        with pytest.raises(Unauthorized):
            store.update_status(staff, uuid.uuid4(), ComplaintStatus.IN_PROGRESS)

    def test_admin_missing_complaint_is_not_found(self, store, admin):
        with pytest.raises(NotFound):
            store.update_status(admin, uuid.uuid4(), ComplaintStatus.IN_PROGRESS)

    def test_withdrawn_complaint_cannot_move(self, store, student, admin, complaint_id):
        store.withdraw(student, complaint_id, "Changed my mind")
        with pytest.raises(InvalidTransition):
            store.update_status(admin, complaint_id, ComplaintStatus.IN_PROGRESS)


class TestAssignment:
    def test_only_admin_assigns(self, store, staff, other_staff, complaint_id):
        with pytest.raises(Unauthorized):
            store.assign(staff, complaint_id, other_staff.id)

    def test_assignee_must_be_staff(self, store, admin, other_student, complaint_id):
        with pytest.raises(ValidationFailed):
            store.assign(admin, complaint_id, other_student.id)

    def test_reassignment_moves_access(self, store, admin, staff, other_staff, complaint_id):
        store.assign(admin, complaint_id, staff.id)
        store.assign(admin, complaint_id, other_staff.id)

        with pytest.raises(NotFound):
            store.read(staff, complaint_id)
        assert store.read(other_staff, complaint_id).staff_assigned == other_staff.id

    def test_same_assignment_is_noop(self, store, admin, staff, complaint_id):
        store.assign(admin, complaint_id, staff.id)
        store.assign(admin, complaint_id, staff.id)
        messages = [e.message for e in store.timeline(admin, complaint_id)]
        assert messages.count("Complaint assigned to staff") == 1

    def test_resolved_complaint_cannot_be_assigned(self, store, admin, staff, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        with pytest.raises(InvalidTransition):
            store.assign(admin, complaint_id, staff.id)


class TestWithdraw:
    def test_owner_withdraws(self, store, student, complaint_id):
        view = store.withdraw(student, complaint_id, "Resolved informally")
        assert view.withdrawn_at is not None
        assert view.withdrawal_reason == "Resolved informally"
        assert view.status == ComplaintStatus.SUBMITTED

        timeline = store.timeline(student, complaint_id)
        assert timeline[-1].message == "Complaint withdrawn: Resolved informally"

    def test_withdrawn_complaint_still_readable(self, store, student, complaint_id):
        store.withdraw(student, complaint_id, "No longer relevant")
        assert store.read(student, complaint_id).withdrawn_at is not None

    def test_non_owner_cannot_withdraw(self, store, other_student, admin, complaint_id):
        with pytest.raises(Unauthorized):
            store.withdraw(other_student, complaint_id, "Not mine")
        with pytest.raises(Unauthorized):
            store.withdraw(admin, complaint_id, "Admin cannot either")

    def test_non_owner_missing_is_unauthorized(self, store, other_student):
        with pytest.raises(Unauthorized):
            store.withdraw(other_student, uuid.uuid4(), "Probing")

    def test_cannot_withdraw_twice(self, store, student, complaint_id):
        store.withdraw(student, complaint_id, "First")
        with pytest.raises(InvalidTransition):
            store.withdraw(student, complaint_id, "Second")

    def test_cannot_withdraw_resolved(self, store, student, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        with pytest.raises(InvalidTransition):
            store.withdraw(student, complaint_id, "Too late")

    def test_reason_required(self, store, student, complaint_id):
        with pytest.raises(ValidationFailed):
            store.withdraw(student, complaint_id, "")


class TestRating:
    def test_rate_resolved(self, store, student, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        view = store.rate(student, complaint_id, 4)
        assert view.rating == 4
        assert store.timeline(student, complaint_id)[-1].message == "Resolution rated 4/5"

    def test_rate_only_once(self, store, student, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        store.rate(student, complaint_id, 5)
        with pytest.raises(InvalidTransition):
            store.rate(student, complaint_id, 1)
        assert store.read(student, complaint_id).rating == 5

    def test_rate_unresolved(self, store, student, complaint_id):
        with pytest.raises(InvalidTransition):
            store.rate(student, complaint_id, 3)

    def test_only_owner_rates(self, store, other_student, admin, complaint_id):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        with pytest.raises(Unauthorized):
            store.rate(other_student, complaint_id, 3)

    @pytest.mark.parametrize("score", [0, 6, -1])
    def test_score_range(self, store, student, admin, complaint_id, score):
        store.update_status(admin, complaint_id, ComplaintStatus.RESOLVED, "Done")
        with pytest.raises(ValidationFailed):
            store.rate(student, complaint_id, score)
