"""
test_access.py - Read-side authorization and redaction.

Callers without read rights must get the same NotFound they would get for a
complaint that does not exist.
"""

import uuid

import pytest

from conftest import make_draft
from grievance.errors import NotFound
from grievance.models import ComplaintStatus


class TestReadVisibility:
    def test_owner_reads_own_complaint(self, store, student):
        complaint_id = store.submit(student, make_draft())
        assert store.read(student, complaint_id).id == complaint_id

    def test_other_student_gets_not_found(self, store, student, other_student):
        """Foreign complaint and missing complaint are indistinguishable."""
        complaint_id = store.submit(student, make_draft())

        with pytest.raises(NotFound) as foreign:
            store.read(other_student, complaint_id)
        missing_id = uuid.uuid4()
        with pytest.raises(NotFound) as missing:
            store.read(other_student, missing_id)

        assert foreign.value.code == missing.value.code
        assert foreign.value.message == f"Complaint {complaint_id} not found"
        assert missing.value.message == f"Complaint {missing_id} not found"

    def test_malformed_id_is_not_found(self, store, student):
        with pytest.raises(NotFound):
            store.read(student, "not-a-uuid")

    def test_unassigned_staff_gets_not_found(self, store, student, staff):
        complaint_id = store.submit(student, make_draft())
        with pytest.raises(NotFound):
            store.read(staff, complaint_id)

    def test_assigned_staff_can_read(self, store, student, staff, admin):
        complaint_id = store.submit(student, make_draft())
        store.assign(admin, complaint_id, staff.id)

        view = store.read(staff, complaint_id)
        assert view.staff_assigned == staff.id

    def test_staff_loses_access_when_role_revoked(self, store, student, staff, admin):
        """Role checks read the registry on every call; nothing is cached across calls."""
        complaint_id = store.submit(student, make_draft())
        store.assign(admin, complaint_id, staff.id)
        store.revoke_role(admin, staff.id, "staff")

        with pytest.raises(NotFound):
            store.read(staff, complaint_id)

    def test_admin_reads_anything(self, store, student, admin):
        complaint_id = store.submit(student, make_draft())
        assert store.read(admin, complaint_id).student_id == student.id

    def test_timeline_follows_read_rules(self, store, student, other_student, staff, admin):
        complaint_id = store.submit(student, make_draft())

        with pytest.raises(NotFound):
            store.timeline(other_student, complaint_id)
        with pytest.raises(NotFound):
            store.timeline(staff, complaint_id)

        store.assign(admin, complaint_id, staff.id)
        messages = [e.message for e in store.timeline(staff, complaint_id)]
        assert messages == ["Complaint submitted", "Complaint assigned to staff"]


class TestRedaction:
    def test_anonymous_submitter_hidden_from_everyone_before_reveal(
        self, store, student, staff, admin
    ):
        complaint_id = store.submit(student, make_draft(anonymous=True))
        store.assign(admin, complaint_id, staff.id)

        assert store.read(student, complaint_id).student_id is None
        assert store.read(staff, complaint_id).student_id is None
        assert store.read(admin, complaint_id).student_id is None

    def test_named_submitter_visible(self, store, student, staff, admin):
        complaint_id = store.submit(student, make_draft(anonymous=False))
        store.assign(admin, complaint_id, staff.id)
        assert store.read(staff, complaint_id).student_id == student.id

    def test_timeline_hides_anonymous_author(self, store, student, staff, admin):
        complaint_id = store.submit(student, make_draft(anonymous=True))
        store.assign(admin, complaint_id, staff.id)
        store.withdraw(student, complaint_id, "Handled it myself")

        for caller in (staff, admin, student):
            authors = [e.updated_by for e in store.timeline(caller, complaint_id)]
            assert student.id not in authors
            assert authors == [None, admin.id, None]

    def test_named_timeline_keeps_author(self, store, student, staff, admin):
        complaint_id = store.submit(student, make_draft(anonymous=False))
        store.assign(admin, complaint_id, staff.id)
        authors = [e.updated_by for e in store.timeline(staff, complaint_id)]
        assert authors == [student.id, admin.id]

    def test_mutation_results_redacted(self, store, student, admin):
        withdrawn = store.submit(student, make_draft(anonymous=True))
        assert store.withdraw(student, withdrawn, "No longer needed").student_id is None

        rated = store.submit(student, make_draft(anonymous=True))
        assert store.update_status(admin, rated, ComplaintStatus.RESOLVED, "Done").student_id is None
        assert store.rate(student, rated, 4).student_id is None

    def test_list_visible_redacts_for_staff_and_admin(self, store, student, staff, admin):
        complaint_id = store.submit(student, make_draft(anonymous=True))
        store.assign(admin, complaint_id, staff.id)

        for caller in (staff, admin):
            views = list(store.list_visible(caller))
            assert [v.id for v in views] == [complaint_id]
            assert views[0].student_id is None

    def test_listing_redacts_anonymous(self, store, student):
        store.submit(student, make_draft(anonymous=True))
        store.submit(student, make_draft(anonymous=False))

        views = list(store.list_mine(student))
        by_flag = {v.is_anonymous: v for v in views}
        assert by_flag[True].student_id is None
        assert by_flag[False].student_id == student.id


class TestListings:
    def test_list_mine_newest_first(self, store, student, other_student):
        first = store.submit(student, make_draft(title="First complaint"))
        second = store.submit(student, make_draft(title="Second complaint"))
        store.submit(other_student, make_draft(title="Someone else"))

        views = list(store.list_mine(student))
        assert [v.id for v in views] == [second, first]

    def test_list_mine_is_lazy_and_restartable(self, store, student):
        store.submit(student, make_draft())
        store.submit(student, make_draft())

        listing = store.list_mine(student)
        assert next(listing) is not None
        listing.close()

        assert len(list(store.list_mine(student))) == 2
        assert len(list(store.list_mine(student))) == 2

    def test_list_mine_empty(self, store, student):
        assert list(store.list_mine(student)) == []

    def test_active_and_resolved_views(self, store, student, admin):
        a = store.submit(student, make_draft(title="Active one"))
        b = store.submit(student, make_draft(title="Resolved one"))
        c = store.submit(student, make_draft(title="Withdrawn one"))
        store.update_status(admin, b, ComplaintStatus.RESOLVED, "Done")
        store.withdraw(student, c, "Not needed")

        assert [v.id for v in store.list_active(student)] == [a]
        assert [v.id for v in store.list_resolved(student)] == [b]
        assert {v.id for v in store.list_mine(student)} == {a, b, c}

    def test_list_visible_by_role(self, store, student, other_student, staff, admin):
        mine = store.submit(student, make_draft())
        theirs = store.submit(other_student, make_draft())
        store.assign(admin, theirs, staff.id)

        assert {v.id for v in store.list_visible(student)} == {mine}
        assert {v.id for v in store.list_visible(staff)} == {theirs}
        assert {v.id for v in store.list_visible(admin)} == {mine, theirs}
