import uuid
from datetime import timedelta

import pytest

from lexdesk.core.errors import NotFoundError, ValidationError
from lexdesk.models.base import utcnow
from lexdesk.models.timeline import TimelineEvent
from lexdesk.services.case_service import CaseService
from lexdesk.services.crud import FilterSpec


@pytest.fixture()
def cases(session, settings):
    return CaseService(session, settings)


def new_case(cases, **overrides):
    attrs = {
        "title": "Smith v. Jones",
        "client_name": "Jane Smith",
        "matter_type": "Litigation",
        "practice_area": "Civil",
        "status": "Open",
    }
    attrs.update(overrides)
    return cases.create_case(attrs, created_by="admin-1")


def events(cases, case, event_type=None):
    filters = {"case_id": case.id}
    if event_type:
        filters["event_type"] = event_type
    return cases.timeline.find_all(FilterSpec(filters=filters, order_by=["event_date"]))


def test_create_case_generates_number_and_created_event(cases):
    case = new_case(cases)
    assert case.case_number.startswith(f"CASE-{utcnow().year}-")
    assert case.created_by == "admin-1"

    created = events(cases, case)
    assert [e.event_type for e in created] == ["Case Created"]


def test_create_case_validation(cases):
    with pytest.raises(ValidationError) as exc:
        cases.create_case({"title": "No client"}, created_by="admin-1")
    fields = {e["field"] for e in exc.value.errors}
    assert "client_name" in fields
    assert cases.cases.count() == 0


def test_assign_case_scenario(cases):
    case = new_case(cases)

    assigned = cases.assign_case(case.id, "attorney-42", "admin-1", "workload balance")

    assert assigned.assigned_to == "attorney-42"
    assert assigned.assigned_by == "admin-1"
    assert assigned.assigned_at is not None

    assignment = events(cases, case, "Assignment")
    assert len(assignment) == 1
    assert assignment[0].title == "Case Assigned"
    assert "attorney-42" in assignment[0].description
    assert "workload balance" in assignment[0].description


def test_each_assignment_appends_exactly_one_event(cases):
    case = new_case(cases)
    for n, who in enumerate(["a-1", "a-2", "a-3"], start=1):
        cases.assign_case(case.id, who, "admin-1")
        assignment = events(cases, case, "Assignment")
        assert len(assignment) == n
        assert any(who in e.description for e in assignment)
    assert cases.get_case(case.id).assigned_to == "a-3"


def test_assign_missing_case_returns_none_and_writes_nothing(cases, session):
    assert cases.assign_case(uuid.uuid4(), "attorney-42", "admin-1") is None
    assert cases.assign_case("garbage", "attorney-42", "admin-1") is None
    assert cases.timeline.count() == 0


def test_assignment_rolls_back_when_event_write_fails(cases, monkeypatch):
    case = new_case(cases)

    def boom(*args, **kwargs):
        raise RuntimeError("timeline store unavailable")

    monkeypatch.setattr(cases, "_append_event", boom)
    with pytest.raises(RuntimeError):
        cases.assign_case(case.id, "attorney-42", "admin-1")

    reloaded = cases.get_case(case.id)
    assert reloaded.assigned_to is None
    assert events(cases, case, "Assignment") == []


def test_update_status_records_transition(cases):
    case = new_case(cases)
    updated = cases.update_status(case.id, "In Progress", "admin-1")
    assert updated.status == "In Progress"

    change = events(cases, case, "Status Change")
    assert len(change) == 1
    assert change[0].description == "Status changed from Open to In Progress"

    # same status is a no-op
    cases.update_status(case.id, "In Progress", "admin-1")
    assert len(events(cases, case, "Status Change")) == 1

    with pytest.raises(ValidationError):
        cases.update_status(case.id, "Someday", "admin-1")


def test_moving_off_closed_clears_closed_date(cases):
    case = new_case(cases)
    closed = cases.update_status(case.id, "Closed", "admin-1")
    assert closed.closed_date is not None
    assert cases.get_analytics()["overview"]["recent_activity"]["closed_cases_last_30_days"] == 1

    reopened = cases.update_status(case.id, "Open", "admin-1")
    assert reopened.closed_date is None
    overview = cases.get_analytics()["overview"]
    assert overview["recent_activity"]["closed_cases_last_30_days"] == 0
    assert overview["avg_duration_days"] == 0

def test_close_and_reopen(cases):
    case = new_case(cases)
    closed = cases.close_case(case.id, "admin-1", outcome="Settled", resolution="Paid in full")
    assert closed.status == "Closed"
    assert closed.closed_date is not None

    with pytest.raises(ValidationError):
        cases.close_case(case.id, "admin-1", outcome="Settled", resolution="again")

    reopened = cases.reopen_case(case.id, "admin-1", reason="appeal filed")
    assert reopened.status == "Open"
    assert reopened.closed_date is None
    assert reopened.outcome is None

    with pytest.raises(ValidationError):
        cases.reopen_case(case.id, "admin-1")

    types = [e.event_type for e in events(cases, case)]
    assert "Case Closed" in types
    assert "Case Reopened" in types


def test_archive_sets_retention(cases, settings):
    case = new_case(cases)
    archived = cases.archive_case(case.id, "admin-1", retention_days=10)
    assert archived.archived is True
    assert archived.status == "Archived"
    delta = archived.retention_date - archived.archived_date
    assert delta == timedelta(days=10)

    with pytest.raises(ValidationError):
        cases.archive_case(case.id, "admin-1")

    other = cases.archive_case(new_case(cases).id, "admin-1")
    delta = other.retention_date - other.archived_date
    assert delta == timedelta(days=settings.archive_retention_days)


def test_add_note_truncates_preview(cases):
    case = new_case(cases)
    content = "x" * 150
    note = cases.add_note(case.id, content, "paralegal-7", title="Discovery")
    assert note.note_type == "General"
    assert note.created_by == "paralegal-7"

    added = events(cases, case, "Note Added")
    assert len(added) == 1
    assert added[0].notes == "x" * 100 + "..."
    assert added[0].details["note_id"] == str(note.id)

    short = cases.add_note(case.id, "short note", "paralegal-7")
    assert events(cases, case, "Note Added")[-1].notes == "short note"
    assert [n.id for n in cases.list_notes(case.id)] == [note.id, short.id]


def test_add_note_to_missing_case_raises(cases):
    with pytest.raises(NotFoundError):
        cases.add_note(uuid.uuid4(), "content", "someone")


def test_manual_timeline_events_and_paging(cases, settings):
    case = new_case(cases)
    hearing = utcnow() + timedelta(days=3)
    ev = cases.add_timeline_event(
        case.id,
        {"title": "Motion hearing", "event_type": "Court Hearing", "event_date": hearing},
        created_by="attorney-42",
    )
    assert isinstance(ev, TimelineEvent)
    assert ev.created_by == "attorney-42"

    timeline = cases.get_timeline(case.id)
    assert [e.title for e in timeline] == ["Case Created", "Motion hearing"]
    assert len(cases.get_timeline(case.id, limit=1)) == 1

    # timeline records are never edited
    with pytest.raises(ValidationError):
        cases.timeline.update(ev.id, {"title": "changed"})


def test_delete_case_keeps_timeline(cases):
    case = new_case(cases)
    assert cases.delete_case(case.id) is True
    assert cases.get_case(case.id) is None
    assert cases.delete_case(case.id) is False
    assert cases.timeline.count(FilterSpec(filters={"case_id": case.id})) == 1


def test_find_by_status_and_assignee_ordering(cases):
    low = new_case(cases, priority="Low")
    crit = new_case(cases, priority="Critical")
    high = new_case(cases, priority="High", due_date=utcnow() + timedelta(days=2))
    later = new_case(cases, priority="High", due_date=utcnow() + timedelta(days=9))
    for c in (low, crit, high, later):
        cases.assign_case(c.id, "attorney-42", "admin-1")

    board = cases.find_by_status("Open")
    assert [c.id for c in board][:1] == [crit.id]
    assert board[-1].id == low.id

    cases.close_case(low.id, "admin-1", outcome="Dismissed", resolution="n/a")
    mine = cases.find_by_assignee("attorney-42")
    assert [c.id for c in mine] == [crit.id, high.id, later.id]


def test_analytics(cases):
    a = new_case(cases, priority="High", matter_type="Litigation")
    new_case(cases, priority="Low", matter_type="Contract Review")
    cases.assign_case(a.id, "attorney-42", "admin-1")
    cases.close_case(a.id, "admin-1", outcome="Won", resolution="Judgment entered")

    stats = cases.get_analytics()
    overview = stats["overview"]
    assert overview["total_cases"] == 2
    assert overview["open_cases"] == 1
    assert overview["closed_cases"] == 1
    assert overview["recent_activity"]["new_cases_last_30_days"] == 2
    assert overview["recent_activity"]["closed_cases_last_30_days"] == 1
    assert stats["breakdown"]["by_matter_type"] == {"Litigation": 1, "Contract Review": 1}
    assert stats["performance"]["top_assignees"] == [
        {"assigned_to": "attorney-42", "case_count": 1, "open_cases": 0}
    ]
