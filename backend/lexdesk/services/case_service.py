import logging
import secrets
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import case as sa_case
from sqlalchemy import func
from sqlmodel import Session, select

from lexdesk.core.config import Settings
from lexdesk.core.errors import NotFoundError, ValidationError
from lexdesk.db.session import unit_of_work
from lexdesk.metrics.prometheus import case_assignments_total, case_duration_days, case_status_changes_total
from lexdesk.models.base import utcnow
from lexdesk.models.case import PRIORITY_RANK, Case, CaseStatus
from lexdesk.models.note import CaseNote
from lexdesk.models.timeline import TimelineEvent, TimelineEventType
from lexdesk.schemas.case import CaseCreate, CaseUpdate, NoteRecord, TimelineEventRecord
from lexdesk.services.crud import CrudService, FilterSpec

logger = logging.getLogger(__name__)

NOTE_PREVIEW_CHARS = 100

_priority_rank = sa_case(PRIORITY_RANK, value=Case.priority, else_=0)


def generate_case_number() -> str:
    return f"CASE-{utcnow().year}-{secrets.token_hex(3).upper()}"


def _note_preview(content: str) -> str:
    if len(content) > NOTE_PREVIEW_CHARS:
        return content[:NOTE_PREVIEW_CHARS] + "..."
    return content


class CaseService:
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.cases: CrudService[Case] = CrudService(Case, session, CaseCreate, CaseUpdate)
        self.timeline: CrudService[TimelineEvent] = CrudService(TimelineEvent, session, TimelineEventRecord)
        self.notes: CrudService[CaseNote] = CrudService(CaseNote, session, NoteRecord)

    def _append_event(
        self,
        case: Case,
        title: str,
        event_type: TimelineEventType,
        created_by: Optional[str],
        description: Optional[str] = None,
        notes: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> TimelineEvent:
        return self.timeline.create(
            {
                "case_id": case.id,
                "title": title,
                "event_type": event_type.value,
                "description": description,
                "created_by": created_by,
                "notes": notes,
                "details": details or {},
                "event_date": utcnow(),
            },
            commit=False,
        )

    def get_case(self, case_id: Any) -> Optional[Case]:
        return self.cases.find_by_id(case_id)

    def require_case(self, case_id: Any) -> Case:
        case = self.cases.find_by_id(case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        return case

    def create_case(self, attributes: Any, created_by: str) -> Case:
        if isinstance(attributes, BaseModel):
            attributes = attributes.model_dump(exclude_none=True)
        if not isinstance(attributes, Mapping):
            raise ValidationError("Invalid Case data", [{"field": "__root__", "message": "expected an object"}])
        attrs = dict(attributes)
        if not attrs.get("case_number"):
            attrs["case_number"] = generate_case_number()

        with unit_of_work(self.session):
            case = self.cases.create(attrs, commit=False, extra={"created_by": created_by})
            self._append_event(
                case,
                title="Case Created",
                event_type=TimelineEventType.CASE_CREATED,
                created_by=created_by,
                description=f"Case {case.case_number} opened for {case.client_name}",
            )
        self.session.refresh(case)
        logger.info(f"Case {case.case_number} created by {created_by}")
        return case

    def update_case(self, case_id: Any, attributes: Any, updated_by: str) -> Optional[Case]:
        return self.cases.update(case_id, attributes, extra={"last_modified_by": updated_by})

    def delete_case(self, case_id: Any) -> bool:
        # timeline events and notes stay behind as the audit record
        return self.cases.delete(case_id)

    def find_by_status(self, status: str) -> list[Case]:
        q = (
            select(Case)
            .where(Case.status == status, Case.archived == False)  # noqa: E712
            .order_by(_priority_rank.desc(), Case.opened_date.desc(), Case.id)
        )
        return list(self.session.exec(q).all())

    def find_by_assignee(self, assigned_to: str) -> list[Case]:
        q = (
            select(Case)
            .where(
                Case.assigned_to == assigned_to,
                Case.archived == False,  # noqa: E712
                Case.status != CaseStatus.CLOSED.value,
            )
            .order_by(_priority_rank.desc(), Case.due_date.asc().nulls_last(), Case.id)
        )
        return list(self.session.exec(q).all())

    def assign_case(
        self,
        case_id: Any,
        assigned_to: str,
        assigned_by: str,
        reason: Optional[str] = None,
    ) -> Optional[Case]:
        """
        Assign a case and record an "Assignment" timeline event.

        Returns None when the case does not exist, the same not-found
        convention ``update`` uses.
        """
        with unit_of_work(self.session):
            case = self.cases.find_by_id(case_id)
            if case is None:
                return None

            previous = case.assigned_to
            self.cases.apply(
                case,
                {
                    "assigned_to": assigned_to,
                    "assigned_at": utcnow(),
                    "assigned_by": assigned_by,
                    "last_modified_by": assigned_by,
                },
                commit=False,
            )

            description = f"Case assigned to {assigned_to}"
            if reason:
                description += f" (reason: {reason})"
            self._append_event(
                case,
                title="Case Assigned",
                event_type=TimelineEventType.ASSIGNMENT,
                created_by=assigned_by,
                description=description,
                notes=reason,
                details={"assigned_to": assigned_to, "previous_assignee": previous, "reason": reason},
            )

        self.session.refresh(case)
        case_assignments_total.inc()
        logger.info(f"Case {case.case_number} assigned to {assigned_to} by {assigned_by}")
        return case

    def update_status(self, case_id: Any, status: str, updated_by: str) -> Optional[Case]:
        valid = {s.value for s in CaseStatus}
        if status not in valid:
            raise ValidationError(
                "Invalid status",
                [{"field": "status", "message": f"must be one of: {', '.join(sorted(valid))}"}],
            )

        with unit_of_work(self.session):
            case = self.cases.find_by_id(case_id)
            if case is None:
                return None
            old_status = case.status
            if old_status == status:
                return case

            changes: dict[str, Any] = {"status": status, "last_modified_by": updated_by}
            if status == CaseStatus.CLOSED.value and case.closed_date is None:
                changes["closed_date"] = utcnow()
            elif old_status == CaseStatus.CLOSED.value and status != CaseStatus.CLOSED.value:
                changes["closed_date"] = None
            self.cases.apply(case, changes, commit=False)
            self._append_event(
                case,
                title="Status Changed",
                event_type=TimelineEventType.STATUS_CHANGE,
                created_by=updated_by,
                description=f"Status changed from {old_status} to {status}",
                details={"from": old_status, "to": status},
            )

        self.session.refresh(case)
        case_status_changes_total.labels(status=status).inc()
        logger.info(f"Case {case.case_number} status {old_status} -> {status} by {updated_by}")
        return case

    def close_case(self, case_id: Any, closed_by: str, outcome: str, resolution: str) -> Optional[Case]:
        with unit_of_work(self.session):
            case = self.cases.find_by_id(case_id)
            if case is None:
                return None
            if case.status == CaseStatus.CLOSED.value:
                raise ValidationError("Case is already closed", [{"field": "status", "message": "already Closed"}])

            now = utcnow()
            self.cases.apply(
                case,
                {
                    "status": CaseStatus.CLOSED.value,
                    "closed_date": now,
                    "outcome": outcome,
                    "resolution": resolution,
                    "last_modified_by": closed_by,
                },
                commit=False,
            )
            self._append_event(
                case,
                title="Case Closed",
                event_type=TimelineEventType.CASE_CLOSED,
                created_by=closed_by,
                description=f"Case closed with outcome: {outcome}",
                notes=resolution,
            )

        self.session.refresh(case)
        duration = (case.closed_date - case.opened_date).total_seconds() / 86400
        case_duration_days.observe(max(0.0, duration))
        case_status_changes_total.labels(status=CaseStatus.CLOSED.value).inc()
        logger.info(f"Case {case.case_number} closed by {closed_by} ({outcome})")
        return case

    def reopen_case(self, case_id: Any, reopened_by: str, reason: Optional[str] = None) -> Optional[Case]:
        with unit_of_work(self.session):
            case = self.cases.find_by_id(case_id)
            if case is None:
                return None
            if case.status != CaseStatus.CLOSED.value:
                raise ValidationError("Only closed cases can be reopened", [{"field": "status", "message": case.status}])

            self.cases.apply(
                case,
                {
                    "status": CaseStatus.OPEN.value,
                    "closed_date": None,
                    "outcome": None,
                    "resolution": None,
                    "last_modified_by": reopened_by,
                },
                commit=False,
            )
            self._append_event(
                case,
                title="Case Reopened",
                event_type=TimelineEventType.CASE_REOPENED,
                created_by=reopened_by,
                description="Case reopened" + (f": {reason}" if reason else ""),
                notes=reason,
            )

        self.session.refresh(case)
        case_status_changes_total.labels(status=CaseStatus.OPEN.value).inc()
        logger.info(f"Case {case.case_number} reopened by {reopened_by}")
        return case

    def archive_case(self, case_id: Any, archived_by: str, retention_days: Optional[int] = None) -> Optional[Case]:
        retention_days = retention_days or self.settings.archive_retention_days
        with unit_of_work(self.session):
            case = self.cases.find_by_id(case_id)
            if case is None:
                return None
            if case.archived:
                raise ValidationError("Case is already archived", [{"field": "archived", "message": "already archived"}])

            now = utcnow()
            self.cases.apply(
                case,
                {
                    "archived": True,
                    "archived_date": now,
                    "archived_by": archived_by,
                    "retention_date": now + timedelta(days=retention_days),
                    "status": CaseStatus.ARCHIVED.value,
                    "last_modified_by": archived_by,
                },
                commit=False,
            )
            self._append_event(
                case,
                title="Case Archived",
                event_type=TimelineEventType.CASE_ARCHIVED,
                created_by=archived_by,
                description=f"Case archived, retained for {retention_days} days",
                details={"retention_days": retention_days},
            )

        self.session.refresh(case)
        case_status_changes_total.labels(status=CaseStatus.ARCHIVED.value).inc()
        logger.info(f"Case {case.case_number} archived by {archived_by}")
        return case

    def add_note(
        self,
        case_id: Any,
        content: str,
        created_by: str,
        title: Optional[str] = None,
        note_type: Optional[str] = None,
    ) -> CaseNote:
        with unit_of_work(self.session):
            case = self.require_case(case_id)
            record: dict[str, Any] = {"case_id": case.id, "content": content, "created_by": created_by}
            if title:
                record["title"] = title
            if note_type:
                record["note_type"] = note_type
            note = self.notes.create(record, commit=False)
            self._append_event(
                case,
                title="Note Added",
                event_type=TimelineEventType.NOTE_ADDED,
                created_by=created_by,
                description=title or "New note added",
                notes=_note_preview(content),
                details={"note_id": str(note.id)},
            )
        self.session.refresh(note)
        return note

    def list_notes(self, case_id: Any) -> list[CaseNote]:
        case = self.require_case(case_id)
        return self.notes.find_all(FilterSpec(filters={"case_id": case.id}, order_by=["created_at"]))

    def add_timeline_event(self, case_id: Any, attributes: Any, created_by: str) -> TimelineEvent:
        case = self.require_case(case_id)
        if isinstance(attributes, BaseModel):
            attributes = attributes.model_dump(exclude_none=True)
        record = dict(attributes)
        record["case_id"] = case.id
        record.setdefault("created_by", created_by)
        record.setdefault("event_date", utcnow())
        return self.timeline.create(record)

    def get_timeline(self, case_id: Any, limit: Optional[int] = None) -> list[TimelineEvent]:
        case = self.require_case(case_id)
        page = min(limit or self.settings.timeline_page_limit, self.settings.timeline_page_limit)
        return self.timeline.find_all(
            FilterSpec(filters={"case_id": case.id}, order_by=["event_date", "created_at"], limit=page)
        )

    def _grouped(self, column, *where) -> dict[str, int]:
        q = select(column, func.count()).where(*where).group_by(column)
        return {str(key): int(n) for key, n in self.session.exec(q).all()}

    def get_analytics(self) -> dict[str, Any]:
        now = utcnow()
        thirty_days_ago = now - timedelta(days=30)
        not_archived = Case.archived == False  # noqa: E712

        by_status = self._grouped(Case.status)
        total = sum(by_status.values())

        closed = self.session.exec(
            select(Case.opened_date, Case.closed_date).where(Case.closed_date.is_not(None))
        ).all()
        avg_duration = 0.0
        if closed:
            avg_duration = sum((c - o).total_seconds() / 86400 for o, c in closed) / len(closed)

        new_recent = self.session.exec(
            select(func.count()).select_from(Case).where(Case.opened_date >= thirty_days_ago)
        ).one()
        closed_recent = self.session.exec(
            select(func.count()).select_from(Case).where(Case.closed_date >= thirty_days_ago)
        ).one()

        case_count = func.count(Case.id)
        open_count = func.sum(sa_case((Case.status != CaseStatus.CLOSED.value, 1), else_=0))
        top_assignees = self.session.exec(
            select(Case.assigned_to, case_count, open_count)
            .where(not_archived, Case.assigned_to.is_not(None))
            .group_by(Case.assigned_to)
            .order_by(case_count.desc(), Case.assigned_to)
            .limit(10)
        ).all()

        return {
            "overview": {
                "total_cases": total,
                "open_cases": by_status.get(CaseStatus.OPEN.value, 0),
                "in_progress_cases": by_status.get(CaseStatus.IN_PROGRESS.value, 0),
                "pending_cases": by_status.get(CaseStatus.PENDING.value, 0),
                "closed_cases": by_status.get(CaseStatus.CLOSED.value, 0),
                "avg_duration_days": round(avg_duration, 2),
                "recent_activity": {
                    "new_cases_last_30_days": int(new_recent),
                    "closed_cases_last_30_days": int(closed_recent),
                },
            },
            "breakdown": {
                "by_status": by_status,
                "by_priority": self._grouped(Case.priority, not_archived),
                "by_matter_type": self._grouped(Case.matter_type),
            },
            "performance": {
                "top_assignees": [
                    {"assigned_to": who, "case_count": int(n), "open_cases": int(o or 0)}
                    for who, n, o in top_assignees
                ],
            },
            "generated_at": now,
        }
