import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from lexdesk.api.deps import get_case_service, get_current_user, require_roles
from lexdesk.core.config import Settings, get_settings
from lexdesk.core.errors import NotFoundError
from lexdesk.models.case import CaseStatus
from lexdesk.models.user import User, UserRole
from lexdesk.schemas.case import (
    ArchiveCaseRequest,
    AssignCaseRequest,
    CloseCaseRequest,
    NoteCreate,
    ReopenCaseRequest,
    StatusUpdateRequest,
    TimelineEventCreate,
)
from lexdesk.services.case_service import CaseService
from lexdesk.services.crud import FilterSpec
from lexdesk.services.reporting import build_case_report_markdown, write_report_files

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cases", tags=["cases"], dependencies=[Depends(get_current_user)])

CASE_FILTER_FIELDS = (
    "status",
    "priority",
    "assigned_to",
    "practice_area",
    "matter_type",
    "client_id",
    "archived",
    "case_number",
)


def _found(case, case_id: str):
    if case is None:
        raise NotFoundError("Case", case_id)
    return case


@router.get("")
def list_cases(
    request: Request,
    service: CaseService = Depends(get_case_service),
    settings: Settings = Depends(get_settings),
):
    params = request.query_params
    spec = FilterSpec.from_query(
        params,
        CASE_FILTER_FIELDS,
        default_limit=settings.default_list_limit,
        max_limit=settings.max_list_limit,
    )

    # a bare ?status= is the status board: non-archived, most urgent first.
    # Archived cases are never on the board, so that status is a plain filter.
    if (
        set(spec.filters) == {"status"}
        and spec.filters["status"] != CaseStatus.ARCHIVED.value
        and "order_by" not in params
    ):
        cases = service.find_by_status(spec.filters["status"])
        total = len(cases)
        cases = cases[spec.offset:][: spec.limit]
    else:
        cases, total = service.cases.find_and_count(spec)
    return {"items": [c.model_dump() for c in cases], "total": total}


@router.post("", status_code=201)
def create_case(
    payload: Any = Body(...),
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    return service.create_case(payload, created_by=user.username).model_dump()


@router.get("/analytics", dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.ATTORNEY))])
def case_analytics(service: CaseService = Depends(get_case_service)):
    return service.get_analytics()


@router.get("/my-cases")
def my_cases(
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    cases = service.find_by_assignee(user.username)
    return {"items": [c.model_dump() for c in cases], "total": len(cases)}


@router.get("/{case_id}")
def get_case(case_id: str, service: CaseService = Depends(get_case_service)):
    case = _found(service.get_case(case_id), case_id)
    return {
        "case": case.model_dump(),
        "timeline": [t.model_dump() for t in service.get_timeline(case.id)],
        "notes": [n.model_dump() for n in service.list_notes(case.id)],
    }


@router.put("/{case_id}")
def update_case(
    case_id: str,
    payload: Any = Body(...),
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    return _found(service.update_case(case_id, payload, updated_by=user.username), case_id).model_dump()


@router.delete("/{case_id}", status_code=204, dependencies=[Depends(require_roles(UserRole.ADMIN))])
def delete_case(case_id: str, service: CaseService = Depends(get_case_service)):
    if not service.delete_case(case_id):
        raise NotFoundError("Case", case_id)
    return Response(status_code=204)


@router.put("/{case_id}/assign")
def assign_case(
    case_id: str,
    body: AssignCaseRequest,
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    case = service.assign_case(
        case_id,
        assigned_to=body.assigned_to,
        assigned_by=body.assigned_by or user.username,
        reason=body.reason,
    )
    return _found(case, case_id).model_dump()


@router.put("/{case_id}/status")
def update_status(
    case_id: str,
    body: StatusUpdateRequest,
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    case = service.update_status(case_id, body.status, updated_by=body.updated_by or user.username)
    return _found(case, case_id).model_dump()


@router.post("/{case_id}/close")
def close_case(
    case_id: str,
    body: CloseCaseRequest,
    service: CaseService = Depends(get_case_service),
    settings: Settings = Depends(get_settings),
    user: User = Depends(get_current_user),
):
    case = _found(
        service.close_case(
            case_id,
            closed_by=body.closed_by or user.username,
            outcome=body.outcome,
            resolution=body.resolution,
        ),
        case_id,
    )

    report: Optional[dict[str, str]] = None
    if settings.report_dir:
        built = build_case_report_markdown(session=service.session, case_id=case.id)
        report = write_report_files(case_id=case.id, markdown=built["markdown"], settings=settings)
        logger.info(f"Wrote closing report for case {case.case_number} to {report['markdown_path']}")

    return {"case": case.model_dump(), "report": report}


@router.post("/{case_id}/reopen")
def reopen_case(
    case_id: str,
    body: ReopenCaseRequest,
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    case = service.reopen_case(case_id, reopened_by=body.reopened_by or user.username, reason=body.reason)
    return _found(case, case_id).model_dump()


@router.post("/{case_id}/archive", dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.ATTORNEY))])
def archive_case(
    case_id: str,
    body: ArchiveCaseRequest,
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    case = service.archive_case(
        case_id,
        archived_by=body.archived_by or user.username,
        retention_days=body.retention_days,
    )
    return _found(case, case_id).model_dump()


@router.get("/{case_id}/notes")
def list_notes(case_id: str, service: CaseService = Depends(get_case_service)):
    notes = service.list_notes(case_id)
    return {"items": [n.model_dump() for n in notes], "total": len(notes)}


@router.post("/{case_id}/notes", status_code=201)
def add_note(
    case_id: str,
    body: NoteCreate,
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    note = service.add_note(
        case_id,
        content=body.content,
        created_by=body.created_by or user.username,
        title=body.title,
        note_type=body.note_type,
    )
    return note.model_dump()


@router.get("/{case_id}/timeline")
def get_timeline(
    case_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: CaseService = Depends(get_case_service),
):
    events = service.get_timeline(case_id, limit=limit)
    return {"items": [e.model_dump() for e in events], "total": len(events)}


@router.post("/{case_id}/timeline", status_code=201)
def add_timeline_event(
    case_id: str,
    body: TimelineEventCreate,
    service: CaseService = Depends(get_case_service),
    user: User = Depends(get_current_user),
):
    return service.add_timeline_event(case_id, body, created_by=user.username).model_dump()


@router.get("/{case_id}/report")
def case_report(case_id: str, service: CaseService = Depends(get_case_service)):
    case = service.require_case(case_id)
    built = build_case_report_markdown(session=service.session, case_id=case.id)
    return {
        "case_id": str(case.id),
        "markdown": built["markdown"],
        "notes_count": built["notes_count"],
        "timeline_count": built["timeline_count"],
    }
