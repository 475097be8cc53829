import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lexdesk.models.case import CasePriority, CaseStatus
from lexdesk.models.timeline import TimelineEventType


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True, str_strip_whitespace=True)


class CaseCreate(_Payload):
    case_number: Optional[str] = Field(default=None, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    client_name: str = Field(min_length=1, max_length=255)
    client_id: Optional[str] = None
    matter_type: str = Field(min_length=1)
    practice_area: str = Field(min_length=1)
    case_type: Optional[str] = None
    priority: CasePriority = CasePriority.MEDIUM
    tags: list[str] = Field(default_factory=list)
    status: CaseStatus = CaseStatus.OPEN
    opened_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CaseUpdate(_Payload):
    """Fields a plain edit may touch; status and assignment have their own workflows."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    client_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_id: Optional[str] = None
    matter_type: Optional[str] = None
    practice_area: Optional[str] = None
    case_type: Optional[str] = None
    priority: Optional[CasePriority] = None
    tags: Optional[list[str]] = None
    due_date: Optional[datetime] = None
    custom_fields: Optional[dict[str, Any]] = None


class AssignCaseRequest(_Payload):
    assigned_to: str = Field(min_length=1)
    assigned_by: Optional[str] = None
    reason: Optional[str] = None


class StatusUpdateRequest(_Payload):
    status: CaseStatus
    updated_by: Optional[str] = None


class CloseCaseRequest(_Payload):
    outcome: str = Field(min_length=1)
    resolution: str = Field(min_length=1)
    closed_by: Optional[str] = None


class ReopenCaseRequest(_Payload):
    reason: Optional[str] = None
    reopened_by: Optional[str] = None


class ArchiveCaseRequest(_Payload):
    retention_days: Optional[int] = Field(default=None, ge=1)
    archived_by: Optional[str] = None


class NoteCreate(_Payload):
    content: str = Field(min_length=1)
    title: Optional[str] = Field(default=None, max_length=255)
    note_type: Optional[str] = None
    created_by: Optional[str] = None


class TimelineEventCreate(_Payload):
    title: str = Field(min_length=1, max_length=255)
    event_type: TimelineEventType = TimelineEventType.CUSTOM
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    notes: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None


class TimelineEventRecord(TimelineEventCreate):
    case_id: uuid.UUID


class NoteRecord(NoteCreate):
    case_id: uuid.UUID
    note_type: str = "General"
    created_by: str
