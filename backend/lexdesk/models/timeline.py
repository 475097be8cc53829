import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlmodel import Field

from lexdesk.models.base import Entity, JSONType, UTCDateTime, utcnow


class TimelineEventType(str, Enum):
    CASE_CREATED = "Case Created"
    STATUS_CHANGE = "Status Change"
    ASSIGNMENT = "Assignment"
    NOTE_ADDED = "Note Added"
    CASE_CLOSED = "Case Closed"
    CASE_REOPENED = "Case Reopened"
    CASE_ARCHIVED = "Case Archived"
    COURT_HEARING = "Court Hearing"
    FILING = "Filing"
    DEADLINE = "Deadline"
    MEETING = "Meeting"
    MILESTONE = "Milestone"
    CUSTOM = "Custom"


class TimelineEvent(Entity, table=True):
    __tablename__ = "timeline_events"

    case_id: uuid.UUID = Field(index=True)
    title: str
    description: Optional[str] = None
    event_type: str = Field(index=True)
    event_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    created_by: Optional[str] = None
    notes: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)
