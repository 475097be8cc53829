from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlmodel import Field

from lexdesk.models.base import Entity, JSONType, UTCDateTime, utcnow


class CaseStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    PENDING = "Pending"
    CLOSED = "Closed"
    ARCHIVED = "Archived"


class CasePriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# higher sorts first
PRIORITY_RANK = {
    CasePriority.CRITICAL.value: 4,
    CasePriority.HIGH.value: 3,
    CasePriority.MEDIUM.value: 2,
    CasePriority.LOW.value: 1,
}


class Case(Entity, table=True):
    __tablename__ = "cases"

    case_number: str = Field(unique=True, index=True)
    title: str
    description: Optional[str] = None

    client_name: str
    client_id: Optional[str] = Field(default=None, index=True)

    matter_type: str = Field(index=True)
    practice_area: str = Field(index=True)
    case_type: Optional[str] = None
    priority: str = Field(default=CasePriority.MEDIUM.value, index=True)
    tags: list[str] = Field(default_factory=list, sa_type=JSONType)

    status: str = Field(default=CaseStatus.OPEN.value, index=True)

    assigned_to: Optional[str] = Field(default=None, index=True)
    assigned_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    assigned_by: Optional[str] = None

    opened_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    due_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    closed_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    outcome: Optional[str] = None
    resolution: Optional[str] = None

    archived: bool = Field(default=False, index=True)
    archived_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    archived_by: Optional[str] = None
    retention_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    created_by: str
    last_modified_by: Optional[str] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)
