import uuid
from typing import Optional

from sqlmodel import Field

from lexdesk.models.base import Entity


class CaseNote(Entity, table=True):
    __tablename__ = "case_notes"

    case_id: uuid.UUID = Field(index=True)
    title: Optional[str] = None
    content: str
    note_type: str = Field(default="General", index=True)
    created_by: str
