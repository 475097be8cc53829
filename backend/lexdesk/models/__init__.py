from lexdesk.models.base import Entity
from lexdesk.models.case import Case
from lexdesk.models.note import CaseNote
from lexdesk.models.practice import Client, Contract, Evidence, Invoice, Matter
from lexdesk.models.timeline import TimelineEvent
from lexdesk.models.user import LoginHistoryEntry, User, UserSession

__all__ = [
    "Entity",
    "Case",
    "CaseNote",
    "TimelineEvent",
    "User",
    "LoginHistoryEntry",
    "UserSession",
    "Client",
    "Contract",
    "Evidence",
    "Invoice",
    "Matter",
]
