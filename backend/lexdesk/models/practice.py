"""
Practice records without workflow of their own.

Each is plain CRUD through the generic service: a few typed columns the firm
filters on, plus a free-form ``attributes`` mapping for everything else.
"""

import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlmodel import Field

from lexdesk.models.base import Entity, JSONType, UTCDateTime


class Client(Entity, table=True):
    __tablename__ = "clients"

    name: str = Field(index=True)
    email: Optional[str] = Field(default=None, index=True)
    phone: Optional[str] = None
    client_type: str = Field(default="Individual", index=True)  # Individual/Business/Government/Non-Profit
    status: str = Field(default="Active", index=True)
    attributes: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)


class Contract(Entity, table=True):
    __tablename__ = "contracts"

    title: str
    client_id: Optional[uuid.UUID] = Field(default=None, index=True)
    contract_type: str = Field(index=True)
    status: str = Field(default="Draft", index=True)  # Draft/Under Review/Executed/Expired/Terminated
    value: Optional[float] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = Field(default=None, index=True)
    attributes: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)


class Evidence(Entity, table=True):
    __tablename__ = "evidence"

    case_id: uuid.UUID = Field(index=True)
    title: str
    evidence_type: str = Field(index=True)  # Document/Physical/Digital/Testimony
    custody_status: str = Field(default="In Custody", index=True)
    collected_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    collected_by: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)


class Invoice(Entity, table=True):
    __tablename__ = "invoices"

    invoice_number: str = Field(unique=True, index=True)
    client_id: uuid.UUID = Field(index=True)
    case_id: Optional[uuid.UUID] = Field(default=None, index=True)
    amount: float
    currency: str = "USD"
    status: str = Field(default="Draft", index=True)  # Draft/Sent/Paid/Overdue/Void
    due_date: Optional[date] = Field(default=None, index=True)
    attributes: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)


class Matter(Entity, table=True):
    __tablename__ = "matters"

    practice_area: str = Field(index=True)  # antitrust/aviation-law/bankruptcy/...
    title: str
    client_name: Optional[str] = None
    status: str = Field(default="Open", index=True)
    assigned_to: Optional[str] = Field(default=None, index=True)
    attributes: dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)
