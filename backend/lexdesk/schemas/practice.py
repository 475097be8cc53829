import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ClientCreate(_Payload):
    name: str = Field(min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    client_type: str = "Individual"
    status: str = "Active"
    attributes: dict[str, Any] = Field(default_factory=dict)


class ClientUpdate(_Payload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    client_type: Optional[str] = None
    status: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None


class ContractCreate(_Payload):
    title: str = Field(min_length=1, max_length=255)
    client_id: Optional[uuid.UUID] = None
    contract_type: str = Field(min_length=1)
    status: str = "Draft"
    value: Optional[float] = Field(default=None, ge=0)
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class ContractUpdate(_Payload):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_id: Optional[uuid.UUID] = None
    contract_type: Optional[str] = None
    status: Optional[str] = None
    value: Optional[float] = Field(default=None, ge=0)
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    attributes: Optional[dict[str, Any]] = None


class EvidenceCreate(_Payload):
    case_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    evidence_type: str = Field(min_length=1)
    custody_status: str = "In Custody"
    collected_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class EvidenceUpdate(_Payload):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    evidence_type: Optional[str] = None
    custody_status: Optional[str] = None
    collected_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None


class InvoiceCreate(_Payload):
    invoice_number: str = Field(min_length=1, max_length=64)
    client_id: uuid.UUID
    case_id: Optional[uuid.UUID] = None
    amount: float = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    status: str = "Draft"
    due_date: Optional[date] = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class InvoiceUpdate(_Payload):
    case_id: Optional[uuid.UUID] = None
    amount: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    status: Optional[str] = None
    due_date: Optional[date] = None
    attributes: Optional[dict[str, Any]] = None


class MatterCreate(_Payload):
    practice_area: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=255)
    client_name: Optional[str] = None
    status: str = "Open"
    assigned_to: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class MatterUpdate(_Payload):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_name: Optional[str] = None
    status: Optional[str] = None
    assigned_to: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None
