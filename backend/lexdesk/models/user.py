import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from lexdesk.models.base import Entity, JSONType, UTCDateTime, utcnow


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
    LOCKED = "Locked"
    PENDING = "Pending"


class UserRole(str, Enum):
    ADMIN = "Admin"
    ATTORNEY = "Attorney"
    PARALEGAL = "Paralegal"
    USER = "User"


class User(Entity, table=True):
    __tablename__ = "users"

    username: str = Field(unique=True, index=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    phone_number: Optional[str] = None

    roles: list[str] = Field(default_factory=lambda: [UserRole.USER.value], sa_type=JSONType)
    status: str = Field(default=UserStatus.ACTIVE.value, index=True)

    login_attempts: int = Field(default=0)
    last_login_attempt: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    locked_until: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    last_login: Optional[datetime] = Field(default=None, sa_type=UTCDateTime, index=True)
    last_login_ip: Optional[str] = None
    last_login_user_agent: Optional[str] = None

    current_session: Optional[str] = None
    password_changed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class LoginHistoryEntry(Entity, table=True):
    __tablename__ = "login_history"

    user_id: uuid.UUID = Field(index=True)
    timestamp: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool = Field(index=True)
    failure_reason: Optional[str] = None


class UserSession(Entity, table=True):
    __tablename__ = "user_sessions"

    user_id: uuid.UUID = Field(index=True)
    session_id: str = Field(unique=True, index=True)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    login_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    last_activity_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime, index=True)
    is_active: bool = Field(default=True, index=True)
