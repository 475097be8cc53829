import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, or_
from sqlmodel import Session, select

from lexdesk.core.config import Settings
from lexdesk.core.errors import AccountLockedError, ConflictError, UnauthorizedError, ValidationError
from lexdesk.core.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    is_password_too_long,
    new_session_id,
    verify_password,
)
from lexdesk.db.session import unit_of_work
from lexdesk.metrics.prometheus import account_lockouts_total, login_attempts_total
from lexdesk.models.base import utcnow
from lexdesk.models.user import LoginHistoryEntry, User, UserSession, UserStatus
from lexdesk.schemas.user import TokenPair, UserCreate

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings

    def get_user(self, user_id: Any) -> Optional[User]:
        try:
            parsed = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
        except ValueError:
            return None
        return self.session.get(User, parsed)

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.username == username.strip().lower())).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email.strip().lower())).first()

    def register(self, payload: Any) -> User:
        if not isinstance(payload, BaseModel):
            try:
                payload = UserCreate.model_validate(payload)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e, "User")

        if is_password_too_long(payload.password):
            raise ValidationError("Invalid User data", [{"field": "password", "message": "exceeds 72 bytes"}])
        if self.find_by_username(payload.username):
            raise ConflictError("Username already exists")
        if self.find_by_email(payload.email):
            raise ConflictError("Email already exists")

        full_name = " ".join(p for p in (payload.first_name, payload.last_name) if p) or None
        now = utcnow()
        user = User(
            username=payload.username.lower(),
            email=str(payload.email).lower(),
            hashed_password=get_password_hash(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            full_name=full_name,
            phone_number=payload.phone_number,
            job_title=payload.job_title,
            department=payload.department,
            status=UserStatus.ACTIVE.value,
            password_changed_at=now,
            created_at=now,
            updated_at=now,
        )
        with unit_of_work(self.session):
            self.session.add(user)
        self.session.refresh(user)
        logger.info(f"Registered user {user.username}")
        return user

    def is_locked(self, user: User, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return (
            user.status == UserStatus.LOCKED.value
            and user.locked_until is not None
            and user.locked_until > now
        )

    def _append_history(
        self,
        user: User,
        success: bool,
        ip_address: Optional[str],
        user_agent: Optional[str],
        failure_reason: Optional[str],
        now: datetime,
    ) -> None:
        now_entry = LoginHistoryEntry(
            user_id=user.id,
            timestamp=now,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            failure_reason=failure_reason,
            created_at=now,
            updated_at=now,
        )
        self.session.add(now_entry)
        self.session.flush()

        keep = (
            select(LoginHistoryEntry.id)
            .where(LoginHistoryEntry.user_id == user.id)
            .order_by(LoginHistoryEntry.timestamp.desc(), LoginHistoryEntry.id.desc())
            .limit(self.settings.login_history_limit)
        )
        kept_ids = list(self.session.exec(keep).all())
        self.session.exec(
            delete(LoginHistoryEntry).where(
                LoginHistoryEntry.user_id == user.id,
                LoginHistoryEntry.id.not_in(kept_ids),
            )
        )

    def record_login_attempt(
        self,
        user: User,
        success: bool,
        ip_address: Optional[str],
        user_agent: Optional[str],
        failure_reason: Optional[str] = None,
        commit: bool = True,
    ) -> User:
        now = utcnow()

        def _record():
            self._append_history(user, success, ip_address, user_agent, failure_reason, now)
            if success:
                user.login_attempts = 0
                user.last_login = now
                user.last_login_ip = ip_address
                user.last_login_user_agent = user_agent
            else:
                user.login_attempts += 1
                user.last_login_attempt = now
                if user.login_attempts >= self.settings.max_login_attempts and not self.is_locked(user, now):
                    user.status = UserStatus.LOCKED.value
                    user.locked_until = now + timedelta(minutes=self.settings.lockout_minutes)
                    account_lockouts_total.inc()
                    logger.warning(
                        f"Locked account {user.username} until {user.locked_until.isoformat()} "
                        f"after {user.login_attempts} failed attempts"
                    )
            user.updated_at = now
            self.session.add(user)

        if commit:
            with unit_of_work(self.session):
                _record()
            self.session.refresh(user)
        else:
            _record()
            self.session.flush()

        login_attempts_total.labels(outcome="success" if success else "failure").inc()
        if not success:
            logger.warning(f"Failed login for {user.username} from {ip_address}: {failure_reason}")
        return user

    def login_history(self, user: User) -> list[LoginHistoryEntry]:
        q = (
            select(LoginHistoryEntry)
            .where(LoginHistoryEntry.user_id == user.id)
            .order_by(LoginHistoryEntry.timestamp.desc(), LoginHistoryEntry.id.desc())
        )
        return list(self.session.exec(q).all())

    def _prune_sessions(self, user: User, now: datetime) -> None:
        stale = (
            select(UserSession.id)
            .where(
                UserSession.user_id == user.id,
                or_(UserSession.is_active == False, UserSession.expires_at <= now),  # noqa: E712
            )
            .order_by(UserSession.login_at.desc(), UserSession.id.desc())
            .offset(self.settings.session_history_limit)
        )
        stale_ids = list(self.session.exec(stale).all())
        if stale_ids:
            self.session.exec(delete(UserSession).where(UserSession.id.in_(stale_ids)))

    def create_session(
        self,
        user: User,
        ip_address: Optional[str],
        user_agent: Optional[str],
        commit: bool = True,
    ) -> str:
        now = utcnow()
        session_id = new_session_id()

        def _create():
            self.session.add(
                UserSession(
                    user_id=user.id,
                    session_id=session_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    login_at=now,
                    last_activity_at=now,
                    expires_at=now + timedelta(hours=self.settings.session_ttl_hours),
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            )
            user.current_session = session_id
            user.updated_at = now
            self.session.add(user)
            self.session.flush()
            self._prune_sessions(user, now)

        if commit:
            with unit_of_work(self.session):
                _create()
            self.session.refresh(user)
        else:
            _create()
        return session_id

    def get_session(self, session_id: str) -> Optional[UserSession]:
        return self.session.exec(select(UserSession).where(UserSession.session_id == session_id)).first()

    def list_sessions(self, user: User) -> list[UserSession]:
        q = select(UserSession).where(UserSession.user_id == user.id).order_by(UserSession.login_at.desc())
        return list(self.session.exec(q).all())

    def end_session(self, user: User, session_id: str) -> bool:
        """Mark the session inactive; the record itself is kept."""
        record = self.get_session(session_id)
        if record is None or record.user_id != user.id:
            return False
        now = utcnow()
        with unit_of_work(self.session):
            record.is_active = False
            record.last_activity_at = now
            record.updated_at = now
            self.session.add(record)
            if user.current_session == session_id:
                user.current_session = None
                user.updated_at = now
                self.session.add(user)
        self.session.refresh(user)
        return True

    def validate_session(self, user_id: Any, session_id: str) -> bool:
        record = self.get_session(session_id)
        return (
            record is not None
            and str(record.user_id) == str(user_id)
            and record.is_active
            and record.expires_at > utcnow()
        )

    def active_session_count(self, user: User) -> int:
        q = (
            select(func.count())
            .select_from(UserSession)
            .where(
                UserSession.user_id == user.id,
                UserSession.is_active == True,  # noqa: E712
                UserSession.expires_at > utcnow(),
            )
        )
        return int(self.session.exec(q).one())

    def authenticate(
        self,
        password: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> tuple[User, str]:
        user = None
        if username:
            user = self.find_by_username(username)
        elif email:
            user = self.find_by_email(email)
        if user is None:
            logger.warning(f"Login for unknown user {username or email} from {ip_address}")
            raise UnauthorizedError("Invalid credentials")

        now = utcnow()
        if self.is_locked(user, now):
            raise AccountLockedError(user.locked_until)
        if user.status == UserStatus.LOCKED.value:
            self.clear_lockout(user)
        if user.status != UserStatus.ACTIVE.value:
            raise UnauthorizedError("Account is not active. Please contact administrator.")

        if not verify_password(password, user.hashed_password):
            self.record_login_attempt(user, False, ip_address, user_agent, "Invalid password")
            if self.is_locked(user):
                raise AccountLockedError(user.locked_until)
            raise UnauthorizedError("Invalid credentials")

        with unit_of_work(self.session):
            self.record_login_attempt(user, True, ip_address, user_agent, commit=False)
            session_id = self.create_session(user, ip_address, user_agent, commit=False)
        self.session.refresh(user)
        logger.info(f"User {user.username} logged in from {ip_address}")
        return user, session_id

    def clear_lockout(self, user: User) -> User:
        """Lift an elapsed lockout: status Active, counter back to zero."""
        with unit_of_work(self.session):
            user.status = UserStatus.ACTIVE.value
            user.locked_until = None
            user.login_attempts = 0
            user.updated_at = utcnow()
            self.session.add(user)
        self.session.refresh(user)
        logger.info(f"Lockout for {user.username} expired and was cleared")
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> User:
        if not verify_password(current_password, user.hashed_password):
            raise UnauthorizedError("Current password is incorrect")
        if is_password_too_long(new_password):
            raise ValidationError("Invalid password", [{"field": "new_password", "message": "exceeds 72 bytes"}])
        now = utcnow()
        with unit_of_work(self.session):
            user.hashed_password = get_password_hash(new_password)
            user.password_changed_at = now
            user.updated_at = now
            self.session.add(user)
        self.session.refresh(user)
        logger.info(f"User {user.username} changed password")
        return user

    def issue_tokens(self, user: User, session_id: Optional[str]) -> TokenPair:
        claims: dict[str, Any] = {
            "username": user.username,
            "email": user.email,
            "roles": list(user.roles or []),
        }
        if session_id:
            claims["sid"] = session_id
        return TokenPair(
            access_token=create_access_token(str(user.id), self.settings, claims=claims),
            refresh_token=create_refresh_token(str(user.id), self.settings, session_id=session_id),
        )

    def refresh(self, refresh_token: str) -> TokenPair:
        payload = decode_token(refresh_token, self.settings, expected_type=REFRESH_TOKEN)
        user = self.get_user(payload["sub"])
        if user is None or user.status != UserStatus.ACTIVE.value:
            raise UnauthorizedError("Invalid refresh token or user not active")
        session_id = payload.get("sid")
        if session_id and not self.validate_session(user.id, session_id):
            raise UnauthorizedError("Session has ended", code="SESSION_ENDED")
        return self.issue_tokens(user, session_id)
