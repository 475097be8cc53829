from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from lexdesk.core.config import Settings, get_settings
from lexdesk.core.errors import ForbiddenError, UnauthorizedError
from lexdesk.core.security import decode_token
from lexdesk.db.session import get_session
from lexdesk.models.user import User, UserRole, UserStatus
from lexdesk.services.auth_service import AuthService
from lexdesk.services.case_service import CaseService

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(session, settings)


def get_case_service(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> CaseService:
    return CaseService(session, settings)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthorizedError("Not authenticated")
    return decode_token(credentials.credentials, settings)


def get_current_user(
    payload: dict = Depends(get_token_payload),
    auth: AuthService = Depends(get_auth_service),
) -> User:
    """
    Resolve the bearer token to an Active user.

    Tokens carrying a ``sid`` claim are only honoured while that login
    session is active and unexpired, so logout revokes them.
    """
    user = auth.get_user(payload["sub"])
    if user is None:
        raise UnauthorizedError("User not found")
    if user.status != UserStatus.ACTIVE.value:
        raise UnauthorizedError("Account is not active")

    session_id = payload.get("sid")
    if session_id and not auth.validate_session(user.id, session_id):
        raise UnauthorizedError("Session has ended", code="SESSION_ENDED")
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: the current user must hold at least one of ``roles``."""
    allowed = [r.value for r in roles]

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not set(allowed) & set(user.roles or []):
            raise ForbiddenError(f"Access denied. Required role(s): {' or '.join(allowed)}", required_roles=allowed)
        return user

    return dependency
