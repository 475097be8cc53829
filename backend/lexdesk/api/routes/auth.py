from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from lexdesk.api.deps import get_auth_service, get_current_user, get_token_payload
from lexdesk.models.user import User
from lexdesk.schemas.user import ChangePasswordRequest, LoginRequest, LogoutRequest, RefreshRequest, UserRead
from lexdesk.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _summary(user: User) -> dict:
    return UserRead.model_validate(user).model_dump(mode="json")


@router.post("/register", status_code=201)
def register(request: Request, payload: dict = Body(...), auth: AuthService = Depends(get_auth_service)):
    user = auth.register(payload)
    session_id = auth.create_session(user, _client_ip(request), request.headers.get("user-agent"))
    tokens = auth.issue_tokens(user, session_id)
    return {"user": _summary(user), "session_id": session_id, "tokens": tokens.model_dump()}


@router.post("/login")
def login(body: LoginRequest, request: Request, auth: AuthService = Depends(get_auth_service)):
    user, session_id = auth.authenticate(
        body.password,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        username=body.username,
        email=body.email,
    )
    tokens = auth.issue_tokens(user, session_id)
    return {"user": _summary(user), "session_id": session_id, "tokens": tokens.model_dump()}


@router.post("/logout")
def logout(
    body: Optional[LogoutRequest] = None,
    payload: dict = Depends(get_token_payload),
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    # only the calling token's session, or one the caller names explicitly
    session_id = (body.session_id if body else None) or payload.get("sid")
    ended = bool(session_id) and auth.end_session(user, session_id)
    return {"logged_out": True, "session_ended": ended}


@router.post("/refresh")
def refresh(body: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    return auth.refresh(body.refresh_token).model_dump()


@router.get("/me")
def me(user: User = Depends(get_current_user), auth: AuthService = Depends(get_auth_service)):
    out = _summary(user)
    out["active_sessions"] = auth.active_session_count(user)
    return out


@router.put("/change-password")
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    auth.change_password(user, body.current_password, body.new_password)
    return {"changed": True}
