import math
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError


class LexdeskError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message}


class ValidationError(LexdeskError):
    status_code = 422

    def __init__(self, message: str, errors: Optional[list[dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, entity: str) -> "ValidationError":
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]) or "__root__", "message": err["msg"]}
            for err in exc.errors()
        ]
        return cls(f"Invalid {entity} data", errors)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "errors": self.errors}


class NotFoundError(LexdeskError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(LexdeskError):
    status_code = 409


class UnauthorizedError(LexdeskError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated", code: Optional[str] = None):
        super().__init__(message)
        self.code = code

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"detail": self.message}
        if self.code:
            out["code"] = self.code
        return out


class ForbiddenError(LexdeskError):
    status_code = 403

    def __init__(self, message: str, required_roles: Optional[list[str]] = None):
        super().__init__(message)
        self.required_roles = required_roles or []

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": "FORBIDDEN", "required_roles": self.required_roles}


class AccountLockedError(LexdeskError):
    status_code = 403

    def __init__(self, locked_until: datetime):
        super().__init__("Account is locked due to too many failed login attempts. Please try again later.")
        self.locked_until = locked_until

    def retry_after_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        locked_until = self.locked_until
        if locked_until.tzinfo is None:
            locked_until = locked_until.replace(tzinfo=timezone.utc)
        return max(0, math.ceil((locked_until - now).total_seconds()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "code": "ACCOUNT_LOCKED",
            "locked_until": self.locked_until.isoformat(),
            "retry_after": self.retry_after_seconds(),
        }


def _lexdesk_error_handler(request: Request, exc: LexdeskError) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, UnauthorizedError):
        headers["WWW-Authenticate"] = "Bearer"
    elif isinstance(exc, AccountLockedError):
        headers["Retry-After"] = str(exc.retry_after_seconds())
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers or None)


def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body") or "__root__", "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": "Invalid request", "errors": errors})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LexdeskError, _lexdesk_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
