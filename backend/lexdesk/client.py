"""
HTTP client for the lexdesk API.

    with LexdeskClient("http://localhost:8000") as api:
        api.login("jdoe", "S3cret!pass")
        case = api.resource("cases").create({...})
        api.assign_case(case["id"], "asmith", reason="conflict check cleared")

Any non-2xx response raises ``ApiError``; ``ResourceClient.get`` returns
``None`` for 404 instead.
"""

from typing import Any, Optional

import httpx


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _raise_for_status(r: httpx.Response) -> None:
    if r.status_code < 400:
        return
    try:
        body = r.json()
        detail = body.get("detail", body) if isinstance(body, dict) else body
    except ValueError:
        detail = r.text
    raise ApiError(r.status_code, detail)


class ResourceClient:
    def __init__(self, api: "LexdeskClient", name: str):
        self.api = api
        self.path = f"/{name.strip('/')}"

    def list(self, **params: Any) -> dict[str, Any]:
        return self.api.request("GET", self.path, params=params or None)

    def get(self, item_id: Any) -> Optional[dict[str, Any]]:
        try:
            return self.api.request("GET", f"{self.path}/{item_id}")
        except ApiError as e:
            if e.status_code == 404:
                return None
            raise

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.api.request("POST", self.path, json=data)

    def update(self, item_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        return self.api.request("PUT", f"{self.path}/{item_id}", json=data)

    def delete(self, item_id: Any) -> None:
        self.api.request("DELETE", f"{self.path}/{item_id}")


class LexdeskClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        http: Optional[httpx.Client] = None,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_http = http is None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.session_id: Optional[str] = None

    def __enter__(self) -> "LexdeskClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def _headers(self) -> dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        r = self.http.request(method, path, headers=self._headers(), **kwargs)
        _raise_for_status(r)
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    def _store_tokens(self, tokens: dict[str, Any]) -> None:
        self.access_token = tokens["access_token"]
        self.refresh_token = tokens["refresh_token"]

    # auth

    def register(self, username: str, email: str, password: str, **profile: Any) -> dict[str, Any]:
        body = self.request(
            "POST",
            "/auth/register",
            json={"username": username, "email": email, "password": password, **profile},
        )
        self._store_tokens(body["tokens"])
        self.session_id = body["session_id"]
        return body["user"]

    def login(self, identifier: str, password: str) -> dict[str, Any]:
        key = "email" if "@" in identifier else "username"
        body = self.request("POST", "/auth/login", json={key: identifier, "password": password})
        self._store_tokens(body["tokens"])
        self.session_id = body["session_id"]
        return body["user"]

    def logout(self) -> None:
        self.request("POST", "/auth/logout")
        self.access_token = None
        self.refresh_token = None
        self.session_id = None

    def refresh(self) -> None:
        self._store_tokens(self.request("POST", "/auth/refresh", json={"refresh_token": self.refresh_token}))

    def me(self) -> dict[str, Any]:
        return self.request("GET", "/auth/me")

    # resources

    def resource(self, name: str) -> ResourceClient:
        return ResourceClient(self, name)

    # cases

    def cases_by_status(self, status: str) -> list[dict[str, Any]]:
        return self.request("GET", "/cases", params={"status": status})["items"]

    def my_cases(self) -> list[dict[str, Any]]:
        return self.request("GET", "/cases/my-cases")["items"]

    def analytics(self) -> dict[str, Any]:
        return self.request("GET", "/cases/analytics")

    def assign_case(self, case_id: Any, assigned_to: str, reason: Optional[str] = None) -> dict[str, Any]:
        body: dict[str, Any] = {"assigned_to": assigned_to}
        if reason:
            body["reason"] = reason
        return self.request("PUT", f"/cases/{case_id}/assign", json=body)

    def add_note(self, case_id: Any, content: str, title: Optional[str] = None) -> dict[str, Any]:
        body: dict[str, Any] = {"content": content}
        if title:
            body["title"] = title
        return self.request("POST", f"/cases/{case_id}/notes", json=body)
