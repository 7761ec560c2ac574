"""
GitLab REST API v4 gateway.

Synchronous request/response facade over httpx. Lookups translate HTTP 404
into None; every other failure becomes a GatewayError carrying the message
returned by GitLab. Operations performed on behalf of a user pass that
user's username in the ``Sudo`` header, which requires an admin token with
the ``sudo`` scope.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from labseed.errors import AuthenticationError, AuthorizationError, GatewayError
from labseed.gateway.models import Account, Group, Project

logger = structlog.get_logger()

API_PREFIX = "/api/v4"
DEFAULT_USER_AGENT = "labseed/0.2.0"


def _encode(path: str) -> str:
    """URL-encode a namespaced path for use as an ID (``team/proj`` -> ``team%2Fproj``)."""
    return quote(path, safe="")


def _error_message(response: httpx.Response) -> str:
    """Extract the human-readable cause GitLab attaches to error responses."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if not isinstance(payload, dict):
        return str(payload)

    message = payload.get("message") or payload.get("error") or payload.get("error_description")
    if isinstance(message, dict):
        parts = []
        for key, value in message.items():
            detail = ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
            parts.append(f"{key} {detail}")
        return "; ".join(parts)
    if isinstance(message, list):
        return "; ".join(str(m) for m in message)
    return str(message) if message else response.text


class GitLabGateway:
    """
    GitLab API client used by the resource orchestrator.

    Handles users, personal access tokens, groups and projects.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        per_page: int = 100,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            base_url: GitLab instance URL, e.g. https://gitlab.example.com
            token: Admin personal access token (api + sudo scopes)
            timeout: Request timeout in seconds
            per_page: Page size for list endpoints
            user_agent: User-Agent header value
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.client = httpx.Client(
            base_url=f"{self.base_url}{API_PREFIX}",
            headers={
                "PRIVATE-TOKEN": token,
                "Accept": "application/json",
                "User-Agent": user_agent,
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "GitLabGateway":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # === Transport ===

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        sudo: str | None = None,
    ) -> httpx.Response:
        headers = {"Sudo": sudo} if sudo else None
        try:
            return self.client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("http_network_error", method=method, path=path, error=str(exc))
            raise GatewayError(f"{method} {path} failed: {exc}") from exc

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        sudo: str | None = None,
        not_found_ok: bool = False,
    ) -> Any:
        """
        Execute a request and decode the JSON body.

        Returns None for 404 when ``not_found_ok`` is set.
        """
        response = self._send(method, path, params=params, json=json, sudo=sudo)

        if response.status_code == 404 and not_found_ok:
            return None

        if response.is_error:
            message = _error_message(response)
            logger.error(
                "http_error",
                status=response.status_code,
                method=method,
                path=path,
                error=message,
            )
            raise GatewayError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(f"{method} {path} returned a non-JSON body") from exc

    def _paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        sudo: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint by following X-Next-Page."""
        results: list[dict[str, Any]] = []
        page: int | None = 1
        while page:
            items, page = self._fetch_page(path, params, page, sudo=sudo)
            results.extend(items)
        return results

    def _fetch_page(
        self,
        path: str,
        params: dict[str, Any] | None,
        page: int,
        *,
        sudo: str | None = None,
    ) -> tuple[list[dict[str, Any]], int | None]:
        query = dict(params or {})
        query.update({"page": page, "per_page": self.per_page})
        response = self._send("GET", path, params=query, sudo=sudo)
        if response.is_error:
            message = _error_message(response)
            logger.error("http_error", status=response.status_code, method="GET", path=path, error=message)
            raise GatewayError(message, status_code=response.status_code)

        try:
            items = response.json() or []
        except ValueError as exc:
            raise GatewayError(f"GET {path} returned a non-JSON body") from exc
        next_page = response.headers.get("X-Next-Page", "").strip()
        return items, int(next_page) if next_page.isdigit() else None

    # === Authentication ===

    def current_user(self) -> Account:
        try:
            data = self._request("GET", "/user")
        except GatewayError as exc:
            if exc.status_code in (401, 403):
                raise AuthenticationError(f"authentication failed: {exc.message}", exc.status_code) from exc
            raise
        return Account.from_api(data)

    def current_user_is_admin(self) -> bool:
        return self.current_user().is_admin

    def ensure_admin(self) -> Account:
        """
        Verify the token authenticates and belongs to an administrator.

        Raises:
            AuthenticationError: If the token is rejected
            AuthorizationError: If the user is not an admin
        """
        user = self.current_user()
        if not user.is_admin:
            raise AuthorizationError(f"current user '{user.username}' is not an admin")
        logger.info("gateway_authenticated", username=user.username)
        return user

    # === Accounts ===

    def lookup_account(self, username: str) -> Account | None:
        users = self._request("GET", "/users", params={"username": username})
        if not users:
            return None
        return Account.from_api(users[0])

    def create_account(self, username: str, email: str, name: str, password: str) -> Account:
        data = self._request(
            "POST",
            "/users",
            json={
                "username": username,
                "email": email,
                "name": name,
                "password": password,
                "skip_confirmation": True,
            },
        )
        return Account.from_api(data)

    def unblock_account(self, account_id: int) -> None:
        self._request("POST", f"/users/{account_id}/unblock")

    def approve_account(self, account_id: int) -> None:
        self._request("POST", f"/users/{account_id}/approve")

    def delete_account(self, account_id: int) -> None:
        self._request("DELETE", f"/users/{account_id}")

    def list_accounts_page(self, search: str = "", page: int = 1) -> tuple[list[Account], int | None]:
        """One page of users matching ``search``; returns (accounts, next_page)."""
        params = {"search": search} if search else None
        items, next_page = self._fetch_page("/users", params, page)
        return [Account.from_api(item) for item in items], next_page

    def list_accounts(self, search: str = "") -> list[Account]:
        """
        Every user whose username, name or email contains ``search``.

        GitLab search is a substring match, callers needing prefix
        semantics must filter the result.
        """
        params = {"search": search} if search else None
        return [Account.from_api(item) for item in self._paginate("/users", params)]

    def create_token(self, account_id: int, name: str, scopes: list[str], expires_at: str) -> str:
        data = self._request(
            "POST",
            f"/users/{account_id}/personal_access_tokens",
            json={"name": name, "scopes": list(scopes), "expires_at": expires_at},
        )
        token = data.get("token")
        if not token:
            raise GatewayError("personal access token response did not contain a token value")
        return token

    # === Groups ===

    def lookup_group(self, path: str) -> Group | None:
        data = self._request("GET", f"/groups/{_encode(path)}", not_found_ok=True)
        return Group.from_api(data) if data else None

    def create_group(self, owner: str, name: str, path: str, visibility: str) -> Group:
        data = self._request(
            "POST",
            "/groups",
            json={
                "name": name,
                "path": path,
                "visibility": visibility,
                "request_access_enabled": False,
            },
            sudo=owner,
        )
        return Group.from_api(data)

    def delete_group(self, group_id: int) -> None:
        self._request("DELETE", f"/groups/{group_id}")

    def list_owned_groups(self, owner: str) -> list[Group]:
        items = self._paginate("/groups", {"owned": "true"}, sudo=owner)
        return [Group.from_api(item) for item in items]

    # === Projects ===

    def lookup_project(self, full_path: str) -> Project | None:
        data = self._request("GET", f"/projects/{_encode(full_path)}", not_found_ok=True)
        return Project.from_api(data) if data else None

    def create_project(
        self,
        owner: str,
        namespace_id: int,
        name: str,
        path: str,
        description: str,
        visibility: str,
    ) -> Project:
        data = self._request(
            "POST",
            "/projects",
            json={
                "name": name,
                "path": path,
                "namespace_id": namespace_id,
                "description": description,
                "visibility": visibility,
                "initialize_with_readme": True,
                "issues_enabled": True,
                "merge_requests_enabled": True,
                "wiki_enabled": True,
            },
            sudo=owner,
        )
        return Project.from_api(data)

    def delete_project(self, project_id: int) -> None:
        self._request("DELETE", f"/projects/{project_id}")
