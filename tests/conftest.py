"""Root test configuration."""

from __future__ import annotations

import itertools
import logging
from datetime import datetime, timedelta, timezone

import pytest
import structlog

from labseed.errors import AuthorizationError
from labseed.gateway.models import Account, Group, Project
from labseed.orchestrator import CleanupPolicy, ResourceOrchestrator

FIXED_NOW = datetime(2026, 10, 18, 9, 30, 15, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class FakeGateway:
    """
    In-memory GitLab stand-in.

    Every call is appended to ``calls`` as ``(method, key)``. Failures are
    injected through ``fail_on[(method, key)] = exception``. Groups listed
    in ``lingering_groups`` keep answering lookups for that many calls after
    deletion, mimicking GitLab's asynchronous removal.
    """

    def __init__(self, base_url: str = "https://gitlab.example.com", now: datetime = FIXED_NOW):
        self.base_url = base_url
        self.now = now
        self.accounts: dict[str, Account] = {}
        self.groups: dict[str, Group] = {}
        self.projects: dict[str, Project] = {}
        self.owned: dict[str, list[str]] = {}
        self.tokens: list[dict] = []
        self.project_requests: list[dict] = []
        self.calls: list[tuple[str, object]] = []
        self.fail_on: dict[tuple[str, object], Exception] = {}
        self.lingering_groups: dict[str, int] = {}
        self.undeletable_accounts: set[str] = set()
        self.admin = Account(id=1, username="root", name="Administrator", is_admin=True)
        self.closed = False
        self._ids = itertools.count(100)

    def _record(self, method: str, key: object) -> None:
        self.calls.append((method, key))
        failure = self.fail_on.get((method, key))
        if failure is not None:
            raise failure

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    # Seeding helpers

    def add_account(self, username: str, *, age_days: float | None = 30, email: str = "") -> Account:
        created = self.now - timedelta(days=age_days) if age_days is not None else None
        account = Account(
            id=next(self._ids),
            username=username,
            name=username.title(),
            email=email or f"{username}@example.com",
            created_at=created,
        )
        self.accounts[username] = account
        return account

    def add_group(self, path: str, owner: str | None = None) -> Group:
        group = Group(id=next(self._ids), name=path, path=path.rsplit("/", 1)[-1], full_path=path)
        self.groups[path] = group
        if owner:
            self.owned.setdefault(owner, []).append(path)
        return group

    def add_project(self, full_path: str) -> Project:
        project = Project(
            id=next(self._ids),
            name=full_path.rsplit("/", 1)[-1],
            path=full_path.rsplit("/", 1)[-1],
            path_with_namespace=full_path,
            web_url=f"{self.base_url}/{full_path}",
        )
        self.projects[full_path] = project
        return project

    # Gateway contract

    def close(self) -> None:
        self.closed = True

    def current_user(self) -> Account:
        self._record("current_user", None)
        return self.admin

    def current_user_is_admin(self) -> bool:
        return self.current_user().is_admin

    def ensure_admin(self) -> Account:
        user = self.current_user()
        if not user.is_admin:
            raise AuthorizationError(f"current user '{user.username}' is not an admin")
        return user

    def lookup_account(self, username: str) -> Account | None:
        self._record("lookup_account", username)
        return self.accounts.get(username)

    def create_account(self, username: str, email: str, name: str, password: str) -> Account:
        self._record("create_account", username)
        account = Account(id=next(self._ids), username=username, name=name, email=email, created_at=self.now)
        self.accounts[username] = account
        return account

    def unblock_account(self, account_id: int) -> None:
        self._record("unblock_account", account_id)

    def approve_account(self, account_id: int) -> None:
        self._record("approve_account", account_id)

    def delete_account(self, account_id: int) -> None:
        self._record("delete_account", account_id)
        for username, account in list(self.accounts.items()):
            if account.id == account_id and username not in self.undeletable_accounts:
                del self.accounts[username]

    def list_accounts(self, search: str = "") -> list[Account]:
        self._record("list_accounts", search)
        return [
            account
            for account in self.accounts.values()
            if search in account.username or search in account.name or search in account.email
        ]

    def create_token(self, account_id: int, name: str, scopes: list[str], expires_at: str) -> str:
        self._record("create_token", account_id)
        self.tokens.append({"account_id": account_id, "name": name, "scopes": scopes, "expires_at": expires_at})
        return f"glpat-{len(self.tokens)}"

    def lookup_group(self, path: str) -> Group | None:
        self._record("lookup_group", path)
        if path in self.lingering_groups and path not in self.groups:
            if self.lingering_groups[path] > 0:
                self.lingering_groups[path] -= 1
                return Group(id=0, name=path, path=path, full_path=path)
            return None
        return self.groups.get(path)

    def create_group(self, owner: str, name: str, path: str, visibility: str) -> Group:
        self._record("create_group", path)
        group = Group(id=next(self._ids), name=name, path=path, full_path=path, visibility=visibility)
        self.groups[path] = group
        self.owned.setdefault(owner, []).append(path)
        return group

    def delete_group(self, group_id: int) -> None:
        for path, group in list(self.groups.items()):
            if group.id == group_id:
                self._record("delete_group", path)
                del self.groups[path]
                for paths in self.owned.values():
                    if path in paths:
                        paths.remove(path)
                return
        self._record("delete_group", group_id)

    def list_owned_groups(self, owner: str) -> list[Group]:
        self._record("list_owned_groups", owner)
        return [self.groups[path] for path in self.owned.get(owner, []) if path in self.groups]

    def lookup_project(self, full_path: str) -> Project | None:
        self._record("lookup_project", full_path)
        return self.projects.get(full_path)

    def create_project(self, owner, namespace_id, name, path, description, visibility) -> Project:
        namespace = next((g.full_path for g in self.groups.values() if g.id == namespace_id), None)
        if namespace is None:
            namespace = next(a.username for a in self.accounts.values() if a.id == namespace_id)
        full_path = f"{namespace}/{path}"
        self._record("create_project", full_path)
        self.project_requests.append(
            {"owner": owner, "namespace_id": namespace_id, "path": path, "description": description, "visibility": visibility}
        )
        project = Project(
            id=next(self._ids),
            name=name,
            path=path,
            path_with_namespace=full_path,
            web_url=f"{self.base_url}/{full_path}",
        )
        self.projects[full_path] = project
        return project

    def delete_project(self, project_id: int) -> None:
        for path, project in list(self.projects.items()):
            if project.id == project_id:
                self._record("delete_project", path)
                del self.projects[path]
                return
        self._record("delete_project", project_id)


class RecordingObserver:
    def __init__(self):
        self.events = []

    def on_step(self, event):
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action for event in self.events]


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def orchestrator(gateway, observer, sleeper):
    return ResourceOrchestrator(
        gateway,
        observer,
        clock=lambda: FIXED_NOW,
        sleep=sleeper,
        policy=CleanupPolicy(),
    )
