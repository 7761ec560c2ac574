"""
Result tree produced by the orchestrator.

``to_dict`` output is what the renderer serializes, so key names follow
the output document format (``user_id``, ``group_id``, ``web_url``...).
Every key is always present; the YAML writer drops the empty optional ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class TokenResult:
    value: str
    scopes: list[str]
    expires_at: str
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "scope": list(self.scopes), "expires_at": self.expires_at}


@dataclass
class ProjectResult:
    name: str
    path: str  # full path: <namespace>/<project>
    project_id: int
    description: str = ""
    visibility: str = "private"
    web_url: str | None = None
    created: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "project_id": self.project_id,
            "description": self.description,
            "visibility": self.visibility,
            "web_url": self.web_url or "",
        }


@dataclass
class GroupResult:
    name: str
    path: str
    group_id: int
    visibility: str = "private"
    created: bool = False
    projects: list[ProjectResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "group_id": self.group_id,
            "visibility": self.visibility,
            "projects": [project.to_dict() for project in self.projects],
        }


@dataclass
class AccountResult:
    """Everything resolved for one account. Failed pieces are simply absent."""

    username: str
    email: str
    name: str
    user_id: int
    password: str = ""
    created: bool = False
    token: TokenResult | None = None
    groups: list[GroupResult] = field(default_factory=list)
    projects: list[ProjectResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "user_id": self.user_id,
            "password": self.password,
            "token": self.token.to_dict() if self.token else None,
            "groups": [group.to_dict() for group in self.groups],
            "projects": [project.to_dict() for project in self.projects],
        }


class CleanupStatus(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CleanupOutcome:
    """Result of tearing down one account."""

    username: str
    status: CleanupStatus
    account_id: int | None = None
    verified: bool | None = None
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class CleanupReport:
    outcomes: list[CleanupOutcome] = field(default_factory=list)

    def _count(self, status: CleanupStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def deleted(self) -> int:
        return self._count(CleanupStatus.DELETED)

    @property
    def skipped(self) -> int:
        return self._count(CleanupStatus.SKIPPED) + self._count(CleanupStatus.NOT_FOUND)

    @property
    def failed(self) -> int:
        return self._count(CleanupStatus.FAILED)
