"""
Platform-side entities returned by the gateway.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class Account:
    id: int
    username: str
    name: str = ""
    email: str = ""
    is_admin: bool = False
    state: str | None = None
    created_at: datetime | None = None
    web_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Account":
        return cls(
            id=int(data["id"]),
            username=data["username"],
            name=data.get("name") or "",
            email=data.get("email") or "",
            is_admin=bool(data.get("is_admin", False)),
            state=data.get("state"),
            created_at=_parse_timestamp(data.get("created_at")),
            web_url=data.get("web_url"),
        )


@dataclass(frozen=True)
class Group:
    id: int
    name: str
    path: str
    full_path: str
    visibility: str | None = None
    web_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Group":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or data["path"],
            path=data["path"],
            full_path=data.get("full_path") or data["path"],
            visibility=data.get("visibility"),
            web_url=data.get("web_url"),
        )


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    path: str
    path_with_namespace: str
    web_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or data["path"],
            path=data["path"],
            path_with_namespace=data.get("path_with_namespace") or data["path"],
            web_url=data.get("web_url"),
        )
