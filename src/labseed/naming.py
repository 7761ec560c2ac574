"""
Naming conventions for provisioned GitLab resources.

Two modes are supported. ``name`` mode uses identifiers from the provisioning file
verbatim. ``prefix`` mode (the default) appends a second-granularity
timestamp and sanitizes the result so repeated runs do not collide.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from enum import Enum

MAX_IDENTIFIER_LENGTH = 255
DEFAULT_VISIBILITY = "private"
VALID_VISIBILITIES = {"private", "internal", "public"}
FALLBACK_EMAIL_DOMAIN = "example.com"
TOKEN_DEFAULT_LIFETIME = timedelta(days=2)

_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class NamingMode(str, Enum):
    """How a spec-declared name maps to an on-platform identifier."""

    PREFIX = "prefix"
    NAME = "name"

    @classmethod
    def parse(cls, value: str | None) -> "NamingMode | None":
        """
        Parse a ``nameMode`` value from a spec file.

        Empty values mean "inherit from the parent" and return None.

        Raises:
            ValueError: If the value is not a known mode
        """
        if value is None or not str(value).strip():
            return None
        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(f"unknown nameMode '{value}' (expected 'prefix' or 'name')")


class IdentifierKind(str, Enum):
    """Character rules differ between group/project paths and usernames."""

    PATH = "path"
    USERNAME = "username"


_DISALLOWED = {
    IdentifierKind.PATH: re.compile(r"[^a-z0-9_-]"),
    IdentifierKind.USERNAME: re.compile(r"[^a-z0-9_.-]"),
}

_SEPARATORS = {
    IdentifierKind.PATH: "-_",
    IdentifierKind.USERNAME: "-_.",
}


def resolve_effective(
    child: NamingMode | None,
    parent: NamingMode | None,
    default: NamingMode = NamingMode.PREFIX,
) -> NamingMode:
    """
    Resolve the naming mode that applies to an entity.

    Order: explicit on the entity, then inherited from the parent, then default.
    """
    if child is not None:
        return child
    if parent is not None:
        return parent
    return default


def timestamp_suffix(now: datetime | None = None) -> str:
    """Second-granularity suffix used in prefix mode, e.g. ``20261018093015``."""
    return (now or datetime.now(timezone.utc)).strftime(_TIMESTAMP_FORMAT)


def sanitize_identifier(raw: str, kind: IdentifierKind = IdentifierKind.PATH) -> str:
    """
    Sanitize a generated identifier.

    Lowercases, removes characters outside the allowed set, trims leading
    and trailing separators and truncates to 255 characters.

    Args:
        raw: Candidate identifier
        kind: Path or username rules

    Returns:
        Sanitized identifier
    """
    separators = _SEPARATORS[kind]
    cleaned = _DISALLOWED[kind].sub("", raw.lower()).strip(separators)
    return cleaned[:MAX_IDENTIFIER_LENGTH].strip(separators)


def resolve_identifier(
    mode: NamingMode,
    name: str,
    path: str | None = None,
    *,
    kind: IdentifierKind = IdentifierKind.PATH,
    now: datetime | None = None,
) -> str:
    """
    Map a spec-declared name/path to the identifier used on the platform.

    Args:
        mode: Effective naming mode
        name: Declared name (fallback when no path is given)
        path: Declared path, optional
        kind: Path or username character rules
        now: Timestamp to use for the suffix (defaults to current UTC time)

    Returns:
        Actual identifier
    """
    base = path or name
    if mode is NamingMode.NAME:
        return base
    return sanitize_identifier(f"{base}-{timestamp_suffix(now)}", kind)


def resolve_email(mode: NamingMode, email: str, *, now: datetime | None = None) -> str:
    """
    Map a spec-declared email to the address used on the platform.

    Prefix mode inserts the timestamp before the domain:
    ``alice@corp.io`` becomes ``alice-20261018093015@corp.io``.
    """
    if mode is NamingMode.NAME:
        return email

    suffix = timestamp_suffix(now)
    parts = email.split("@")
    if len(parts) == 2 and all(parts):
        local, domain = parts
        return f"{local}-{suffix}@{domain}"

    local = sanitize_identifier(email, IdentifierKind.USERNAME) or "user"
    return f"{local}-{suffix}@{FALLBACK_EMAIL_DOMAIN}"


def resolve_visibility(value: str | None) -> str:
    """Visibility level, defaulting to private."""
    return value or DEFAULT_VISIBILITY


def default_token_expiry(now: datetime | date | None = None) -> str:
    """Default personal access token expiry (now + 2 days) formatted YYYY-MM-DD."""
    current = now or datetime.now(timezone.utc)
    return (current + TOKEN_DEFAULT_LIFETIME).strftime("%Y-%m-%d")


def token_name(username: str, now: datetime | None = None) -> str:
    """
    Name given to generated personal access tokens.

    Pattern: {username}-token-{unix seconds}
    """
    current = now or datetime.now(timezone.utc)
    return f"{username}-token-{int(current.timestamp())}"
