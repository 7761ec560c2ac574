"""
Exception hierarchy for labseed.

Everything raised on purpose derives from LabseedError so the CLI can
report it uniformly and exit with a non-zero status.
"""

from __future__ import annotations


class LabseedError(Exception):
    """Base class for all labseed errors."""


class ConfigurationError(LabseedError):
    """Raised when required runtime configuration (URL, token) is missing."""


class SpecParseError(LabseedError):
    """Raised when a provisioning spec file cannot be read or is malformed."""


class GatewayError(LabseedError):
    """Raised when the remote platform rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class AuthenticationError(GatewayError):
    """Raised when the access token is rejected."""


class AuthorizationError(GatewayError):
    """Raised when the authenticated user lacks administrator rights."""


class AccountProvisioningError(LabseedError):
    """Raised when an account can neither be found nor created."""

    def __init__(self, username: str, cause: Exception) -> None:
        super().__init__(f"create account {username}: {cause}")
        self.username = username
        self.cause = cause


class RenderError(LabseedError):
    """Raised when the result document cannot be rendered or written."""
