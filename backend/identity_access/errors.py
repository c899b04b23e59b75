"""
Authentication and authorization failures raised by identity_access.

Each error carries a stable `code` (used verbatim as the JSON `error` field) and
the HTTP status the web adapter maps it to. None of them is retried; the client
has to re-authenticate or change its request.
"""
from __future__ import annotations


class IdentityError(Exception):
    """Base class for request identity failures."""

    code = "unauthenticated"
    status_code = 401

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.code)
        self.detail = detail

    def to_payload(self) -> dict:
        payload = {"error": self.code}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class Unauthenticated(IdentityError):
    """No usable credential was presented."""

    code = "unauthenticated"


class IdentityConflict(IdentityError):
    """Token and session resolved to different users."""

    code = "identity_conflict"


class IdentityNotFound(IdentityError):
    """Credential is valid but its subject no longer exists."""

    code = "identity_not_found"


class Forbidden(IdentityError):
    """Authenticated, but the rule table denies the action."""

    code = "forbidden"
    status_code = 403


__all__ = [
    "IdentityError",
    "Unauthenticated",
    "IdentityConflict",
    "IdentityNotFound",
    "Forbidden",
]
