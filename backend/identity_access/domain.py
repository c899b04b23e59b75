"""
Identity domain constants and the principal exposed to handlers.

Why:
- Centralize allowed roles so the user service, course routes and tools agree.
- Keep the resolved caller (`Principal`) a small immutable value that never
  carries credentials.
"""

from __future__ import annotations

from dataclasses import dataclass

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "teacher", "admin"})
DEFAULT_ROLE = "student"

# Recognized credential names inside the Cookie header (case-sensitive).
TOKEN_COOKIE_NAME = "token"
SESSION_COOKIE_NAME = "sessionId"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller after reconciliation and role lookup."""

    email: str
    role: str
    user_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "TOKEN_COOKIE_NAME",
    "SESSION_COOKIE_NAME",
    "Principal",
]
