"""
Authorization resolver and access rules.

Why:
    After reconciliation a request only knows an email. Handlers need the
    current role and internal id, read fresh from the user aggregate so role
    changes and account deletion take effect immediately (a token or session
    that outlives its account resolves to `IdentityNotFound`).

Rules:
    self_or_admin     acting id == target id OR role == admin
    admin_only        role == admin
    teacher_or_admin  role in {teacher, admin}
    anything else     Forbidden
"""
from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol
import logging

from .domain import Principal
from .errors import Forbidden, IdentityNotFound

logger = logging.getLogger("campus.identity_access")


class _UserLike(Protocol):
    id: str
    email: str
    role: str


class UserLookup(Protocol):
    def find_by_email(self, email: str) -> Optional[_UserLike]: ...


def resolve_principal(email: str, users: UserLookup) -> Principal:
    user = users.find_by_email(email)
    if user is None:
        raise IdentityNotFound("user_not_found")
    return Principal(email=user.email, role=user.role, user_id=str(user.id))


def _self_or_admin(principal: Principal, target_id: str | None) -> bool:
    return principal.is_admin or (target_id is not None and principal.user_id == str(target_id))


def _admin_only(principal: Principal, target_id: str | None) -> bool:
    return principal.is_admin


def _teacher_or_admin(principal: Principal, target_id: str | None) -> bool:
    return principal.role in ("teacher", "admin")


RULES: Dict[str, Callable[[Principal, Optional[str]], bool]] = {
    "self_or_admin": _self_or_admin,
    "admin_only": _admin_only,
    "teacher_or_admin": _teacher_or_admin,
}


def is_allowed(rule: str, principal: Principal | None, target_id: str | None = None) -> bool:
    check = RULES.get(rule)
    if check is None or principal is None:
        return False
    return check(principal, target_id)


def authorize(rule: str, principal: Principal | None, target_id: str | None = None) -> Principal:
    """Return the principal when `rule` allows the action, else raise Forbidden."""
    if not is_allowed(rule, principal, target_id):
        who = principal.email if principal else "-"
        logger.warning("Access denied rule=%s user=%s", rule, who)
        raise Forbidden()
    return principal  # type: ignore[return-value]


__all__ = ["UserLookup", "resolve_principal", "RULES", "is_allowed", "authorize"]
