"""
Users API routes: current user, admin directory, self-service updates and
cascading deletion.

Why:
    Account deletion must not leave dangling course references, so every
    delete goes through the enrollment manager's cascade. Reads are scoped by
    the rule table in identity_access.authorization.

Permissions:
    - `/api/users/me`: any authenticated user
    - list, delete, bulk-delete, analytics: admin only
    - get/update one user: the user themself or an admin
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from identity_access.authorization import authorize
from identity_access.domain import ALLOWED_ROLES
from teaching.analytics import build_user_analytics
from teaching.models import UserRecord, serialize_course
from web import services

users_router = APIRouter(prefix="/api/users", tags=["Users"])
logger = logging.getLogger("campus.web.users")


class UserUpdatePayload(BaseModel):
    name: object | None = None
    role: object | None = None


class BulkDeletePayload(BaseModel):
    # Loose typing; validated in the handler to return 400 (not 422)
    user_ids: object | None = None


def _private(payload, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def serialize_user_detail(user: UserRecord) -> dict:
    """Public view of a user with resolved courses and counts (no password hash)."""
    courses = services.get_courses()
    users = services.get_users()
    enrolled = []
    for cid in user.enrolled_courses:
        c = courses.get(cid)
        if c is not None:
            enrolled.append(serialize_course(c, instructor=users.get(c.instructor_id)))
    created = [serialize_course(c) for c in (courses.get(cid) for cid in user.created_courses) if c is not None]
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "profile": dict(user.profile),
        "enrolled_courses": enrolled,
        "created_courses": created,
        "stats": {
            "total_enrolled_courses": len(enrolled),
            "total_created_courses": len(created),
        },
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


@users_router.get("/me")
async def get_me(request: Request):
    user = services.get_users().get(request.state.principal.user_id)
    if user is None:
        return _private({"error": "identity_not_found"}, status_code=401)
    return _private(serialize_user_detail(user))


@users_router.get("/analytics/{user_id}")
async def get_user_analytics(request: Request, user_id: str):
    """Role-specific analytics for one user (admin only)."""
    principal = authorize("admin_only", request.state.principal)
    users = services.get_users()
    user = users.get(user_id)
    if user is None:
        return _private({"error": "not_found", "detail": "user_not_found"}, status_code=404)
    courses = {c.id: c for c in services.get_courses().list_all()}
    lookup = {u.id: u for u in users.list_all()}
    logger.info("Admin %s accessed analytics for user %s", principal.email, user.email)
    return _private(build_user_analytics(user, courses=courses, users=lookup))


@users_router.get("")
async def list_users(request: Request):
    principal = authorize("admin_only", request.state.principal)
    items = [serialize_user_detail(u) for u in services.get_users().list_all()]
    logger.info("Admin %s listed users (%d total)", principal.email, len(items))
    return _private({"count": len(items), "users": items})


@users_router.get("/{user_id}")
async def get_user(request: Request, user_id: str):
    authorize("self_or_admin", request.state.principal, user_id)
    user = services.get_users().get(user_id)
    if user is None:
        return _private({"error": "not_found", "detail": "user_not_found"}, status_code=404)
    return _private(serialize_user_detail(user))


@users_router.put("/{user_id}")
async def update_user(request: Request, user_id: str, payload: UserUpdatePayload):
    """Update the display name (self or admin); only admins may change roles."""
    principal = authorize("self_or_admin", request.state.principal, user_id)
    updates = payload.model_dump(mode="python", exclude_unset=True)
    if not updates:
        return _private({"error": "bad_request", "detail": "empty_update"}, status_code=400)
    if "role" in updates:
        authorize("admin_only", principal)
        if not isinstance(updates["role"], str) or updates["role"] not in ALLOWED_ROLES:
            return _private({"error": "bad_request", "detail": "invalid_role"}, status_code=400)
    users = services.get_users()
    if users.get(user_id) is None:
        return _private({"error": "not_found", "detail": "user_not_found"}, status_code=404)
    try:
        user = users.update(user_id, **updates)
    except ValueError as exc:
        return _private({"error": "bad_request", "detail": str(exc)}, status_code=400)
    return _private(serialize_user_detail(user))


@users_router.delete("/{user_id}")
async def delete_user(request: Request, user_id: str):
    """Delete a user with cascade (authored courses, enrollment traces); admin only."""
    principal = authorize("admin_only", request.state.principal)
    deleted = services.get_manager().delete_user(user_id)
    if deleted is None:
        logger.warning("Delete attempt for non-existent user id %s", user_id)
        return _private({"error": "not_found", "detail": "user_not_found"}, status_code=404)
    logger.info("Admin %s deleted user %s", principal.email, deleted.email)
    return _private({"deleted_user": {"id": deleted.id, "name": deleted.name, "email": deleted.email, "role": deleted.role}})


@users_router.post("/bulk-delete")
async def bulk_delete_users(request: Request, payload: BulkDeletePayload):
    """Cascade-delete many users; admins in the list are never deleted."""
    principal = authorize("admin_only", request.state.principal)
    ids = payload.user_ids
    if not isinstance(ids, list) or not ids or not all(isinstance(i, str) and i for i in ids):
        return _private({"error": "bad_request", "detail": "invalid_user_ids"}, status_code=400)
    count = services.get_manager().delete_users(ids)
    logger.info("Admin %s bulk deleted %d users", principal.email, count)
    return _private({"deleted_count": count})
