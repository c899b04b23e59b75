"""Operations endpoints (internal tooling for administrators)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from identity_access.authorization import authorize
from web import services

operations_router = APIRouter(tags=["Operations"])
logger = logging.getLogger("campus.web.operations")


def _private_response(body: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


@operations_router.post("/internal/maintenance/reconcile-registrations")
async def reconcile_registrations(request: Request):
    """
    Recompute every course's registration counter from the users' membership
    lists and pull references to deleted courses.

    Permissions:
        Caller must have the `admin` role.

    Behavior:
        Idempotent; a second run right after the first reports no corrections.
    """
    principal = authorize("admin_only", request.state.principal)
    corrections = services.get_manager().reconcile_registration_counts()
    logger.info("Admin %s ran registration reconcile (%d corrections)", principal.email, len(corrections))
    body = {
        "corrected": len(corrections),
        "corrections": [
            {"course_id": c.course_id, "previous": c.previous, "actual": c.actual}
            for c in corrections
        ],
    }
    return _private_response(body, status_code=200)
