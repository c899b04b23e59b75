"""
Course catalog and enrollment API routes.

Why:
    Browsing the catalog is public; authoring requires `teacher` or `admin`.
    Every change that touches both a course and a user's lists (create,
    reassign, delete, enroll, unenroll) is delegated to the enrollment manager,
    which is the only writer of both aggregates.

Behavior:
    - Enroll is an idempotent-intent POST: 409 `already_enrolled` on repeat.
    - Unenroll is a DELETE: 409 `not_enrolled` when there is no membership.
    - Unknown courses/students map to 404 with a `detail` code.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic.functional_validators import field_validator

from identity_access.authorization import authorize
from teaching.models import serialize_course, serialize_user_summary
from teaching.repo import MAX_TITLE_LENGTH
from web import services

courses_router = APIRouter(prefix="/api/courses", tags=["Courses"])
logger = logging.getLogger("campus.web.courses")


# --- Request models ---------------------------------------------------------------

class CourseCreate(BaseModel):
    # Accept any length; enforce 1..200 in handler to return 400 (not 422)
    title: object | None = None
    description: str | None = Field(default=None, max_length=5000)
    instructor_id: str | None = None

    @field_validator("description", "instructor_id")
    @classmethod
    def _strip_empty(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v if v else None
        return v


class CourseUpdate(BaseModel):
    title: object | None = None
    description: str | None = Field(default=None, max_length=5000)
    instructor_id: str | None = None


def _private(payload, *, status_code: int = 200) -> JSONResponse:
    """Return JSON with cache disabled for shared caches and browsers."""
    return JSONResponse(payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _valid_title(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    t = value.strip()
    if not t or len(t) > MAX_TITLE_LENGTH:
        return None
    return t


def _course_out(course) -> dict:
    return serialize_course(course, instructor=services.get_users().get(course.instructor_id))


# --- Catalog ----------------------------------------------------------------------

@courses_router.get("")
async def list_courses():
    items = [_course_out(c) for c in services.get_courses().list_all()]
    return _private({"count": len(items), "courses": items})


@courses_router.get("/enrolled/my-courses")
async def my_courses(request: Request):
    """Courses the caller is enrolled in."""
    principal = request.state.principal
    items = services.get_manager().list_enrolled_courses(principal.user_id)
    return _private({"count": len(items), "courses": [_course_out(c) for c in items]})


@courses_router.get("/{course_id}")
async def get_course(course_id: str):
    course = services.get_courses().get(course_id)
    if course is None:
        return _private({"error": "not_found", "detail": "course_not_found"}, status_code=404)
    return _private(_course_out(course))


@courses_router.post("")
async def create_course(request: Request, payload: CourseCreate):
    """Create a course (teacher or admin).

    Behavior:
        - 201 with the course; instructor defaults to the caller
        - 400 on invalid title
        - 404 when an explicit `instructor_id` is unknown
    """
    principal = authorize("teacher_or_admin", request.state.principal)
    title = _valid_title(payload.title)
    if title is None:
        return _private({"error": "bad_request", "detail": "invalid_title"}, status_code=400)
    instructor_id = payload.instructor_id or principal.user_id
    course = services.get_manager().create_course(
        title=title, description=payload.description, instructor_id=instructor_id
    )
    return _private(_course_out(course), status_code=201)


@courses_router.put("/{course_id}")
async def update_course(request: Request, course_id: str, payload: CourseUpdate):
    """Partial update (teacher or admin); reassigning moves the course between instructors."""
    authorize("teacher_or_admin", request.state.principal)
    updates = payload.model_dump(mode="python", exclude_unset=True)
    if not updates:
        return _private({"error": "bad_request", "detail": "empty_update"}, status_code=400)
    if "title" in updates:
        title = _valid_title(updates["title"])
        if title is None:
            return _private({"error": "bad_request", "detail": "invalid_title"}, status_code=400)
        updates["title"] = title
    if "instructor_id" in updates and not updates["instructor_id"]:
        return _private({"error": "bad_request", "detail": "invalid_instructor_id"}, status_code=400)
    course = services.get_manager().update_course(course_id, **updates)
    return _private(_course_out(course))


@courses_router.delete("/{course_id}")
async def delete_course(request: Request, course_id: str):
    """Delete a course and sweep its id from every user (teacher or admin).

    The sweep also runs when the course is already gone, so a retried delete
    repairs leftovers; the response is still 404 in that case.
    """
    principal = authorize("teacher_or_admin", request.state.principal)
    deleted = services.get_manager().delete_course(course_id)
    if deleted is None:
        return _private({"error": "not_found", "detail": "course_not_found"}, status_code=404)
    logger.info("User %s deleted course %s", principal.email, course_id)
    return _private({"id": deleted.id, "title": deleted.title})


# --- Enrollment -------------------------------------------------------------------

@courses_router.post("/{course_id}/enroll")
async def enroll(request: Request, course_id: str):
    principal = request.state.principal
    change = services.get_manager().enroll(principal.user_id, course_id)
    return _private({
        "course_id": change.course.id,
        "course_title": change.course.title,
        "student_id": change.student.id,
        "registration_count": change.course.registration_count,
    })


@courses_router.delete("/{course_id}/unenroll")
async def unenroll(request: Request, course_id: str):
    principal = request.state.principal
    change = services.get_manager().unenroll(principal.user_id, course_id)
    return _private({
        "course_id": change.course.id,
        "course_title": change.course.title,
        "student_id": change.student.id,
        "registration_count": change.course.registration_count,
    })


@courses_router.get("/{course_id}/enrollments")
async def course_enrollments(request: Request, course_id: str):
    """Students enrolled in a course (teacher or admin)."""
    authorize("teacher_or_admin", request.state.principal)
    manager = services.get_manager()
    students = manager.list_course_students(course_id)
    course = services.get_courses().get(course_id)
    return _private({
        "course": _course_out(course) if course else None,
        "count": len(students),
        "students": [serialize_user_summary(u) for u in students],
    })


@courses_router.get("/{course_id}/enrollment-status")
async def enrollment_status(request: Request, course_id: str):
    principal = request.state.principal
    enrolled = services.get_manager().is_enrolled(principal.user_id, course_id)
    return _private({"course_id": course_id, "is_enrolled": enrolled})
