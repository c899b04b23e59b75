"""
Aggregates shared by the user and course services.

`UserRecord.enrolled_courses` and `CourseRecord.registration_count` are two
materializations of the same enrollment relation. Only
`teaching.enrollment.EnrollmentManager` writes both sides.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from identity_access.domain import DEFAULT_ROLE


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_profile() -> Dict[str, Any]:
    return {"avatar": None, "bio": None, "social_links": [], "skills": []}


@dataclass
class UserRecord:
    id: str
    name: str
    email: str
    password_hash: str
    role: str = DEFAULT_ROLE
    enrolled_courses: List[str] = field(default_factory=list)
    created_courses: List[str] = field(default_factory=list)
    profile: Dict[str, Any] = field(default_factory=_empty_profile)
    created_at: str = field(default_factory=utcnow_iso)
    updated_at: str = field(default_factory=utcnow_iso)


@dataclass
class CourseRecord:
    id: str
    title: str
    description: Optional[str]
    instructor_id: str
    registration_count: int = 0
    created_at: str = field(default_factory=utcnow_iso)
    updated_at: str = field(default_factory=utcnow_iso)


def serialize_course(course: CourseRecord, *, instructor: UserRecord | None = None) -> dict:
    out = {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "instructor_id": course.instructor_id,
        "registration_count": course.registration_count,
        "created_at": course.created_at,
        "updated_at": course.updated_at,
    }
    if instructor is not None:
        out["instructor"] = {"id": instructor.id, "name": instructor.name, "email": instructor.email}
    return out


def serialize_user_summary(user: UserRecord) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


__all__ = ["UserRecord", "CourseRecord", "serialize_course", "serialize_user_summary", "utcnow_iso"]
