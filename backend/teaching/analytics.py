"""
Per-user analytics built from the enrollment data.

Reads the membership lists and registration counters; nothing here writes.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import CourseRecord, UserRecord


def _parse_iso(value: str | None) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _account_age_days(user: UserRecord, now: datetime) -> int:
    created = _parse_iso(user.created_at)
    if created is None:
        return 0
    return max(0, (now - created).days)


def build_user_analytics(
    user: UserRecord,
    *,
    courses: Dict[str, CourseRecord],
    users: Dict[str, UserRecord],
    now: datetime | None = None,
) -> Dict[str, Any]:
    """Return role-specific analytics for `user`.

    `courses` and `users` are id-indexed lookups; ids that no longer resolve
    are ignored.
    """
    now = now or datetime.now(timezone.utc)
    out: Dict[str, Any] = {
        "user_id": user.id,
        "user_name": user.name,
        "user_email": user.email,
        "user_role": user.role,
        "account_created_at": user.created_at,
        "account_age_days": _account_age_days(user, now),
    }
    enrolled = [courses[c] for c in user.enrolled_courses if c in courses]

    if user.role == "student":
        by_instructor: Dict[str, int] = {}
        for c in enrolled:
            instructor = users.get(c.instructor_id)
            name = instructor.name if instructor else "Unknown"
            by_instructor[name] = by_instructor.get(name, 0) + 1
        popularity = sorted(
            ({"course_title": c.title, "total_students": c.registration_count} for c in enrolled),
            key=lambda item: item["total_students"],
            reverse=True,
        )
        out["student_analytics"] = {
            "total_enrolled_courses": len(enrolled),
            "instructor_distribution": sorted(
                ({"instructor": k, "courses_enrolled": v} for k, v in by_instructor.items()),
                key=lambda item: item["courses_enrolled"],
                reverse=True,
            ),
            "course_popularity": popularity,
            "average_class_size": (
                round(sum(c.registration_count for c in enrolled) / len(enrolled)) if enrolled else 0
            ),
            "most_popular_course": popularity[0] if popularity else None,
        }
    elif user.role == "teacher":
        created = [courses[c] for c in user.created_courses if c in courses]
        reached = sum(c.registration_count for c in created)
        performance: List[Dict[str, Any]] = sorted(
            (
                {
                    "course_id": c.id,
                    "course_title": c.title,
                    "students_enrolled": c.registration_count,
                    "created_at": c.created_at,
                }
                for c in created
            ),
            key=lambda item: item["students_enrolled"],
            reverse=True,
        )
        by_month: Dict[str, int] = {}
        for c in created:
            ts = _parse_iso(c.created_at)
            if ts is not None:
                key = f"{ts.year}-{ts.month:02d}"
                by_month[key] = by_month.get(key, 0) + 1
        out["teacher_analytics"] = {
            "total_courses_created": len(created),
            "total_students_reached": reached,
            "average_students_per_course": round(reached / len(created)) if created else 0,
            "course_performance": performance,
            "creation_trend": [{"month": m, "courses_created": n} for m, n in sorted(by_month.items())],
            "most_popular_course": performance[0] if performance else None,
            "least_popular_course": performance[-1] if performance else None,
            "total_courses_enrolled_in": len(enrolled),
        }
    elif user.role == "admin":
        out["admin_analytics"] = {"note": "Admin accounts have limited analytics"}
    return out


__all__ = ["build_user_analytics"]
