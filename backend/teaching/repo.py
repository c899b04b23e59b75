"""
In-memory repositories for the user and course aggregates.

Why:
    Both aggregates live in separate collections without a shared transaction.
    The repositories expose document-store style primitives (add-to-set, pull,
    pull-from-all) so the enrollment manager can express each side of a
    membership change as one independent write.

Notes:
    - Each mutating primitive is a single dictionary/list operation and reports
      whether it changed anything; callers use the boolean to stay idempotent.
    - Tests swap implementations through `web.services.set_repos`.
"""
from __future__ import annotations

from typing import Dict, List, Optional
from uuid import uuid4

from identity_access.domain import DEFAULT_ROLE

from .models import CourseRecord, UserRecord, utcnow_iso

_UNSET = object()
MAX_TITLE_LENGTH = 200
MAX_NAME_LENGTH = 120


def _normalize_title(title: object) -> str:
    t = title.strip() if isinstance(title, str) else ""
    if not t or len(t) > MAX_TITLE_LENGTH:
        raise ValueError("invalid_title")
    return t


class UserRepo:
    def __init__(self) -> None:
        self.users: Dict[str, UserRecord] = {}
        self.ids_by_email: Dict[str, str] = {}

    def create(self, *, name: str, email: str, password_hash: str, role: str = DEFAULT_ROLE) -> UserRecord:
        n = (name or "").strip()
        if not n or len(n) > MAX_NAME_LENGTH:
            raise ValueError("invalid_name")
        if email in self.ids_by_email:
            raise ValueError("email_taken")
        uid = str(uuid4())
        user = UserRecord(id=uid, name=n, email=email, password_hash=password_hash, role=role)
        self.users[uid] = user
        self.ids_by_email[email] = uid
        return user

    def get(self, user_id: str) -> UserRecord | None:
        return self.users.get(user_id)

    def find_by_email(self, email: str) -> UserRecord | None:
        uid = self.ids_by_email.get(email)
        return self.users.get(uid) if uid else None

    def list_all(self) -> List[UserRecord]:
        return list(self.users.values())

    def update(self, user_id: str, *, name=_UNSET, role=_UNSET) -> UserRecord | None:
        user = self.users.get(user_id)
        if not user:
            return None
        if name is not _UNSET:
            n = name.strip() if isinstance(name, str) else ""
            if not n or len(n) > MAX_NAME_LENGTH:
                raise ValueError("invalid_name")
            user.name = n
        if role is not _UNSET:
            user.role = role
        user.updated_at = utcnow_iso()
        return user

    def delete(self, user_id: str) -> UserRecord | None:
        user = self.users.pop(user_id, None)
        if user:
            self.ids_by_email.pop(user.email, None)
        return user

    # --- Enrollment list primitives --------------------------------------------
    def add_enrolled(self, user_id: str, course_id: str) -> bool:
        """Add-to-set; False when the user is unknown or already enrolled."""
        user = self.users.get(user_id)
        if not user or course_id in user.enrolled_courses:
            return False
        user.enrolled_courses.append(course_id)
        user.updated_at = utcnow_iso()
        return True

    def remove_enrolled(self, user_id: str, course_id: str) -> bool:
        user = self.users.get(user_id)
        if not user or course_id not in user.enrolled_courses:
            return False
        user.enrolled_courses = [c for c in user.enrolled_courses if c != course_id]
        user.updated_at = utcnow_iso()
        return True

    def pull_enrolled_everywhere(self, course_id: str) -> int:
        changed = 0
        for user in self.users.values():
            if course_id in user.enrolled_courses:
                user.enrolled_courses = [c for c in user.enrolled_courses if c != course_id]
                user.updated_at = utcnow_iso()
                changed += 1
        return changed

    def list_enrolled_in(self, course_id: str) -> List[UserRecord]:
        return [u for u in self.users.values() if course_id in u.enrolled_courses]

    # --- Created list primitives -----------------------------------------------
    def add_created(self, user_id: str, course_id: str) -> bool:
        user = self.users.get(user_id)
        if not user or course_id in user.created_courses:
            return False
        user.created_courses.append(course_id)
        return True

    def remove_created(self, user_id: str, course_id: str) -> bool:
        user = self.users.get(user_id)
        if not user or course_id not in user.created_courses:
            return False
        user.created_courses = [c for c in user.created_courses if c != course_id]
        return True

    def pull_created_everywhere(self, course_id: str) -> int:
        changed = 0
        for user in self.users.values():
            if course_id in user.created_courses:
                user.created_courses = [c for c in user.created_courses if c != course_id]
                changed += 1
        return changed


class CourseRepo:
    def __init__(self) -> None:
        self.courses: Dict[str, CourseRecord] = {}

    def create(self, *, title: str, description: str | None, instructor_id: str) -> CourseRecord:
        cid = str(uuid4())
        course = CourseRecord(
            id=cid,
            title=_normalize_title(title),
            description=description,
            instructor_id=instructor_id,
            registration_count=0,
        )
        self.courses[cid] = course
        return course

    def get(self, course_id: str) -> CourseRecord | None:
        return self.courses.get(course_id)

    def list_all(self) -> List[CourseRecord]:
        return list(self.courses.values())

    def update(self, course_id: str, *, title=_UNSET, description=_UNSET, instructor_id=_UNSET) -> CourseRecord | None:
        c = self.courses.get(course_id)
        if not c:
            return None
        if title is not _UNSET:
            c.title = _normalize_title(title)
        if description is not _UNSET:
            c.description = description
        if instructor_id is not _UNSET:
            c.instructor_id = instructor_id
        c.updated_at = utcnow_iso()
        return c

    def delete(self, course_id: str) -> CourseRecord | None:
        return self.courses.pop(course_id, None)

    def set_registration_count(self, course_id: str, value: int) -> bool:
        c = self.courses.get(course_id)
        if not c:
            return False
        c.registration_count = max(0, int(value))
        c.updated_at = utcnow_iso()
        return True


__all__ = ["UserRepo", "CourseRepo", "MAX_TITLE_LENGTH", "MAX_NAME_LENGTH"]
