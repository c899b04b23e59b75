"""Enrollment consistency manager (Clean Architecture boundary).

Why:
    A membership is materialized twice: as a course id in the user's
    `enrolled_courses` and as the course's `registration_count`. The two
    aggregates are stored separately and cannot share a transaction, so every
    change to either side goes through this single entry point.

Failure model:
    The membership-list write always happens first, the counter write second.
    If the counter write fails, the membership is recorded on the user but not
    counted on the course. That window is logged and the error re-raised as a
    server fault; `reconcile_registration_counts` recomputes counters from the
    membership lists and repairs it.

Concurrency:
    No locks. The list write is an add-to-set/pull that reports whether it
    changed anything, and the counter only moves when it did, so two racing
    enrolls for one pair record a single membership and a single increment.
    A lost counter write is left to the repair sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol
import logging

from .errors import AlreadyEnrolled, NotEnrolled, NotFound
from .models import CourseRecord, UserRecord

logger = logging.getLogger("campus.teaching.enrollment")

_UNSET = object()


class UsersRepoProtocol(Protocol):
    def get(self, user_id: str) -> Optional[UserRecord]:
        ...

    def list_all(self) -> List[UserRecord]:
        ...

    def delete(self, user_id: str) -> Optional[UserRecord]:
        ...

    def add_enrolled(self, user_id: str, course_id: str) -> bool:
        ...

    def remove_enrolled(self, user_id: str, course_id: str) -> bool:
        ...

    def pull_enrolled_everywhere(self, course_id: str) -> int:
        ...

    def list_enrolled_in(self, course_id: str) -> List[UserRecord]:
        ...

    def add_created(self, user_id: str, course_id: str) -> bool:
        ...

    def remove_created(self, user_id: str, course_id: str) -> bool:
        ...

    def pull_created_everywhere(self, course_id: str) -> int:
        ...


class CoursesRepoProtocol(Protocol):
    def create(self, *, title: str, description: Optional[str], instructor_id: str) -> CourseRecord:
        ...

    def get(self, course_id: str) -> Optional[CourseRecord]:
        ...

    def list_all(self) -> List[CourseRecord]:
        ...

    def update(self, course_id: str, **fields) -> Optional[CourseRecord]:
        ...

    def delete(self, course_id: str) -> Optional[CourseRecord]:
        ...

    def set_registration_count(self, course_id: str, value: int) -> bool:
        ...


@dataclass(frozen=True)
class EnrollmentChange:
    course: CourseRecord
    student: UserRecord


@dataclass(frozen=True)
class CountCorrection:
    course_id: str
    previous: int
    actual: int


class EnrollmentManager:
    def __init__(self, users: UsersRepoProtocol, courses: CoursesRepoProtocol):
        self._users = users
        self._courses = courses

    @property
    def users(self) -> UsersRepoProtocol:
        return self._users

    @property
    def courses(self) -> CoursesRepoProtocol:
        return self._courses

    # --- Membership -------------------------------------------------------------
    def enroll(self, student_id: str, course_id: str) -> EnrollmentChange:
        course, student = self._load_pair(student_id, course_id)
        if course_id in student.enrolled_courses:
            raise AlreadyEnrolled()
        if not self._users.add_enrolled(student_id, course_id):
            # Lost a race against a concurrent enroll for the same pair.
            raise AlreadyEnrolled()
        self._write_count(course_id, +1, student_id=student_id)
        logger.info("Enrolled student=%s course=%s", student_id, course_id)
        return EnrollmentChange(course=self._courses.get(course_id) or course, student=student)

    def unenroll(self, student_id: str, course_id: str) -> EnrollmentChange:
        course, student = self._load_pair(student_id, course_id)
        if course_id not in student.enrolled_courses:
            raise NotEnrolled()
        if not self._users.remove_enrolled(student_id, course_id):
            raise NotEnrolled()
        self._write_count(course_id, -1, student_id=student_id)
        logger.info("Unenrolled student=%s course=%s", student_id, course_id)
        return EnrollmentChange(course=self._courses.get(course_id) or course, student=student)

    def is_enrolled(self, student_id: str, course_id: str) -> bool:
        student = self._users.get(student_id)
        if student is None:
            raise NotFound("student_not_found")
        return course_id in student.enrolled_courses

    def list_enrolled_courses(self, student_id: str) -> List[CourseRecord]:
        student = self._users.get(student_id)
        if student is None:
            raise NotFound("student_not_found")
        out = []
        for cid in student.enrolled_courses:
            course = self._courses.get(cid)
            if course is not None:
                out.append(course)
        return out

    def list_course_students(self, course_id: str) -> List[UserRecord]:
        if self._courses.get(course_id) is None:
            raise NotFound("course_not_found")
        return self._users.list_enrolled_in(course_id)

    # --- Course lifecycle -------------------------------------------------------
    def create_course(self, *, title: str, description: Optional[str], instructor_id: str) -> CourseRecord:
        if self._users.get(instructor_id) is None:
            raise NotFound("instructor_not_found")
        course = self._courses.create(title=title, description=description, instructor_id=instructor_id)
        self._users.add_created(instructor_id, course.id)
        logger.info("Created course=%s instructor=%s", course.id, instructor_id)
        return course

    def update_course(self, course_id: str, *, title=_UNSET, description=_UNSET, instructor_id=_UNSET) -> CourseRecord:
        course = self._courses.get(course_id)
        if course is None:
            raise NotFound("course_not_found")
        previous_instructor = course.instructor_id
        if instructor_id is not _UNSET and self._users.get(instructor_id) is None:
            raise NotFound("instructor_not_found")
        fields = {}
        if title is not _UNSET:
            fields["title"] = title
        if description is not _UNSET:
            fields["description"] = description
        if instructor_id is not _UNSET:
            fields["instructor_id"] = instructor_id
        updated = self._courses.update(course_id, **fields)
        if updated is None:
            raise NotFound("course_not_found")
        if instructor_id is not _UNSET and instructor_id != previous_instructor:
            self._users.remove_created(previous_instructor, course_id)
            self._users.add_created(instructor_id, course_id)
        return updated

    def delete_course(self, course_id: str) -> Optional[CourseRecord]:
        """Delete a course and sweep every reference to it.

        Safe to retry: when the course is already gone the reference sweep
        still runs (a no-op for absent references) and None is returned.
        """
        course = self._courses.delete(course_id)
        pulled = self._users.pull_enrolled_everywhere(course_id)
        if course is not None:
            self._users.remove_created(course.instructor_id, course_id)
        else:
            self._users.pull_created_everywhere(course_id)
        logger.info("Deleted course=%s existed=%s enrollments_removed=%d", course_id, course is not None, pulled)
        return course

    # --- User lifecycle ---------------------------------------------------------
    def delete_user(self, user_id: str) -> Optional[UserRecord]:
        """Delete a user after removing authored courses and enrollment traces."""
        user = self._users.get(user_id)
        if user is None:
            return None
        authored = list(dict.fromkeys(
            list(user.created_courses)
            + [c.id for c in self._courses.list_all() if c.instructor_id == user_id]
        ))
        for cid in authored:
            self.delete_course(cid)
        for cid in list(user.enrolled_courses):
            if self._users.remove_enrolled(user_id, cid):
                if self._courses.get(cid) is not None:
                    self._write_count(cid, -1, student_id=user_id)
        deleted = self._users.delete(user_id)
        logger.info("Deleted user=%s courses_removed=%d", user_id, len(authored))
        return deleted

    def delete_users(self, user_ids: Iterable[str]) -> int:
        """Bulk cascade delete; admins and unknown ids are skipped."""
        deleted = 0
        for uid in dict.fromkeys(user_ids):
            user = self._users.get(uid)
            if user is None or user.role == "admin":
                continue
            if self.delete_user(uid) is not None:
                deleted += 1
        return deleted

    # --- Repair -----------------------------------------------------------------
    def reconcile_registration_counts(self) -> List[CountCorrection]:
        """Recompute every counter from membership lists; idempotent.

        Dangling membership references to deleted courses are pulled as well.
        """
        known = {c.id: c for c in self._courses.list_all()}
        actual = {cid: 0 for cid in known}
        dangling = set()
        for user in self._users.list_all():
            for cid in user.enrolled_courses:
                if cid in actual:
                    actual[cid] += 1
                else:
                    dangling.add(cid)
        for cid in dangling:
            self._users.pull_enrolled_everywhere(cid)
        corrections: List[CountCorrection] = []
        for cid, course in known.items():
            if course.registration_count != actual[cid]:
                corrections.append(CountCorrection(course_id=cid, previous=course.registration_count, actual=actual[cid]))
                self._courses.set_registration_count(cid, actual[cid])
        if corrections or dangling:
            logger.warning(
                "Registration counts repaired corrections=%d dangling_refs=%d",
                len(corrections),
                len(dangling),
            )
        return corrections

    # --- Internals --------------------------------------------------------------
    def _load_pair(self, student_id: str, course_id: str) -> tuple[CourseRecord, UserRecord]:
        course = self._courses.get(course_id)
        if course is None:
            raise NotFound("course_not_found")
        student = self._users.get(student_id)
        if student is None:
            raise NotFound("student_not_found")
        return course, student

    def _write_count(self, course_id: str, delta: int, *, student_id: str) -> None:
        try:
            course = self._courses.get(course_id)
            if course is None:
                return
            self._courses.set_registration_count(course_id, max(0, (course.registration_count or 0) + delta))
        except Exception:
            logger.error(
                "Registration count write failed after membership change; counter out of sync "
                "course=%s student=%s delta=%+d",
                course_id,
                student_id,
                delta,
            )
            raise


__all__ = [
    "EnrollmentManager",
    "EnrollmentChange",
    "CountCorrection",
    "UsersRepoProtocol",
    "CoursesRepoProtocol",
]
