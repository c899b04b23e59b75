"""
Per-user analytics derived from memberships and counters.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from teaching.analytics import build_user_analytics
from teaching.enrollment import EnrollmentManager
from teaching.repo import CourseRepo, UserRepo


def _world():
    users, courses = UserRepo(), CourseRepo()
    manager = EnrollmentManager(users, courses)
    tia = users.create(name="Tia", email="tia@example.com", password_hash="!", role="teacher")
    tom = users.create(name="Tom", email="tom@example.com", password_hash="!", role="teacher")
    sam = users.create(name="Sam", email="sam@example.com", password_hash="!")
    sue = users.create(name="Sue", email="sue@example.com", password_hash="!")
    algebra = manager.create_course(title="Algebra", description=None, instructor_id=tia.id)
    biology = manager.create_course(title="Biology", description=None, instructor_id=tia.id)
    chem = manager.create_course(title="Chemistry", description=None, instructor_id=tom.id)
    manager.enroll(sam.id, algebra.id)
    manager.enroll(sue.id, algebra.id)
    manager.enroll(sam.id, chem.id)
    lookup_c = {c.id: c for c in courses.list_all()}
    lookup_u = {u.id: u for u in users.list_all()}
    return locals()


def test_student_analytics():
    w = _world()
    out = build_user_analytics(w["sam"], courses=w["lookup_c"], users=w["lookup_u"])
    sa = out["student_analytics"]
    assert out["user_role"] == "student"
    assert sa["total_enrolled_courses"] == 2
    assert {d["instructor"] for d in sa["instructor_distribution"]} == {"Tia", "Tom"}
    assert sa["most_popular_course"] == {"course_title": "Algebra", "total_students": 2}
    assert sa["average_class_size"] == 2  # round(3 / 2)
    assert "teacher_analytics" not in out


def test_teacher_analytics():
    w = _world()
    out = build_user_analytics(w["tia"], courses=w["lookup_c"], users=w["lookup_u"])
    ta = out["teacher_analytics"]
    assert ta["total_courses_created"] == 2
    assert ta["total_students_reached"] == 2
    assert ta["average_students_per_course"] == 1
    assert ta["most_popular_course"]["course_title"] == "Algebra"
    assert ta["least_popular_course"]["course_title"] == "Biology"
    assert sum(m["courses_created"] for m in ta["creation_trend"]) == 2
    assert ta["total_courses_enrolled_in"] == 0


def test_admin_analytics_and_account_age():
    users = UserRepo()
    admin = users.create(name="Ada", email="ada@example.com", password_hash="!", role="admin")
    later = datetime.now(timezone.utc) + timedelta(days=10)
    out = build_user_analytics(admin, courses={}, users={admin.id: admin}, now=later)
    assert out["admin_analytics"]["note"]
    assert out["account_age_days"] in (9, 10)


def test_dangling_course_ids_are_ignored():
    w = _world()
    w["sam"].enrolled_courses.append("gone")
    out = build_user_analytics(w["sam"], courses=w["lookup_c"], users=w["lookup_u"])
    assert out["student_analytics"]["total_enrolled_courses"] == 2
