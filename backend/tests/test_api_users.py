"""
Users API: scoping by the rule table, self-service updates, cascade deletes.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from utils.campus import auth_headers, seed_user
from web import main, services

pytestmark = pytest.mark.anyio("asyncio")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


@pytest.fixture
def people():
    return {
        "admin": seed_user(name="Ada", email="ada@example.com", role="admin"),
        "teacher": seed_user(name="Tia", email="tia@example.com", role="teacher"),
        "sam": seed_user(name="Sam", email="sam@example.com"),
        "sue": seed_user(name="Sue", email="sue@example.com"),
    }


@pytest.mark.anyio
async def test_me_has_no_password_hash(people):
    async with _client() as client:
        r = await client.get("/api/users/me", headers=auth_headers("sam@example.com"))
    assert r.status_code == 200
    body = r.json()
    assert body["id"] == people["sam"].id
    assert "password_hash" not in body
    assert body["stats"] == {"total_enrolled_courses": 0, "total_created_courses": 0}


@pytest.mark.anyio
async def test_get_user_self_or_admin(people):
    sam_id = people["sam"].id
    async with _client() as client:
        own = await client.get(f"/api/users/{sam_id}", headers=auth_headers("sam@example.com"))
        other = await client.get(f"/api/users/{sam_id}", headers=auth_headers("sue@example.com"))
        teacher = await client.get(f"/api/users/{sam_id}", headers=auth_headers("tia@example.com"))
        admin = await client.get(f"/api/users/{sam_id}", headers=auth_headers("ada@example.com"))
        missing = await client.get("/api/users/ghost", headers=auth_headers("ada@example.com"))
    assert own.status_code == 200
    assert other.status_code == 403
    assert other.json() == {"error": "forbidden"}
    assert teacher.status_code == 403
    assert admin.status_code == 200
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_list_users_admin_only(people):
    async with _client() as client:
        denied = await client.get("/api/users", headers=auth_headers("tia@example.com"))
        ok = await client.get("/api/users", headers=auth_headers("ada@example.com"))
    assert denied.status_code == 403
    assert ok.status_code == 200
    assert ok.json()["count"] == 4


@pytest.mark.anyio
async def test_update_own_name(people):
    sam_id = people["sam"].id
    async with _client() as client:
        r = await client.put(f"/api/users/{sam_id}", json={"name": "Samuel"}, headers=auth_headers("sam@example.com"))
        empty = await client.put(f"/api/users/{sam_id}", json={}, headers=auth_headers("sam@example.com"))
        blank = await client.put(f"/api/users/{sam_id}", json={"name": "  "}, headers=auth_headers("sam@example.com"))
    assert r.status_code == 200
    assert r.json()["name"] == "Samuel"
    assert empty.status_code == 400
    assert blank.status_code == 400
    assert blank.json()["detail"] == "invalid_name"


@pytest.mark.anyio
async def test_role_change_requires_admin_and_takes_effect_immediately(people):
    sam_id = people["sam"].id
    async with _client() as client:
        self_promote = await client.put(
            f"/api/users/{sam_id}", json={"role": "admin"}, headers=auth_headers("sam@example.com")
        )
        bad_role = await client.put(
            f"/api/users/{sam_id}", json={"role": "wizard"}, headers=auth_headers("ada@example.com")
        )
        before = await client.post("/api/courses", json={"title": "Algebra"}, headers=auth_headers("sam@example.com"))
        promote = await client.put(
            f"/api/users/{sam_id}", json={"role": "teacher"}, headers=auth_headers("ada@example.com")
        )
        after = await client.post("/api/courses", json={"title": "Algebra"}, headers=auth_headers("sam@example.com"))
    assert self_promote.status_code == 403
    assert bad_role.status_code == 400
    assert before.status_code == 403
    assert promote.status_code == 200
    assert promote.json()["role"] == "teacher"
    assert after.status_code == 201


@pytest.mark.anyio
async def test_delete_user_cascades(people):
    manager = services.get_manager()
    course = manager.create_course(title="Algebra", description=None, instructor_id=people["teacher"].id)
    manager.enroll(people["sam"].id, course.id)

    async with _client() as client:
        denied = await client.delete(f"/api/users/{people['teacher'].id}", headers=auth_headers("sam@example.com"))
        r = await client.delete(f"/api/users/{people['teacher'].id}", headers=auth_headers("ada@example.com"))
        again = await client.delete(f"/api/users/{people['teacher'].id}", headers=auth_headers("ada@example.com"))
    assert denied.status_code == 403
    assert r.status_code == 200
    assert r.json()["deleted_user"]["email"] == "tia@example.com"
    assert again.status_code == 404
    assert services.get_courses().get(course.id) is None
    assert people["sam"].enrolled_courses == []


@pytest.mark.anyio
async def test_deleted_student_counts_are_released(people):
    manager = services.get_manager()
    course = manager.create_course(title="Algebra", description=None, instructor_id=people["teacher"].id)
    manager.enroll(people["sam"].id, course.id)
    manager.enroll(people["sue"].id, course.id)

    async with _client() as client:
        r = await client.delete(f"/api/users/{people['sam'].id}", headers=auth_headers("ada@example.com"))
    assert r.status_code == 200
    assert services.get_courses().get(course.id).registration_count == 1


@pytest.mark.anyio
async def test_bulk_delete_skips_admins(people):
    ids = [people["sam"].id, people["sue"].id, people["admin"].id]
    async with _client() as client:
        r = await client.post("/api/users/bulk-delete", json={"user_ids": ids}, headers=auth_headers("ada@example.com"))
        bad = await client.post("/api/users/bulk-delete", json={"user_ids": "x"}, headers=auth_headers("ada@example.com"))
        empty = await client.post("/api/users/bulk-delete", json={"user_ids": []}, headers=auth_headers("ada@example.com"))
    assert r.status_code == 200
    assert r.json() == {"deleted_count": 2}
    assert services.get_users().get(people["admin"].id) is not None
    assert bad.status_code == 400
    assert empty.status_code == 400


@pytest.mark.anyio
async def test_analytics_admin_only(people):
    async with _client() as client:
        denied = await client.get(f"/api/users/analytics/{people['sam'].id}", headers=auth_headers("sam@example.com"))
        ok = await client.get(f"/api/users/analytics/{people['teacher'].id}", headers=auth_headers("ada@example.com"))
        missing = await client.get("/api/users/analytics/ghost", headers=auth_headers("ada@example.com"))
    assert denied.status_code == 403
    assert ok.status_code == 200
    assert ok.json()["teacher_analytics"]["total_courses_created"] == 0
    assert missing.status_code == 404
