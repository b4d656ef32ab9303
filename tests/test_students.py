from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import UserRole
from app.core.models import Fee, Student


@pytest.mark.asyncio
async def test_get_student_by_id_or_code(client: AsyncClient, admin, make_account) -> None:
    _, student, _ = await make_account(UserRole.STUDENT, "dual", first_name="Tapiwa")

    by_code = await client.get(f"/api/v1/students/{student.student_code}", headers=admin[2])
    by_id = await client.get(f"/api/v1/students/{student.id}", headers=admin[2])
    assert by_code.status_code == by_id.status_code == 200
    assert by_code.json()["data"] == by_id.json()["data"]
    assert by_code.json()["data"]["first_name"] == "Tapiwa"

    missing = await client.get("/api/v1/students/STU18000001", headers=admin[2])
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Student not found"}


@pytest.mark.asyncio
async def test_student_sees_only_self(client: AsyncClient, make_account) -> None:
    _, me, my_headers = await make_account(UserRole.STUDENT, "self")
    _, other, _ = await make_account(UserRole.STUDENT, "notme")

    assert (await client.get(f"/api/v1/students/{me.student_code}", headers=my_headers)).status_code == 200
    assert (await client.get(f"/api/v1/students/{other.student_code}", headers=my_headers)).status_code == 403
    assert (await client.get("/api/v1/students", headers=my_headers)).status_code == 403


@pytest.mark.asyncio
async def test_create_student_for_existing_user(client: AsyncClient, receptionist) -> None:
    registered = await client.post(
        "/api/v1/auth/register",
        json={
            "username": "newkid",
            "email": "newkid@example.com",
            "password": "StrongPass123",
            "role": "parent",
            "first_name": "New",
            "last_name": "Kid",
        },
    )
    user_id = registered.json()["user"]["id"]

    wrong_role = await client.post(
        "/api/v1/students", json={"user_id": user_id, "grade": "3", "class_name": "b"}, headers=receptionist[2]
    )
    assert wrong_role.status_code == 400

    bad_class = await client.post(
        "/api/v1/students", json={"user_id": user_id, "grade": "9", "class_name": "A"}, headers=receptionist[2]
    )
    assert bad_class.status_code == 400


@pytest.mark.asyncio
async def test_change_class_relinks_homeroom_teacher(
    client: AsyncClient, db_session: AsyncSession, admin, make_account
) -> None:
    _, teacher, _ = await make_account(UserRole.TEACHER, "mrmoyo", first_name="Farai")
    assigned = await client.post(
        "/api/v1/teachers/assign-class",
        json={"teacher_id": str(teacher.id), "grade": "2", "class_name": "B"},
        headers=admin[2],
    )
    assert assigned.status_code == 200

    _, student, _ = await make_account(UserRole.STUDENT, "mover")
    moved = await client.put(
        f"/api/v1/students/{student.student_code}/class",
        json={"grade": "2", "class_name": "B"},
        headers=admin[2],
    )
    assert moved.status_code == 200
    data = moved.json()["data"]
    assert data["current_class"] == "2B"
    assert data["teacher"]["id"] == str(teacher.id)

    back = await client.put(
        f"/api/v1/students/{student.student_code}/class",
        json={"grade": "1", "class_name": "A"},
        headers=admin[2],
    )
    assert back.json()["data"]["teacher"] is None


@pytest.mark.asyncio
async def test_by_class_and_search(client: AsyncClient, admin, make_account) -> None:
    await make_account(UserRole.STUDENT, "anesu", first_name="Anesu", last_name="Dube", current_class="3A")
    await make_account(UserRole.STUDENT, "ruva", first_name="Ruvimbo", last_name="Ncube", current_class="3A")
    await make_account(UserRole.STUDENT, "simba", first_name="Simba", last_name="Dube", current_class="4B")

    by_class = await client.get("/api/v1/students/class/3/a", headers=admin[2])
    assert by_class.json()["count"] == 2

    found = await client.get("/api/v1/students/search", params={"q": "DUBE"}, headers=admin[2])
    assert {s["first_name"] for s in found.json()["data"]} == {"Anesu", "Simba"}


@pytest.mark.asyncio
async def test_update_student_details(client: AsyncClient, receptionist, make_account) -> None:
    _, student, _ = await make_account(UserRole.STUDENT, "renamed")
    response = await client.put(
        f"/api/v1/students/{student.student_code}",
        json={"last_name": "Chikwanha", "date_of_birth": "2015-04-18"},
        headers=receptionist[2],
    )
    assert response.status_code == 200
    assert response.json()["data"]["last_name"] == "Chikwanha"
    assert response.json()["data"]["date_of_birth"] == "2015-04-18"


@pytest.mark.asyncio
async def test_delete_refused_with_fee_history(
    client: AsyncClient, db_session: AsyncSession, admin, make_account
) -> None:
    _, billed, _ = await make_account(UserRole.STUDENT, "billed")
    _, clean, _ = await make_account(UserRole.STUDENT, "clean")
    await client.post(
        "/api/v1/fees",
        json={"student": billed.student_code, "term": "Term 1", "academic_year": "2025", "total_amount": "100"},
        headers=admin[2],
    )

    refused = await client.delete(f"/api/v1/students/{billed.student_code}", headers=admin[2])
    assert refused.status_code == 409
    assert (await db_session.execute(select(Fee))).scalars().first().total_amount == Decimal("100")

    deleted = await client.delete(f"/api/v1/students/{clean.student_code}", headers=admin[2])
    assert deleted.status_code == 200
    remaining = (await db_session.execute(select(Student.student_code))).scalars().all()
    assert remaining == [billed.student_code]


@pytest.mark.asyncio
async def test_parent_link_child(client: AsyncClient, receptionist, make_account) -> None:
    _, student, _ = await make_account(UserRole.STUDENT, "kid")
    _, parent, parent_headers = await make_account(UserRole.PARENT, "dad")

    linked = await client.post(
        f"/api/v1/parents/{parent.id}/children",
        json={"student": student.student_code},
        headers=receptionist[2],
    )
    assert linked.status_code == 200
    assert [c["student_code"] for c in linked.json()["data"]["children"]] == [student.student_code]

    # Linking twice keeps one link
    await client.post(
        f"/api/v1/parents/{parent.id}/children",
        json={"student": str(student.id)},
        headers=receptionist[2],
    )
    own = await client.get(f"/api/v1/parents/{parent.id}", headers=parent_headers)
    assert len(own.json()["data"]["children"]) == 1

    child_view = await client.get(f"/api/v1/students/{student.student_code}", headers=parent_headers)
    assert child_view.status_code == 200
    assert child_view.json()["data"]["parents"][0]["id"] == str(parent.id)
