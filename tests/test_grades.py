from uuid import UUID

from sqlalchemy import insert, select

from gradebook.models import Grade, Subject, class_students
from gradebook.services.grade_service import DUPLICATE_GRADE, GradeService

from conftest import auth


def grade_body(seed, student=None, value=85, date="2024-01-10", **extra):
    return {
        "student": str((student or seed.student).id),
        "subject": str(seed.subject.id),
        "value": value,
        "date": date,
        **extra,
    }


async def test_teacher_grades_student_in_shared_class(client, seed):
    response = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.teacher))

    assert response.status_code == 201
    grade = response.json()
    assert grade["value"] == 85
    assert grade["date"] == "2024-01-10"
    assert grade["student"]["_id"] == str(seed.student.id)
    assert grade["subject"]["name"] == "Mathematics"
    assert grade["teacher"]["_id"] == str(seed.teacher.id)


async def test_duplicate_grade_same_day_is_400(client, seed):
    headers = auth(seed.teacher)
    assert (await client.post("/api/grades/", json=grade_body(seed), headers=headers)).status_code == 201

    again = await client.post("/api/grades/", json=grade_body(seed, value=90), headers=headers)

    assert again.status_code == 400
    assert again.json()["message"] == DUPLICATE_GRADE


async def test_datetime_is_reduced_to_its_day(client, seed):
    headers = auth(seed.teacher)
    first = await client.post("/api/grades/", json=grade_body(seed, date="2024-02-01T08:30:00"), headers=headers)
    assert first.json()["date"] == "2024-02-01"

    later_same_day = await client.post(
        "/api/grades/", json=grade_body(seed, date="2024-02-01T15:00:00"), headers=headers
    )
    assert later_same_day.status_code == 400


async def test_teacher_cannot_grade_outside_shared_class(client, seed):
    response = await client.post(
        "/api/grades/", json=grade_body(seed, student=seed.student2), headers=auth(seed.teacher)
    )

    assert response.status_code == 403


async def test_teacher_without_class_cannot_grade(client, seed):
    response = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.other_teacher))
    assert response.status_code == 403


async def test_admin_may_grade_any_student_of_school(client, seed):
    response = await client.post(
        "/api/grades/", json=grade_body(seed, student=seed.student2), headers=auth(seed.admin)
    )
    assert response.status_code == 201


async def test_secretary_needs_manage_grades_permission(client, db, seed):
    denied = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.secretary))
    assert denied.status_code == 403

    seed.secretary.secretary_permissions = {**seed.secretary.secretary_permissions, "canManageGrades": True}
    await db.commit()

    allowed = await client.post(
        "/api/grades/", json=grade_body(seed, student=seed.student2), headers=auth(seed.secretary)
    )
    assert allowed.status_code == 201


async def test_foreign_student_is_not_found(client, seed):
    response = await client.post(
        "/api/grades/", json=grade_body(seed, student=seed.foreign_student), headers=auth(seed.admin)
    )
    assert response.status_code == 404


async def test_value_out_of_range_is_400(client, seed):
    response = await client.post("/api/grades/", json=grade_body(seed, value=101), headers=auth(seed.teacher))
    assert response.status_code == 400


async def test_student_sees_only_own_grades(client, seed):
    await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.teacher))

    own = await client.get("/api/grades/student", headers=auth(seed.student))
    assert own.status_code == 200
    assert [g["value"] for g in own.json()] == [85]

    other = await client.get(f"/api/grades/student/{seed.student2.id}", headers=auth(seed.student))
    assert other.status_code == 403


async def test_list_filters_by_date_range(client, seed):
    headers = auth(seed.teacher)
    await client.post("/api/grades/", json=grade_body(seed, date="2024-01-10"), headers=headers)
    await client.post("/api/grades/", json=grade_body(seed, value=70, date="2024-03-10"), headers=headers)

    response = await client.get(
        "/api/grades/", params={"startDate": "2024-02-01", "endDate": "2024-12-31"}, headers=headers
    )

    assert response.status_code == 200
    assert [g["value"] for g in response.json()] == [70]
    assert (await client.get("/api/grades/", headers=auth(seed.student))).status_code == 403


async def test_only_issuing_teacher_edits(client, db, seed):
    created = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.teacher))
    grade_id = created.json()["_id"]

    denied = await client.put(f"/api/grades/{grade_id}", json={"value": 10}, headers=auth(seed.other_teacher))
    assert denied.status_code == 403

    updated = await client.put(f"/api/grades/{grade_id}", json={"value": 92}, headers=auth(seed.teacher))
    assert updated.status_code == 200
    assert updated.json()["value"] == 92

    removed = await client.delete(f"/api/grades/{grade_id}", headers=auth(seed.admin))
    assert removed.json() == {"message": "Grade removed", "_id": grade_id}
    assert (await client.get(f"/api/grades/{grade_id}", headers=auth(seed.admin))).status_code == 404


async def test_teacher_grade_views(client, seed):
    await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.teacher))

    mine = await client.get("/api/grades/teacher", headers=auth(seed.teacher))
    assert len(mine.json()) == 1

    others = await client.get(f"/api/grades/teacher/{seed.teacher.id}", headers=auth(seed.other_teacher))
    assert others.status_code == 403

    by_admin = await client.get(f"/api/grades/teacher/{seed.teacher.id}", headers=auth(seed.admin))
    assert len(by_admin.json()) == 1

    by_subject = await client.get(f"/api/grades/subject/{seed.subject.id}", headers=auth(seed.student2))
    assert by_subject.json() == []


async def test_teacher_cannot_move_grade_outside_shared_class(client, db, seed):
    created = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.teacher))
    grade_id = created.json()["_id"]

    to_other_student = await client.put(
        f"/api/grades/{grade_id}", json={"student": str(seed.student2.id)}, headers=auth(seed.teacher)
    )
    assert to_other_student.status_code == 403

    history = Subject(school_id=seed.school.id, name="History", directions=[])
    db.add(history)
    await db.commit()
    to_other_subject = await client.put(
        f"/api/grades/{grade_id}", json={"subject": str(history.id)}, headers=auth(seed.teacher)
    )
    assert to_other_subject.status_code == 403

    stored = await db.scalar(select(Grade.student_id).where(Grade.id == UUID(grade_id)))
    assert stored == seed.student.id


async def test_teacher_may_move_grade_within_shared_class(client, db, seed):
    await db.execute(insert(class_students).values(class_id=seed.klass.id, student_id=seed.student2.id))
    await db.commit()
    created = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.teacher))

    moved = await client.put(
        f"/api/grades/{created.json()['_id']}", json={"student": str(seed.student2.id)}, headers=auth(seed.teacher)
    )

    assert moved.status_code == 200
    assert moved.json()["student"]["_id"] == str(seed.student2.id)


async def test_admin_may_move_grade_to_any_student(client, seed):
    created = await client.post("/api/grades/", json=grade_body(seed), headers=auth(seed.admin))

    moved = await client.put(
        f"/api/grades/{created.json()['_id']}", json={"student": str(seed.student2.id)}, headers=auth(seed.admin)
    )

    assert moved.status_code == 200


async def test_unique_constraint_race_is_reported_as_duplicate(client, seed, monkeypatch):
    async def skip_precheck(self, *args, **kwargs):
        return None

    headers = auth(seed.teacher)
    assert (await client.post("/api/grades/", json=grade_body(seed), headers=headers)).status_code == 201
    monkeypatch.setattr(GradeService, "_ensure_unique", skip_precheck)

    response = await client.post("/api/grades/", json=grade_body(seed, value=40), headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == DUPLICATE_GRADE
