from sqlalchemy import func, select

from gradebook.models import Grade, subject_teachers

from conftest import auth


async def test_admin_creates_subject_in_own_school(client, seed):
    response = await client.post(
        "/api/subjects/",
        json={
            "name": "Physics",
            "description": "Mechanics",
            "teachers": [{"_id": str(seed.teacher.id)}, str(seed.teacher.id)],
            "directions": ["Science"],
        },
        headers=auth(seed.admin),
    )

    assert response.status_code == 201
    subject = response.json()
    assert subject["schoolId"] == str(seed.school.id)
    assert [t["_id"] for t in subject["teachers"]] == [str(seed.teacher.id)]


async def test_duplicate_name_in_school_is_400(client, seed):
    response = await client.post("/api/subjects/", json={"name": "Mathematics"}, headers=auth(seed.admin))

    assert response.status_code == 400
    assert response.json()["message"] == "Subject with this name already exists in this school"

    elsewhere = await client.post("/api/subjects/", json={"name": "Mathematics"}, headers=auth(seed.foreign_admin))
    assert elsewhere.status_code == 201


async def test_superadmin_must_name_the_school(client, seed):
    missing = await client.post("/api/subjects/", json={"name": "Chemistry"}, headers=auth(seed.superadmin))
    assert missing.status_code == 400
    assert missing.json()["message"] == "School ID is required"

    created = await client.post(
        "/api/subjects/", json={"name": "Chemistry", "schoolId": str(seed.other_school.id)}, headers=auth(seed.superadmin)
    )
    assert created.status_code == 201
    assert created.json()["schoolId"] == str(seed.other_school.id)

    listed = await client.get("/api/subjects/", params={"schoolId": str(seed.other_school.id)}, headers=auth(seed.superadmin))
    assert [s["name"] for s in listed.json()] == ["Chemistry"]


async def test_teacher_from_another_school_is_rejected(client, db, seed):
    response = await client.post(
        "/api/subjects/",
        json={"name": "Biology", "teachers": [str(seed.teacher.id)]},
        headers=auth(seed.foreign_admin),
    )
    assert response.status_code == 404


async def test_listing_is_school_scoped(client, seed):
    assert [s["name"] for s in (await client.get("/api/subjects/", headers=auth(seed.student))).json()] == ["Mathematics"]
    assert (await client.get("/api/subjects/", headers=auth(seed.foreign_student))).json() == []
    assert (await client.get(f"/api/subjects/{seed.subject.id}", headers=auth(seed.foreign_admin))).status_code == 404


async def test_teacher_and_direction_views(client, seed):
    mine = await client.get("/api/subjects/teacher", headers=auth(seed.teacher))
    assert [s["name"] for s in mine.json()] == ["Mathematics"]
    assert (await client.get("/api/subjects/teacher", headers=auth(seed.other_teacher))).json() == []
    assert (await client.get("/api/subjects/teacher", headers=auth(seed.student))).status_code == 403

    science = await client.get("/api/subjects/direction/Science", headers=auth(seed.student))
    assert [s["name"] for s in science.json()] == ["Mathematics"]
    assert (await client.get("/api/subjects/direction/Arts", headers=auth(seed.student))).json() == []


async def test_update_replaces_teachers(client, seed):
    response = await client.put(
        f"/api/subjects/{seed.subject.id}",
        json={"teachers": [str(seed.other_teacher.id)], "directions": ["Science", "Economics"]},
        headers=auth(seed.admin),
    )

    assert [t["_id"] for t in response.json()["teachers"]] == [str(seed.other_teacher.id)]
    assert response.json()["directions"] == ["Science", "Economics"]


async def test_secretary_needs_subject_permission(client, db, seed):
    assert (await client.post("/api/subjects/", json={"name": "Art"}, headers=auth(seed.secretary))).status_code == 403

    seed.secretary.secretary_permissions = {**seed.secretary.secretary_permissions, "canManageSubjects": True}
    db.add(seed.secretary)
    await db.commit()

    assert (await client.post("/api/subjects/", json={"name": "Art"}, headers=auth(seed.secretary))).status_code == 201


async def test_delete_removes_grades_and_teacher_links(client, db, seed):
    graded = await client.post(
        "/api/grades/",
        json={"student": str(seed.student.id), "subject": str(seed.subject.id), "value": 90, "date": "2024-02-01"},
        headers=auth(seed.teacher),
    )
    assert graded.status_code == 201

    response = await client.delete(f"/api/subjects/{seed.subject.id}", headers=auth(seed.admin))

    assert response.json() == {"message": "Subject removed"}
    grades = await db.scalar(select(func.count()).select_from(Grade).where(Grade.subject_id == seed.subject.id))
    links = await db.scalar(
        select(func.count()).select_from(subject_teachers).where(subject_teachers.c.subject_id == seed.subject.id)
    )
    assert grades == 0
    assert links == 0
