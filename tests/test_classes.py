from sqlalchemy import select

from gradebook.models import Subject, subject_teachers

from conftest import auth


def class_body(seed, **overrides):
    body = {
        "name": "Physics B",
        "subject": "Physics",
        "direction": "Science",
        "schoolBranch": "Main",
        "students": [{"_id": str(seed.student.id)}, str(seed.student2.id), {"_id": str(seed.student.id)}],
        "teachers": [str(seed.teacher.id)],
        "schedule": [{"day": "Monday", "startTime": "09:00", "endTime": "10:30"}],
    }
    body.update(overrides)
    return body


async def test_create_normalizes_member_references(client, seed):
    response = await client.post("/api/classes/", json=class_body(seed), headers=auth(seed.admin))

    assert response.status_code == 201
    klass = response.json()
    assert sorted(s["_id"] for s in klass["students"]) == sorted([str(seed.student.id), str(seed.student2.id)])
    assert [t["_id"] for t in klass["teachers"]] == [str(seed.teacher.id)]
    assert klass["schedule"] == [{"day": "Monday", "startTime": "09:00", "endTime": "10:30"}]
    assert klass["schoolId"] == str(seed.school.id)


async def test_create_accepts_admin_ui_aliases(client, seed):
    body = {
        "name": "Chemistry",
        "subjectName": "Chemistry",
        "directionName": "Science",
        "schoolId": "North",
    }
    response = await client.post("/api/classes/", json=body, headers=auth(seed.admin))

    assert response.status_code == 201
    assert response.json()["schoolBranch"] == "North"
    assert response.json()["subject"] == "Chemistry"


async def test_create_auto_creates_subject_and_links_teachers(client, db, seed):
    await client.post("/api/classes/", json=class_body(seed), headers=auth(seed.admin))

    subject = (
        await db.execute(select(Subject).where(Subject.school_id == seed.school.id, Subject.name == "Physics"))
    ).scalar_one()
    teachers = (
        await db.execute(select(subject_teachers.c.teacher_id).where(subject_teachers.c.subject_id == subject.id))
    ).scalars().all()
    assert list(teachers) == [seed.teacher.id]


async def test_missing_fields_and_duplicate_name(client, seed):
    headers = auth(seed.admin)
    incomplete = await client.post("/api/classes/", json={"name": "Lonely"}, headers=headers)
    assert incomplete.status_code == 400
    assert incomplete.json()["message"] == "Please provide all required fields"

    duplicate = await client.post("/api/classes/", json=class_body(seed, name="Math A"), headers=headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "A class with this name already exists"


async def test_foreign_member_is_rejected(client, seed):
    body = class_body(seed, students=[str(seed.foreign_student.id)])
    response = await client.post("/api/classes/", json=body, headers=auth(seed.admin))
    assert response.status_code == 404


async def test_superadmin_without_school_cannot_create(client, seed):
    response = await client.post("/api/classes/", json=class_body(seed), headers=auth(seed.superadmin))
    assert response.status_code == 400


async def test_visibility_by_role(client, seed):
    admin_view = await client.get("/api/classes/", headers=auth(seed.admin))
    assert [c["name"] for c in admin_view.json()] == ["Math A"]

    assert [c["name"] for c in (await client.get("/api/classes/", headers=auth(seed.teacher))).json()] == ["Math A"]
    assert (await client.get("/api/classes/", headers=auth(seed.other_teacher))).json() == []
    assert (await client.get("/api/classes/", headers=auth(seed.student2))).json() == []

    outsider = await client.get(f"/api/classes/{seed.klass.id}", headers=auth(seed.student2))
    assert outsider.status_code == 403


async def test_filters_are_case_insensitive(client, seed):
    headers = auth(seed.admin)
    assert len((await client.get("/api/classes/", params={"subject": "math"}, headers=headers)).json()) == 1
    assert (await client.get("/api/classes/", params={"direction": "arts"}, headers=headers)).json() == []
    by_student = await client.get("/api/classes/", params={"student": str(seed.student.id)}, headers=headers)
    assert len(by_student.json()) == 1


async def test_categories_and_my_classes(client, seed):
    categories = await client.get("/api/classes/categories", headers=auth(seed.admin))
    assert categories.json() == {"subjects": ["Mathematics"], "directions": ["Science"], "schoolBranches": ["Main"]}

    teaching = await client.get("/api/classes/my-teaching-classes", headers=auth(seed.teacher))
    assert [c["name"] for c in teaching.json()] == ["Math A"]

    enrolled = await client.get("/api/classes/my-classes", headers=auth(seed.student))
    assert [c["name"] for c in enrolled.json()] == ["Math A"]

    system_wide = await client.get("/api/classes/my-classes", headers=auth(seed.superadmin))
    assert system_wide.json() == []


async def test_roster_membership_changes(client, seed):
    headers = auth(seed.admin)
    url = f"/api/classes/{seed.klass.id}"

    added = await client.put(f"{url}/students", json={"students": [{"_id": str(seed.student2.id)}]}, headers=headers)
    assert len(added.json()["students"]) == 2

    removed = await client.request("DELETE", f"{url}/students", json={"students": [str(seed.student.id)]}, headers=headers)
    assert [s["_id"] for s in removed.json()["students"]] == [str(seed.student2.id)]

    teachers = await client.put(f"{url}/teachers", json={"teachers": [str(seed.other_teacher.id)]}, headers=headers)
    assert len(teachers.json()["teachers"]) == 2


async def test_update_and_delete(client, seed):
    headers = auth(seed.admin)
    url = f"/api/classes/{seed.klass.id}"

    updated = await client.put(url, json={"description": "Advanced track", "schoolBranch": "East"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["description"] == "Advanced track"
    assert updated.json()["schoolBranch"] == "East"

    deleted = await client.delete(url, headers=headers)
    assert deleted.json() == {"message": "Class removed successfully"}
    assert (await client.get(url, headers=headers)).status_code == 404
