from conftest import auth


async def test_admin_creates_student_with_new_parent(client, seed, sent_emails):
    body = {
        "name": "Nia Student",
        "email": "nia@athens.edu",
        "password": "secret123",
        "role": "student",
        "emailCredentials": True,
        "parent": {"name": "Nia Parent", "email": "nia.parent@athens.edu", "password": "parent123"},
    }
    response = await client.post("/api/users/admin/create", json=body, headers=auth(seed.admin))

    assert response.status_code == 201
    result = response.json()
    assert result["parentCreated"] is True
    assert result["user"]["requirePasswordChange"] is True
    assert result["user"]["parentIds"] == [result["parent"]["_id"]]
    assert result["parent"]["linkedStudentIds"] == [result["user"]["_id"]]
    assert {mail["to"] for mail in sent_emails} == {"nia@athens.edu", "nia.parent@athens.edu"}


async def test_admin_create_rejects_duplicate_email(client, seed):
    body = {"name": "Copy", "email": "teacher@athens.edu", "password": "secret123", "role": "teacher"}
    response = await client.post("/api/users/admin/create", json=body, headers=auth(seed.admin))
    assert response.status_code == 400


async def test_only_superadmin_creates_superadmins(client, seed):
    body = {"name": "Root", "email": "root2@athens.edu", "password": "secret123", "role": "superadmin"}
    response = await client.post("/api/users/admin/create", json=body, headers=auth(seed.admin))
    assert response.status_code == 403


async def test_create_parent_then_link_more_students(client, seed):
    headers = auth(seed.admin)
    body = {
        "studentIds": [str(seed.student.id)],
        "parentName": "Pat Parent",
        "parentEmail": "pat@athens.edu",
        "parentPassword": "parent123",
    }

    created = await client.post("/api/users/create-parent", json=body, headers=headers)
    assert created.status_code == 201
    parent_id = created.json()["parent"]["_id"]

    linked = await client.post(
        "/api/users/create-parent",
        json={**body, "studentIds": [{"_id": str(seed.student.id)}, str(seed.student2.id)]},
        headers=headers,
    )
    assert linked.status_code == 200
    assert linked.json()["newlyLinked"] == [str(seed.student2.id)]

    again = await client.post("/api/users/create-parent", json=body, headers=headers)
    assert again.status_code == 400

    children = await client.get(f"/api/users/parent/{parent_id}/students", headers=headers)
    assert children.json()["studentCount"] == 2

    parents = await client.get(f"/api/users/student/{seed.student2.id}/parents", headers=headers)
    assert parents.json()["parentCount"] == 1


async def test_create_parent_rejects_foreign_student(client, seed):
    body = {
        "studentIds": [str(seed.foreign_student.id)],
        "parentName": "Pat Parent",
        "parentEmail": "pat@athens.edu",
        "parentPassword": "parent123",
    }
    response = await client.post("/api/users/create-parent", json=body, headers=auth(seed.admin))
    assert response.status_code == 404


async def test_unlink_parent_students(client, seed):
    headers = auth(seed.admin)
    created = await client.post(
        "/api/users/create-parent",
        json={
            "studentIds": [str(seed.student.id), str(seed.student2.id)],
            "parentName": "Pat Parent",
            "parentEmail": "pat@athens.edu",
            "parentPassword": "parent123",
        },
        headers=headers,
    )
    parent_id = created.json()["parent"]["_id"]

    response = await client.request(
        "DELETE",
        f"/api/users/parent/{parent_id}/students",
        json={"studentIds": [str(seed.student.id)]},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["unlinkedCount"] == 1
    assert response.json()["remainingStudentIds"] == [str(seed.student2.id)]


async def test_parent_sees_children_grades(client, seed):
    created = await client.post(
        "/api/users/create-parent",
        json={
            "studentIds": [str(seed.student.id)],
            "parentName": "Pat Parent",
            "parentEmail": "pat@athens.edu",
            "parentPassword": "parent123",
        },
        headers=auth(seed.admin),
    )
    await client.post(
        "/api/grades/",
        json={"student": str(seed.student.id), "subject": str(seed.subject.id), "value": 77, "date": "2024-05-02"},
        headers=auth(seed.teacher),
    )
    login = await client.post("/api/users/login", json={"email": "pat@athens.edu", "password": "parent123"})
    parent_headers = {"Authorization": f"Bearer {login.json()['token']}"}

    data = await client.get("/api/users/parent/students-data", headers=parent_headers)
    assert data.status_code == 200
    assert data.json()["students"][0]["recentGrades"][0]["value"] == 77

    child = await client.get(f"/api/grades/student/{seed.student.id}", headers=parent_headers)
    assert [g["value"] for g in child.json()] == [77]
    not_child = await client.get(f"/api/grades/student/{seed.student2.id}", headers=parent_headers)
    assert not_child.status_code == 403
    assert created.json()["created"] is True


async def test_teacher_students_are_class_members(client, seed):
    response = await client.get("/api/users/teacher-students", headers=auth(seed.teacher))
    assert [u["email"] for u in response.json()] == ["student@athens.edu"]

    by_role = await client.get("/api/users/role/student", headers=auth(seed.teacher))
    assert [u["email"] for u in by_role.json()] == ["student@athens.edu"]

    invalid = await client.get("/api/users/role/janitor", headers=auth(seed.admin))
    assert invalid.status_code == 400


async def test_profile_and_self_view(client, seed):
    headers = auth(seed.student)
    updated = await client.put("/api/users/profile", json={"name": "Renamed Student"}, headers=headers)
    assert updated.json()["name"] == "Renamed Student"

    me = await client.get(f"/api/users/{seed.student.id}", headers=headers)
    assert me.status_code == 200
    other = await client.get(f"/api/users/{seed.student2.id}", headers=headers)
    assert other.status_code == 403


async def test_delete_user_removes_links(client, seed):
    headers = auth(seed.admin)
    response = await client.delete(f"/api/users/{seed.student.id}", headers=headers)
    assert response.json() == {"message": "User removed", "_id": str(seed.student.id)}

    klass = await client.get(f"/api/classes/{seed.klass.id}", headers=headers)
    assert klass.json()["students"] == []

    self_delete = await client.delete(f"/api/users/{seed.admin.id}", headers=headers)
    assert self_delete.status_code == 400


async def test_secretary_update_requires_manage_users(client, db, seed):
    url = f"/api/users/{seed.student.id}"
    assert (await client.put(url, json={"name": "X"}, headers=auth(seed.secretary))).status_code == 403

    seed.secretary.secretary_permissions = {**seed.secretary.secretary_permissions, "canManageUsers": True}
    await db.commit()

    response = await client.put(url, json={"name": "Updated Name"}, headers=auth(seed.secretary))
    assert response.status_code == 200
    assert response.json()["name"] == "Updated Name"
