from gradebook.models import SystemMaintenance

from conftest import auth


async def enable(db, allowed_roles=()):
    db.add(SystemMaintenance(is_maintenance_mode=True, maintenance_message="Back at noon", allowed_roles=list(allowed_roles)))
    await db.commit()


async def test_active_maintenance_blocks_with_503(client, db, seed):
    await enable(db)

    response = await client.get("/api/users/me", headers=auth(seed.teacher))

    assert response.status_code == 503
    assert response.json()["message"] == "Back at noon"


async def test_superadmin_and_allowed_roles_bypass(client, db, seed):
    await enable(db, allowed_roles=["admin"])

    assert (await client.get("/api/users/me", headers=auth(seed.superadmin))).status_code == 200
    assert (await client.get("/api/users/me", headers=auth(seed.admin))).status_code == 200
    assert (await client.get("/api/users/me", headers=auth(seed.student))).status_code == 503


async def test_public_routes_stay_open(client, db, seed):
    await enable(db)

    login = await client.post("/api/users/login", json={"email": "teacher@athens.edu", "password": "password123"})
    assert login.status_code == 200

    status = await client.get("/api/system/maintenance/status", headers=auth(seed.teacher))
    assert status.json() == {
        "isMaintenanceMode": True,
        "maintenanceMessage": "Back at noon",
        "estimatedCompletion": None,
        "canBypass": False,
        "userRole": "teacher",
    }


async def test_status_without_token_creates_default_record(client, seed):
    response = await client.get("/api/system/maintenance/status")

    assert response.status_code == 200
    assert response.json()["isMaintenanceMode"] is False
    assert "canBypass" not in response.json()


async def test_superadmin_toggles_and_history_is_recorded(client, seed):
    headers = auth(seed.superadmin)

    enabled = await client.put(
        "/api/system/maintenance/",
        json={"isMaintenanceMode": True, "reason": "Upgrade", "allowedRoles": ["teacher", "superadmin", "janitor"]},
        headers=headers,
    )
    assert enabled.json()["message"] == "Maintenance mode enabled successfully"
    assert enabled.json()["maintenance"]["allowedRoles"] == ["teacher"]
    assert enabled.json()["maintenance"]["lastModifiedBy"]["_id"] == str(seed.superadmin.id)

    assert (await client.get("/api/classes/", headers=auth(seed.teacher))).status_code == 200
    assert (await client.get("/api/classes/", headers=auth(seed.student))).status_code == 503

    await client.put("/api/system/maintenance/", json={"isMaintenanceMode": True, "reason": "Still going"}, headers=headers)
    await client.put("/api/system/maintenance/", json={"isMaintenanceMode": False}, headers=headers)

    history = (await client.get("/api/system/maintenance/history", headers=headers)).json()
    assert history["totalEntries"] == 3
    assert {entry["action"] for entry in history["history"]} == {"enabled", "updated", "disabled"}

    cleared = await client.delete("/api/system/maintenance/history", headers=headers)
    assert cleared.json()["message"] == "Maintenance history cleared successfully"
    assert (await client.get("/api/system/maintenance/history", headers=headers)).json()["totalEntries"] == 0


async def test_update_validation_and_gate(client, seed):
    bad = await client.put(
        "/api/system/maintenance/", json={"isMaintenanceMode": "yes"}, headers=auth(seed.superadmin)
    )
    assert bad.status_code == 400
    assert bad.json()["message"] == "isMaintenanceMode must be a boolean"

    forbidden = await client.put("/api/system/maintenance/", json={"isMaintenanceMode": True}, headers=auth(seed.admin))
    assert forbidden.status_code == 403
