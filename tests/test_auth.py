import asyncio

import pytest

from gradebook.core.config import settings
from gradebook.core.security import create_refresh_token

from conftest import PASSWORD, auth


@pytest.fixture(autouse=True)
def behind_one_proxy(monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxy_hops", 1)


async def login(client, email, password=PASSWORD, ip="203.0.113.7", forwarded_by_client="10.0.0.1"):
    # the proxy appends the address it saw after whatever the client sent
    return await client.post(
        "/api/users/login",
        json={"email": email, "password": password},
        headers={"X-Forwarded-For": f"{forwarded_by_client}, {ip}"},
    )


async def test_login_returns_tokens_and_profile(client, seed):
    response = await login(client, "teacher@athens.edu")

    assert response.status_code == 200
    body = response.json()
    assert body["_id"] == str(seed.teacher.id)
    assert body["role"] == "teacher"
    assert body["schoolId"] == str(seed.school.id)
    assert body["token"] and body["refreshToken"]
    assert "passwordHash" not in body


async def test_superadmin_login_without_school(client, seed):
    response = await login(client, "root@gradebook.edu")

    assert response.status_code == 200
    assert response.json()["schoolId"] is None


async def test_wrong_password_and_unknown_user_are_401(client, seed):
    assert (await login(client, "teacher@athens.edu", "wrong-password")).status_code == 401
    response = await login(client, "nobody@athens.edu")
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


async def test_sixth_attempt_is_locked_out(client, seed):
    for _ in range(5):
        assert (await login(client, "teacher@athens.edu", "wrong-password")).status_code == 401

    response = await login(client, "teacher@athens.edu")

    assert response.status_code == 429
    assert "Account locked for 60 seconds" in response.json()["message"]
    assert response.headers["Retry-After"] == "60"
    # lockout is per client IP
    assert (await login(client, "teacher@athens.edu", ip="198.51.100.1")).status_code == 200


async def test_spoofed_forwarded_entries_do_not_reset_lockout(client, seed):
    for i in range(5):
        response = await login(client, "teacher@athens.edu", "wrong-password", forwarded_by_client=f"203.0.113.{i}")
        assert response.status_code == 401

    response = await login(client, "teacher@athens.edu", forwarded_by_client="203.0.113.99")

    assert response.status_code == 429


async def test_without_trusted_proxy_the_socket_peer_is_used(client, seed, monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxy_hops", 0)
    codes = []
    for i in range(6):
        response = await client.post(
            "/api/users/login",
            json={"email": "teacher@athens.edu", "password": "wrong-password"},
            headers={"X-Forwarded-For": f"198.51.100.{i}"},
        )
        codes.append(response.status_code)

    assert codes == [401] * 5 + [429]


async def test_disabled_account_is_403(client, db, seed):
    seed.student.active = False
    await db.commit()

    response = await login(client, "student@athens.edu")

    assert response.status_code == 403


async def test_refresh_rotates_and_rejects_replay(client, seed):
    tokens = (await login(client, "teacher@athens.edu")).json()

    first = await client.post("/api/users/refresh-token", json={"refreshToken": tokens["refreshToken"]})
    assert first.status_code == 200
    rotated = first.json()
    assert rotated["refreshToken"] != tokens["refreshToken"]

    replay = await client.post("/api/users/refresh-token", json={"refreshToken": tokens["refreshToken"]})
    assert replay.status_code == 401

    second = await client.post("/api/users/refresh-token", json={"refreshToken": rotated["refreshToken"]})
    assert second.status_code == 200


async def test_concurrent_refresh_with_one_token_rotates_once(client, seed):
    tokens = (await login(client, "teacher@athens.edu")).json()
    body = {"refreshToken": tokens["refreshToken"]}

    responses = await asyncio.gather(
        client.post("/api/users/refresh-token", json=body),
        client.post("/api/users/refresh-token", json=body),
    )

    assert sorted(r.status_code for r in responses) == [200, 401]


async def test_refresh_requires_token(client, seed):
    response = await client.post("/api/users/refresh-token", json={})
    assert response.status_code == 400


async def test_access_token_cannot_refresh(client, seed):
    access = auth(seed.teacher)["Authorization"].split(" ", 1)[1]
    response = await client.post("/api/users/refresh-token", json={"refreshToken": access})
    assert response.status_code == 401


async def test_refresh_token_cannot_authenticate(client, seed):
    refresh = create_refresh_token(seed.teacher.id, seed.school.id)
    response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {refresh}"})
    assert response.status_code == 401


async def test_logout_revokes_refresh_token(client, seed):
    tokens = (await login(client, "admin@athens.edu")).json()

    response = await client.post("/api/users/logout", json={"refreshToken": tokens["refreshToken"]})
    assert response.json() == {"message": "Logged out successfully", "revokedToken": True}

    again = await client.post("/api/users/logout", json={"refreshToken": tokens["refreshToken"]})
    assert again.status_code == 200

    refresh = await client.post("/api/users/refresh-token", json={"refreshToken": tokens["refreshToken"]})
    assert refresh.status_code == 401


async def test_missing_or_placeholder_token_is_401(client, seed):
    assert (await client.get("/api/users/me")).status_code == 401
    response = await client.get("/api/users/me", headers={"Authorization": "Bearer null"})
    assert response.status_code == 401
    assert response.json()["message"] == "Not authorized, no token"


async def test_register_derives_school_from_email_domain(client, seed):
    response = await client.post(
        "/api/users/",
        json={"name": "New Student", "email": "New.Student@Athens.edu", "password": "secret123"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "student"
    assert body["email"] == "new.student@athens.edu"
    assert body["schoolId"] == str(seed.school.id)
    assert body["token"]

    duplicate = await client.post(
        "/api/users/",
        json={"name": "Again", "email": "new.student@athens.edu", "password": "secret123"},
    )
    assert duplicate.status_code == 400


async def test_register_unknown_domain_is_400(client, seed):
    response = await client.post(
        "/api/users/",
        json={"name": "Stranger", "email": "someone@nowhere.edu", "password": "secret123"},
    )
    assert response.status_code == 400


async def test_register_second_superadmin_is_rejected(client, seed):
    response = await client.post(
        "/api/users/",
        json={"name": "Root", "email": "root2@gradebook.edu", "password": "secret123", "role": "superadmin"},
    )
    assert response.status_code == 400


async def test_change_password(client, seed):
    headers = auth(seed.student)

    same = await client.post(
        "/api/users/change-password",
        json={"currentPassword": PASSWORD, "newPassword": PASSWORD},
        headers=headers,
    )
    assert same.status_code == 400

    wrong = await client.post(
        "/api/users/change-password",
        json={"currentPassword": "not-it", "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = await client.post(
        "/api/users/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert (await login(client, "student@athens.edu", "brand-new-pass")).status_code == 200


async def test_login_attempt_admin_endpoints(client, seed):
    for _ in range(2):
        await login(client, "teacher@athens.edu", "wrong-password", ip="192.0.2.10")

    stats = await client.get("/api/users/login-attempts/stats", headers=auth(seed.superadmin))
    assert stats.status_code == 200
    assert stats.json()["totalAttempts"] == 2

    forbidden = await client.get("/api/users/login-attempts/stats", headers=auth(seed.admin))
    assert forbidden.status_code == 403

    cleared = await client.delete("/api/users/login-attempts/192.0.2.10", headers=auth(seed.superadmin))
    assert cleared.status_code == 200
    stats = await client.get("/api/users/login-attempts/stats", headers=auth(seed.superadmin))
    assert stats.json()["totalIPs"] == 0
