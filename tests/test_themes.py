import pytest

from gradebook.services.theme_service import hex_to_hsl

from conftest import auth

OCEAN = {"name": "Ocean", "description": "Calm blue tones", "primaryColor": "#0EA5E9", "secondaryColor": "#E0F2FE"}


@pytest.mark.parametrize(
    "color, expected",
    [("#FF0000", "0 100% 50%"), ("#fff", "0 0% 100%"), ("#000000", "0 0% 0%"), ("#00FF00", "120 100% 50%")],
)
def test_hex_to_hsl(color, expected):
    assert hex_to_hsl(color) == expected


async def test_default_theme_is_public_and_created_once(client):
    first = await client.get("/api/themes/default")
    second = await client.get("/api/themes/default")

    assert first.status_code == 200
    theme = first.json()["theme"]
    assert theme["name"] == "Default Theme"
    assert theme["isDefault"] is True
    assert theme["cssVariables"]["colors"]["primary"] == hex_to_hsl("#475569")
    assert second.json()["theme"]["_id"] == theme["_id"]


async def test_superadmin_manages_themes(client, seed):
    headers = auth(seed.superadmin)
    await client.get("/api/themes/default")

    created = await client.post("/api/themes/", json=OCEAN, headers=headers)
    assert created.status_code == 201
    theme = created.json()["theme"]
    assert theme["createdBy"]["email"] == "root@gradebook.edu"

    duplicate = await client.post("/api/themes/", json={**OCEAN, "name": "ocean"}, headers=headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Theme name already exists"

    made_default = await client.patch(f"/api/themes/{theme['_id']}/default", headers=headers)
    assert made_default.json()["theme"]["isDefault"] is True
    assert (await client.get("/api/themes/default")).json()["theme"]["name"] == "Ocean"

    refused = await client.delete(f"/api/themes/{theme['_id']}", headers=headers)
    assert refused.status_code == 400
    assert refused.json()["message"] == "Cannot delete the default theme"

    themes = (await client.get("/api/themes/", headers=auth(seed.student))).json()["themes"]
    assert [t["name"] for t in themes] == ["Ocean", "Default Theme"]
    old_default = themes[1]
    assert old_default["isDefault"] is False

    deleted = await client.delete(f"/api/themes/{old_default['_id']}", headers=headers)
    assert deleted.json()["success"] is True
    remaining = (await client.get("/api/themes/", headers=headers)).json()["themes"]
    assert [t["name"] for t in remaining] == ["Ocean"]


async def test_update_theme(client, seed):
    headers = auth(seed.superadmin)
    theme = (await client.post("/api/themes/", json=OCEAN, headers=headers)).json()["theme"]

    response = await client.put(
        f"/api/themes/{theme['_id']}", json={"name": "Deep Ocean", "primaryColor": "#1E3A8A"}, headers=headers
    )

    assert response.json()["theme"]["name"] == "Deep Ocean"
    assert response.json()["theme"]["primaryColor"] == "#1E3A8A"
    assert response.json()["theme"]["secondaryColor"] == "#E0F2FE"


async def test_theme_writes_are_superadmin_only(client, seed):
    response = await client.post("/api/themes/", json=OCEAN, headers=auth(seed.admin))
    assert response.status_code == 403


async def test_invalid_colour_is_rejected(client, seed):
    response = await client.post(
        "/api/themes/", json={**OCEAN, "primaryColor": "blue"}, headers=auth(seed.superadmin)
    )
    assert response.status_code == 400


async def test_unknown_theme_is_404(client, seed):
    response = await client.get(
        "/api/themes/00000000-0000-0000-0000-000000000000", headers=auth(seed.superadmin)
    )
    assert response.status_code == 404
