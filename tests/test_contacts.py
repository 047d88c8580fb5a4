from gradebook.core.config import settings
from gradebook.services.contact_service import sanitize
from gradebook.services.email_service import EmailService

from conftest import auth

PUBLIC_MESSAGE = {
    "name": "Jane Visitor",
    "email": "jane@example.com",
    "subject": "Enrollment",
    "message": "How do I enroll?",
}


def test_sanitize_strips_markup_and_handlers():
    assert sanitize("<b>Hi</b> there\x07") == "Hi there"
    assert sanitize("click javascript:alert(1)") == "click alert(1)"
    assert sanitize("line one\nline two", keep_newlines=True) == "line one\nline two"
    assert sanitize(None) == ""


async def test_email_without_api_key_is_skipped():
    assert await EmailService(api_key="").send("someone@example.com", "Hello", "Body") is False


async def test_public_message_is_stored(client, seed):
    response = await client.post(
        "/api/contact/public", json=PUBLIC_MESSAGE, headers={"User-Agent": "pytest", "Referer": "https://x.test/"}
    )

    assert response.status_code == 201
    assert response.json()["success"] is True

    inbox = await client.get("/api/contact/", headers=auth(seed.superadmin))
    [message] = inbox.json()
    assert message["isPublicContact"] is True
    assert message["userRole"] == "Public"
    assert message["userEmail"] == "jane@example.com"


async def test_public_message_validation_lists_every_problem(client, seed):
    response = await client.post("/api/contact/public", json={"name": "R2-D2", "email": "nope"})

    assert response.status_code == 400
    message = response.json()["message"]
    assert "Name can only contain letters and spaces" in message
    assert "Please provide a valid email address" in message
    assert "Subject is required and must be a string" in message


async def test_public_message_rate_limit(client, seed, monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxy_hops", 1)
    headers = {"X-Forwarded-For": "198.51.100.23"}
    for _ in range(3):
        assert (await client.post("/api/contact/public", json=PUBLIC_MESSAGE, headers=headers)).status_code == 201

    limited = await client.post("/api/contact/public", json=PUBLIC_MESSAGE, headers=headers)
    assert limited.status_code == 429

    other_ip = await client.post("/api/contact/public", json=PUBLIC_MESSAGE, headers={"X-Forwarded-For": "198.51.100.24"})
    assert other_ip.status_code == 201


async def test_user_message_reply_flow(client, seed):
    sent = await client.post(
        "/api/contact/",
        json={"subject": "Bug", "message": "The page <script>x</script>breaks", "isBugReport": True},
        headers=auth(seed.teacher),
    )
    assert sent.status_code == 201
    assert "bug report" in sent.json()["message"]

    inbox = await client.get("/api/contact/", headers=auth(seed.admin))
    [message] = inbox.json()
    assert message["message"] == "The page xbreaks"
    assert message["userRole"] == "teacher"

    replied = await client.put(
        f"/api/contact/{message['_id']}", json={"adminReply": "Fixed, thanks"}, headers=auth(seed.admin)
    )
    assert replied.json()["status"] == "replied"
    assert replied.json()["replyRead"] is False

    mine = await client.get("/api/contact/user", headers=auth(seed.teacher))
    assert mine.json()[0]["adminReply"] == "Fixed, thanks"
    again = await client.get("/api/contact/user", headers=auth(seed.teacher))
    assert again.json()[0]["replyRead"] is True


async def test_reply_to_public_contact_is_emailed(client, seed, sent_emails):
    await client.post("/api/contact/public", json=PUBLIC_MESSAGE)
    [message] = (await client.get("/api/contact/", headers=auth(seed.superadmin))).json()

    await client.put(f"/api/contact/{message['_id']}", json={"adminReply": "Visit the office"}, headers=auth(seed.superadmin))

    assert sent_emails[-1]["to"] == "jane@example.com"
    assert "Visit the office" in sent_emails[-1]["text"]


async def test_status_replied_without_text_uses_default_reply(client, seed):
    await client.post("/api/contact/", json={"subject": "Hi", "message": "Hello"}, headers=auth(seed.student))
    [message] = (await client.get("/api/contact/", headers=auth(seed.admin))).json()

    response = await client.put(f"/api/contact/{message['_id']}", json={"status": "replied"}, headers=auth(seed.admin))

    assert response.json()["adminReply"] == "Your message has been reviewed by admin. Thank you."


async def test_inbox_is_school_scoped_and_gated(client, seed):
    await client.post("/api/contact/", json={"subject": "Hi", "message": "Hello"}, headers=auth(seed.student))

    assert (await client.get("/api/contact/", headers=auth(seed.foreign_admin))).json() == []
    assert (await client.get("/api/contact/", headers=auth(seed.teacher))).status_code == 403
    assert (await client.get("/api/contact/", headers=auth(seed.secretary))).status_code == 403


async def test_mark_reply_read_requires_ownership(client, seed):
    await client.post("/api/contact/", json={"subject": "Hi", "message": "Hello"}, headers=auth(seed.student))
    [message] = (await client.get("/api/contact/", headers=auth(seed.admin))).json()

    foreign = await client.put(f"/api/contact/user/{message['_id']}/read", headers=auth(seed.student2))
    assert foreign.status_code == 404

    own = await client.put(f"/api/contact/user/{message['_id']}/read", headers=auth(seed.student))
    assert own.json() == {"success": True, "message": "Reply marked as read"}
