"""FastAPI endpoint tests using httpx.AsyncClient."""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from api.live import _snapshot_events
from main import app
from tests.helpers import image_response, quiz_json


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client, email, name, role_hint=None) -> dict:
    resp = await client.post(
        "/api/auth/register",
        json={"email": email, "password": "secret", "name": name, "roleHint": role_hint},
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
async def student_headers(client):
    return await _register(client, "li.wei@example.com", "Li Wei", "student")


@pytest.fixture
async def delegate_headers(client):
    return await _register(client, "camille@example.com", "Camille", "delegate")


# ── Health & metrics ─────────────────────────────────────────


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["store"] == "memory"


async def test_metrics_after_calls(client, student_headers):
    await client.get("/api/messages", headers=student_headers)
    resp = await client.get("/api/metrics")
    data = resp.json()
    assert data["operations"]["list_messages"]["category"] == "query"
    assert data["live"]["hub_subscriptions"] == 0


async def test_request_id_header(client):
    resp = await client.get("/api/health", headers={"X-Request-ID": "req-42"})
    assert resp.headers["x-request-id"] == "req-42"


# ── Auth ─────────────────────────────────────────────────────


class TestAuth:
    async def test_register_returns_token_and_account(self, client):
        resp = await client.post(
            "/api/auth/register",
            json={"email": "a@x.fr", "password": "pw", "name": "Anne", "roleHint": "délégué"},
        )
        data = resp.json()
        assert data["token"].startswith("sess-")
        assert data["account"]["role"] == "delegate"
        assert "password" not in data["account"]

    async def test_duplicate_email(self, client, student_headers):
        resp = await client.post(
            "/api/auth/register",
            json={"email": "li.wei@example.com", "password": "x", "name": "Other"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"

    async def test_login_failures_identical(self, client, student_headers):
        wrong = await client.post("/api/auth/login", json={"email": "li.wei@example.com", "password": "nope"})
        unknown = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    async def test_login_and_me(self, client, student_headers):
        resp = await client.post("/api/auth/login", json={"email": "li.wei@example.com", "password": "secret"})
        token = resp.json()["token"]
        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["name"] == "Li Wei"

    async def test_logout_invalidates_token(self, client, student_headers):
        assert (await client.post("/api/auth/logout", headers=student_headers)).status_code == 200
        assert (await client.get("/api/auth/me", headers=student_headers)).status_code == 401

    async def test_missing_token(self, client):
        resp = await client.get("/api/messages")
        assert resp.status_code == 401
        assert resp.json()["error"] == "auth_error"


# ── Chat ─────────────────────────────────────────────────────


class TestMessages:
    async def test_send_and_list(self, client, student_headers):
        resp = await client.post(
            "/api/messages",
            json={"content": "你好", "isTargetLanguage": True, "phonetic": "nǐ hǎo"},
            headers=student_headers,
        )
        assert resp.status_code == 201

        messages = (await client.get("/api/messages", headers=student_headers)).json()
        assert [m["content"] for m in messages] == ["你好"]
        assert messages[0]["profile"] == {"name": "Li Wei", "role": "student"}
        assert messages[0]["isTargetLanguage"] is True

    async def test_empty_content(self, client, student_headers):
        resp = await client.post("/api/messages", json={"content": "  "}, headers=student_headers)
        assert resp.status_code == 422

    async def test_translated_send_falls_back(self, client, capability, student_headers):
        capability.push(RuntimeError("model down"))
        resp = await client.post("/api/messages/translated", json={"text": "Salut"}, headers=student_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["message"]["content"] == "Salut"
        assert data["translation"]["isPlaceholder"] is True


# ── Announcements & schedule (gated) ─────────────────────────


class TestSharedContent:
    async def test_student_cannot_post(self, client, student_headers):
        resp = await client.post(
            "/api/announcements", json={"title": "t", "body": "b"}, headers=student_headers,
        )
        assert resp.status_code == 403
        assert (await client.get("/api/announcements", headers=student_headers)).json() == []

    async def test_delegate_posts_and_deletes(self, client, delegate_headers):
        posted = await client.post(
            "/api/announcements",
            json={"title": "Examen", "body": "Lundi", "priority": "URGENT"},
            headers=delegate_headers,
        )
        assert posted.status_code == 201
        ann = posted.json()
        assert ann["priority"] == "urgent"

        first = await client.delete(f"/api/announcements/{ann['id']}", headers=delegate_headers)
        second = await client.delete(f"/api/announcements/{ann['id']}", headers=delegate_headers)
        assert first.json() == {"deleted": True}
        assert second.json() == {"deleted": False}

    async def test_illustrated_announcement(self, client, capability, delegate_headers):
        capability.push(image_response("QUJD", "image/png"))
        resp = await client.post(
            "/api/announcements/illustrated",
            json={"title": "Fête", "body": "Nouvel an", "imagePrompt": "lanternes"},
            headers=delegate_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["announcement"]["image"] == "data:image/png;base64,QUJD"

    async def test_schedule_grouped(self, client, delegate_headers):
        for day in ("Friday", "Monday"):
            resp = await client.post(
                "/api/schedule",
                json={"day": day, "time": "09:00 - 11:00", "subject": "Tons", "room": "A1"},
                headers=delegate_headers,
            )
            assert resp.status_code == 201

        grouped = (await client.get("/api/schedule?grouped=true", headers=delegate_headers)).json()
        assert [g["day"] for g in grouped] == ["Monday", "Friday"]


# ── Quiz ─────────────────────────────────────────────────────


class TestQuiz:
    async def test_default_quiz(self, client):
        data = (await client.get("/api/quiz/default")).json()
        assert data["fallback"] is True
        assert data["questions"][0]["correctAnswer"] == "Ni hao"

    async def test_generate(self, client, capability, student_headers):
        capability.push(quiz_json())
        data = (await client.post("/api/quiz/generate", json={"topic": "couleurs"}, headers=student_headers)).json()
        assert data["fallback"] is False
        assert len(data["questions"]) == 5

    async def test_submit_and_status(self, client, student_headers):
        before = (await client.get("/api/quiz/status", headers=student_headers)).json()
        assert before["state"] == "no_attempt"

        await client.post("/api/quiz/submit", json={"score": 3, "total": 5}, headers=student_headers)
        await client.post("/api/quiz/submit", json={"score": 5, "total": 5}, headers=student_headers)

        after = (await client.get("/api/quiz/status", headers=student_headers)).json()
        assert (after["state"], after["score"], after["total"]) == ("has_result", 5, 5)

    async def test_invalid_score(self, client, student_headers):
        resp = await client.post("/api/quiz/submit", json={"score": 7, "total": 5}, headers=student_headers)
        assert resp.status_code == 422


# ── Direct AI endpoints ──────────────────────────────────────


class TestAI:
    async def test_translate(self, client, capability, student_headers):
        capability.push('{"hanzi": "谢谢", "pinyin": "xiè xie"}')
        resp = await client.post("/api/ai/translate", json={"text": "Merci"}, headers=student_headers)
        assert resp.json() == {"hanzi": "谢谢", "pinyin": "xiè xie", "isPlaceholder": False}

    async def test_translate_failure_is_502(self, client, capability, student_headers):
        capability.push("not json")
        resp = await client.post("/api/ai/translate", json={"text": "Merci"}, headers=student_headers)
        assert resp.status_code == 502
        assert resp.json()["detail"] == "translation failed"

    async def test_image_without_result(self, client, capability, student_headers):
        capability.push("no picture")
        resp = await client.post("/api/ai/image", json={"prompt": "un panda"}, headers=student_headers)
        assert resp.json() == {"image": None}


# ── Live queries ─────────────────────────────────────────────


class TestLive:
    async def test_unknown_query(self, client):
        resp = await client.get("/api/live/drop_tables")
        assert resp.status_code == 404

    async def test_mutation_is_not_subscribable(self, client, student_headers):
        resp = await client.get("/api/live/send_message", headers=student_headers)
        assert resp.status_code == 404

    async def test_unknown_parameter(self, client, student_headers):
        resp = await client.get("/api/live/list_schedule?colour=red", headers=student_headers)
        assert resp.status_code == 422

    async def test_chat_requires_session(self, client):
        resp = await client.get("/api/live/list_messages")
        assert resp.status_code == 401

    async def test_announcements_require_session(self, client):
        resp = await client.get("/api/live/list_announcements")
        assert resp.status_code == 401

    async def test_snapshot_stream_follows_mutations(self, hub, delegate):
        sub = await hub.subscribe("list_announcements", delegate)
        events = _snapshot_events(sub)

        first = await events.__anext__()
        assert first["event"] == "snapshot"
        initial = json.loads(first["data"])
        assert initial == {"query": "list_announcements", "version": initial["version"], "result": []}

        await hub.mutate("post_announcement", delegate, title="Examen", body="Lundi", priority="urgent")
        await hub.settle()

        second = json.loads((await events.__anext__())["data"])
        assert second["version"] > initial["version"]
        assert [a["title"] for a in second["result"]] == ["Examen"]
        assert second["result"][0]["priority"] == "urgent"

        await events.aclose()
        assert sub.closed
        assert hub.subscription_count == 0
