import httpx
import pytest

from helpdesk.core import ServiceUnavailableException
from helpdesk.main import app
from helpdesk.tickets.interfaces import get_ticket_service

from conftest import auth


def new_ticket(**overrides):
    body = {"title": "Wi-Fi keeps dropping", "description": "Every few minutes", "priority": "high"}
    body.update(overrides)
    return body


async def create(client, actor, key="key-1", **overrides):
    return await client.post(
        "/tickets",
        json=new_ticket(**overrides),
        headers=auth(actor, **{"Idempotency-Key": key}),
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_requests_without_identity_are_401(client):
    assert (await client.get("/tickets")).status_code == 401
    assert (await client.get("/tickets", headers={"X-User-Id": "999"})).status_code == 401
    assert (await client.get("/tickets", headers={"X-User-Id": "abc"})).status_code == 401


@pytest.mark.asyncio
async def test_create_ticket(client, alice):
    response = await create(client, alice)

    assert response.status_code == 201
    body = response.json()
    assert body["version"] == 1
    assert body["status"] == "open"
    assert body["created_by"] == alice.id
    assert body["sla_breached"] is False
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_create_requires_idempotency_key(client, alice):
    response = await client.post("/tickets", json=new_ticket(), headers=auth(alice))

    assert response.status_code == 400
    assert "Idempotency-Key" in response.json()["detail"]


@pytest.mark.asyncio
async def test_retried_create_replays(client, alice):
    first = await create(client, alice, key="retry-me")
    second = await create(client, alice, key="retry-me")

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["message"] == "Request already processed"
    assert second.json()["resource_id"] == first.json()["id"]

    listing = await client.get("/tickets", headers=auth(alice))
    assert listing.json()["count"] == 1


@pytest.mark.asyncio
async def test_rejected_create_does_not_burn_the_key(client, alice, agent):
    forbidden = await create(client, alice, key="k", assigned_to=agent.id)
    assert forbidden.status_code == 403

    retried = await create(client, alice, key="k")
    assert retried.status_code == 201


@pytest.mark.asyncio
async def test_invalid_body_is_400(client, alice):
    response = await create(client, alice, priority="whenever")
    assert response.status_code == 400
    assert response.json()["detail"] == "Validation failed"


@pytest.mark.asyncio
async def test_get_ticket_detail(client, alice, agent):
    ticket = (await create(client, alice)).json()
    await client.post(
        f"/tickets/{ticket['id']}/comments",
        json={"content": "Looking into it"},
        headers=auth(agent),
    )

    response = await client.get(f"/tickets/{ticket['id']}", headers=auth(alice))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == ticket["id"]
    assert [c["content"] for c in body["comments"]] == ["Looking into it"]
    assert [h["action"] for h in body["history"]] == ["created", "commented"]


@pytest.mark.asyncio
async def test_not_found_and_forbidden(client, alice, bob):
    ticket = (await create(client, alice)).json()

    assert (await client.get("/tickets/9999", headers=auth(alice))).status_code == 404
    assert (await client.get(f"/tickets/{ticket['id']}", headers=auth(bob))).status_code == 403


@pytest.mark.asyncio
async def test_optimistic_update_flow(client, alice, agent):
    ticket = (await create(client, alice)).json()
    url = f"/tickets/{ticket['id']}"

    first = await client.patch(url, json={"version": 1, "status": "in_progress"}, headers=auth(agent))
    stale = await client.patch(url, json={"version": 1, "status": "resolved"}, headers=auth(agent))

    assert first.status_code == 200
    assert first.json()["version"] == 2
    assert stale.status_code == 409
    assert stale.json()["details"]["current_version"] == 2

    current = await client.get(url, headers=auth(agent))
    assert current.json()["status"] == "in_progress"


@pytest.mark.asyncio
async def test_update_missing_ticket_is_404_not_409(client, agent):
    response = await client.patch("/tickets/777", json={"version": 3, "title": "x"}, headers=auth(agent))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_without_fields_is_400(client, alice):
    ticket = (await create(client, alice)).json()

    response = await client.patch(
        f"/tickets/{ticket['id']}", json={"version": 1, "sla_breached": True}, headers=auth(alice)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_owner_locked_out_after_triage(client, alice, agent):
    ticket = (await create(client, alice)).json()
    url = f"/tickets/{ticket['id']}"
    await client.patch(url, json={"version": 1, "status": "in_progress"}, headers=auth(agent))

    response = await client.patch(url, json={"version": 2, "title": "please"}, headers=auth(alice))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cross_ticket_reply_is_400(client, alice):
    one = (await create(client, alice, key="a")).json()
    two = (await create(client, alice, key="b")).json()
    comment = (await client.post(
        f"/tickets/{one['id']}/comments", json={"content": "hi"}, headers=auth(alice)
    )).json()

    response = await client.post(
        f"/tickets/{two['id']}/comments",
        json={"content": "reply", "parent_comment_id": comment["id"]},
        headers=auth(alice),
    )
    assert response.status_code == 400

    thread = await client.get(f"/tickets/{two['id']}/comments", headers=auth(alice))
    assert thread.json() == []


@pytest.mark.asyncio
async def test_sla_breached_listing(client, alice, agent, clock):
    late = (await create(client, alice, key="a", priority="urgent")).json()
    await create(client, alice, key="b", priority="low")
    clock.advance(hours=5)

    response = await client.get("/tickets/sla-breached", headers=auth(agent))

    assert [t["id"] for t in response.json()["tickets"]] == [late["id"]]


@pytest.mark.asyncio
async def test_list_filters_and_search(client, alice, agent):
    await create(client, alice, key="a", title="Printer jam", priority="low")
    await create(client, alice, key="b", title="VPN down", priority="urgent")

    by_priority = await client.get("/tickets", params={"priority": "urgent"}, headers=auth(agent))
    assert [t["title"] for t in by_priority.json()["tickets"]] == ["VPN down"]

    by_search = await client.get("/tickets", params={"search": "printer"}, headers=auth(agent))
    assert [t["title"] for t in by_search.json()["tickets"]] == ["Printer jam"]


@pytest.mark.asyncio
async def test_history_endpoint(client, alice, agent):
    ticket = (await create(client, alice, priority="low")).json()
    await client.patch(
        f"/tickets/{ticket['id']}", json={"version": 1, "priority": "urgent"}, headers=auth(agent)
    )

    history = (await client.get(f"/tickets/{ticket['id']}/history", headers=auth(alice))).json()

    assert history[-1]["action"] == "updated_priority"
    assert history[-1]["old_value"] == "low"
    assert history[-1]["new_value"] == "urgent"


@pytest.mark.asyncio
async def test_register_and_me(client):
    response = await client.post(
        "/users",
        json={"username": "frank", "email": "frank@example.com", "password": "long enough"},
        headers={"Idempotency-Key": "signup-1"},
    )
    assert response.status_code == 201
    user = response.json()
    assert "password" not in user and "password_hash" not in user

    replay = await client.post(
        "/users",
        json={"username": "frank", "email": "frank@example.com", "password": "long enough"},
        headers={"Idempotency-Key": "signup-1"},
    )
    assert replay.status_code == 200
    assert replay.json()["resource_id"] == user["id"]

    me = await client.get("/users/me", headers={"X-User-Id": str(user["id"])})
    assert me.json()["username"] == "frank"


@pytest.mark.asyncio
async def test_duplicate_registration_is_409(client, alice):
    response = await client.post(
        "/users",
        json={"username": "alice", "email": "new@example.com", "password": "long enough"},
        headers={"Idempotency-Key": "signup-2"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_user_admin_endpoints(client, admin, agent, alice):
    assert (await client.get("/users", headers=auth(agent))).status_code == 403
    assert (await client.get("/users", headers=auth(admin))).json()["count"] == 3

    assert (await client.get(f"/users/{alice.id}", headers=auth(agent))).status_code == 200

    promoted = await client.patch(f"/users/{alice.id}/role", json={"role": "agent"}, headers=auth(admin))
    assert promoted.json()["role"] == "agent"

    self_demote = await client.patch(f"/users/{admin.id}/role", json={"role": "user"}, headers=auth(admin))
    assert self_demote.status_code == 400


@pytest.mark.asyncio
async def test_store_outage_is_503_with_retry_after(client, agent):
    class UnavailableService:
        async def list_tickets(self, *args, **kwargs):
            raise ServiceUnavailableException(retry_after_seconds=2)

    app.dependency_overrides[get_ticket_service] = lambda: UnavailableService()

    response = await client.get("/tickets", headers=auth(agent))

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "2"


@pytest.mark.asyncio
async def test_unexpected_error_is_generic_500(client, agent):
    class BrokenService:
        async def list_tickets(self, *args, **kwargs):
            raise RuntimeError("db password is hunter2")

    app.dependency_overrides[get_ticket_service] = lambda: BrokenService()
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as raw:
        response = await raw.get("/tickets", headers=auth(agent))

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"
    assert "hunter2" not in response.text


@pytest.mark.asyncio
async def test_profile_update_endpoint(client, alice, bob):
    taken = await client.patch("/users/me", json={"email": "bob@example.com"}, headers=auth(alice))
    assert taken.status_code == 409

    empty = await client.patch("/users/me", json={}, headers=auth(alice))
    assert empty.status_code == 400

    renamed = await client.patch("/users/me", json={"username": "alice_w"}, headers=auth(alice))
    assert renamed.status_code == 200
    assert renamed.json()["username"] == "alice_w"


@pytest.mark.asyncio
async def test_password_change_endpoint(client):
    user = (await client.post(
        "/users",
        json={"username": "gina", "email": "gina@example.com", "password": "long enough"},
        headers={"Idempotency-Key": "signup-3"},
    )).json()
    headers = {"X-User-Id": str(user["id"])}

    wrong = await client.put(
        "/users/me/password",
        json={"current_password": "not it", "new_password": "even longer"},
        headers=headers,
    )
    assert wrong.status_code == 401

    ok = await client.put(
        "/users/me/password",
        json={"current_password": "long enough", "new_password": "even longer"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert ok.json()["message"] == "Password changed successfully"
