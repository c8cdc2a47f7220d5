"""HTTP-level tests: routing, identity header, request validation and the
error-kind to status-code mapping."""
import uuid

import httpx
import pytest
import pytest_asyncio

from duomatch.config import get_settings
from duomatch.main import create_app


@pytest_asyncio.fixture
async def client(services):
    app = create_app()
    app.state.services = services
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def as_user(user_id):
    return {"X-User-Id": str(user_id)}


async def _pair(client, inviter, invitee):
    sent = await client.post(
        "/api/v1/duos/invites", json={"to_user_id": str(invitee)}, headers=as_user(inviter)
    )
    assert sent.status_code == 201
    accepted = await client.post(
        f"/api/v1/duos/invites/{sent.json()['id']}/accept", headers=as_user(invitee)
    )
    assert accepted.status_code == 201
    return accepted.json()


class TestHealth:

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestDuoEndpoints:

    @pytest.mark.asyncio
    async def test_invite_accept_flow(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")

        duo = await _pair(client, alex, blake)

        assert {m["name"] for m in duo["members"]} == {"Alex", "Blake"}
        me = await client.get("/api/v1/duos/me", headers=as_user(alex))
        assert me.json()["id"] == duo["id"]

    @pytest.mark.asyncio
    async def test_identity_header_required(self, client, make_user):
        blake = await make_user("Blake")
        response = await client.post(
            "/api/v1/duos/invites", json={"to_user_id": str(blake)}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_fields_rejected(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        response = await client.post(
            "/api/v1/duos/invites",
            json={"to_user_id": str(blake), "force": True},
            headers=as_user(alex),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_self_invite_is_400(self, client, make_user):
        alex = await make_user("Alex")
        response = await client.post(
            "/api/v1/duos/invites", json={"to_user_id": str(alex)}, headers=as_user(alex)
        )
        assert response.status_code == 400
        assert response.json()["error"] == "SelfInvite"

    @pytest.mark.asyncio
    async def test_already_paired_is_409(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        casey = await make_user("Casey")
        await _pair(client, alex, blake)

        response = await client.post(
            "/api/v1/duos/invites", json={"to_user_id": str(casey)}, headers=as_user(alex)
        )
        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyPaired"

    @pytest.mark.asyncio
    async def test_wrong_actor_is_403(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        sent = await client.post(
            "/api/v1/duos/invites", json={"to_user_id": str(blake)}, headers=as_user(alex)
        )
        response = await client.post(
            f"/api/v1/duos/invites/{sent.json()['id']}/accept", headers=as_user(alex)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "InvalidActor"

    @pytest.mark.asyncio
    async def test_missing_duo_is_404(self, client, make_user):
        alex = await make_user("Alex")
        response = await client.get(f"/api/v1/duos/{uuid.uuid4()}", headers=as_user(alex))
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    @pytest.mark.asyncio
    async def test_leave_and_rename(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        duo = await _pair(client, alex, blake)

        renamed = await client.patch(
            f"/api/v1/duos/{duo['id']}/bio", json={"bio": "Board game people"},
            headers=as_user(blake),
        )
        assert renamed.json()["bio"] == "Board game people"

        left = await client.post(f"/api/v1/duos/{duo['id']}/leave", headers=as_user(alex))
        assert left.status_code == 204
        again = await client.post(f"/api/v1/duos/{duo['id']}/leave", headers=as_user(alex))
        assert again.status_code == 409
        assert again.json()["error"] == "NotActive"

    @pytest.mark.asyncio
    async def test_bio_limit_follows_settings(self, client, make_user, monkeypatch):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        duo = await _pair(client, alex, blake)
        monkeypatch.setattr(get_settings(), "DUO_BIO_MAX_LENGTH", 12)

        too_long = await client.patch(
            f"/api/v1/duos/{duo['id']}/bio", json={"bio": "Board game people"},
            headers=as_user(alex),
        )
        assert too_long.status_code == 422
        assert too_long.json()["error"] == "ValidationError"

        fits = await client.patch(
            f"/api/v1/duos/{duo['id']}/bio", json={"bio": "Board gamers"},
            headers=as_user(alex),
        )
        assert fits.status_code == 200


class TestMatchingFlow:

    @pytest.mark.asyncio
    async def test_discover_swipe_match_and_chat(self, client, make_user):
        alex, blake, casey, drew = [
            await make_user(name) for name in ("Alex", "Blake", "Casey", "Drew")
        ]
        ours = await _pair(client, alex, blake)
        theirs = await _pair(client, casey, drew)

        feed = await client.get(
            f"/api/v1/discovery/{ours['id']}/candidates", headers=as_user(alex)
        )
        assert [d["id"] for d in feed.json()] == [theirs["id"]]

        first = await client.post(
            "/api/v1/swipes",
            json={"swiper_duo_id": ours["id"], "swiped_duo_id": theirs["id"], "direction": "like"},
            headers=as_user(alex),
        )
        assert first.status_code == 201
        assert first.json()["is_match"] is False

        second = await client.post(
            "/api/v1/swipes",
            json={
                "swiper_duo_id": theirs["id"],
                "swiped_duo_id": ours["id"],
                "direction": "superLike",
            },
            headers=as_user(drew),
        )
        assert second.json()["is_match"] is True
        match_id = second.json()["match"]["id"]

        feed = await client.get(
            f"/api/v1/discovery/{ours['id']}/candidates", headers=as_user(blake)
        )
        assert feed.json() == []

        sent = await client.post(
            f"/api/v1/matches/{match_id}/messages",
            json={"content": "Mini golf Saturday?", "message_type": "dateSuggestion"},
            headers=as_user(casey),
        )
        assert sent.status_code == 201

        listed = await client.get(f"/api/v1/matches/duo/{ours['id']}", headers=as_user(alex))
        assert listed.json()[0]["last_message"]["content"] == "Mini golf Saturday?"
        assert listed.json()[0]["last_message"]["sender_name"] == "Casey"

        messages = await client.get(f"/api/v1/matches/{match_id}/messages", headers=as_user(blake))
        assert [m["content"] for m in messages.json()] == ["Mini golf Saturday?"]

        read = await client.post(
            f"/api/v1/matches/{match_id}/messages/read",
            json={"message_ids": [sent.json()["id"]]},
            headers=as_user(blake),
        )
        assert read.json() == {"updated": 1}

        blocked = await client.post(f"/api/v1/matches/{match_id}/block", headers=as_user(alex))
        assert blocked.status_code == 204

        rejected = await client.post(
            f"/api/v1/matches/{match_id}/messages",
            json={"content": "hello?"},
            headers=as_user(drew),
        )
        assert rejected.status_code == 409
        assert rejected.json()["error"] == "NotActive"

    @pytest.mark.asyncio
    async def test_self_swipe_is_400(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        ours = await _pair(client, alex, blake)

        response = await client.post(
            "/api/v1/swipes",
            json={"swiper_duo_id": ours["id"], "swiped_duo_id": ours["id"], "direction": "like"},
            headers=as_user(alex),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "SelfSwipe"

    @pytest.mark.asyncio
    async def test_unknown_direction_rejected(self, client, make_user):
        alex = await make_user("Alex")
        blake = await make_user("Blake")
        ours = await _pair(client, alex, blake)

        response = await client.post(
            "/api/v1/swipes",
            json={"swiper_duo_id": ours["id"], "swiped_duo_id": str(uuid.uuid4()),
                  "direction": "maybe"},
            headers=as_user(alex),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_browsing_another_duos_feed_is_403(self, client, make_user):
        alex, blake, casey, drew = [
            await make_user(name) for name in ("Alex", "Blake", "Casey", "Drew")
        ]
        await _pair(client, alex, blake)
        theirs = await _pair(client, casey, drew)

        response = await client.get(
            f"/api/v1/discovery/{theirs['id']}/candidates", headers=as_user(alex)
        )
        assert response.status_code == 403
