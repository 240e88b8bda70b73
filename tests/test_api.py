"""End-to-end HTTP tests: access control, admin mutations and the events they publish."""

import json
from datetime import datetime, timedelta, timezone

from app.models.user import Domain
from app.services.events import EventType

from tests.conftest import login, make_team, make_user


def _published(subscription):
    """Events queued for a subscriber, without the ``connected`` acknowledgement."""
    return [m for m in (json.loads(raw) for raw in subscription.drain()) if m["type"] != "connected"]


class TestAccessControl:
    async def test_admin_routes_need_a_session(self, client):
        resp = await client.get("/api/admin/teams")
        assert resp.status_code == 401

    async def test_admin_routes_reject_participants(self, client, session_factory):
        login(client, await make_user(session_factory, "alice@example.com"))
        resp = await client.post("/api/admin/auto-assign-teams")
        assert resp.status_code == 403

    async def test_broadcast_needs_admin(self, client):
        resp = await client.post("/api/events", json={"type": "event-started"})
        assert resp.status_code == 401

    async def test_no_route_mints_a_session_for_an_arbitrary_user(self, client, admin):
        client.cookies.clear()
        resp = await client.get(f"/mock-login/{admin.id}", follow_redirects=False)
        assert resp.status_code == 404
        assert "access_token" not in resp.cookies
        assert (await client.get("/api/admin/teams")).status_code == 401

    async def test_me(self, client, admin):
        resp = await client.get("/users/me")
        assert resp.status_code == 200
        assert resp.json()["is_admin"] is True

    async def test_team_detail_is_members_only(self, client, session_factory):
        team = await make_team(session_factory, "Secret")
        other = await make_team(session_factory, "Mine")
        member = await make_user(session_factory, "m@example.com", team_id=team.id)
        outsider = await make_user(session_factory, "o@example.com", team_id=other.id)

        login(client, outsider)
        assert (await client.get(f"/api/teams/{team.id}")).status_code == 403

        login(client, member)
        resp = await client.get(f"/api/teams/{team.id}")
        assert resp.status_code == 200
        assert [u["email"] for u in resp.json()["users"]] == ["m@example.com"]


class TestAutoAssignEndpoint:
    async def test_assigns_and_publishes(self, client, admin, session_factory, broadcaster):
        await make_team(session_factory, "Alpha")
        await make_team(session_factory, "Beta")
        for email, domain in [("w@x.io", Domain.WEB), ("a@x.io", Domain.APP),
                              ("w2@x.io", Domain.WEB), ("a2@x.io", Domain.APP)]:
            await make_user(session_factory, email, domain=domain)
        sub = broadcaster.subscribe()

        resp = await client.post("/api/admin/auto-assign-teams")

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["count"] == 4
        [event] = _published(sub)
        assert event["type"] == EventType.TEAM_ASSIGNED.value
        for team in event["data"]["teams"]:
            assert sorted(u["domain"] for u in team["users"]) == ["app", "web"]

        stats = (await client.get("/api/admin/teams-with-users")).json()
        assert [t["domain_counts"] for t in stats] == [{"web": 1, "app": 1}] * 2

    async def test_no_teams_is_a_400_without_event(self, client, admin, session_factory, broadcaster):
        await make_user(session_factory, "w@x.io", domain=Domain.WEB)
        sub = broadcaster.subscribe()

        resp = await client.post("/api/admin/auto-assign-teams")

        assert resp.status_code == 400
        assert _published(sub) == []

    async def test_manual_assign_publishes(self, client, admin, session_factory, broadcaster):
        team = await make_team(session_factory, "Alpha")
        user = await make_user(session_factory, "w@x.io", name="Wendy")
        sub = broadcaster.subscribe()

        resp = await client.post("/api/admin/assign-team", json={"user_id": user.id, "team_id": team.id})

        assert resp.status_code == 200
        [event] = _published(sub)
        assert event["type"] == "team-assigned"
        assert event["data"]["team"]["name"] == "Alpha"
        assert "Wendy" in event["data"]["message"]


class TestDeadlineAndIdeas:
    async def test_deadline_reaches_every_dashboard(self, client, admin, broadcaster):
        a, b = broadcaster.subscribe(), broadcaster.subscribe()

        resp = await client.post("/api/admin/deadline", json={"deadline": "2030-03-01T12:00:00Z"})

        assert resp.status_code == 200
        got_a, got_b = _published(a), _published(b)
        assert got_a == got_b
        assert got_a[0]["type"] == "deadline-updated"
        assert got_a[0]["data"]["deadline"].startswith("2030-03-01T12:00:00")

        public = (await client.get("/api/config")).json()
        assert public["deadline"].startswith("2030-03-01T12:00:00")

    async def test_submit_idea(self, client, session_factory, broadcaster):
        team = await make_team(session_factory, "Builders")
        login(client, await make_user(session_factory, "m@example.com", team_id=team.id))
        sub = broadcaster.subscribe()

        resp = await client.post("/api/teams/submit-idea", json={
            "title": "Campus map",
            "description": "An accessible indoor map of the campus.",
            "link": "https://example.com/pitch",
        })

        assert resp.status_code == 200
        assert resp.json()["team"]["is_submitted"] is True
        [event] = _published(sub)
        assert event["type"] == "idea-submitted"
        assert event["data"]["team"]["idea_title"] == "Campus map"

    async def test_submission_after_deadline_is_rejected(self, client, session_factory, admin):
        past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
        assert (await client.post("/api/admin/deadline", json={"deadline": past})).status_code == 200

        team = await make_team(session_factory, "Late")
        login(client, await make_user(session_factory, "late@example.com", team_id=team.id))
        resp = await client.post("/api/teams/submit-idea", json={
            "title": "Too late",
            "description": "Submitted after the deadline passed.",
        })

        assert resp.status_code == 400
        assert resp.json()["detail"] == "The submission deadline has passed"

    async def test_submission_validation_is_a_400(self, client, session_factory):
        team = await make_team(session_factory, "Builders")
        login(client, await make_user(session_factory, "m@example.com", team_id=team.id))

        resp = await client.post("/api/teams/submit-idea", json={
            "title": "Ok title",
            "description": "Long enough description.",
            "link": "ftp://example.com",
        })

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Link must be a valid HTTP/HTTPS URL"

    async def test_submission_needs_a_team(self, client, session_factory):
        login(client, await make_user(session_factory, "solo@example.com"))
        resp = await client.post("/api/teams/submit-idea", json={
            "title": "Solo idea",
            "description": "Nobody to build it with.",
        })
        assert resp.status_code == 400
        assert resp.json()["detail"] == "You are not assigned to a team"

    async def test_rename_publishes_team_updated(self, client, session_factory, broadcaster):
        team = await make_team(session_factory, "Old name")
        login(client, await make_user(session_factory, "m@example.com", team_id=team.id))
        sub = broadcaster.subscribe()

        resp = await client.put("/api/teams/update-name", json={"name": "New name"})

        assert resp.status_code == 200
        [event] = _published(sub)
        assert event["type"] == "team-updated"
        assert event["data"]["team"]["name"] == "New name"


class TestTracks:
    async def test_crud_and_assignment(self, client, admin, session_factory, broadcaster):
        created = await client.post("/api/admin/tracks", json={"name": " Health ", "description": "  "})
        assert created.status_code == 200
        track = created.json()
        assert track["name"] == "Health"
        assert track["description"] is None

        team = await make_team(session_factory, "Alpha")
        sub = broadcaster.subscribe()
        resp = await client.post("/api/admin/assign-track", json={"team_id": team.id, "track_id": track["id"]})
        assert resp.status_code == 200
        [event] = _published(sub)
        assert event["type"] == "team-updated"
        assert event["data"]["team"]["track"]["name"] == "Health"

        listed = (await client.get("/api/admin/tracks")).json()
        assert [(t["name"], t["team_count"]) for t in listed] == [("Health", 1)]

        updated = await client.put("/api/admin/tracks", json={"id": track["id"], "name": "MedTech"})
        assert updated.json()["name"] == "MedTech"

        assert (await client.delete("/api/admin/tracks", params={"id": track["id"]})).status_code == 200
        assert (await client.get("/api/admin/tracks")).json() == []
        assert (await client.get(f"/api/teams/{team.id}")).json()["track_id"] is None

    async def test_blank_track_name_is_a_400(self, client, admin):
        resp = await client.post("/api/admin/tracks", json={"name": "   "})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Track name is required"

    async def test_delete_without_id(self, client, admin):
        assert (await client.delete("/api/admin/tracks")).status_code == 400

    async def test_assign_unknown_track(self, client, admin, session_factory):
        team = await make_team(session_factory, "Alpha")
        resp = await client.post("/api/admin/assign-track", json={"team_id": team.id, "track_id": 42})
        assert resp.status_code == 404


class TestConfig:
    async def test_public_defaults_without_a_row(self, client):
        resp = await client.get("/api/config")
        assert resp.status_code == 200
        assert resp.json() == {
            "deadline": None,
            "event_started": False,
            "event_ended": False,
            "tracks_enabled": False,
        }

    async def test_starting_the_event_publishes_once(self, client, admin, broadcaster):
        sub = broadcaster.subscribe()

        resp = await client.post("/api/admin/config", json={"event_started": True, "team_size": 4})
        assert resp.status_code == 200
        assert resp.json()["team_size"] == 4
        await client.post("/api/admin/config", json={"tracks_enabled": True})

        assert [e["type"] for e in _published(sub)] == ["event-started"]

    async def test_team_size_below_minimum_is_ignored(self, client, admin):
        resp = await client.post("/api/admin/config", json={"team_size": 1})
        assert resp.json()["team_size"] == 5

    async def test_deadline_change_wins_over_state_changes(self, client, admin, broadcaster):
        sub = broadcaster.subscribe()
        await client.post("/api/admin/config", json={
            "event_ended": True,
            "deadline": "2030-01-01T00:00:00Z",
        })
        assert [e["type"] for e in _published(sub)] == ["deadline-updated"]


class TestAdminReads:
    async def test_create_and_list_teams(self, client, admin):
        created = await client.post("/api/admin/teams", json={"name": "  Rockets "})
        assert created.status_code == 200
        assert created.json()["name"] == "Rockets"
        assert [t["name"] for t in (await client.get("/api/admin/teams")).json()] == ["Rockets"]

    async def test_blank_team_name_is_a_400(self, client, admin):
        resp = await client.post("/api/admin/teams", json={"name": ""})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Team name is required"

    async def test_domains_vocabulary(self, client, admin):
        assert (await client.get("/api/admin/domains")).json() == ["app", "research", "web"]

    async def test_config_is_created_with_defaults(self, client, admin):
        resp = await client.get("/api/admin/config")
        assert resp.status_code == 200
        body = resp.json()
        assert body["team_size"] == 5
        assert body["event_started"] is False
        assert body["deadline"] is None


class TestBroadcastEndpoint:
    async def test_admin_broadcast(self, client, admin, broadcaster):
        sub = broadcaster.subscribe()
        resp = await client.post("/api/events", json={"type": "event-ended", "data": {"message": "Thanks!"}})
        assert resp.json() == {"success": True, "delivered": 1}
        assert _published(sub) == [{"type": "event-ended", "data": {"message": "Thanks!"}}]

    async def test_unknown_type_is_a_400(self, client, admin):
        resp = await client.post("/api/events", json={"type": "party", "data": {}})
        assert resp.status_code == 400
