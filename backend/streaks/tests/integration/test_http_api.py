"""HTTP API tests through Starlette's TestClient."""

import pytest
from starlette.testclient import TestClient

from shared.dal import InMemoryStateRepository
from streaks.logic.clock import FixedClock
from streaks.server.app import create_app
from streaks.server.settings import ServerSettings
from streaks.session.service import StreakService
from streaks.tests.helpers.builders import T0


@pytest.fixture
def client():
    service = StreakService(InMemoryStateRepository(), clock=FixedClock(T0))
    app = create_app(settings=ServerSettings(cors_origins=["http://localhost:3000"]), service=service)
    with TestClient(app) as test_client:
        yield test_client


def _start(client: TestClient) -> str:
    response = client.post("/live-game")
    assert response.status_code == 201
    return response.json()["live_game"]["game_id"]


class TestState:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_initial_state(self, client: TestClient) -> None:
        body = client.get("/state").json()
        assert body["current_month"] == "2025-03"
        assert body["players"]["Jesse"]["streak"] == 0
        assert body["players"]["Flip"]["quota"]["cumback_kid"] == 1
        assert body["stakes"]["Jesse"] == {"next_stake": 0.5, "danger_zone": False}

    def test_record_and_delete_match(self, client: TestClient) -> None:
        response = client.post("/matches", json={"winner": "Jesse", "loser_balls_remaining": 3})
        assert response.status_code == 201
        body = response.json()
        assert body["match"]["amount_won"] == 0.5
        assert body["state"]["players"]["Jesse"]["streak"] == 1
        assert body["state"]["summary"]["Jesse"]["wins"] == 1

        match_id = body["match"]["match_id"]
        deleted = client.delete(f"/matches/{match_id}")
        assert deleted.status_code == 200
        assert deleted.json()["players"]["Jesse"]["streak"] == 0
        assert deleted.json()["matches"] == []

    def test_record_with_power_ups(self, client: TestClient) -> None:
        response = client.post(
            "/matches",
            json={
                "winner": "Flip",
                "loser_balls_remaining": 4,
                "own_balls": {"Flip": 3, "Jesse": 4},
                "power_ups_used": {"Flip": {"toep": True}, "Jesse": {"ballenbak": True}},
            },
        )
        assert response.status_code == 201
        match = response.json()["match"]
        assert match["streak_after"]["winner"] == 2
        assert match["ballenbak_penalty"] == 8.0

    def test_delete_unknown_match(self, client: TestClient) -> None:
        response = client.delete("/matches/missing")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_reset(self, client: TestClient) -> None:
        client.post("/matches", json={"winner": "Jesse", "loser_balls_remaining": 3})
        body = client.post("/reset").json()
        assert body["matches"] == []
        assert body["players"]["Jesse"]["monthly_total"] == 0.0


class TestValidation:
    @pytest.mark.parametrize(
        "payload",
        [
            {"winner": "Jesse", "loser_balls_remaining": 8},
            {"winner": "Bob", "loser_balls_remaining": 3},
            {"winner": "Jesse"},
            {"winner": "Jesse", "loser_balls_remaining": 3, "stake_multiplier": 3},
            {"winner": "Jesse", "loser_balls_remaining": 3, "power_ups_used": {"Jesse": {"warp": True}}},
        ],
    )
    def test_invalid_match_payload(self, client: TestClient, payload: dict) -> None:
        response = client.post("/matches", json=payload)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    def test_malformed_json(self, client: TestClient) -> None:
        response = client.post("/matches", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_body_too_large(self, client: TestClient) -> None:
        response = client.post("/matches", content=b"x" * 5000)
        assert response.status_code == 400
        assert "too large" in response.json()["error"]

    def test_quota_exceeded_is_conflict(self, client: TestClient) -> None:
        payload = {"winner": "Jesse", "loser_balls_remaining": 3, "power_ups_used": {"Jesse": {"pull_the_plug": True}}}
        assert client.post("/matches", json=payload).status_code == 201
        response = client.post("/matches", json=payload)
        assert response.status_code == 409
        assert response.json()["code"] == "quota_exceeded"

    def test_precondition_is_conflict(self, client: TestClient) -> None:
        payload = {
            "winner": "Jesse",
            "loser_balls_remaining": 3,
            "own_balls": {"Jesse": 1},
            "power_ups_used": {"Jesse": {"toep": True}},
        }
        response = client.post("/matches", json=payload)
        assert response.status_code == 409
        assert response.json()["code"] == "precondition_failed"


class TestLiveGame:
    def test_no_active_game(self, client: TestClient) -> None:
        assert client.get("/live-game").json() == {"live_game": None}

    def test_toep_and_finish(self, client: TestClient) -> None:
        game_id = _start(client)
        assert client.post(f"/live-game/{game_id}/balls", json={"player": "Flip", "count": 2}).status_code == 200
        escalated = client.post(f"/live-game/{game_id}/escalate", json={"player": "Jesse"}).json()["live_game"]
        assert escalated["escalation_level"] == 1
        assert escalated["response"] == "pending"

        again = client.post(f"/live-game/{game_id}/escalate", json={"player": "Jesse"})
        assert again.status_code == 409
        assert again.json()["code"] == "illegal_transition"

        client.post(f"/live-game/{game_id}/respond", json={"response": "accepted"})
        body = client.post(f"/live-game/{game_id}/winner", json={"player": "Jesse"}).json()
        assert body["live_game"]["status"] == "finished"
        assert body["match"]["stake_multiplier"] == 2
        assert body["match"]["loser_balls_remaining"] == 2
        assert body["state"]["players"]["Jesse"]["streak"] == 2

    def test_reject_records_initiator_win(self, client: TestClient) -> None:
        game_id = _start(client)
        client.post(f"/live-game/{game_id}/escalate", json={"player": "Flip"})
        body = client.post(f"/live-game/{game_id}/respond", json={"response": "rejected"}).json()
        assert body["live_game"]["status"] == "finished"
        assert body["live_game"]["result"]["winner"] == "Flip"
        assert body["match"]["winner"] == "Flip"
        assert body["match"]["stake_multiplier"] == 1
        assert body["state"]["players"]["Flip"]["streak"] == 1
        assert len(client.get("/state").json()["matches"]) == 1

    def test_reject_without_recording_then_post_bundle(self, client: TestClient) -> None:
        game_id = _start(client)
        client.post(f"/live-game/{game_id}/escalate", json={"player": "Flip"})
        body = client.post(f"/live-game/{game_id}/respond", json={"response": "rejected", "record": False}).json()
        assert "match" not in body
        assert client.get("/state").json()["matches"] == []

        response = client.post("/matches", json=body["live_game"]["result"])
        assert response.status_code == 201
        assert response.json()["match"]["winner"] == "Flip"

    def test_rejected_finish_with_failing_power_up_keeps_game_active(self, client: TestClient) -> None:
        game_id = _start(client)
        client.post(f"/live-game/{game_id}/balls", json={"player": "Flip", "count": 1})
        client.post(f"/live-game/{game_id}/power-ups", json={"player": "Flip", "power_ups": {"toep": True}})
        client.post(f"/live-game/{game_id}/escalate", json={"player": "Flip"})

        response = client.post(f"/live-game/{game_id}/respond", json={"response": "rejected"})
        assert response.status_code == 409
        assert response.json()["code"] == "precondition_failed"
        game = client.get("/live-game").json()["live_game"]
        assert game["status"] == "active"
        assert game["response"] == "pending"
        assert client.get("/state").json()["matches"] == []

    def test_declare_without_recording(self, client: TestClient) -> None:
        game_id = _start(client)
        client.post(f"/live-game/{game_id}/power-ups", json={"player": "Jesse", "power_ups": {"speedpot": True}})
        body = client.post(f"/live-game/{game_id}/winner", json={"player": "Jesse", "record": False}).json()
        assert body["match_input"]["winner"] == "Jesse"
        assert body["match_input"]["power_ups_used"]["Jesse"]["speedpot"] is True
        assert body["match_input"]["stake_multiplier"] == 1
        assert client.get("/state").json()["matches"] == []

    def test_stale_game(self, client: TestClient) -> None:
        old_id = _start(client)
        _start(client)
        response = client.post(f"/live-game/{old_id}/balls", json={"player": "Jesse", "count": 3})
        assert response.status_code == 409
        assert response.json()["code"] == "stale_game"

    def test_unknown_game(self, client: TestClient) -> None:
        response = client.post("/live-game/live-missing/escalate", json={"player": "Jesse"})
        assert response.status_code == 404

    def test_invalid_response_value(self, client: TestClient) -> None:
        game_id = _start(client)
        response = client.post(f"/live-game/{game_id}/respond", json={"response": "pending"})
        assert response.status_code == 400

    def test_ball_count_out_of_range(self, client: TestClient) -> None:
        game_id = _start(client)
        response = client.post(f"/live-game/{game_id}/balls", json={"player": "Jesse", "count": 9})
        assert response.status_code == 400


class TestOwnedDbShutdown:
    def test_shutdown_closes_owned_db(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("STREAKS_DATABASE_PATH", str(tmp_path / "streaks.db"))
        app = create_app(settings=ServerSettings())

        with TestClient(app) as test_client:
            db = app.state.service._repository._db
            assert db.is_connected
            assert test_client.post("/matches", json={"winner": "Flip", "loser_balls_remaining": 0}).status_code == 201

        assert not db.is_connected
