from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from liga import db
from liga.models import AuditLog, Match, PayoutSettings, Prediction, Wallet


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


class TestAdminSettle:
    def test_only_post_is_allowed(self, client):
        response = client.get("/api/admin_settle")

        assert response.status_code == 405
        assert response.get_json() == {"error": "method_not_allowed"}

    def test_missing_match_id(self, client):
        response = client.post("/api/admin_settle", json={})

        assert response.status_code == 400
        assert response.get_json() == {"error": "missing_match_id"}

    @pytest.mark.parametrize("match_id", [12345, "abc"])
    def test_unknown_match_has_no_result(self, client, league, match_id):
        response = client.post("/api/admin_settle", json={"match_id": match_id})

        assert response.status_code == 400
        assert response.get_json() == {"error": "match_without_result"}

    def test_match_without_result(self, client, make_match):
        match = make_match("Alpha", "Bravo")

        response = client.post("/api/admin_settle", json={"match_id": match.id})

        assert response.status_code == 400
        assert response.get_json() == {"error": "match_without_result"}

    def test_settles_pool(self, client, make_user, make_match, make_prediction):
        alice = make_user("alice")
        bob = make_user("bob")
        match = make_match("Alpha", "Bravo", score=(2, 1))
        make_prediction(alice, match, "home", stake=100)
        make_prediction(bob, match, "away", stake=50)

        response = client.post(
            "/api/admin_settle", json={"match_id": match.id, "actor_user_id": bob.id}
        )

        assert response.status_code == 200
        assert response.get_json() == {"ok": True, "settled": 2, "failed": []}
        assert db.session.get(Wallet, alice.id).balance == 135.0
        assert AuditLog.query.filter_by(action="settle_match").one().actor_user_id == bob.id

        again = client.post("/api/admin_settle", json={"match_id": match.id})
        assert again.get_json()["settled"] == 0

    def test_audit_failure_does_not_fail_settlement(
        self, client, monkeypatch, make_user, make_match, make_prediction
    ):
        alice = make_user("alice")
        match = make_match("Alpha", "Bravo", score=(2, 1))
        prediction = make_prediction(alice, match, "home", stake=40)

        def broken_log_action(*args, **kwargs):
            raise SQLAlchemyError("audit table unavailable")

        monkeypatch.setattr(AuditLog, "log_action", staticmethod(broken_log_action))

        response = client.post("/api/admin_settle", json={"match_id": match.id})

        assert response.status_code == 200
        assert response.get_json() == {"ok": True, "settled": 1, "failed": []}
        assert db.session.get(Prediction, prediction.id).settled is True
        assert db.session.get(Wallet, alice.id).balance == 36.0


class TestPredictions:
    @pytest.fixture
    def alice(self, make_user):
        return make_user("alice")

    @pytest.fixture
    def match(self, make_match):
        return make_match("Alpha", "Bravo")

    def post(self, client, **body):
        return client.post("/api/predictions", json=body)

    def test_missing_fields(self, client, alice, match):
        response = self.post(client, user_id=alice.id, match_id=match.id)

        assert response.status_code == 400
        assert response.get_json() == {"error": "missing_fields"}

    def test_unknown_outcome(self, client, alice, match):
        response = self.post(
            client, user_id=alice.id, match_id=match.id, predicted_outcome="local"
        )

        assert response.get_json() == {"error": "invalid_outcome"}

    @pytest.mark.parametrize("amount", [-5, "abc", "NaN"])
    def test_invalid_bet_amount(self, client, alice, match, amount):
        response = self.post(
            client,
            user_id=alice.id,
            match_id=match.id,
            predicted_outcome="home",
            bet_amount=amount,
        )

        assert response.status_code == 400
        assert response.get_json() == {"error": "invalid_bet_amount"}

    def test_bet_over_max(self, client, alice, match):
        response = self.post(
            client,
            user_id=alice.id,
            match_id=match.id,
            predicted_outcome="home",
            bet_amount=10001,
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "bet_over_max"

    def test_configured_max_bet(self, client, alice, match):
        db.session.add(PayoutSettings(payout_mode="pool", max_stake=50, is_active=True))
        db.session.commit()

        response = self.post(
            client,
            user_id=alice.id,
            match_id=match.id,
            predicted_outcome="home",
            bet_amount=51,
        )

        assert response.get_json()["error"] == "bet_over_max"

    def test_unknown_match(self, client, alice, league):
        response = self.post(
            client, user_id=alice.id, match_id=999, predicted_outcome="home"
        )

        assert response.status_code == 404
        assert response.get_json() == {"error": "match_not_found"}

    def test_cutoff_passed(self, client, alice, make_match):
        soon = make_match(
            "Charlie",
            "Delta",
            kickoff=datetime.now(timezone.utc) + timedelta(minutes=5),
        )

        response = self.post(
            client, user_id=alice.id, match_id=soon.id, predicted_outcome="draw"
        )

        assert response.status_code == 403
        assert response.get_json()["error"] == "cutoff_passed"

    def test_upsert_keeps_one_prediction(self, client, alice, match):
        first = self.post(
            client,
            user_id=alice.id,
            match_id=match.id,
            predicted_outcome="home",
            predicted_score_home=2,
            predicted_score_away=0,
            bet_amount=20,
        )
        assert first.status_code == 200
        body = first.get_json()
        assert body["bet_amount"] == 20
        assert body["currency"] == "ARS"
        assert body["predicted_score_home"] == 2
        assert body["settled"] is False

        second = self.post(
            client,
            user_id=alice.id,
            match_id=match.id,
            predicted_outcome="away",
            currency="USD",
        )

        assert second.get_json()["id"] == body["id"]
        assert second.get_json()["bet_amount"] == 0
        assert second.get_json()["currency"] == "USD"
        assert Prediction.query.count() == 1

    def test_settled_prediction_cannot_change(self, client, alice, match, make_prediction):
        prediction = make_prediction(alice, match, "home")
        prediction.settled = True
        db.session.commit()

        response = self.post(
            client, user_id=alice.id, match_id=match.id, predicted_outcome="away"
        )

        assert response.status_code == 409

    def test_invalid_score(self, client, alice, match):
        response = self.post(
            client,
            user_id=alice.id,
            match_id=match.id,
            predicted_outcome="home",
            predicted_score_home=-1,
        )

        assert response.get_json() == {"error": "invalid_score"}

    def test_list_requires_user_id(self, client):
        response = client.get("/api/predictions")

        assert response.status_code == 400
        assert response.get_json() == {"error": "missing_user_id"}

    def test_list_newest_first(self, client, alice, match, make_match):
        later = make_match("Charlie", "Delta")
        self.post(client, user_id=alice.id, match_id=match.id, predicted_outcome="home")
        self.post(client, user_id=alice.id, match_id=later.id, predicted_outcome="draw")

        response = client.get(f"/api/predictions?user_id={alice.id}")

        assert [p["match_id"] for p in response.get_json()] == [later.id, match.id]

    def test_other_methods(self, client):
        response = client.put("/api/predictions", json={})

        assert response.status_code == 405


class TestStandings:
    def test_unknown_zone(self, client, app):
        response = client.get("/api/zones/999/standings")

        assert response.status_code == 404
        assert response.get_json() == {"error": "zone_not_found"}

    def test_recompute_then_read(self, admin_client, league, make_match):
        make_match("Bravo", "Alpha", score=(3, 0))

        response = admin_client.post(f"/api/admin/zones/{league.zone.id}/standings/recompute")
        assert response.status_code == 200

        table = admin_client.get(f"/api/zones/{league.zone.id}/standings").get_json()
        assert table["zone"]["name"] == "Zona A"
        assert table["standings"][0]["team_name"] == "Bravo"
        assert table["standings"][0]["points"] == 3
        assert table["standings"][-1]["team_name"] == "Alpha"

    def test_manual_order_refreshes_cached_table(self, admin_client, league, make_match):
        make_match("Bravo", "Alpha", score=(3, 0))
        zone_id = league.zone.id
        admin_client.post(f"/api/admin/zones/{zone_id}/standings/recompute")
        admin_client.get(f"/api/zones/{zone_id}/standings")

        response = admin_client.put(
            f"/api/admin/zones/{zone_id}/standings/order",
            json={
                "orders": [
                    {"team_id": league.teams[name].id, "position": position}
                    for position, name in enumerate(
                        ["Delta", "Alpha", "Charlie", "Bravo"], start=1
                    )
                ]
            },
        )
        assert response.status_code == 200

        table = admin_client.get(f"/api/zones/{zone_id}/standings").get_json()
        assert [row["team_name"] for row in table["standings"]] == [
            "Delta",
            "Alpha",
            "Charlie",
            "Bravo",
        ]
        assert table["standings"][0]["manual_position"] == 1

    def test_single_manual_position_ranks_after_unordered_teams(
        self, admin_client, league, make_match
    ):
        make_match("Bravo", "Alpha", score=(3, 0))
        zone_id = league.zone.id
        admin_client.post(f"/api/admin/zones/{zone_id}/standings/recompute")

        admin_client.put(
            f"/api/admin/zones/{zone_id}/standings/order",
            json={"orders": [{"team_id": league.teams["Bravo"].id, "position": 1}]},
        )

        table = admin_client.get(f"/api/zones/{zone_id}/standings").get_json()
        assert table["standings"][-1]["team_name"] == "Bravo"
        assert table["standings"][-1]["manual_position"] == 1

    def test_order_rejects_team_outside_zone(self, admin_client, league):
        response = admin_client.put(
            f"/api/admin/zones/{league.zone.id}/standings/order",
            json={"orders": [{"team_id": 9999, "position": 1}]},
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "team_not_in_zone"

    def test_record_result_recomputes_zone(self, admin_client, league, make_match):
        match = make_match("Charlie", "Delta")

        response = admin_client.post(
            f"/api/admin/matches/{match.id}/result",
            json={"home_score": 1, "away_score": 1},
        )

        assert response.status_code == 200
        assert db.session.get(Match, match.id).is_played is True
        table = admin_client.get(f"/api/zones/{league.zone.id}/standings").get_json()
        points = {row["team_name"]: row["points"] for row in table["standings"]}
        assert points == {"Alpha": 0, "Bravo": 0, "Charlie": 1, "Delta": 1}

        cleared = admin_client.post(f"/api/admin/matches/{match.id}/result", json={"clear": True})
        assert cleared.status_code == 200
        assert db.session.get(Match, match.id).home_score is None

    def test_record_result_rejects_bad_scores(self, admin_client, make_match):
        match = make_match("Charlie", "Delta")

        response = admin_client.post(
            f"/api/admin/matches/{match.id}/result",
            json={"home_score": -1, "away_score": 2},
        )

        assert response.status_code == 400
        assert response.get_json() == {"error": "invalid_score"}


def test_leaderboard_ranks_by_points(
    client, points_mode, make_user, make_match, make_prediction
):
    alice = make_user("alice")
    bob = make_user("bob")
    match = make_match("Alpha", "Bravo", score=(2, 1))
    make_prediction(alice, match, "home", home=2, away=1)
    make_prediction(bob, match, "away")

    client.post("/api/admin_settle", json={"match_id": match.id})
    board = client.get("/api/prode/leaderboard").get_json()["leaderboard"]

    assert [entry["username"] for entry in board] == ["alice", "bob"]
    assert board[0]["total_points"] == 8
    assert board[0]["accuracy_percentage"] == 100.0
    assert board[0]["rank"] == 1
    assert board[1]["correct_predictions"] == 0


def test_prode_settings_defaults(client):
    body = client.get("/api/prode/settings").get_json()

    assert body["payout_mode"] == "pool"
    assert body["fee_percent"] == 10.0
    assert body["max_bet"] == 10000.0
    assert body["cutoff_seconds_before_kickoff"] == 600
    assert body["currency"] == "ARS"
    assert body["configured"] is False


def test_zone_matches_show_local_kickoff(client, league, make_match):
    make_match(
        "Alpha", "Bravo", kickoff=datetime(2024, 3, 10, 18, 0, tzinfo=timezone.utc)
    )

    body = client.get(f"/api/zones/{league.zone.id}/matches").get_json()

    assert len(body["matches"]) == 1
    # Buenos Aires is UTC-3
    assert body["matches"][0]["kickoff_local"] == "Sun 10/03 15:00"
    assert body["matches"][0]["home_team"]["name"] == "Alpha"


def test_scheduler_status_when_stopped(admin_client):
    body = admin_client.get("/api/admin/scheduler/status").get_json()

    assert body["is_running"] is False
    assert body["cache"]["type"] == "SimpleCache"


def test_login_sets_session_actor(client, make_user, make_match, make_prediction):
    admin = make_user("admin", is_admin=True)
    match = make_match("Alpha", "Bravo", score=(0, 0))
    make_prediction(admin, match, "draw")

    bad = client.post("/login", json={"username": "admin", "password": "nope"})
    assert bad.status_code == 401

    assert client.post("/login", json={"username": "admin", "password": "secret123"}).status_code == 200
    client.post("/api/admin_settle", json={"match_id": match.id})

    assert AuditLog.query.filter_by(action="settle_match").one().actor_user_id == admin.id


class TestAdminAccess:
    def test_anonymous_request_is_unauthorized(self, client, league):
        response = client.post(f"/api/admin/zones/{league.zone.id}/standings/recompute")

        assert response.status_code == 401
        assert response.get_json() == {"error": "unauthorized"}

    def test_regular_user_is_forbidden(self, client, make_user):
        make_user("alice")
        client.post("/login", json={"username": "alice", "password": "secret123"})

        response = client.get("/api/admin/scheduler/status")

        assert response.status_code == 403
        assert response.get_json() == {"error": "admin_required"}

    def test_admin_gets_through(self, admin_client):
        response = admin_client.get("/api/admin/scheduler/status")

        assert response.status_code == 200
