from sqlalchemy import select

from predictleague.models import MATCH_FINISHED, Match, Prediction, User
from predictleague.services import private_leagues as league_service


def _match_payload(league_setup, **overrides):
    league, home, away = league_setup
    payload = {
        "league_id": league.id,
        "home_team_id": home.id,
        "away_team_id": away.id,
        "match_date": "2030-05-01T18:00:00+00:00",
        "round": "J1",
    }
    payload.update(overrides)
    return payload


def test_match_mutations_require_admin(client, make_user, auth_headers, league_setup):
    user = make_user("fan")
    resp = client.post("/matches", json=_match_payload(league_setup))
    assert resp.status_code == 401

    resp = client.post("/matches", json=_match_payload(league_setup), headers=auth_headers(user))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "admin_required"
    assert resp.json()["success"] is False


def test_create_match_starts_scheduled(client, admin, auth_headers, league_setup):
    resp = client.post("/matches", json=_match_payload(league_setup), headers=auth_headers(admin))
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "scheduled"
    assert body["home_team_name"] == "PSG"
    assert body["away_team_name"] == "Marseille"
    assert body["league_name"] == "Ligue 1"


def test_create_match_rejects_same_team(client, admin, auth_headers, league_setup):
    _, home, _ = league_setup
    resp = client.post(
        "/matches",
        json=_match_payload(league_setup, away_team_id=home.id),
        headers=auth_headers(admin),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "same_team"


def test_create_match_unknown_team(client, admin, auth_headers, league_setup):
    resp = client.post(
        "/matches",
        json=_match_payload(league_setup, away_team_id=999),
        headers=auth_headers(admin),
    )
    assert resp.status_code == 404


def test_score_update_finishes_and_scores(client, db, admin, make_user, auth_headers, make_match, predict):
    fan = make_user("fan")
    match = make_match()
    predict(fan, match, 2, 0)

    resp = client.put(
        f"/matches/{match.id}/score",
        json={"home_score": 2, "away_score": 0},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["match"]["status"] == "finished"
    assert body["scoring"]["updated_predictions"] == 1
    assert body["scoring"]["points_awarded"] == 3
    assert body["scoring"]["private_leagues_updated"] is True
    assert body["scoring_error"] is None

    db.expire_all()
    assert db.get(User, fan.id).points == 3


def test_negative_score_rejected(client, admin, auth_headers, make_match):
    match = make_match()
    resp = client.put(
        f"/matches/{match.id}/score",
        json={"home_score": -1, "away_score": 0},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "validation_error"


def test_finished_match_status_cannot_go_back(client, admin, auth_headers, make_match):
    match = make_match(status=MATCH_FINISHED, home_score=1, away_score=0)
    resp = client.put(
        f"/matches/{match.id}",
        json={"status": "scheduled"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "status_backwards"


def test_delete_match_reverses_global_and_league_points(
    client, db, admin, make_user, auth_headers, make_match, predict
):
    alice = make_user("alice")
    bob = make_user("bob")
    league = league_service.create_private_league(db, name="Office", creator_id=alice.id)
    league_service.add_member(db, league.id, bob.id)

    kept = make_match()
    dropped = make_match()
    predict(alice, kept, 1, 0)
    predict(alice, dropped, 2, 2)
    predict(bob, dropped, 0, 0)

    headers = auth_headers(admin)
    client.put(f"/matches/{kept.id}/score", json={"home_score": 1, "away_score": 0}, headers=headers)
    client.put(f"/matches/{dropped.id}/score", json={"home_score": 2, "away_score": 2}, headers=headers)

    db.expire_all()
    assert db.get(User, alice.id).points == 6
    assert db.get(User, bob.id).points == 1

    resp = client.delete(f"/matches/{dropped.id}", headers=headers)
    assert resp.status_code == 200

    db.expunge_all()
    assert db.execute(select(Match).where(Match.id == dropped.id)).first() is None
    assert db.query(Prediction).filter(Prediction.match_id == dropped.id).count() == 0
    assert db.get(User, alice.id).points == 3
    assert db.get(User, bob.id).points == 0
    assert league_service.league_points_by_user(db, league.id) == {alice.id: 3, bob.id: 0}


def test_delete_unknown_match(client, admin, auth_headers):
    resp = client.delete("/matches/404", headers=auth_headers(admin))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "match_not_found"


def test_listing_and_upcoming(client, make_match, league_setup):
    league, _, _ = league_setup
    future = make_match(days_ahead=3, round_label="J2")
    make_match(days_ahead=-3, round_label="J1")
    make_match(status=MATCH_FINISHED, days_ahead=1, round_label="J2", home_score=0, away_score=0)

    assert len(client.get("/matches").json()) == 3

    upcoming = client.get("/matches/upcoming", params={"league_id": league.id}).json()
    assert [m["id"] for m in upcoming] == [future.id]

    assert client.get("/matches/upcoming", params={"round": "J1"}).json() == []
    assert client.get(f"/leagues/{league.id}/rounds").json() == ["J1", "J2"]
    assert len(client.get(f"/leagues/{league.id}/matches", params={"round": "J2"}).json()) == 2


def test_calculate_points_endpoint(client, db, admin, make_user, auth_headers, make_match, predict):
    fan = make_user("fan")
    match = make_match(status=MATCH_FINISHED, home_score=1, away_score=1)
    predict(fan, match, 0, 0)

    resp = client.post(f"/matches/{match.id}/calculate-points", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["points_awarded"] == 1

    again = client.post(f"/matches/{match.id}/calculate-points", headers=auth_headers(admin))
    assert again.json()["points_awarded"] == 0
    db.expire_all()
    assert db.get(User, fan.id).points == 1


def test_calculate_points_on_open_match(client, admin, auth_headers, make_match):
    match = make_match()
    resp = client.post(f"/matches/{match.id}/calculate-points", headers=auth_headers(admin))
    assert resp.status_code == 409
    assert resp.json()["detail"] == "match_not_finished"


def test_in_progress_is_reserved(client, admin, auth_headers, make_match):
    match = make_match()
    resp = client.put(
        f"/matches/{match.id}",
        json={"status": "in_progress", "round": "J9"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "status_reserved"

    resp = client.put(f"/matches/{match.id}", json={"round": "J9"}, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["round"] == "J9"
    assert resp.json()["status"] == "scheduled"
