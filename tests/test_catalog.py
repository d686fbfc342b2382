def test_league_crud(client, admin, auth_headers):
    headers = auth_headers(admin)
    resp = client.post(
        "/leagues",
        json={"name": "Serie A", "country": "Italy", "season": "2024-2025"},
        headers=headers,
    )
    assert resp.status_code == 201
    league_id = resp.json()["id"]

    resp = client.put(f"/leagues/{league_id}", json={"active": False}, headers=headers)
    assert resp.json()["active"] is False
    assert resp.json()["name"] == "Serie A"

    assert [l["id"] for l in client.get("/leagues").json()] == [league_id]
    assert client.get("/leagues/active").json() == []

    assert client.delete(f"/leagues/{league_id}", headers=headers).status_code == 200
    assert client.get(f"/leagues/{league_id}").status_code == 404


def test_league_in_use_cannot_be_deleted(client, admin, auth_headers, league_setup):
    league, _, _ = league_setup
    resp = client.delete(f"/leagues/{league.id}", headers=auth_headers(admin))
    assert resp.status_code == 409
    assert resp.json()["detail"] == "league_in_use"


def test_team_endpoints(client, admin, auth_headers, league_setup, make_match):
    league, home, _ = league_setup
    headers = auth_headers(admin)

    names = [team["name"] for team in client.get(f"/leagues/{league.id}/teams").json()]
    assert names == ["Marseille", "PSG"]

    resp = client.post("/teams", json={"name": "Lyon", "league_id": league.id}, headers=headers)
    assert resp.status_code == 201
    lyon_id = resp.json()["id"]
    resp = client.put(f"/teams/{lyon_id}", json={"logo_url": "https://img/lyon.png"}, headers=headers)
    assert resp.json()["logo_url"] == "https://img/lyon.png"
    assert client.delete(f"/teams/{lyon_id}", headers=headers).status_code == 200

    make_match()
    resp = client.delete(f"/teams/{home.id}", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "team_in_use"

    resp = client.post("/teams", json={"name": "Ghost", "league_id": 999}, headers=headers)
    assert resp.status_code == 404


def test_catalog_mutations_require_admin(client, make_user, auth_headers):
    fan = make_user("fan")
    resp = client.post("/leagues", json={"name": "X", "season": "2025"}, headers=auth_headers(fan))
    assert resp.status_code == 403
