"""
Match ledger through the API: manual and bulk creation, deletion, warnings.
"""

from fastapi.testclient import TestClient

from tests.helpers import MODERATOR, bye, pair, player_headers


def _indexes(client: TestClient, round_id: int) -> list[int]:
    return [m["match_index"] for m in client.get(f"/api/rounds/{round_id}/matches").json()]


def test_create_match_fills_roster_details(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(2, factions={"p1": "Orcs"})
    round_id = make_round(campaign["id"])["id"]

    response = client.post(f"/api/rounds/{round_id}/matches", json=pair("p1", "p2"), headers=MODERATOR)

    assert response.status_code == 201
    match = response.json()
    assert match["match_index"] == 0
    assert match["status"] == "scheduled"
    assert match["is_bye"] is False
    assert match["campaign_id"] == campaign["id"]
    first, second = match["participants"]
    assert first["player_name"] == "Player 1"
    assert first["faction"] == "Orcs"
    assert first["side"] == "a"
    assert second["side"] == "b"


def test_bulk_create_assigns_sequential_indexes(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(5)
    round_id = make_round(campaign["id"])["id"]

    response = client.post(
        f"/api/rounds/{round_id}/matches/bulk",
        json={"matches": [pair("p1", "p2"), pair("p3", "p4"), bye("p5", 2)]},
        headers=MODERATOR,
    )

    assert response.status_code == 201
    created = response.json()
    assert [m["match_index"] for m in created] == [0, 1, 2]
    assert created[2]["is_bye"] is True
    assert created[2]["bye_points"] == 2

    client.post(f"/api/rounds/{round_id}/matches", json=pair("p1", "p3"), headers=MODERATOR)
    assert _indexes(client, round_id) == [0, 1, 2, 3]


def test_bulk_create_is_all_or_nothing(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(4)
    round_id = make_round(campaign["id"])["id"]

    response = client.post(
        f"/api/rounds/{round_id}/matches/bulk",
        json={
            "matches": [
                pair("p1", "p2"),
                pair("p3", "stranger"),
                pair("p4", "p4"),
                {"participants": [{"player_id": "p1"}, {"player_id": "p2"}], "is_bye": True},
            ]
        },
        headers=MODERATOR,
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert [e["index"] for e in body["errors"]] == [1, 2, 3]
    assert "player stranger is not on the campaign roster" in body["errors"][0]["problems"]
    assert "player p4 appears twice in the same match" in body["errors"][1]["problems"]
    assert "a bye must have exactly one participant (got 2)" in body["errors"][2]["problems"]
    assert client.get(f"/api/rounds/{round_id}/matches").json() == []


def test_single_participant_without_bye_flag_rejected(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(2)
    round_id = make_round(campaign["id"])["id"]
    response = client.post(
        f"/api/rounds/{round_id}/matches", json={"participants": [{"player_id": "p1"}]}, headers=MODERATOR
    )
    assert response.status_code == 422


def test_delete_match_renumbers(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(6)
    round_id = make_round(campaign["id"])["id"]
    created = client.post(
        f"/api/rounds/{round_id}/matches/bulk",
        json={"matches": [pair("p1", "p2"), pair("p3", "p4"), pair("p5", "p6")]},
        headers=MODERATOR,
    ).json()

    response = client.delete(f"/api/matches/{created[1]['id']}", headers=MODERATOR)

    assert response.status_code == 204
    remaining = client.get(f"/api/rounds/{round_id}/matches").json()
    assert [m["id"] for m in remaining] == [created[0]["id"], created[2]["id"]]
    assert [m["match_index"] for m in remaining] == [0, 1]


def test_delete_all_matches_removes_reports(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(4)
    round_id = make_round(campaign["id"], status="open")["id"]
    created = client.post(
        f"/api/rounds/{round_id}/matches/bulk",
        json={"matches": [pair("p1", "p2"), pair("p3", "p4")]},
        headers=MODERATOR,
    ).json()
    client.post(
        f"/api/matches/{created[0]['id']}/reports",
        json={"side": "a", "outcome": "win"},
        headers=player_headers("p1"),
    )

    response = client.delete(f"/api/rounds/{round_id}/matches", headers=MODERATOR)

    assert response.status_code == 200
    assert response.json() == {"deleted_matches": 2, "invalidated_reports": 1, "deleted_results": 0}
    assert client.get(f"/api/rounds/{round_id}/matches").json() == []
    assert client.get(f"/api/matches/{created[0]['id']}/reports").status_code == 404
    assert client.get(f"/api/rounds/{round_id}").json()["status"] == "open"


def test_ledger_frozen_when_round_closed(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(2)
    round_id = make_round(campaign["id"], status="closed")["id"]

    response = client.post(f"/api/rounds/{round_id}/matches", json=pair("p1", "p2"), headers=MODERATOR)
    assert response.status_code == 409
    assert client.delete(f"/api/rounds/{round_id}/matches", headers=MODERATOR).status_code == 409


def test_players_cannot_edit_ledger(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(2)
    round_id = make_round(campaign["id"])["id"]
    response = client.post(f"/api/rounds/{round_id}/matches", json=pair("p1", "p2"), headers=player_headers("p1"))
    assert response.status_code == 403


def test_ledger_warnings(client: TestClient, make_campaign, make_round):
    campaign = make_campaign(4)
    round_id = make_round(campaign["id"], constraints_config={"mystery": True})["id"]
    client.post(
        f"/api/rounds/{round_id}/matches/bulk",
        json={"matches": [pair("p1", "p2"), pair("p2", "p1"), pair("p1", "p3")]},
        headers=MODERATOR,
    )

    response = client.get(f"/api/rounds/{round_id}/matches/warnings")

    assert response.status_code == 200
    warnings = response.json()["warnings"]
    assert "Player 1 appears in 3 pairings" in warnings
    assert "Player 1 and Player 2 are paired 2 times in this round" in warnings
    assert "Constraint 'mystery' was ignored (not recognised)" in warnings


def test_missing_match(client: TestClient):
    response = client.get("/api/matches/876543")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
