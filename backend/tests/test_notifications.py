"""
Change notifications emitted by the round, ledger and report services.
"""

import pytest
from fastapi.testclient import TestClient

from battletracker.services.notifications import ChangeNotifier, notifier
from tests.helpers import MODERATOR, pair, player_headers


@pytest.fixture
def events():
    received = []
    unsubscribe = notifier.subscribe(received.append)
    yield received
    unsubscribe()


def test_flow_emits_events(client: TestClient, make_campaign, make_round, events):
    campaign = make_campaign(2)
    round_id = make_round(campaign["id"], status="open")["id"]
    match = client.post(f"/api/rounds/{round_id}/matches", json=pair("p1", "p2"), headers=MODERATOR).json()
    client.post(
        f"/api/matches/{match['id']}/reports", json={"side": "a", "outcome": "win"}, headers=player_headers("p1")
    )
    client.post(
        f"/api/matches/{match['id']}/resolve",
        json={"final_results": {"p1": "win", "p2": "loss"}},
        headers=MODERATOR,
    )
    client.delete(f"/api/rounds/{round_id}/matches", headers=MODERATOR)

    mine = [e for e in events if e.campaign_id == campaign["id"]]
    assert [e.event_type for e in mine] == [
        "round.created",
        "round.status_changed",
        "matches.created",
        "report.submitted",
        "match.status_changed",
        "match.status_changed",
        "match.resolved",
        "matches.cleared",
    ]
    assert mine[1].payload == {"old_status": "draft", "new_status": "open"}
    assert mine[3].match_id == match["id"]
    assert all(e.round_id == round_id for e in mine)


def test_rejected_request_emits_nothing(client: TestClient, make_campaign, make_round, events):
    campaign = make_campaign(2)
    round_id = make_round(campaign["id"])["id"]
    events.clear()

    client.post(f"/api/rounds/{round_id}/status", json={"status": "draft"}, headers=MODERATOR)  # no-op
    client.post(f"/api/rounds/{round_id}/status", json={"status": "closed"}, headers=MODERATOR)  # invalid

    assert [e for e in events if e.campaign_id == campaign["id"]] == []


def test_failing_listener_does_not_break_request(client: TestClient, make_campaign, events):
    def broken(event):
        raise RuntimeError("listener down")

    unsubscribe = notifier.subscribe(broken)
    try:
        campaign = make_campaign(1)
        response = client.post(f"/api/campaigns/{campaign['id']}/rounds", json={}, headers=MODERATOR)
    finally:
        unsubscribe()

    assert response.status_code == 201
    assert any(e.event_type == "round.created" for e in events)


def test_unsubscribe_stops_delivery():
    local = ChangeNotifier()
    received = []
    unsubscribe = local.subscribe(received.append)
    local.emit("round.updated", "camp-x", round_id=1)
    unsubscribe()
    local.emit("round.updated", "camp-x", round_id=1)

    assert len(received) == 1
    assert received[0].payload == {}
