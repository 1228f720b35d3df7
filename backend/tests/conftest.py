import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from battletracker.database import get_session, import_models  # noqa: E402
from battletracker.main import app  # noqa: E402
from tests.helpers import MODERATOR, MODERATOR_ID  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Models are imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Data persists across tests in one run: every test gets its own campaign id
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session"""
    import_models()
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    The override is set BEFORE TestClient() and stays in place for the
    entire test, so the app never touches its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_campaign(client: TestClient):
    """Factory: a fresh campaign with a moderator and `player_count` players.

    Players are p1..pN named "Player 1".."Player N"; `factions` optionally
    maps player ids to a faction.
    """

    def _make(player_count: int = 4, factions: dict | None = None) -> dict:
        campaign_id = f"camp-{uuid.uuid4().hex[:8]}"
        factions = factions or {}
        response = client.post(
            f"/api/campaigns/{campaign_id}/players",
            json={"player_id": MODERATOR_ID, "display_name": "Moderator", "role": "moderator"},
        )
        assert response.status_code == 201, response.text
        player_ids = []
        for n in range(1, player_count + 1):
            pid = f"p{n}"
            response = client.post(
                f"/api/campaigns/{campaign_id}/players",
                json={"player_id": pid, "display_name": f"Player {n}", "faction": factions.get(pid)},
                headers=MODERATOR,
            )
            assert response.status_code == 201, response.text
            player_ids.append(pid)
        return {"id": campaign_id, "player_ids": player_ids}

    return _make


@pytest.fixture
def make_round(client: TestClient):
    """Factory: create a round in a campaign as the moderator and return its JSON."""

    def _make(campaign_id: str, status: str = "draft", **fields) -> dict:
        response = client.post(f"/api/campaigns/{campaign_id}/rounds", json=fields, headers=MODERATOR)
        assert response.status_code == 201, response.text
        battle_round = response.json()
        if status in ("open", "closed"):
            response = client.post(f"/api/rounds/{battle_round['id']}/status", json={"status": "open"}, headers=MODERATOR)
            assert response.status_code == 200, response.text
            battle_round = response.json()
        if status == "closed":
            response = client.post(
                f"/api/rounds/{battle_round['id']}/status", json={"status": "closed", "force": True}, headers=MODERATOR
            )
            assert response.status_code == 200, response.text
            battle_round = response.json()
        return battle_round

    return _make
