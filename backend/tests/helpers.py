"""Request builders shared by the API tests."""

MODERATOR_ID = "mod-1"
MODERATOR = {"X-Player-Id": MODERATOR_ID}


def player_headers(player_id: str) -> dict:
    return {"X-Player-Id": player_id}


def pair(a: str, b: str) -> dict:
    """Request body entry for a two-player match."""
    return {"participants": [{"player_id": a}, {"player_id": b}]}


def bye(player_id: str, points: int = 3) -> dict:
    return {"participants": [{"player_id": player_id}], "is_bye": True, "bye_points": points}
