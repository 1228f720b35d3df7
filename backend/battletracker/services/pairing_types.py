"""
Plain data carried in and out of the pairing algorithms.

No persistence here: routes and services convert roster rows and match rows
into these structs before calling the algorithms.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

SIDE_A = "a"
SIDE_B = "b"


@dataclass
class Player:
    """Pairing input for one roster entry."""
    player_id: str
    name: str
    points: int = 0
    faction: Optional[str] = None
    warband_id: Optional[str] = None
    warband_name: Optional[str] = None


@dataclass
class Participant:
    player_id: str
    player_name: str
    side: str
    faction: Optional[str] = None
    warband_id: Optional[str] = None
    warband_name: Optional[str] = None

    @classmethod
    def from_player(cls, player: Player, side: str) -> "Participant":
        return cls(
            player_id=player.player_id,
            player_name=player.name,
            side=side,
            faction=player.faction,
            warband_id=player.warband_id,
            warband_name=player.warband_name,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Participant":
        return cls(
            player_id=str(data["player_id"]),
            player_name=data.get("player_name") or str(data["player_id"]),
            side=data.get("side") or SIDE_A,
            faction=data.get("faction"),
            warband_id=data.get("warband_id"),
            warband_name=data.get("warband_name"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PairingResult:
    """One proposed match: two participants, or one for a bye."""
    participants: List[Participant]
    is_bye: bool = False
    bye_points: Optional[int] = None

    @property
    def player_ids(self) -> List[str]:
        return [p.player_id for p in self.participants]


@dataclass
class PairingRun:
    pairings: List[PairingResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MatchHistoryEntry:
    """A past meeting. player_b_id is None for a bye."""
    round_index: int
    player_a_id: str
    player_b_id: Optional[str] = None

    @property
    def is_bye(self) -> bool:
        return self.player_b_id is None


def make_pair(a: Player, b: Player) -> PairingResult:
    return PairingResult(
        participants=[Participant.from_player(a, SIDE_A), Participant.from_player(b, SIDE_B)],
        is_bye=False,
    )


def make_bye(player: Player, bye_points: Optional[int]) -> PairingResult:
    return PairingResult(
        participants=[Participant.from_player(player, SIDE_A)],
        is_bye=True,
        bye_points=bye_points,
    )
