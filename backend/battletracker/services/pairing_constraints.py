"""
Pairing constraints and match history lookups.

A round stores its constraints as a free-form JSON map. parse_constraints()
turns that map into a tagged union of the constraint kinds the algorithms
honour; anything else becomes an UnknownConstraint that is echoed back to the
moderator as a warning instead of being silently dropped.

Recognised keys (camelCase as stored by the UI, snake_case also accepted):
  noBackToBack         -> NoBackToBack
  maxRematchCount      -> MaxRematchCount(limit)
  preferNotRepeatLastN -> RepeatLookback(rounds)   (alias: repeatLookback)
  avoidSameFaction     -> AvoidSameFaction
  allowRematches       -> AllowRematches
  byePoints            -> ByePoints(points)        (byeScoring.win also read)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from battletracker.services.pairing_types import MatchHistoryEntry


@dataclass(frozen=True)
class NoBackToBack:
    pass


@dataclass(frozen=True)
class MaxRematchCount:
    limit: int


@dataclass(frozen=True)
class RepeatLookback:
    rounds: int


@dataclass(frozen=True)
class AvoidSameFaction:
    pass


@dataclass(frozen=True)
class AllowRematches:
    pass


@dataclass(frozen=True)
class ByePoints:
    points: int


@dataclass(frozen=True)
class UnknownConstraint:
    key: str
    value: Any
    reason: str = "not recognised"


Constraint = Union[
    NoBackToBack,
    MaxRematchCount,
    RepeatLookback,
    AvoidSameFaction,
    AllowRematches,
    ByePoints,
    UnknownConstraint,
]

_KEY_ALIASES = {
    "noBackToBack": "no_back_to_back",
    "no_back_to_back": "no_back_to_back",
    "maxRematchCount": "max_rematch_count",
    "max_rematch_count": "max_rematch_count",
    "preferNotRepeatLastN": "repeat_lookback",
    "repeatLookback": "repeat_lookback",
    "repeat_lookback": "repeat_lookback",
    "avoidSameFaction": "avoid_same_faction",
    "avoid_same_faction": "avoid_same_faction",
    "allowRematches": "allow_rematches",
    "allow_rematches": "allow_rematches",
    "byePoints": "bye_points",
    "bye_points": "bye_points",
    "byeScoring": "bye_scoring",
    "bye_scoring": "bye_scoring",
}

# Conflict reasons
REASON_REPEAT = "repeat"
REASON_BACK_TO_BACK = "back_to_back"
REASON_REMATCH_CAP = "rematch_cap"
REASON_SAME_FACTION = "same_faction"


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _parse_one(key: str, value: Any) -> Optional[Constraint]:
    kind = _KEY_ALIASES.get(key)
    if kind is None:
        return UnknownConstraint(key=key, value=value)

    if kind in ("no_back_to_back", "avoid_same_faction", "allow_rematches"):
        if not isinstance(value, bool):
            return UnknownConstraint(key=key, value=value, reason="expected true or false")
        if not value:
            return None
        if kind == "no_back_to_back":
            return NoBackToBack()
        if kind == "avoid_same_faction":
            return AvoidSameFaction()
        return AllowRematches()

    if kind == "bye_scoring":
        win = _as_int(value.get("win")) if isinstance(value, dict) else None
        if win is None:
            return UnknownConstraint(key=key, value=value, reason="expected an object with a 'win' value")
        return ByePoints(points=win)

    number = _as_int(value)
    if kind == "bye_points":
        if number is None:
            return UnknownConstraint(key=key, value=value, reason="expected an integer")
        return ByePoints(points=number)

    # max_rematch_count / repeat_lookback: 0 or null disables the constraint
    if value is None or number == 0:
        return None
    if number is None or number < 0:
        return UnknownConstraint(key=key, value=value, reason="expected a positive integer")
    if kind == "max_rematch_count":
        return MaxRematchCount(limit=number)
    return RepeatLookback(rounds=number)


@dataclass
class ConstraintSet:
    items: List[Constraint] = field(default_factory=list)

    def _first(self, kind: type) -> Optional[Any]:
        for item in self.items:
            if isinstance(item, kind):
                return item
        return None

    @property
    def no_back_to_back(self) -> bool:
        return self._first(NoBackToBack) is not None

    @property
    def avoid_same_faction(self) -> bool:
        return self._first(AvoidSameFaction) is not None

    @property
    def allow_rematches(self) -> bool:
        return self._first(AllowRematches) is not None

    @property
    def max_rematch_count(self) -> Optional[int]:
        item = self._first(MaxRematchCount)
        return item.limit if item else None

    @property
    def repeat_lookback(self) -> Optional[int]:
        """Rounds to look back for repeats; None means every prior round."""
        item = self._first(RepeatLookback)
        return item.rounds if item else None

    @property
    def bye_points(self) -> Optional[int]:
        item = self._first(ByePoints)
        return item.points if item else None

    @property
    def ignored(self) -> List[UnknownConstraint]:
        return [i for i in self.items if isinstance(i, UnknownConstraint)]

    def ignored_warnings(self) -> List[str]:
        return [f"Constraint '{c.key}' was ignored ({c.reason})" for c in self.ignored]


def parse_constraints(config: Optional[Dict[str, Any]]) -> ConstraintSet:
    """Parse a round's constraints_config map into a ConstraintSet."""
    if isinstance(config, ConstraintSet):
        return config
    items: List[Constraint] = []
    if not config:
        return ConstraintSet(items)
    # byePoints listed before byeScoring so the explicit value is found first
    ordered = sorted(config.items(), key=lambda kv: _KEY_ALIASES.get(kv[0]) == "bye_scoring")
    for key, value in ordered:
        parsed = _parse_one(key, value)
        if parsed is not None:
            items.append(parsed)
    return ConstraintSet(items)


def pair_key(a: str, b: str) -> FrozenSet[str]:
    return frozenset((a, b))


class PairingHistory:
    """
    Opponent and bye lookups over past meetings.

    current_round_index is the round being paired; lookback windows count
    back from it. When unknown, the round after the latest history entry is
    assumed.
    """

    def __init__(self, entries: Iterable[MatchHistoryEntry], current_round_index: Optional[int] = None):
        self.entries = list(entries)
        self._meetings: Dict[FrozenSet[str], List[int]] = defaultdict(list)
        self._byes: Dict[str, int] = defaultdict(int)
        latest = 0
        for entry in self.entries:
            latest = max(latest, entry.round_index)
            if entry.is_bye:
                self._byes[entry.player_a_id] += 1
            elif entry.player_a_id != entry.player_b_id:
                self._meetings[pair_key(entry.player_a_id, entry.player_b_id)].append(entry.round_index)
        self.latest_round_index = latest
        self.current_round_index = current_round_index if current_round_index is not None else latest + 1

    def times_played(self, a: str, b: str) -> int:
        return len(self._meetings.get(pair_key(a, b), []))

    def met_within(self, a: str, b: str, lookback: Optional[int]) -> bool:
        rounds = self._meetings.get(pair_key(a, b), [])
        if lookback is None:
            return bool(rounds)
        earliest = self.current_round_index - lookback
        return any(r >= earliest for r in rounds)

    def met_last_round(self, a: str, b: str) -> bool:
        if not self.latest_round_index:
            return False
        return self.latest_round_index in self._meetings.get(pair_key(a, b), [])

    def bye_count(self, player_id: str) -> int:
        return self._byes.get(player_id, 0)

    def conflict_reasons(
        self,
        a: str,
        b: str,
        constraints: ConstraintSet,
        faction_a: Optional[str] = None,
        faction_b: Optional[str] = None,
    ) -> List[str]:
        reasons: List[str] = []
        times = self.times_played(a, b)
        if times and not constraints.allow_rematches and self.met_within(a, b, constraints.repeat_lookback):
            reasons.append(REASON_REPEAT)
        if constraints.no_back_to_back and self.met_last_round(a, b):
            reasons.append(REASON_BACK_TO_BACK)
        limit = constraints.max_rematch_count
        if limit is not None and times >= limit:
            reasons.append(REASON_REMATCH_CAP)
        if constraints.avoid_same_faction and faction_a and faction_a == faction_b:
            reasons.append(REASON_SAME_FACTION)
        return reasons

    def describe_conflict(
        self,
        name_a: str,
        name_b: str,
        a: str,
        b: str,
        reasons: List[str],
        constraints: ConstraintSet,
        faction: Optional[str] = None,
    ) -> List[str]:
        messages: List[str] = []
        times = self.times_played(a, b)
        for reason in reasons:
            if reason == REASON_REPEAT:
                if constraints.repeat_lookback is None:
                    messages.append(f"{name_a} and {name_b} have already played each other")
                else:
                    messages.append(
                        f"{name_a} and {name_b} played each other within the last "
                        f"{constraints.repeat_lookback} round(s)"
                    )
            elif reason == REASON_BACK_TO_BACK:
                messages.append(f"{name_a} and {name_b} played last round (back-to-back)")
            elif reason == REASON_REMATCH_CAP:
                messages.append(
                    f"{name_a} and {name_b} have played {times} times (max: {constraints.max_rematch_count})"
                )
            elif reason == REASON_SAME_FACTION:
                messages.append(f"{name_a} and {name_b} are both playing {faction}")
        return messages
