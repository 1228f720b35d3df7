"""
Pairing entry points.

generate_pairings() dispatches to the selected algorithm; validate_pairings()
re-checks any list of pairings (generated or hand-made) against the
constraints and history. Both are pure: no session, no persistence, and
deterministic for a fixed seed. Warnings are advisory and never block
confirmation.
"""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from battletracker.services.pairing_constraints import (
    ConstraintSet,
    PairingHistory,
    pair_key,
    parse_constraints,
)
from battletracker.services.pairing_types import MatchHistoryEntry, PairingResult, PairingRun, Player
from battletracker.services.random_pairing import generate_random_pairings
from battletracker.services.rr_pairing import generate_round_robin_pairings
from battletracker.services.swiss_pairing import generate_swiss_pairings

SYSTEM_MANUAL = "manual"
SYSTEM_RANDOM = "random"
SYSTEM_SWISS = "swiss"
SYSTEM_ROUND_ROBIN = "round_robin"

ConstraintsInput = Union[ConstraintSet, Dict[str, Any], None]


@dataclass
class PairingValidation:
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.warnings


def _normalise_system(system: str) -> str:
    # the UI historically used "round-robin"
    return (system or SYSTEM_MANUAL).strip().lower().replace("-", "_")


def generate_pairings(
    system: str,
    players: List[Player],
    constraints: ConstraintsInput = None,
    match_history: Optional[Iterable[MatchHistoryEntry]] = None,
    round_index: int = 1,
    seed: Optional[int] = None,
    win_points: int = 3,
) -> PairingRun:
    """
    Propose pairings for one round.

    Args:
        system: "manual" | "random" | "swiss" | "round_robin"
        players: roster to pair; points are only read by Swiss and bye selection
        constraints: a ConstraintSet or the raw constraints_config map
        match_history: past meetings and byes
        round_index: the round being paired (round robin position, lookback anchor)
        seed: random seed; callers pass a stable value so previews repeat
        win_points: bye award when constraints do not set byePoints

    Returns:
        PairingRun with ceil(N/2) pairings (manual: none) and algorithm warnings
    """
    constraint_set = parse_constraints(constraints)
    history = PairingHistory(match_history or [], current_round_index=round_index)
    rng = random.Random(seed)
    bye_points = constraint_set.bye_points if constraint_set.bye_points is not None else win_points

    normalised = _normalise_system(system)
    if normalised == SYSTEM_MANUAL:
        return PairingRun()
    if normalised == SYSTEM_RANDOM:
        pairings, warnings = generate_random_pairings(players, constraint_set, history, rng, bye_points)
    elif normalised == SYSTEM_SWISS:
        pairings, warnings = generate_swiss_pairings(players, constraint_set, history, rng, bye_points)
    elif normalised == SYSTEM_ROUND_ROBIN:
        pairings, warnings = generate_round_robin_pairings(players, round_index, bye_points)
    else:
        raise ValueError(f"Unknown pairing system: {system}")
    return PairingRun(pairings=pairings, warnings=warnings)


def validate_pairings(
    pairings: List[PairingResult],
    constraints: ConstraintsInput = None,
    match_history: Optional[Iterable[MatchHistoryEntry]] = None,
    roster_ids: Optional[Iterable[str]] = None,
    round_index: Optional[int] = None,
) -> PairingValidation:
    """
    Check pairings against structure, roster, history and constraints.

    Reports (as warnings): players in more than one pairing, the same pair
    more than once (unless rematches are allowed), players missing from the
    roster, bye/participant-count mismatches, constraint violations, and
    constraint keys that were not understood.
    """
    constraint_set = parse_constraints(constraints)
    history = PairingHistory(match_history or [], current_round_index=round_index)
    roster = set(roster_ids) if roster_ids is not None else None
    warnings: List[str] = []

    appearances: Counter = Counter()
    pair_counts: Counter = Counter()
    names: Dict[str, str] = {}

    for index, pairing in enumerate(pairings):
        count = len(pairing.participants)
        if pairing.is_bye and count != 1:
            warnings.append(f"Pairing {index + 1} is a bye but has {count} participants")
        elif not pairing.is_bye and count != 2:
            warnings.append(f"Pairing {index + 1} has {count} participant(s); expected 2")

        for participant in pairing.participants:
            names[participant.player_id] = participant.player_name
            appearances[participant.player_id] += 1
            if roster is not None and participant.player_id not in roster:
                warnings.append(f"{participant.player_name} is not on the campaign roster")

        if pairing.is_bye or count != 2:
            continue

        a, b = pairing.participants
        pair_counts[pair_key(a.player_id, b.player_id)] += 1
        reasons = history.conflict_reasons(a.player_id, b.player_id, constraint_set, a.faction, b.faction)
        warnings.extend(
            history.describe_conflict(
                a.player_name, b.player_name, a.player_id, b.player_id, reasons, constraint_set, a.faction
            )
        )

    for player_id, times in appearances.items():
        if times > 1:
            warnings.append(f"{names[player_id]} appears in {times} pairings")

    if not constraint_set.allow_rematches:
        for key, times in pair_counts.items():
            if times > 1:
                a, b = sorted(key)
                warnings.append(f"{names[a]} and {names[b]} are paired {times} times in this round")

    warnings.extend(constraint_set.ignored_warnings())
    return PairingValidation(warnings=warnings)


def merge_warnings(*groups: Iterable[str]) -> List[str]:
    """Concatenate warning lists, dropping exact duplicates, keeping order."""
    seen = set()
    merged: List[str] = []
    for group in groups:
        for warning in group:
            if warning not in seen:
                seen.add(warning)
                merged.append(warning)
    return merged
