"""
Swiss pairing over score brackets.

Players are ranked by points (highest first); equal scores are ordered by a
seeded random key drawn per player_id, so regenerating a preview with the
same seed gives the same ranking regardless of roster order.

Brackets are processed top-down. Each bracket, together with any players
that floated down from above, is fold-paired: the top half meets the bottom
half (1 v n/2+1, 2 v n/2+2, ...), skipping partners that would conflict with
the constraints. Players left without a valid partner float into the next
bracket. Whatever is still unpaired after the last bracket is force-paired
and then repaired by swapping with nearby pairs where possible.
"""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Set, Tuple

from battletracker.services.pairing_constraints import ConstraintSet, PairingHistory
from battletracker.services.pairing_types import PairingResult, Player, make_bye, make_pair
from battletracker.services.random_pairing import apply_anti_repeat_swaps

logger = logging.getLogger(__name__)

Pair = Tuple[Player, Player]


def rank_players(players: List[Player], rng: random.Random) -> List[Player]:
    tie_keys = {p.player_id: rng.random() for p in sorted(players, key=lambda p: p.player_id)}
    return sorted(players, key=lambda p: (-p.points, tie_keys[p.player_id]))


def score_brackets(ranked: List[Player]) -> List[List[Player]]:
    brackets: List[List[Player]] = []
    for player in ranked:
        if brackets and brackets[-1][0].points == player.points:
            brackets[-1].append(player)
        else:
            brackets.append([player])
    return brackets


def select_swiss_bye(ranked: List[Player], history: PairingHistory) -> Player:
    """Lowest-ranked player among those with the fewest byes (normally zero)."""
    fewest = min(history.bye_count(p.player_id) for p in ranked)
    candidates = [p for p in ranked if history.bye_count(p.player_id) == fewest]
    return candidates[-1]


def _fold_pair_bracket(pool: List[Player], is_conflict) -> Tuple[List[Pair], List[Player]]:
    half = len(pool) // 2
    top, bottom = pool[:half], pool[half:]
    paired: Set[str] = set()
    made: List[Pair] = []

    for i, a in enumerate(top):
        if a.player_id in paired:
            continue
        # fold partner first, then the rest of the bottom half, then the top half
        candidates = bottom[i:] + bottom[:i] + top[i + 1:]
        for c in candidates:
            if c.player_id in paired or is_conflict(a, c):
                continue
            made.append((a, c))
            paired.update((a.player_id, c.player_id))
            break

    rest = [p for p in pool if p.player_id not in paired]
    for i, a in enumerate(rest):
        if a.player_id in paired:
            continue
        for c in rest[i + 1:]:
            if c.player_id in paired or is_conflict(a, c):
                continue
            made.append((a, c))
            paired.update((a.player_id, c.player_id))
            break

    floaters = [p for p in pool if p.player_id not in paired]
    return made, floaters


def generate_swiss_pairings(
    players: List[Player],
    constraints: ConstraintSet,
    history: PairingHistory,
    rng: random.Random,
    bye_points: Optional[int],
) -> Tuple[List[PairingResult], List[str]]:
    ranked = rank_players(players, rng)

    bye_player: Optional[Player] = None
    if len(ranked) % 2 == 1:
        bye_player = select_swiss_bye(ranked, history)
        ranked = [p for p in ranked if p.player_id != bye_player.player_id]

    def is_conflict(a: Player, b: Player) -> bool:
        return bool(history.conflict_reasons(a.player_id, b.player_id, constraints, a.faction, b.faction))

    brackets = score_brackets(ranked)
    bracket_of: Dict[str, int] = {p.player_id: idx for idx, bracket in enumerate(brackets) for p in bracket}

    pairs: List[Pair] = []
    floaters: List[Player] = []
    for bracket in brackets:
        made, floaters = _fold_pair_bracket(floaters + bracket, is_conflict)
        pairs.extend(made)

    # no conflict-free partner left anywhere below: force-pair in rank order
    if floaters:
        pairs.extend((floaters[i], floaters[i + 1]) for i in range(0, len(floaters) - 1, 2))
        pairs = apply_anti_repeat_swaps(pairs, is_conflict, max_attempts=2 * len(players))

    warnings: List[str] = []
    for a, b in pairs:
        reasons = history.conflict_reasons(a.player_id, b.player_id, constraints, a.faction, b.faction)
        if reasons:
            logger.warning("Swiss forced pairing %s v %s (%s)", a.player_id, b.player_id, ", ".join(reasons))
            warnings.extend(
                history.describe_conflict(a.name, b.name, a.player_id, b.player_id, reasons, constraints, a.faction)
            )
        gap = abs(bracket_of[a.player_id] - bracket_of[b.player_id])
        if gap > 1:
            warnings.append(
                f"{a.name} ({a.points} pts) and {b.name} ({b.points} pts) are paired across {gap} score brackets"
            )

    results = [make_pair(a, b) for a, b in pairs]
    if bye_player is not None:
        results.append(make_bye(bye_player, bye_points))
    return results, warnings
