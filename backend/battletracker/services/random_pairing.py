"""
Random pairing with local anti-repeat swaps.

1. Seeded shuffle of the roster (sorted by player_id first so the result
   does not depend on the order the roster was passed in).
2. Odd count: the bye goes to the player with the fewest historical byes,
   then the lowest points, then the earliest position in the shuffle.
3. Consecutive players are paired.
4. Any pair that conflicts with the constraints (repeat, back-to-back,
   rematch cap, same faction) is swapped with a neighbouring pair. The swap
   budget is 2 x player count; conflicts left after that are accepted and
   reported as warnings.
"""

from __future__ import annotations

import random
from typing import Callable, List, Optional, Tuple

from battletracker.services.pairing_constraints import ConstraintSet, PairingHistory
from battletracker.services.pairing_types import PairingResult, Player, make_bye, make_pair

Pair = Tuple[Player, Player]
ConflictCheck = Callable[[Player, Player], bool]


def _neighbour_order(index: int, count: int) -> List[int]:
    """Other pair indices by distance from index: i+1, i-1, i+2, i-2, ..."""
    order: List[int] = []
    for distance in range(1, count):
        for j in (index + distance, index - distance):
            if 0 <= j < count:
                order.append(j)
    return order


def _try_swap(first: Pair, second: Pair, is_conflict: ConflictCheck) -> Optional[Tuple[Pair, Pair]]:
    a, b = first
    c, d = second
    for new_first, new_second in (((a, c), (b, d)), ((a, d), (b, c))):
        if not is_conflict(*new_first) and not is_conflict(*new_second):
            return new_first, new_second
    return None


def apply_anti_repeat_swaps(pairs: List[Pair], is_conflict: ConflictCheck, max_attempts: int) -> List[Pair]:
    """
    Swap partners between a conflicting pair and its neighbours.

    A swap is only taken when both resulting pairs are conflict-free, so a
    resolved pair is never broken again. Each neighbour tried costs one
    attempt out of max_attempts.
    """
    pairs = list(pairs)
    attempts = 0
    for i in range(len(pairs)):
        if not is_conflict(*pairs[i]):
            continue
        for j in _neighbour_order(i, len(pairs)):
            if attempts >= max_attempts:
                return pairs
            attempts += 1
            swapped = _try_swap(pairs[i], pairs[j], is_conflict)
            if swapped:
                pairs[i], pairs[j] = swapped
                break
    return pairs


def select_random_bye(order: List[Player], history: PairingHistory) -> Player:
    position = {p.player_id: i for i, p in enumerate(order)}
    return min(order, key=lambda p: (history.bye_count(p.player_id), p.points, position[p.player_id]))


def generate_random_pairings(
    players: List[Player],
    constraints: ConstraintSet,
    history: PairingHistory,
    rng: random.Random,
    bye_points: Optional[int],
) -> Tuple[List[PairingResult], List[str]]:
    order = sorted(players, key=lambda p: p.player_id)
    rng.shuffle(order)

    bye_player: Optional[Player] = None
    if len(order) % 2 == 1:
        bye_player = select_random_bye(order, history)
        order = [p for p in order if p.player_id != bye_player.player_id]

    def is_conflict(a: Player, b: Player) -> bool:
        return bool(history.conflict_reasons(a.player_id, b.player_id, constraints, a.faction, b.faction))

    pairs: List[Pair] = [(order[i], order[i + 1]) for i in range(0, len(order), 2)]
    pairs = apply_anti_repeat_swaps(pairs, is_conflict, max_attempts=2 * len(players))

    warnings: List[str] = []
    for a, b in pairs:
        reasons = history.conflict_reasons(a.player_id, b.player_id, constraints, a.faction, b.faction)
        if reasons:
            warnings.extend(
                history.describe_conflict(a.name, b.name, a.player_id, b.player_id, reasons, constraints, a.faction)
            )

    results = [make_pair(a, b) for a, b in pairs]
    if bye_player is not None:
        results.append(make_bye(bye_player, bye_points))
    return results, warnings
