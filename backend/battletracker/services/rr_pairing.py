"""
Round Robin pairing for a single round.

Circle method: position 0 is fixed, the remaining positions rotate by one
per round, and position i meets position M-1-i. For an odd roster a ghost
slot is appended; whoever meets the ghost gets the bye. Stateless: the same
players and round_index always give the same pairings.
"""

from typing import List, Optional, Tuple

from battletracker.services.pairing_types import PairingResult, Player, make_bye, make_pair


def rr_round_count(player_count: int) -> int:
    """Rounds in a full single round robin: N-1 for even N, N for odd N."""
    if player_count < 2:
        return 0
    return player_count - 1 if player_count % 2 == 0 else player_count


def rr_lineup(players: List[Optional[Player]], round_index: int) -> List[Optional[Player]]:
    """
    Lineup for round_index (1-based).

    Round 1 keeps the input order; each later round rotates every position
    except the first one step to the left.
    """
    fixed, rotating = players[0], players[1:]
    shift = (round_index - 1) % len(rotating)
    return [fixed] + rotating[shift:] + rotating[:shift]


def generate_round_robin_pairings(
    players: List[Player],
    round_index: int,
    bye_points: Optional[int],
) -> Tuple[List[PairingResult], List[str]]:
    if not players:
        return [], []
    if len(players) == 1:
        return [make_bye(players[0], bye_points)], []

    slots: List[Optional[Player]] = list(players)
    if len(slots) % 2 == 1:
        slots.append(None)  # ghost

    warnings: List[str] = []
    total = rr_round_count(len(players))
    if round_index > total:
        warnings.append(
            f"Round {round_index} is past the {total} rounds of a single round robin "
            f"for {len(players)} players; the schedule repeats"
        )

    lineup = rr_lineup(slots, round_index)
    size = len(lineup)
    results: List[PairingResult] = []
    bye: Optional[PairingResult] = None
    for i in range(size // 2):
        a, b = lineup[i], lineup[size - 1 - i]
        if a is None or b is None:
            bye = make_bye(a or b, bye_points)
        else:
            results.append(make_pair(a, b))

    if bye is not None:
        results.append(bye)
    return results, warnings
