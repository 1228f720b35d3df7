"""
Tests for the pairing algorithms: random, Swiss and round robin.
"""

import itertools
import math

import pytest

from battletracker.services.pairing import generate_pairings
from battletracker.services.pairing_types import MatchHistoryEntry, Player
from battletracker.services.rr_pairing import rr_round_count


def _players(n: int, points: list[int] | None = None) -> list[Player]:
    """Helper: players p1..pn, optional points per player in order."""
    points = points or [0] * n
    return [Player(player_id=f"p{i}", name=f"Player {i}", points=points[i - 1]) for i in range(1, n + 1)]


def _pair_ids(run) -> list[frozenset]:
    return [frozenset(p.player_ids) for p in run.pairings if not p.is_bye]


class TestCompleteness:
    """Every player appears exactly once; byes only for odd rosters."""

    @pytest.mark.parametrize("system", ["random", "swiss", "round_robin"])
    @pytest.mark.parametrize("n", range(0, 10))
    def test_every_player_paired_once(self, system, n):
        players = _players(n, points=[(i % 3) * 3 for i in range(n)])
        run = generate_pairings(system, players, seed=7, round_index=2)

        seen = [pid for p in run.pairings for pid in p.player_ids]
        assert sorted(seen) == sorted(p.player_id for p in players)
        assert len(run.pairings) == math.ceil(n / 2)

        byes = [p for p in run.pairings if p.is_bye]
        assert len(byes) == n % 2
        for pairing in run.pairings:
            assert len(pairing.participants) == (1 if pairing.is_bye else 2)

    def test_manual_generates_nothing(self):
        run = generate_pairings("manual", _players(6))
        assert run.pairings == []
        assert run.warnings == []

    def test_unknown_system_rejected(self):
        with pytest.raises(ValueError):
            generate_pairings("knockout", _players(4))

    def test_hyphenated_round_robin_accepted(self):
        run = generate_pairings("round-robin", _players(4), round_index=1)
        assert len(run.pairings) == 2

    def test_bye_is_last_and_carries_win_points(self):
        run = generate_pairings("random", _players(5), seed=3, win_points=2)
        assert run.pairings[-1].is_bye
        assert run.pairings[-1].bye_points == 2

    def test_bye_points_constraint_overrides_win_points(self):
        run = generate_pairings("swiss", _players(5), constraints={"byePoints": 1}, seed=3, win_points=3)
        assert run.pairings[-1].bye_points == 1


class TestRandomPairing:
    def test_same_seed_same_pairings(self):
        first = generate_pairings("random", _players(8), seed=42)
        second = generate_pairings("random", _players(8), seed=42)
        assert _pair_ids(first) == _pair_ids(second)

    def test_input_order_does_not_matter(self):
        players = _players(8)
        first = generate_pairings("random", players, seed=42)
        second = generate_pairings("random", list(reversed(players)), seed=42)
        assert _pair_ids(first) == _pair_ids(second)

    @pytest.mark.parametrize("seed", range(20))
    def test_avoids_previous_opponents(self, seed):
        history = [
            MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2"),
            MatchHistoryEntry(round_index=1, player_a_id="p3", player_b_id="p4"),
        ]
        run = generate_pairings("random", _players(4), match_history=history, round_index=2, seed=seed)
        assert frozenset({"p1", "p2"}) not in _pair_ids(run)
        assert frozenset({"p3", "p4"}) not in _pair_ids(run)
        assert run.warnings == []

    def test_unavoidable_repeat_is_warned_not_prevented(self):
        history = [MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2")]
        run = generate_pairings("random", _players(2), match_history=history, round_index=2, seed=1)
        assert _pair_ids(run) == [frozenset({"p1", "p2"})]
        assert any("have already played each other" in w for w in run.warnings)

    def test_allow_rematches_silences_repeat(self):
        history = [MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2")]
        run = generate_pairings(
            "random", _players(2), constraints={"allowRematches": True}, match_history=history, round_index=2, seed=1
        )
        assert run.warnings == []

    def test_bye_goes_to_player_without_bye(self):
        history = [
            MatchHistoryEntry(round_index=1, player_a_id="p1"),
            MatchHistoryEntry(round_index=1, player_a_id="p2", player_b_id="p3"),
        ]
        for seed in range(10):
            run = generate_pairings("random", _players(3), match_history=history, round_index=2, seed=seed)
            bye = run.pairings[-1]
            assert bye.is_bye
            assert bye.player_ids != ["p1"]

    def test_bye_prefers_lowest_points(self):
        players = _players(5, points=[6, 6, 3, 3, 0])
        run = generate_pairings("random", players, seed=11)
        assert run.pairings[-1].player_ids == ["p5"]

    def test_avoid_same_faction(self):
        players = _players(4)
        players[0].faction = "Orcs"
        players[1].faction = "Orcs"
        for seed in range(10):
            run = generate_pairings("random", players, constraints={"avoidSameFaction": True}, seed=seed)
            assert frozenset({"p1", "p2"}) not in _pair_ids(run)


class TestSwissPairing:
    def test_pairs_within_score_brackets(self):
        players = _players(8, points=[9, 9, 6, 6, 3, 3, 0, 0])
        points = {p.player_id: p.points for p in players}
        for seed in range(10):
            run = generate_pairings("swiss", players, seed=seed)
            for pair in _pair_ids(run):
                a, b = sorted(pair)
                assert points[a] == points[b]
            assert not any("score brackets" in w for w in run.warnings)

    def test_odd_bracket_floats_down_one_bracket(self):
        players = _players(6, points=[3, 3, 3, 0, 0, 0])
        run = generate_pairings("swiss", players, seed=5)
        cross = [pair for pair in _pair_ids(run) if len({p[-1] in "123" for p in pair}) == 2]
        assert len(cross) == 1
        assert not any("score brackets" in w for w in run.warnings)

    def test_bye_to_lowest_ranked_without_bye(self):
        players = _players(5, points=[6, 3, 3, 0, 0])
        history = [MatchHistoryEntry(round_index=1, player_a_id="p5")]
        run = generate_pairings("swiss", players, match_history=history, round_index=2, seed=1)
        assert run.pairings[-1].is_bye
        assert run.pairings[-1].player_ids == ["p4"]

    def test_tie_order_is_seeded_not_input_order(self):
        players = _players(6, points=[3, 3, 3, 3, 3, 3])
        first = generate_pairings("swiss", players, seed=9)
        second = generate_pairings("swiss", list(reversed(players)), seed=9)
        assert _pair_ids(first) == _pair_ids(second)

    def test_skips_previous_opponent_in_bracket(self):
        players = _players(4, points=[3, 3, 3, 3])
        history = [
            MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2"),
            MatchHistoryEntry(round_index=1, player_a_id="p3", player_b_id="p4"),
        ]
        for seed in range(10):
            run = generate_pairings("swiss", players, match_history=history, round_index=2, seed=seed)
            assert frozenset({"p1", "p2"}) not in _pair_ids(run)
            assert frozenset({"p3", "p4"}) not in _pair_ids(run)

    def test_forced_repeat_is_warned(self):
        history = [MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2")]
        run = generate_pairings("swiss", _players(2, points=[3, 0]), match_history=history, round_index=2, seed=1)
        assert _pair_ids(run) == [frozenset({"p1", "p2"})]
        assert any("have already played each other" in w for w in run.warnings)

    def test_wide_score_gap_is_warned(self):
        # p1 has already met everyone in its bracket and the next one down
        players = _players(4, points=[9, 6, 3, 0])
        history = [
            MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2"),
            MatchHistoryEntry(round_index=2, player_a_id="p1", player_b_id="p3"),
        ]
        run = generate_pairings("swiss", players, match_history=history, round_index=3, seed=1)
        assert frozenset({"p1", "p4"}) in _pair_ids(run)
        assert any("across 3 score brackets" in w for w in run.warnings)


class TestRoundRobin:
    def test_round_count(self):
        assert rr_round_count(0) == 0
        assert rr_round_count(1) == 0
        assert rr_round_count(2) == 1
        assert rr_round_count(4) == 3
        assert rr_round_count(5) == 5

    def test_first_rounds_for_four_players(self):
        players = _players(4)
        round_1 = generate_pairings("round_robin", players, round_index=1)
        round_2 = generate_pairings("round_robin", players, round_index=2)
        assert _pair_ids(round_1) == [frozenset({"p1", "p4"}), frozenset({"p2", "p3"})]
        assert _pair_ids(round_2) == [frozenset({"p1", "p2"}), frozenset({"p3", "p4"})]

    @pytest.mark.parametrize("n", [2, 3, 4, 5, 6, 7, 8])
    def test_everyone_meets_everyone_exactly_once(self, n):
        players = _players(n)
        meetings = []
        byes = []
        for round_index in range(1, rr_round_count(n) + 1):
            run = generate_pairings("round_robin", players, round_index=round_index)
            meetings.extend(_pair_ids(run))
            byes.extend(pid for p in run.pairings if p.is_bye for pid in p.player_ids)

        expected = {frozenset(c) for c in itertools.combinations([p.player_id for p in players], 2)}
        assert len(meetings) == len(expected)
        assert set(meetings) == expected
        if n % 2:
            assert sorted(byes) == sorted(p.player_id for p in players)
        else:
            assert byes == []

    def test_ignores_history(self):
        history = [MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p4")]
        with_history = generate_pairings("round_robin", _players(4), match_history=history, round_index=1)
        assert _pair_ids(with_history)[0] == frozenset({"p1", "p4"})

    def test_warns_past_the_schedule(self):
        run = generate_pairings("round_robin", _players(4), round_index=4)
        assert any("schedule repeats" in w for w in run.warnings)
