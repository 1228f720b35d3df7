"""
Tests for constraint parsing, history lookups and pairing validation.
"""

from battletracker.services.pairing import merge_warnings, validate_pairings
from battletracker.services.pairing_constraints import (
    AvoidSameFaction,
    ByePoints,
    MaxRematchCount,
    NoBackToBack,
    PairingHistory,
    RepeatLookback,
    UnknownConstraint,
    parse_constraints,
)
from battletracker.services.pairing_types import MatchHistoryEntry, Player, make_bye, make_pair


def _player(n: int, faction: str | None = None) -> Player:
    return Player(player_id=f"p{n}", name=f"Player {n}", faction=faction)


class TestParseConstraints:
    def test_known_keys(self):
        constraints = parse_constraints(
            {"noBackToBack": True, "maxRematchCount": 2, "preferNotRepeatLastN": 3, "avoidSameFaction": True}
        )
        assert NoBackToBack() in constraints.items
        assert MaxRematchCount(limit=2) in constraints.items
        assert RepeatLookback(rounds=3) in constraints.items
        assert AvoidSameFaction() in constraints.items
        assert constraints.ignored == []

    def test_snake_case_keys(self):
        constraints = parse_constraints({"no_back_to_back": True, "max_rematch_count": 1})
        assert constraints.no_back_to_back
        assert constraints.max_rematch_count == 1

    def test_false_and_zero_disable(self):
        constraints = parse_constraints({"noBackToBack": False, "maxRematchCount": 0, "preferNotRepeatLastN": None})
        assert constraints.items == []

    def test_unknown_key_is_kept_and_warned(self):
        constraints = parse_constraints({"noSameTable": True})
        assert constraints.items == [UnknownConstraint(key="noSameTable", value=True)]
        assert constraints.ignored_warnings() == ["Constraint 'noSameTable' was ignored (not recognised)"]

    def test_invalid_value_is_ignored_with_reason(self):
        constraints = parse_constraints({"maxRematchCount": "lots"})
        assert constraints.max_rematch_count is None
        assert "expected a positive integer" in constraints.ignored_warnings()[0]

    def test_bye_scoring_win_read(self):
        assert parse_constraints({"byeScoring": {"win": 2}}).bye_points == 2

    def test_explicit_bye_points_win_over_bye_scoring(self):
        constraints = parse_constraints({"byeScoring": {"win": 2}, "byePoints": 1})
        assert constraints.bye_points == 1
        assert ByePoints(points=2) in constraints.items


class TestPairingHistory:
    def _history(self):
        return PairingHistory(
            [
                MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2"),
                MatchHistoryEntry(round_index=2, player_a_id="p1", player_b_id="p3"),
                MatchHistoryEntry(round_index=2, player_a_id="p4"),
                MatchHistoryEntry(round_index=3, player_a_id="p1", player_b_id="p2"),
            ],
            current_round_index=4,
        )

    def test_counts(self):
        history = self._history()
        assert history.times_played("p2", "p1") == 2
        assert history.times_played("p1", "p4") == 0
        assert history.bye_count("p4") == 1
        assert history.latest_round_index == 3

    def test_lookback_window(self):
        history = self._history()
        assert history.met_within("p1", "p3", None)
        assert history.met_within("p1", "p3", 2)
        assert not history.met_within("p1", "p3", 1)

    def test_conflict_reasons(self):
        history = self._history()
        constraints = parse_constraints({"noBackToBack": True, "maxRematchCount": 2})
        reasons = history.conflict_reasons("p1", "p2", constraints)
        assert reasons == ["repeat", "back_to_back", "rematch_cap"]

    def test_lookback_lets_old_opponents_meet_again(self):
        history = self._history()
        constraints = parse_constraints({"preferNotRepeatLastN": 1})
        assert history.conflict_reasons("p1", "p3", constraints) == []

    def test_same_faction(self):
        history = PairingHistory([])
        constraints = parse_constraints({"avoidSameFaction": True})
        assert history.conflict_reasons("p1", "p2", constraints, "Orcs", "Orcs") == ["same_faction"]
        assert history.conflict_reasons("p1", "p2", constraints, "Orcs", "Elves") == []
        assert history.conflict_reasons("p1", "p2", constraints, None, None) == []


class TestValidatePairings:
    def test_clean_pairings_are_valid(self):
        pairings = [make_pair(_player(1), _player(2)), make_pair(_player(3), _player(4)), make_bye(_player(5), 3)]
        result = validate_pairings(pairings, roster_ids=["p1", "p2", "p3", "p4", "p5"])
        assert result.valid
        assert result.warnings == []

    def test_player_in_two_pairings(self):
        pairings = [make_pair(_player(1), _player(2)), make_pair(_player(1), _player(3))]
        warnings = validate_pairings(pairings).warnings
        assert "Player 1 appears in 2 pairings" in warnings

    def test_same_pair_twice_in_round(self):
        pairings = [make_pair(_player(1), _player(2)), make_pair(_player(2), _player(1))]
        warnings = validate_pairings(pairings).warnings
        assert "Player 1 and Player 2 are paired 2 times in this round" in warnings

    def test_same_pair_twice_allowed_with_rematches(self):
        pairings = [make_pair(_player(1), _player(2)), make_pair(_player(2), _player(1))]
        warnings = validate_pairings(pairings, constraints={"allowRematches": True}).warnings
        assert not any("times in this round" in w for w in warnings)

    def test_player_not_on_roster(self):
        pairings = [make_pair(_player(1), _player(9))]
        warnings = validate_pairings(pairings, roster_ids=["p1", "p2"]).warnings
        assert warnings == ["Player 9 is not on the campaign roster"]

    def test_structural_problems(self):
        broken_bye = make_bye(_player(1), 3)
        broken_bye.participants.append(make_pair(_player(2), _player(3)).participants[0])
        lonely = make_pair(_player(4), _player(5))
        lonely.participants.pop()
        warnings = validate_pairings([broken_bye, lonely]).warnings
        assert "Pairing 1 is a bye but has 2 participants" in warnings
        assert "Pairing 2 has 1 participant(s); expected 2" in warnings

    def test_history_conflicts(self):
        history = [MatchHistoryEntry(round_index=1, player_a_id="p1", player_b_id="p2")]
        pairings = [make_pair(_player(1), _player(2))]
        warnings = validate_pairings(
            pairings, constraints={"noBackToBack": True}, match_history=history, round_index=2
        ).warnings
        assert "Player 1 and Player 2 have already played each other" in warnings
        assert "Player 1 and Player 2 played last round (back-to-back)" in warnings

    def test_same_faction_message(self):
        pairings = [make_pair(_player(1, "Orcs"), _player(2, "Orcs"))]
        warnings = validate_pairings(pairings, constraints={"avoidSameFaction": True}).warnings
        assert warnings == ["Player 1 and Player 2 are both playing Orcs"]

    def test_unknown_constraints_echoed(self):
        warnings = validate_pairings([], constraints={"mystery": 1}).warnings
        assert warnings == ["Constraint 'mystery' was ignored (not recognised)"]


def test_merge_warnings_drops_duplicates_keeps_order():
    assert merge_warnings(["a", "b"], ["b", "c"], ["a"]) == ["a", "b", "c"]
