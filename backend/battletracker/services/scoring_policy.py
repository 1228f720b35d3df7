"""
Scoring Policy

Per-round configuration consulted by the resolver; never mutated by it.
Stored on BattleRound.scoring_config in the camelCase shape the UI uses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from battletracker.errors import ValidationError
from battletracker.models.battle_report import OUTCOME_DRAW, OUTCOME_LOSS, OUTCOME_WIN

# policy field -> key stored on BattleRound.scoring_config
_CONFIG_KEYS = {
    "win": "win",
    "draw": "draw",
    "loss": "loss",
    "require_narrative": "requireNarrative",
    "auto_approve": "autoApprove",
    "quick_result_allowed": "quickResultAllowed",
}
_FLAG_FIELDS = {"require_narrative", "auto_approve", "quick_result_allowed"}


@dataclass(frozen=True)
class ScoringPolicy:
    win: int = 3
    draw: int = 1
    loss: int = 0
    require_narrative: bool = False
    auto_approve: bool = False
    quick_result_allowed: bool = True

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "ScoringPolicy":
        """
        Build a policy from a stored or submitted config.

        Accepts the camelCase keys the UI stores and their snake_case
        spellings. Values are never coerced: flags must be booleans and
        points must be integers.
        """
        config = config or {}
        defaults = cls()
        values: Dict[str, Any] = {}
        for name, stored_key in _CONFIG_KEYS.items():
            if stored_key in config:
                value = config[stored_key]
            elif name in config:
                value = config[name]
            else:
                values[name] = getattr(defaults, name)
                continue
            expected = bool if name in _FLAG_FIELDS else int
            # bool is a subclass of int; True is not a point value
            if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
                raise ValidationError(
                    f"Invalid scoring config: '{stored_key}' must be {'a boolean' if expected is bool else 'an integer'}"
                    f" (got {value!r})"
                )
            values[name] = value
        return cls(**values)

    def to_config(self) -> Dict[str, Any]:
        return {
            "win": self.win,
            "draw": self.draw,
            "loss": self.loss,
            "requireNarrative": self.require_narrative,
            "autoApprove": self.auto_approve,
            "quickResultAllowed": self.quick_result_allowed,
        }

    def points_for(self, outcome: str) -> int:
        if outcome == OUTCOME_WIN:
            return self.win
        if outcome == OUTCOME_DRAW:
            return self.draw
        if outcome == OUTCOME_LOSS:
            return self.loss
        raise ValidationError(f"Unknown outcome: {outcome}")

    def check_narrative(self, narrative: Optional[str]) -> bool:
        """
        Apply the narrative rule to a report.

        Returns True when the report counts as a quick (narrative-less) report.
        Raises ValidationError when a narrative is required and quick results
        are not allowed.
        """
        missing = not (narrative or "").strip()
        if missing and self.require_narrative and not self.quick_result_allowed:
            raise ValidationError("A narrative is required for reports in this round")
        return missing

    def validate(self) -> None:
        if not (self.win >= self.draw >= self.loss):
            raise ValidationError(
                f"Scoring must satisfy win >= draw >= loss (got win={self.win}, draw={self.draw}, loss={self.loss})"
            )
