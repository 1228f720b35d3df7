"""
Match Result Model

Append-only log of authoritative per-player outcomes. Each resolution of a
match writes one row per participant under a new decision_number; rows of
earlier decisions stay with is_current = False.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from battletracker.models.battle_match import BattleMatch

SOURCE_ARBITRATION = "arbitration"
SOURCE_AUTO_APPROVE = "auto_approve"


class MatchResult(SQLModel, table=True):
    __tablename__ = "match_result"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="battle_match.id", index=True, ondelete="CASCADE")
    player_id: str = Field(index=True)
    outcome: str  # "win" | "loss" | "draw"
    points: int
    decision_number: int = Field(default=1)
    is_current: bool = Field(default=True, index=True)
    source: str = Field(default=SOURCE_ARBITRATION)  # "arbitration" | "auto_approve"
    decided_by: Optional[str] = Field(default=None)
    reason: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    match: "BattleMatch" = Relationship(back_populates="results")
