from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from battletracker.models.battle_match import BattleMatch

OUTCOME_WIN = "win"
OUTCOME_LOSS = "loss"
OUTCOME_DRAW = "draw"
OUTCOMES = (OUTCOME_WIN, OUTCOME_LOSS, OUTCOME_DRAW)


class BattleReport(SQLModel, table=True):
    """
    A participant's self-reported outcome for one side of a match.

    One row per (match, side); resubmitting before resolution replaces it.
    """

    __tablename__ = "battle_report"
    __table_args__ = (SAUniqueConstraint("match_id", "player_side", name="uq_match_report_side"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="battle_match.id", index=True, ondelete="CASCADE")
    player_side: str
    player_id: str
    submitted_by: str
    outcome: str  # "win" | "loss" | "draw"
    points_earned: int = Field(default=0)
    narrative: Optional[str] = Field(default=None)
    is_quick: bool = Field(default=False)  # submitted without a narrative

    # Optional sections, gated by BattleRound.report_fields_config
    injuries: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    notable_events: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    loot_found: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    resources: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    attachments: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    submitted_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    match: "BattleMatch" = Relationship(back_populates="reports")
