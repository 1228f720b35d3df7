from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from battletracker.models.battle_report import BattleReport
    from battletracker.models.battle_round import BattleRound
    from battletracker.models.match_result import MatchResult

MATCH_SCHEDULED = "scheduled"
MATCH_REPORTED = "reported"
MATCH_DISPUTED = "disputed"
MATCH_RESOLVED = "resolved"
MATCH_STATUSES = (MATCH_SCHEDULED, MATCH_REPORTED, MATCH_DISPUTED, MATCH_RESOLVED)


class BattleMatch(SQLModel, table=True):
    __tablename__ = "battle_match"
    __table_args__ = (SAUniqueConstraint("round_id", "match_index", name="uq_round_match_index"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    round_id: int = Field(foreign_key="battle_round.id", index=True, ondelete="CASCADE")
    campaign_id: str = Field(index=True)
    match_index: int  # 0-based, contiguous within the round

    # [{player_id, player_name, side, warband_id?, warband_name?, faction?}]
    participants: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_bye: bool = Field(default=False)
    bye_points: Optional[int] = Field(default=None)  # only set on bye matches

    status: str = Field(default=MATCH_SCHEDULED)  # "scheduled" | "reported" | "disputed" | "resolved"
    notes: Optional[str] = Field(default=None)
    resolved_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    round: "BattleRound" = Relationship(back_populates="matches")
    reports: List["BattleReport"] = Relationship(
        back_populates="match", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    results: List["MatchResult"] = Relationship(
        back_populates="match", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )

    def player_ids(self) -> List[str]:
        return [p["player_id"] for p in self.participants]

    def participant_for_side(self, side: str) -> Optional[Dict[str, Any]]:
        for p in self.participants:
            if p.get("side") == side:
                return p
        return None
