from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from battletracker.models.battle_match import BattleMatch

ROUND_DRAFT = "draft"
ROUND_OPEN = "open"
ROUND_CLOSED = "closed"
ROUND_STATUSES = (ROUND_DRAFT, ROUND_OPEN, ROUND_CLOSED)

PAIRING_MANUAL = "manual"
PAIRING_RANDOM = "random"
PAIRING_SWISS = "swiss"
PAIRING_ROUND_ROBIN = "round_robin"
PAIRING_SYSTEMS = (PAIRING_MANUAL, PAIRING_RANDOM, PAIRING_SWISS, PAIRING_ROUND_ROBIN)


def default_scoring_config() -> Dict[str, Any]:
    return {
        "win": 3,
        "draw": 1,
        "loss": 0,
        "requireNarrative": False,
        "autoApprove": False,
        "quickResultAllowed": True,
    }


def default_report_fields_config() -> Dict[str, bool]:
    """Which optional sections a battle report collects in a round."""
    return {
        "narrative": True,
        "injuries": True,
        "loot": True,
        "events": True,
        "resources": False,
    }


class BattleRound(SQLModel, table=True):
    __tablename__ = "battle_round"
    __table_args__ = (SAUniqueConstraint("campaign_id", "round_index", name="uq_campaign_round_index"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: str = Field(index=True)
    round_index: int  # 1-based, unique per campaign
    name: str
    status: str = Field(default=ROUND_DRAFT)  # "draft" | "open" | "closed"
    pairing_system: str = Field(default=PAIRING_MANUAL)  # "manual" | "random" | "swiss" | "round_robin"
    starts_at: Optional[date] = Field(default=None)
    ends_at: Optional[date] = Field(default=None)

    # Free-form map; parsed by services.pairing_constraints
    constraints_config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    scoring_config: Dict[str, Any] = Field(
        default_factory=default_scoring_config, sa_column=Column(JSON, nullable=False)
    )
    report_fields_config: Dict[str, bool] = Field(
        default_factory=default_report_fields_config, sa_column=Column(JSON, nullable=False)
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    matches: List["BattleMatch"] = Relationship(
        back_populates="round", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
