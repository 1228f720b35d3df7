"""
Campaign Player Model

Roster entry for a campaign. Provides display names and factions to the
pairing engine and the role used for moderator checks.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

ROLE_MODERATOR = "moderator"
ROLE_PLAYER = "player"
ROLES = (ROLE_MODERATOR, ROLE_PLAYER)


class CampaignPlayer(SQLModel, table=True):
    __tablename__ = "campaign_player"
    __table_args__ = (SAUniqueConstraint("campaign_id", "player_id", name="uq_campaign_player"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: str = Field(index=True)
    player_id: str = Field(index=True)
    display_name: str
    faction: Optional[str] = Field(default=None)
    warband_id: Optional[str] = Field(default=None)
    warband_name: Optional[str] = Field(default=None)
    role: str = Field(default=ROLE_PLAYER)  # "moderator" | "player"
    created_at: datetime = Field(default_factory=datetime.utcnow)
