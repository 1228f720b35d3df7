"""
Campaign roster: the players a campaign pairs, and who moderates it.
"""

import logging
from typing import List, Optional

from sqlmodel import Session, func, select

from battletracker.errors import ValidationError
from battletracker.models.campaign_player import ROLE_MODERATOR, ROLES, CampaignPlayer
from battletracker.utils.guards import get_membership, require_moderator

logger = logging.getLogger(__name__)


def list_roster(session: Session, campaign_id: str) -> List[CampaignPlayer]:
    return list(
        session.exec(
            select(CampaignPlayer).where(CampaignPlayer.campaign_id == campaign_id).order_by(CampaignPlayer.id)
        ).all()
    )


def add_player(
    session: Session,
    campaign_id: str,
    actor_id: Optional[str],
    player_id: str,
    display_name: str,
    role: str = "player",
    faction: Optional[str] = None,
    warband_id: Optional[str] = None,
    warband_name: Optional[str] = None,
) -> CampaignPlayer:
    """
    Add a player to a campaign roster.

    The first entry of an empty campaign needs no moderator (it is normally
    the moderator creating the campaign); later entries do.
    """
    if role not in ROLES:
        raise ValidationError(f"Unknown role '{role}'; expected one of {', '.join(ROLES)}")

    roster_size = session.exec(
        select(func.count()).select_from(CampaignPlayer).where(CampaignPlayer.campaign_id == campaign_id)
    ).one()
    if roster_size:
        require_moderator(session, campaign_id, actor_id, "add players")

    if get_membership(session, campaign_id, player_id):
        raise ValidationError(f"Player {player_id} is already on the roster of campaign {campaign_id}")

    member = CampaignPlayer(
        campaign_id=campaign_id,
        player_id=player_id,
        display_name=display_name,
        role=role,
        faction=faction,
        warband_id=warband_id,
        warband_name=warband_name,
    )
    session.add(member)
    session.commit()
    session.refresh(member)

    if role == ROLE_MODERATOR:
        logger.info("Added moderator %s to campaign %s", player_id, campaign_id)
    return member
