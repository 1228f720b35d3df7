"""
Lookup and permission guards shared by services and routes.

- Fetch-or-NotFound helpers for rounds and matches
- Round state checks (closed rounds are frozen)
- Campaign role checks against the roster
"""

from typing import Iterable, Optional

from fastapi import Header
from sqlmodel import Session, select

from battletracker.errors import InvalidState, NotFound, PermissionDenied
from battletracker.models.battle_match import BattleMatch
from battletracker.models.battle_round import ROUND_CLOSED, BattleRound
from battletracker.models.campaign_player import ROLE_MODERATOR, CampaignPlayer


def get_actor_id(x_player_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Acting player, identified upstream and forwarded in X-Player-Id."""
    if x_player_id is None:
        return None
    return x_player_id.strip() or None


def get_round_or_404(session: Session, round_id: int) -> BattleRound:
    battle_round = session.get(BattleRound, round_id)
    if not battle_round:
        raise NotFound(f"Round {round_id} not found")
    return battle_round


def get_match_or_404(session: Session, match_id: int) -> BattleMatch:
    match = session.get(BattleMatch, match_id)
    if not match:
        raise NotFound(f"Match {match_id} not found")
    return match


def lock_round_row(session: Session, round_id: int) -> BattleRound:
    """Re-read the round with a row lock for the rest of the transaction."""
    battle_round = session.exec(
        select(BattleRound)
        .where(BattleRound.id == round_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not battle_round:
        raise NotFound(f"Round {round_id} not found")
    return battle_round


def lock_match_row(session: Session, match_id: int) -> BattleMatch:
    match = session.exec(
        select(BattleMatch)
        .where(BattleMatch.id == match_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not match:
        raise NotFound(f"Match {match_id} not found")
    return match


def require_round_not_closed(battle_round: BattleRound, action: str) -> None:
    if battle_round.status == ROUND_CLOSED:
        raise InvalidState(
            f"ROUND_CLOSED: Cannot {action} while round '{battle_round.name}' is closed. Reopen the round first."
        )


def require_round_status(battle_round: BattleRound, allowed: Iterable[str], action: str) -> None:
    allowed = tuple(allowed)
    if battle_round.status not in allowed:
        raise InvalidState(
            f"Cannot {action} while round '{battle_round.name}' is {battle_round.status}; "
            f"round must be {' or '.join(allowed)}"
        )


def get_membership(session: Session, campaign_id: str, player_id: Optional[str]) -> Optional[CampaignPlayer]:
    if not player_id:
        return None
    return session.exec(
        select(CampaignPlayer).where(
            CampaignPlayer.campaign_id == campaign_id,
            CampaignPlayer.player_id == player_id,
        )
    ).first()


def is_moderator(session: Session, campaign_id: str, player_id: Optional[str]) -> bool:
    member = get_membership(session, campaign_id, player_id)
    return bool(member and member.role == ROLE_MODERATOR)


def require_moderator(session: Session, campaign_id: str, player_id: Optional[str], action: str) -> CampaignPlayer:
    member = get_membership(session, campaign_id, player_id)
    if not member or member.role != ROLE_MODERATOR:
        raise PermissionDenied(f"Only campaign moderators can {action}")
    return member
