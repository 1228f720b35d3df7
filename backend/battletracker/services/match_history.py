"""
Inputs for the pairing algorithms, read from the ledger and the roster.

History covers every earlier round of the campaign (lower round_index), not
just the round being paired, so repeat avoidance and bye rotation see the
whole campaign.
"""

from typing import List

from sqlmodel import Session, select

from battletracker.models.battle_match import BattleMatch
from battletracker.models.battle_round import BattleRound
from battletracker.models.campaign_player import ROLE_MODERATOR, CampaignPlayer
from battletracker.services.pairing_types import MatchHistoryEntry, Player
from battletracker.services.standings import points_by_player


def build_match_history(session: Session, battle_round: BattleRound) -> List[MatchHistoryEntry]:
    rows = session.exec(
        select(BattleMatch, BattleRound.round_index)
        .join(BattleRound, BattleMatch.round_id == BattleRound.id)
        .where(
            BattleRound.campaign_id == battle_round.campaign_id,
            BattleRound.round_index < battle_round.round_index,
        )
        .order_by(BattleRound.round_index, BattleMatch.match_index)
    ).all()

    history: List[MatchHistoryEntry] = []
    for match, round_index in rows:
        ids = match.player_ids()
        if match.is_bye and len(ids) == 1:
            history.append(MatchHistoryEntry(round_index=round_index, player_a_id=ids[0]))
        elif len(ids) >= 2:
            history.append(MatchHistoryEntry(round_index=round_index, player_a_id=ids[0], player_b_id=ids[1]))
    return history


def roster_players(session: Session, campaign_id: str, include_moderators: bool = False) -> List[Player]:
    """Campaign roster as pairing input, with points from the standings."""
    query = select(CampaignPlayer).where(CampaignPlayer.campaign_id == campaign_id)
    if not include_moderators:
        query = query.where(CampaignPlayer.role != ROLE_MODERATOR)
    members = session.exec(query.order_by(CampaignPlayer.id)).all()
    points = points_by_player(session, campaign_id)
    return [
        Player(
            player_id=m.player_id,
            name=m.display_name,
            points=points.get(m.player_id, 0),
            faction=m.faction,
            warband_id=m.warband_id,
            warband_name=m.warband_name,
        )
        for m in members
    ]
