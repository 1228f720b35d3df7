"""
Campaign standings: win/draw/loss point accumulation.

Points come from the current decision of every resolved match plus the
bye points of bye matches. Nothing is stored; standings are recomputed from
the ledger, so re-resolving a match can never double-score it.
"""

from dataclasses import dataclass
from typing import Dict, List

from sqlmodel import Session, select

from battletracker.models.battle_match import BattleMatch
from battletracker.models.battle_report import OUTCOME_DRAW, OUTCOME_LOSS, OUTCOME_WIN
from battletracker.models.campaign_player import CampaignPlayer
from battletracker.models.match_result import MatchResult


@dataclass
class StandingRow:
    player_id: str
    display_name: str
    points: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    byes: int = 0

    @property
    def played(self) -> int:
        return self.wins + self.draws + self.losses


def compute_standings(session: Session, campaign_id: str) -> List[StandingRow]:
    roster = session.exec(
        select(CampaignPlayer).where(CampaignPlayer.campaign_id == campaign_id).order_by(CampaignPlayer.id)
    ).all()
    rows: Dict[str, StandingRow] = {
        member.player_id: StandingRow(player_id=member.player_id, display_name=member.display_name)
        for member in roster
    }

    results = session.exec(
        select(MatchResult)
        .join(BattleMatch, MatchResult.match_id == BattleMatch.id)
        .where(BattleMatch.campaign_id == campaign_id, MatchResult.is_current == True)  # noqa: E712
        .order_by(MatchResult.id)
    ).all()
    for result in results:
        row = rows.setdefault(result.player_id, StandingRow(player_id=result.player_id, display_name=result.player_id))
        row.points += result.points
        if result.outcome == OUTCOME_WIN:
            row.wins += 1
        elif result.outcome == OUTCOME_DRAW:
            row.draws += 1
        elif result.outcome == OUTCOME_LOSS:
            row.losses += 1

    byes = session.exec(
        select(BattleMatch).where(BattleMatch.campaign_id == campaign_id, BattleMatch.is_bye == True)  # noqa: E712
    ).all()
    for match in byes:
        for participant in match.participants:
            pid = participant["player_id"]
            row = rows.setdefault(pid, StandingRow(player_id=pid, display_name=participant.get("player_name") or pid))
            row.points += match.bye_points or 0
            row.byes += 1

    return sorted(rows.values(), key=lambda r: (-r.points, -r.wins, r.display_name.lower(), r.player_id))


def points_by_player(session: Session, campaign_id: str) -> Dict[str, int]:
    return {row.player_id: row.points for row in compute_standings(session, campaign_id)}
