from battletracker.models.audit_entry import BattleAuditEntry
from battletracker.models.battle_match import BattleMatch
from battletracker.models.battle_report import BattleReport
from battletracker.models.battle_round import BattleRound
from battletracker.models.campaign_player import CampaignPlayer
from battletracker.models.match_result import MatchResult

__all__ = [
    "BattleRound",
    "BattleMatch",
    "BattleReport",
    "MatchResult",
    "CampaignPlayer",
    "BattleAuditEntry",
]
