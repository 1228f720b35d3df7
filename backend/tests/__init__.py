# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from battletracker.models import (  # noqa: F401
    BattleAuditEntry,
    BattleMatch,
    BattleReport,
    BattleRound,
    CampaignPlayer,
    MatchResult,
)
