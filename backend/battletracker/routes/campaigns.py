from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from battletracker.database import get_session
from battletracker.routes.rounds import ReportFieldsConfig, RoundResponse, ScoringConfigUpdate
from battletracker.services.audit_trail import list_audit
from battletracker.services.round_lifecycle import create_round, list_rounds
from battletracker.services.roster import add_player, list_roster
from battletracker.services.standings import compute_standings
from battletracker.utils.guards import get_actor_id

router = APIRouter()


class PlayerCreate(BaseModel):
    player_id: str
    display_name: str
    role: str = "player"
    faction: Optional[str] = None
    warband_id: Optional[str] = None
    warband_name: Optional[str] = None

    @field_validator("player_id", "display_name")
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("cannot be empty")
        return v.strip()


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    campaign_id: str
    player_id: str
    display_name: str
    role: str
    faction: Optional[str] = None
    warband_id: Optional[str] = None
    warband_name: Optional[str] = None


class RoundCreate(BaseModel):
    name: Optional[str] = None
    round_index: Optional[int] = None
    pairing_system: str = "manual"
    constraints_config: Dict[str, Any] = Field(default_factory=dict)
    scoring_config: Optional[ScoringConfigUpdate] = None
    report_fields_config: Optional[ReportFieldsConfig] = None
    starts_at: Optional[date] = None
    ends_at: Optional[date] = None


class StandingResponse(BaseModel):
    player_id: str
    display_name: str
    points: int
    played: int
    wins: int
    draws: int
    losses: int
    byes: int


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: int
    action: str
    changed_by: Optional[str] = None
    changes: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None
    created_at: datetime


@router.get("/campaigns/{campaign_id}/players", response_model=List[PlayerResponse])
def get_campaign_players(campaign_id: str, session: Session = Depends(get_session)):
    """Get the campaign roster"""
    return list_roster(session, campaign_id)


@router.post("/campaigns/{campaign_id}/players", response_model=PlayerResponse, status_code=201)
def add_campaign_player(
    campaign_id: str,
    player_data: PlayerCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Add a player to the campaign roster (moderators only, except for the first entry)"""
    return add_player(session, campaign_id, actor_id, **player_data.model_dump())


@router.get("/campaigns/{campaign_id}/rounds", response_model=List[RoundResponse])
def get_campaign_rounds(campaign_id: str, session: Session = Depends(get_session)):
    """Get all rounds of a campaign, in round order"""
    return list_rounds(session, campaign_id)


@router.post("/campaigns/{campaign_id}/rounds", response_model=RoundResponse, status_code=201)
def create_campaign_round(
    campaign_id: str,
    round_data: RoundCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Create a round; round_index defaults to the next free index"""
    fields = round_data.model_dump(exclude={"scoring_config", "report_fields_config"})
    if round_data.scoring_config is not None:
        fields["scoring_config"] = round_data.scoring_config.model_dump(by_alias=True)
    if round_data.report_fields_config is not None:
        fields["report_fields_config"] = round_data.report_fields_config.model_dump(exclude_none=True)
    return create_round(session, campaign_id, actor_id, **fields)


@router.get("/campaigns/{campaign_id}/standings", response_model=List[StandingResponse])
def get_campaign_standings(campaign_id: str, session: Session = Depends(get_session)):
    rows = compute_standings(session, campaign_id)
    return [
        StandingResponse(
            player_id=row.player_id,
            display_name=row.display_name,
            points=row.points,
            played=row.played,
            wins=row.wins,
            draws=row.draws,
            losses=row.losses,
            byes=row.byes,
        )
        for row in rows
    ]


@router.get("/campaigns/{campaign_id}/audit", response_model=List[AuditEntryResponse])
def get_campaign_audit(
    campaign_id: str,
    entity_type: Optional[str] = Query(default=None),
    entity_id: Optional[int] = Query(default=None),
    session: Session = Depends(get_session),
):
    """Audit trail of rounds, matches and reports"""
    return list_audit(session, campaign_id, entity_type=entity_type, entity_id=entity_id)
