from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from battletracker.database import get_session
from battletracker.services.match_ledger import (
    MatchDraft,
    bulk_create_matches,
    create_match,
    delete_all_matches,
    ledger_warnings,
    list_matches,
)
from battletracker.services.pairing_types import SIDE_A, SIDE_B, MatchHistoryEntry, Participant, PairingResult, Player
from battletracker.services.round_lifecycle import (
    confirm_pairings,
    delete_round,
    generate_pairing_preview,
    update_round,
    update_round_status,
    update_scoring_config,
)
from battletracker.utils.guards import get_actor_id, get_round_or_404

router = APIRouter()


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    campaign_id: str
    round_index: int
    name: str
    status: str
    pairing_system: str
    starts_at: Optional[date] = None
    ends_at: Optional[date] = None
    constraints_config: Dict[str, Any] = Field(default_factory=dict)
    scoring_config: Dict[str, Any] = Field(default_factory=dict)
    report_fields_config: Dict[str, bool] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ReportFieldsConfig(BaseModel):
    """Report sections a round collects; sections left out keep their current setting."""

    model_config = ConfigDict(strict=True, extra="forbid")

    narrative: Optional[bool] = None
    injuries: Optional[bool] = None
    loot: Optional[bool] = None
    events: Optional[bool] = None
    resources: Optional[bool] = None


class RoundUpdate(BaseModel):
    name: Optional[str] = None
    pairing_system: Optional[str] = None
    constraints_config: Optional[Dict[str, Any]] = None
    report_fields_config: Optional[ReportFieldsConfig] = None
    starts_at: Optional[date] = None
    ends_at: Optional[date] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and (not v or not v.strip()):
            raise ValueError("name cannot be empty")
        return v.strip() if v else v


class StatusUpdate(BaseModel):
    status: str
    force: bool = False
    reason: Optional[str] = None


class ScoringConfigUpdate(BaseModel):
    # camelCase as stored; snake_case accepted. No "no" -> False coercion.
    model_config = ConfigDict(populate_by_name=True, strict=True)

    win: int = 3
    draw: int = 1
    loss: int = 0
    require_narrative: bool = Field(default=False, alias="requireNarrative")
    auto_approve: bool = Field(default=False, alias="autoApprove")
    quick_result_allowed: bool = Field(default=True, alias="quickResultAllowed")


class ParticipantPayload(BaseModel):
    player_id: str
    player_name: Optional[str] = None
    side: Optional[str] = None
    faction: Optional[str] = None
    warband_id: Optional[str] = None
    warband_name: Optional[str] = None


class PairingPayload(BaseModel):
    participants: List[ParticipantPayload]
    is_bye: bool = False
    bye_points: Optional[int] = None


class PlayerInput(BaseModel):
    player_id: str
    name: Optional[str] = None
    points: int = 0
    faction: Optional[str] = None
    warband_id: Optional[str] = None
    warband_name: Optional[str] = None


class HistoryInput(BaseModel):
    round_index: int
    player_a_id: str
    player_b_id: Optional[str] = None  # None for a bye


class PreviewRequest(BaseModel):
    pairing_system: Optional[str] = None
    players: Optional[List[PlayerInput]] = None
    constraints: Optional[Dict[str, Any]] = None
    match_history: Optional[List[HistoryInput]] = None
    seed: Optional[int] = None
    include_moderators: bool = False


class PreviewResponse(BaseModel):
    round_id: int
    pairing_system: str
    seed: int
    pairings: List[PairingPayload]
    warnings: List[str]


class ConfirmRequest(BaseModel):
    pairings: List[PairingPayload]


class MatchCreate(BaseModel):
    participants: List[ParticipantPayload]
    is_bye: bool = False
    bye_points: Optional[int] = None
    notes: Optional[str] = None


class BulkMatchCreate(BaseModel):
    matches: List[MatchCreate]


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    round_id: int
    campaign_id: str
    match_index: int
    participants: List[Dict[str, Any]]
    is_bye: bool
    bye_points: Optional[int] = None
    status: str
    notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime


def participant_dicts(participants: List[ParticipantPayload]) -> List[Dict[str, Any]]:
    """Payload participants as ledger dicts; missing sides follow list order."""
    default_sides = (SIDE_A, SIDE_B)
    result = []
    for position, p in enumerate(participants):
        data = p.model_dump()
        if not data.get("side") and position < len(default_sides):
            data["side"] = default_sides[position]
        result.append(data)
    return result


def to_pairing_result(payload: PairingPayload) -> PairingResult:
    participants = [
        Participant(
            player_id=p["player_id"],
            player_name=p.get("player_name") or "",
            side=p.get("side"),
            faction=p.get("faction"),
            warband_id=p.get("warband_id"),
            warband_name=p.get("warband_name"),
        )
        for p in participant_dicts(payload.participants)
    ]
    return PairingResult(participants=participants, is_bye=payload.is_bye, bye_points=payload.bye_points)


def to_pairing_payload(pairing: PairingResult) -> PairingPayload:
    return PairingPayload(
        participants=[ParticipantPayload(**p.to_dict()) for p in pairing.participants],
        is_bye=pairing.is_bye,
        bye_points=pairing.bye_points,
    )


@router.get("/rounds/{round_id}", response_model=RoundResponse)
def get_round(round_id: int, session: Session = Depends(get_session)):
    return get_round_or_404(session, round_id)


@router.patch("/rounds/{round_id}", response_model=RoundResponse)
def patch_round(
    round_id: int,
    round_data: RoundUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Rename a round or change its pairing system, constraints, report sections or dates"""
    updates = round_data.model_dump(exclude_unset=True)
    if round_data.report_fields_config is not None:
        updates["report_fields_config"] = round_data.report_fields_config.model_dump(exclude_none=True)
    return update_round(session, round_id, actor_id, updates)


@router.delete("/rounds/{round_id}", status_code=204)
def remove_round(
    round_id: int,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Delete a round together with its matches, reports and results"""
    delete_round(session, round_id, actor_id)
    return None


@router.post("/rounds/{round_id}/status", response_model=RoundResponse)
def change_round_status(
    round_id: int,
    status_data: StatusUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """
    Move a round between draft, open and closed.

    Closing requires every non-bye match to be resolved unless force is set.
    """
    return update_round_status(
        session, round_id, status_data.status, actor_id, force=status_data.force, reason=status_data.reason
    )


@router.put("/rounds/{round_id}/scoring", response_model=RoundResponse)
def put_scoring_config(
    round_id: int,
    scoring_data: ScoringConfigUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    return update_scoring_config(session, round_id, scoring_data.model_dump(by_alias=True), actor_id)


@router.post("/rounds/{round_id}/pairings/preview", response_model=PreviewResponse)
def preview_pairings(round_id: int, request: PreviewRequest, session: Session = Depends(get_session)):
    """
    Propose pairings without saving them.

    Everything the request leaves out comes from the round and campaign:
    roster and standings for players, the round's constraints and pairing
    system, earlier rounds for history, and the round id as seed.
    """
    players = None
    if request.players is not None:
        players = [
            Player(
                player_id=p.player_id,
                name=p.name or p.player_id,
                points=p.points,
                faction=p.faction,
                warband_id=p.warband_id,
                warband_name=p.warband_name,
            )
            for p in request.players
        ]
    history = None
    if request.match_history is not None:
        history = [MatchHistoryEntry(**h.model_dump()) for h in request.match_history]

    preview = generate_pairing_preview(
        session,
        round_id,
        players=players,
        constraints=request.constraints,
        match_history=history,
        seed=request.seed,
        pairing_system=request.pairing_system,
        include_moderators=request.include_moderators,
    )
    return PreviewResponse(
        round_id=preview.round_id,
        pairing_system=preview.pairing_system,
        seed=preview.seed,
        pairings=[to_pairing_payload(p) for p in preview.pairings],
        warnings=preview.warnings,
    )


@router.post("/rounds/{round_id}/pairings/confirm", response_model=List[MatchResponse], status_code=201)
def confirm_round_pairings(
    round_id: int,
    request: ConfirmRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Save an accepted preview as the round's matches"""
    return confirm_pairings(session, round_id, [to_pairing_result(p) for p in request.pairings], actor_id)


@router.get("/rounds/{round_id}/matches", response_model=List[MatchResponse])
def get_round_matches(round_id: int, session: Session = Depends(get_session)):
    return list_matches(session, round_id)


@router.post("/rounds/{round_id}/matches", response_model=MatchResponse, status_code=201)
def create_round_match(
    round_id: int,
    match_data: MatchCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Add one match by hand; it is appended after the existing matches"""
    return create_match(
        session,
        round_id,
        participant_dicts(match_data.participants),
        is_bye=match_data.is_bye,
        bye_points=match_data.bye_points,
        notes=match_data.notes,
        actor_id=actor_id,
    )


@router.post("/rounds/{round_id}/matches/bulk", response_model=List[MatchResponse], status_code=201)
def bulk_create_round_matches(
    round_id: int,
    bulk_data: BulkMatchCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Add several matches at once; if any entry is invalid none are created"""
    drafts = [
        MatchDraft(
            participants=participant_dicts(m.participants),
            is_bye=m.is_bye,
            bye_points=m.bye_points,
            notes=m.notes,
        )
        for m in bulk_data.matches
    ]
    return bulk_create_matches(session, round_id, drafts, actor_id)


@router.delete("/rounds/{round_id}/matches")
def clear_round_matches(
    round_id: int,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Delete every match of the round, with their reports and results"""
    return delete_all_matches(session, round_id, actor_id)


@router.get("/rounds/{round_id}/matches/warnings")
def get_round_match_warnings(round_id: int, session: Session = Depends(get_session)):
    """Pairing warnings for the matches currently in the round"""
    return {"round_id": round_id, "warnings": ledger_warnings(session, round_id)}
