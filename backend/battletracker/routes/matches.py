from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from battletracker.database import get_session
from battletracker.routes.rounds import MatchResponse
from battletracker.services.match_ledger import delete_match
from battletracker.services.report_fields import ReportDetails
from battletracker.services.report_resolver import (
    current_results,
    list_reports,
    resolve_dispute,
    result_history,
    submit_report,
)
from battletracker.utils.guards import get_actor_id, get_match_or_404

router = APIRouter()


class InjuryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unit_name: str = Field(alias="unitName")
    injury: str
    notes: Optional[str] = None


class NotableEvent(BaseModel):
    tag: str
    description: str


class LootEntry(BaseModel):
    item: str
    quantity: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class ResourceTally(BaseModel):
    gained: Optional[int] = Field(default=None, ge=0)
    spent: Optional[int] = Field(default=None, ge=0)


class Attachment(BaseModel):
    url: str
    type: str
    name: str


class ReportCreate(BaseModel):
    side: str
    outcome: str
    narrative: Optional[str] = None
    points_earned: int = Field(default=0, ge=0)
    injuries: List[InjuryEntry] = []
    notable_events: List[NotableEvent] = []
    loot_found: List[LootEntry] = []
    resources: ResourceTally = Field(default_factory=ResourceTally)
    attachments: List[Attachment] = []

    @field_validator("outcome")
    @classmethod
    def normalise_outcome(cls, v):
        return v.strip().lower()

    def details(self) -> ReportDetails:
        """Sections in the camelCase shape stored on the report."""
        return ReportDetails(
            points_earned=self.points_earned,
            injuries=[i.model_dump(by_alias=True, exclude_none=True) for i in self.injuries],
            notable_events=[e.model_dump() for e in self.notable_events],
            loot_found=[loot.model_dump(exclude_none=True) for loot in self.loot_found],
            resources=self.resources.model_dump(exclude_none=True),
            attachments=[a.model_dump() for a in self.attachments],
        )


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    match_id: int
    player_side: str
    player_id: str
    submitted_by: str
    outcome: str
    points_earned: int = 0
    narrative: Optional[str] = None
    is_quick: bool
    injuries: List[Dict[str, Any]] = []
    notable_events: List[Dict[str, Any]] = []
    loot_found: List[Dict[str, Any]] = []
    resources: Dict[str, Any] = {}
    attachments: List[Dict[str, Any]] = []
    submitted_at: datetime


class ReportSubmitResponse(BaseModel):
    report: ReportResponse
    match_status: str


class ResolveRequest(BaseModel):
    # player_id -> "win" | "loss" | "draw"
    final_results: Dict[str, str]
    override: bool = False
    reason: Optional[str] = None


class ResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    match_id: int
    player_id: str
    outcome: str
    points: int
    decision_number: int
    is_current: bool
    source: str
    decided_by: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class MatchDetailResponse(MatchResponse):
    reports: List[ReportResponse] = []
    results: List[ResultResponse] = []


def _match_detail(session: Session, match_id: int) -> MatchDetailResponse:
    match = get_match_or_404(session, match_id)
    detail = MatchDetailResponse.model_validate(match, from_attributes=True)
    detail.reports = [ReportResponse.model_validate(r) for r in list_reports(session, match_id)]
    detail.results = [ResultResponse.model_validate(r) for r in current_results(session, match_id)]
    return detail


@router.get("/matches/{match_id}", response_model=MatchDetailResponse)
def get_match(match_id: int, session: Session = Depends(get_session)):
    """Get a match with its reports and current results"""
    return _match_detail(session, match_id)


@router.delete("/matches/{match_id}", status_code=204)
def remove_match(
    match_id: int,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Delete a match; later matches of the round move up one index"""
    delete_match(session, match_id, actor_id)
    return None


@router.get("/matches/{match_id}/reports", response_model=List[ReportResponse])
def get_match_reports(match_id: int, session: Session = Depends(get_session)):
    return list_reports(session, match_id)


@router.post("/matches/{match_id}/reports", response_model=ReportSubmitResponse, status_code=201)
def create_match_report(
    match_id: int,
    report_data: ReportCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """
    Report one side's outcome.

    A second report for the same side replaces the first. The response
    carries the match status after the report: reported, disputed, or
    resolved when the round auto-approves consistent reports.
    """
    submission = submit_report(
        session,
        match_id,
        report_data.side,
        report_data.outcome,
        actor_id,
        narrative=report_data.narrative,
        details=report_data.details(),
    )
    return ReportSubmitResponse(
        report=ReportResponse.model_validate(submission.report),
        match_status=submission.match.status,
    )


@router.post("/matches/{match_id}/resolve", response_model=MatchDetailResponse)
def resolve_match(
    match_id: int,
    resolve_data: ResolveRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    session: Session = Depends(get_session),
):
    """Moderator decision on the outcome of a match"""
    final_results = {pid: outcome.strip().lower() for pid, outcome in resolve_data.final_results.items()}
    resolve_dispute(
        session,
        match_id,
        final_results,
        actor_id,
        override=resolve_data.override,
        reason=resolve_data.reason,
    )
    return _match_detail(session, match_id)


@router.get("/matches/{match_id}/results", response_model=List[ResultResponse])
def get_match_results(match_id: int, session: Session = Depends(get_session)):
    """Every decision recorded for the match, oldest first"""
    return result_history(session, match_id)
