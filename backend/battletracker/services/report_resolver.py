"""
Report & Dispute Resolver

Participants report their own side of a match; the match status follows the
full set of reports:

- no reports                          -> scheduled
- reports that contradict each other  -> disputed
- otherwise                           -> reported
- complete, consistent, autoApprove   -> resolved (same path as arbitration)

Moderators settle a match with resolve_dispute(). Every decision is
appended to match_result under a new decision_number; the previous decision
stays in the table with is_current = False.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, func, select

from battletracker.errors import InvalidState, MissingReports, PermissionDenied, ValidationError
from battletracker.models.battle_match import (
    MATCH_DISPUTED,
    MATCH_REPORTED,
    MATCH_RESOLVED,
    MATCH_SCHEDULED,
    BattleMatch,
)
from battletracker.models.battle_report import OUTCOME_DRAW, OUTCOME_LOSS, OUTCOME_WIN, OUTCOMES, BattleReport
from battletracker.models.battle_round import ROUND_OPEN
from battletracker.models.match_result import SOURCE_ARBITRATION, SOURCE_AUTO_APPROVE, MatchResult
from battletracker.services import notifications
from battletracker.services.audit_trail import ENTITY_MATCH, ENTITY_REPORT, record_audit
from battletracker.services.notifications import notifier
from battletracker.services.report_fields import ReportDetails, check_report_sections
from battletracker.services.scoring_policy import ScoringPolicy
from battletracker.utils.guards import (
    get_match_or_404,
    is_moderator,
    lock_match_row,
    lock_round_row,
    require_moderator,
    require_round_not_closed,
    require_round_status,
)
from battletracker.utils.locks import scoped_lock

logger = logging.getLogger(__name__)

CONSISTENT_OUTCOMES = {
    (OUTCOME_WIN, OUTCOME_LOSS),
    (OUTCOME_LOSS, OUTCOME_WIN),
    (OUTCOME_DRAW, OUTCOME_DRAW),
}


@dataclass
class ReportSubmission:
    report: BattleReport
    match: BattleMatch
    previous_status: str


def outcomes_consistent(first: str, second: str) -> bool:
    return (first, second) in CONSISTENT_OUTCOMES


def _check_outcome(outcome: str) -> None:
    if outcome not in OUTCOMES:
        raise ValidationError(f"Unknown outcome '{outcome}'; expected one of {', '.join(OUTCOMES)}")


def status_from_reports(match: BattleMatch, reports: List[BattleReport]) -> str:
    if not reports:
        return MATCH_SCHEDULED
    if len(reports) >= 2:
        first, second = reports[0], reports[1]
        if not outcomes_consistent(first.outcome, second.outcome):
            return MATCH_DISPUTED
    return MATCH_REPORTED


def reports_complete(match: BattleMatch, reports: List[BattleReport]) -> bool:
    sides = {p["side"] for p in match.participants}
    return sides == {r.player_side for r in reports}


def _match_reports(session: Session, match_id: int) -> List[BattleReport]:
    return list(
        session.exec(
            select(BattleReport).where(BattleReport.match_id == match_id).order_by(BattleReport.player_side)
        ).all()
    )


def _current_results(session: Session, match_id: int) -> List[MatchResult]:
    return list(
        session.exec(
            select(MatchResult)
            .where(MatchResult.match_id == match_id, MatchResult.is_current == True)  # noqa: E712
            .order_by(MatchResult.id)
        ).all()
    )


def _apply_resolution(
    session: Session,
    match: BattleMatch,
    outcomes: Dict[str, str],
    policy: ScoringPolicy,
    source: str,
    decided_by: Optional[str],
    reason: Optional[str] = None,
) -> int:
    """Write a new decision for every participant and mark the match resolved."""
    last_decision = session.exec(
        select(func.max(MatchResult.decision_number)).where(MatchResult.match_id == match.id)
    ).one()
    decision_number = (last_decision or 0) + 1

    for previous in _current_results(session, match.id):
        previous.is_current = False
        session.add(previous)

    for player_id in match.player_ids():
        outcome = outcomes[player_id]
        session.add(
            MatchResult(
                match_id=match.id,
                player_id=player_id,
                outcome=outcome,
                points=policy.points_for(outcome),
                decision_number=decision_number,
                is_current=True,
                source=source,
                decided_by=decided_by,
                reason=reason,
            )
        )
    session.flush()

    match.status = MATCH_RESOLVED
    match.resolved_at = datetime.utcnow()
    match.updated_at = datetime.utcnow()
    session.add(match)
    record_audit(
        session,
        match.campaign_id,
        ENTITY_MATCH,
        match.id,
        "resolve",
        decided_by,
        changes={"results": outcomes, "decision_number": decision_number, "source": source},
        reason=reason,
    )
    return decision_number


def submit_report(
    session: Session,
    match_id: int,
    side: str,
    outcome: str,
    actor_id: Optional[str],
    narrative: Optional[str] = None,
    details: Optional[ReportDetails] = None,
) -> ReportSubmission:
    _check_outcome(outcome)
    details = details or ReportDetails()
    round_id = get_match_or_404(session, match_id).round_id

    # round before match, same order as close and clear
    with scoped_lock("round", round_id), scoped_lock("match", match_id):
        battle_round = lock_round_row(session, round_id)
        match = lock_match_row(session, match_id)
        require_round_status(battle_round, (ROUND_OPEN,), "submit reports")
        if match.is_bye:
            raise InvalidState("Bye matches do not take reports")
        if match.status == MATCH_RESOLVED:
            raise InvalidState(f"Match {match_id} is already resolved")

        participant = match.participant_for_side(side)
        if participant is None:
            raise ValidationError(f"Side '{side}' is not part of match {match_id}")
        if not actor_id:
            raise PermissionDenied("Reports must be submitted by a player")
        if actor_id != participant["player_id"] and not is_moderator(session, match.campaign_id, actor_id):
            raise PermissionDenied(f"Only the player on side '{side}' or a moderator can report it")

        sections = check_report_sections(battle_round.report_fields_config, narrative, details)
        policy = ScoringPolicy.from_config(battle_round.scoring_config)
        # a round that collects no narrative cannot demand one
        is_quick = policy.check_narrative(narrative) if sections["narrative"] else True

        report = session.exec(
            select(BattleReport).where(BattleReport.match_id == match_id, BattleReport.player_side == side)
        ).first()
        action = "resubmit" if report else "submit"
        if report is None:
            report = BattleReport(match_id=match_id, player_side=side, player_id=participant["player_id"])
        report.submitted_by = actor_id
        report.outcome = outcome
        report.narrative = narrative
        report.is_quick = is_quick
        report.points_earned = details.points_earned
        report.injuries = list(details.injuries)
        report.notable_events = list(details.notable_events)
        report.loot_found = list(details.loot_found)
        report.resources = dict(details.resources)
        report.attachments = list(details.attachments)
        report.submitted_at = datetime.utcnow()
        session.add(report)
        session.flush()
        record_audit(
            session,
            match.campaign_id,
            ENTITY_REPORT,
            report.id,
            action,
            actor_id,
            changes={
                "match_id": match_id,
                "side": side,
                "outcome": outcome,
                "is_quick": is_quick,
                "sections": details.filled_sections(),
            },
        )

        # re-read every report under the match lock before deciding the status
        reports = _match_reports(session, match_id)
        previous_status = match.status
        new_status = status_from_reports(match, reports)

        if new_status == MATCH_REPORTED and policy.auto_approve and reports_complete(match, reports):
            outcomes = {r.player_id: r.outcome for r in reports}
            _apply_resolution(session, match, outcomes, policy, SOURCE_AUTO_APPROVE, actor_id, "auto-approved")
        elif new_status != match.status:
            match.status = new_status
            match.updated_at = datetime.utcnow()
            session.add(match)

        session.commit()
        session.refresh(report)
        session.refresh(match)

    logger.info("Report for match %d side %s: %s (match %s)", match_id, side, outcome, match.status)
    notifier.emit(notifications.REPORT_SUBMITTED, match.campaign_id, round_id=match.round_id, match_id=match_id, side=side)
    if match.status != previous_status:
        notifier.emit(
            notifications.MATCH_STATUS_CHANGED,
            match.campaign_id,
            round_id=match.round_id,
            match_id=match_id,
            old_status=previous_status,
            new_status=match.status,
        )
    if match.status == MATCH_RESOLVED:
        notifier.emit(notifications.MATCH_RESOLVED, match.campaign_id, round_id=match.round_id, match_id=match_id)
    return ReportSubmission(report=report, match=match, previous_status=previous_status)


def _validate_final_results(match: BattleMatch, final_results: Dict[str, str]) -> None:
    expected = set(match.player_ids())
    given = set(final_results)
    problems = []
    for player_id in sorted(expected - given):
        problems.append(f"missing result for player {player_id}")
    for player_id in sorted(given - expected):
        problems.append(f"player {player_id} is not in match {match.id}")
    for player_id, outcome in final_results.items():
        if outcome not in OUTCOMES:
            problems.append(f"unknown outcome '{outcome}' for player {player_id}")
    if problems:
        raise ValidationError("Final results must name every participant exactly once", details=problems)

    ids = match.player_ids()
    if len(ids) == 2 and not outcomes_consistent(final_results[ids[0]], final_results[ids[1]]):
        raise ValidationError(
            f"Final results must be complementary (got {final_results[ids[0]]}/{final_results[ids[1]]})"
        )


def resolve_dispute(
    session: Session,
    match_id: int,
    final_results: Dict[str, str],
    actor_id: Optional[str],
    override: bool = False,
    reason: Optional[str] = None,
) -> BattleMatch:
    """
    Record the authoritative outcome of a match.

    final_results maps each participant's player_id to win/loss/draw.
    Resolving again with the same outcomes changes nothing; different
    outcomes replace the current decision. Without reports the moderator
    must pass override.
    """
    round_id = get_match_or_404(session, match_id).round_id

    with scoped_lock("round", round_id), scoped_lock("match", match_id):
        battle_round = lock_round_row(session, round_id)
        match = lock_match_row(session, match_id)
        require_moderator(session, match.campaign_id, actor_id, "resolve matches")
        require_round_not_closed(battle_round, "resolve matches")
        if match.is_bye:
            raise InvalidState("Bye matches cannot be resolved")

        _validate_final_results(match, final_results)

        if not _match_reports(session, match_id) and not override:
            raise MissingReports(f"Match {match_id} has no reports; pass override to resolve it anyway")

        current = {r.player_id: r.outcome for r in _current_results(session, match_id)}
        if match.status == MATCH_RESOLVED and current == final_results:
            return match

        previous_status = match.status
        policy = ScoringPolicy.from_config(battle_round.scoring_config)
        decision = _apply_resolution(session, match, dict(final_results), policy, SOURCE_ARBITRATION, actor_id, reason)
        session.commit()
        session.refresh(match)

    logger.info("Match %d resolved by %s (decision %d)", match_id, actor_id, decision)
    if previous_status != MATCH_RESOLVED:
        notifier.emit(
            notifications.MATCH_STATUS_CHANGED,
            match.campaign_id,
            round_id=match.round_id,
            match_id=match_id,
            old_status=previous_status,
            new_status=MATCH_RESOLVED,
        )
    notifier.emit(
        notifications.MATCH_RESOLVED,
        match.campaign_id,
        round_id=match.round_id,
        match_id=match_id,
        decision_number=decision,
    )
    return match


def list_reports(session: Session, match_id: int) -> List[BattleReport]:
    get_match_or_404(session, match_id)
    return _match_reports(session, match_id)


def current_results(session: Session, match_id: int) -> List[MatchResult]:
    get_match_or_404(session, match_id)
    return _current_results(session, match_id)


def result_history(session: Session, match_id: int) -> List[MatchResult]:
    """Every decision ever written for the match, oldest first."""
    get_match_or_404(session, match_id)
    return list(
        session.exec(
            select(MatchResult)
            .where(MatchResult.match_id == match_id)
            .order_by(MatchResult.decision_number, MatchResult.id)
        ).all()
    )
