"""
Round Lifecycle Manager

Status machine for rounds (draft -> open -> closed, closed -> open) and the
operations it gates: round edits, scoring edits, pairing previews and the
confirmation of a preview into the match ledger.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, func, select

from battletracker.errors import InvalidState, ValidationError
from battletracker.models.battle_match import MATCH_RESOLVED, BattleMatch
from battletracker.models.battle_round import (
    PAIRING_SYSTEMS,
    ROUND_CLOSED,
    ROUND_DRAFT,
    ROUND_OPEN,
    ROUND_STATUSES,
    BattleRound,
)
from battletracker.models.campaign_player import CampaignPlayer
from battletracker.services import notifications
from battletracker.services.audit_trail import ENTITY_ROUND, record_audit
from battletracker.services.match_history import build_match_history, roster_players
from battletracker.services.match_ledger import MatchDraft, insert_matches
from battletracker.services.notifications import notifier
from battletracker.services.pairing import generate_pairings, merge_warnings, validate_pairings
from battletracker.services.pairing_types import MatchHistoryEntry, PairingResult, Player
from battletracker.services.report_fields import normalise_report_fields_config
from battletracker.services.scoring_policy import ScoringPolicy
from battletracker.utils.guards import (
    get_round_or_404,
    lock_round_row,
    require_moderator,
    require_round_not_closed,
    require_round_status,
)
from battletracker.utils.locks import scoped_lock

logger = logging.getLogger(__name__)

TRANSITIONS = {
    ROUND_DRAFT: {ROUND_OPEN},
    ROUND_OPEN: {ROUND_CLOSED},
    ROUND_CLOSED: {ROUND_OPEN},
}


@dataclass
class PairingPreview:
    round_id: int
    pairing_system: str
    seed: int
    pairings: List[PairingResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def normalise_pairing_system(system: str) -> str:
    normalised = (system or "").strip().lower().replace("-", "_")
    if normalised not in PAIRING_SYSTEMS:
        raise ValidationError(
            f"Unknown pairing system '{system}'; expected one of {', '.join(PAIRING_SYSTEMS)}"
        )
    return normalised


def _validated_scoring(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    policy = ScoringPolicy.from_config(config)
    policy.validate()
    return policy.to_config()


def list_rounds(session: Session, campaign_id: str) -> List[BattleRound]:
    return list(
        session.exec(
            select(BattleRound).where(BattleRound.campaign_id == campaign_id).order_by(BattleRound.round_index)
        ).all()
    )


def create_round(
    session: Session,
    campaign_id: str,
    actor_id: Optional[str],
    name: Optional[str] = None,
    round_index: Optional[int] = None,
    pairing_system: str = "manual",
    constraints_config: Optional[Dict[str, Any]] = None,
    scoring_config: Optional[Dict[str, Any]] = None,
    report_fields_config: Optional[Dict[str, Any]] = None,
    starts_at: Optional[date] = None,
    ends_at: Optional[date] = None,
) -> BattleRound:
    require_moderator(session, campaign_id, actor_id, "create rounds")
    system = normalise_pairing_system(pairing_system)
    scoring = _validated_scoring(scoring_config)
    report_fields = normalise_report_fields_config(report_fields_config)

    if round_index is None:
        current_max = session.exec(
            select(func.max(BattleRound.round_index)).where(BattleRound.campaign_id == campaign_id)
        ).one()
        round_index = (current_max or 0) + 1
    elif round_index < 1:
        raise ValidationError("round_index must be >= 1")
    else:
        existing = session.exec(
            select(BattleRound).where(BattleRound.campaign_id == campaign_id, BattleRound.round_index == round_index)
        ).first()
        if existing:
            raise ValidationError(f"Round {round_index} already exists in this campaign")

    if starts_at and ends_at and ends_at < starts_at:
        raise ValidationError("ends_at cannot be before starts_at")

    battle_round = BattleRound(
        campaign_id=campaign_id,
        round_index=round_index,
        name=(name or "").strip() or f"Round {round_index}",
        pairing_system=system,
        constraints_config=dict(constraints_config or {}),
        scoring_config=scoring,
        report_fields_config=report_fields,
        starts_at=starts_at,
        ends_at=ends_at,
    )
    session.add(battle_round)
    session.flush()
    record_audit(
        session,
        campaign_id,
        ENTITY_ROUND,
        battle_round.id,
        "create",
        actor_id,
        changes={"round_index": round_index, "name": battle_round.name, "pairing_system": system},
    )
    session.commit()
    session.refresh(battle_round)

    logger.info("Created round %d (%s) in campaign %s", battle_round.id, battle_round.name, campaign_id)
    notifier.emit(notifications.ROUND_CREATED, campaign_id, round_id=battle_round.id)
    return battle_round


def update_round(
    session: Session,
    round_id: int,
    actor_id: Optional[str],
    updates: Dict[str, Any],
) -> BattleRound:
    """
    Edit name, pairing system, constraints, report sections or dates.

    `updates` holds only the fields the caller sent. Closed rounds are frozen.
    """
    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_moderator(session, battle_round.campaign_id, actor_id, "edit rounds")
        require_round_not_closed(battle_round, "edit the round")

        changes: Dict[str, Any] = {}
        if "name" in updates and updates["name"] is not None:
            new_name = updates["name"].strip()
            if not new_name:
                raise ValidationError("name cannot be empty")
            if new_name != battle_round.name:
                changes["name"] = [battle_round.name, new_name]
                battle_round.name = new_name
        if "pairing_system" in updates and updates["pairing_system"] is not None:
            system = normalise_pairing_system(updates["pairing_system"])
            if system != battle_round.pairing_system:
                changes["pairing_system"] = [battle_round.pairing_system, system]
                battle_round.pairing_system = system
        if "constraints_config" in updates:
            new_constraints = dict(updates["constraints_config"] or {})
            if new_constraints != battle_round.constraints_config:
                changes["constraints_config"] = [battle_round.constraints_config, new_constraints]
                battle_round.constraints_config = new_constraints
        if updates.get("report_fields_config") is not None:
            current_fields = dict(battle_round.report_fields_config or {})
            new_fields = normalise_report_fields_config({**current_fields, **updates["report_fields_config"]})
            if new_fields != current_fields:
                changes["report_fields_config"] = [current_fields, new_fields]
                battle_round.report_fields_config = new_fields
        for date_field in ("starts_at", "ends_at"):
            if date_field in updates and updates[date_field] != getattr(battle_round, date_field):
                old = getattr(battle_round, date_field)
                changes[date_field] = [str(old) if old else None, str(updates[date_field]) if updates[date_field] else None]
                setattr(battle_round, date_field, updates[date_field])

        if battle_round.starts_at and battle_round.ends_at and battle_round.ends_at < battle_round.starts_at:
            raise ValidationError("ends_at cannot be before starts_at")

        if not changes:
            return battle_round

        battle_round.updated_at = datetime.utcnow()
        session.add(battle_round)
        record_audit(session, battle_round.campaign_id, ENTITY_ROUND, round_id, "update", actor_id, changes=changes)
        session.commit()
        session.refresh(battle_round)

    notifier.emit(notifications.ROUND_UPDATED, battle_round.campaign_id, round_id=round_id, fields=sorted(changes))
    return battle_round


def delete_round(session: Session, round_id: int, actor_id: Optional[str]) -> None:
    """Delete a round with its matches, reports and results."""
    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        campaign_id = battle_round.campaign_id
        require_moderator(session, campaign_id, actor_id, "delete rounds")

        match_count = len(battle_round.matches)
        session.delete(battle_round)
        record_audit(
            session,
            campaign_id,
            ENTITY_ROUND,
            round_id,
            "delete",
            actor_id,
            changes={"round_index": battle_round.round_index, "deleted_matches": match_count},
        )
        session.commit()

    logger.info("Deleted round %d (%d match(es)) from campaign %s", round_id, match_count, campaign_id)
    notifier.emit(notifications.ROUND_DELETED, campaign_id, round_id=round_id)


def update_round_status(
    session: Session,
    round_id: int,
    status: str,
    actor_id: Optional[str],
    force: bool = False,
    reason: Optional[str] = None,
) -> BattleRound:
    """
    Move a round to `status`.

    Requesting the current status is a no-op. Closing a round with unresolved
    matches fails unless force is set; reopening keeps all results.
    """
    if status not in ROUND_STATUSES:
        raise ValidationError(f"Unknown round status '{status}'; expected one of {', '.join(ROUND_STATUSES)}")

    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_moderator(session, battle_round.campaign_id, actor_id, "change round status")

        old_status = battle_round.status
        if old_status == status:
            return battle_round
        if status not in TRANSITIONS.get(old_status, set()):
            raise InvalidState(f"Cannot move round '{battle_round.name}' from {old_status} to {status}")

        if status == ROUND_CLOSED and not force:
            unresolved = session.exec(
                select(BattleMatch)
                .where(
                    BattleMatch.round_id == round_id,
                    BattleMatch.is_bye == False,  # noqa: E712
                    BattleMatch.status != MATCH_RESOLVED,
                )
                .order_by(BattleMatch.match_index)
            ).all()
            if unresolved:
                raise InvalidState(
                    f"Cannot close round '{battle_round.name}': {len(unresolved)} match(es) are not resolved",
                    details=[{"match_id": m.id, "match_index": m.match_index, "status": m.status} for m in unresolved],
                )

        battle_round.status = status
        battle_round.updated_at = datetime.utcnow()
        session.add(battle_round)
        record_audit(
            session,
            battle_round.campaign_id,
            ENTITY_ROUND,
            round_id,
            "status_change",
            actor_id,
            changes={"status": [old_status, status], "force": force},
            reason=reason,
        )
        session.commit()
        session.refresh(battle_round)

    logger.info("Round %d status %s -> %s%s", round_id, old_status, status, " (forced)" if force else "")
    notifier.emit(
        notifications.ROUND_STATUS_CHANGED,
        battle_round.campaign_id,
        round_id=round_id,
        old_status=old_status,
        new_status=status,
    )
    return battle_round


def update_scoring_config(
    session: Session,
    round_id: int,
    scoring_config: Dict[str, Any],
    actor_id: Optional[str],
) -> BattleRound:
    """Replace the round's scoring policy; omitted keys fall back to defaults."""
    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_moderator(session, battle_round.campaign_id, actor_id, "change scoring")
        require_round_not_closed(battle_round, "change scoring")

        new_config = _validated_scoring(scoring_config)
        old_config = dict(battle_round.scoring_config or {})
        if new_config == old_config:
            return battle_round

        battle_round.scoring_config = new_config
        battle_round.updated_at = datetime.utcnow()
        session.add(battle_round)
        record_audit(
            session,
            battle_round.campaign_id,
            ENTITY_ROUND,
            round_id,
            "scoring_update",
            actor_id,
            changes={"scoring_config": [old_config, new_config]},
        )
        session.commit()
        session.refresh(battle_round)

    notifier.emit(notifications.ROUND_UPDATED, battle_round.campaign_id, round_id=round_id, fields=["scoring_config"])
    return battle_round


def generate_pairing_preview(
    session: Session,
    round_id: int,
    players: Optional[List[Player]] = None,
    constraints: Optional[Dict[str, Any]] = None,
    match_history: Optional[List[MatchHistoryEntry]] = None,
    seed: Optional[int] = None,
    pairing_system: Optional[str] = None,
    include_moderators: bool = False,
) -> PairingPreview:
    """
    Propose pairings for a round without persisting anything.

    Defaults: players from the roster (points from standings), constraints
    and pairing system from the round, history from every earlier round of
    the campaign, and the round id as seed so repeated previews agree.
    """
    battle_round = get_round_or_404(session, round_id)
    require_round_status(battle_round, (ROUND_DRAFT, ROUND_OPEN), "generate pairings")

    system = normalise_pairing_system(pairing_system or battle_round.pairing_system)
    if players is None:
        players = roster_players(session, battle_round.campaign_id, include_moderators=include_moderators)
    if constraints is None:
        constraints = battle_round.constraints_config
    if match_history is None:
        match_history = build_match_history(session, battle_round)
    if seed is None:
        seed = battle_round.id

    policy = ScoringPolicy.from_config(battle_round.scoring_config)
    run = generate_pairings(
        system,
        players,
        constraints,
        match_history,
        round_index=battle_round.round_index,
        seed=seed,
        win_points=policy.win,
    )

    roster_ids = session.exec(
        select(CampaignPlayer.player_id).where(CampaignPlayer.campaign_id == battle_round.campaign_id)
    ).all()
    validation = validate_pairings(
        run.pairings,
        constraints,
        match_history,
        roster_ids=roster_ids,
        round_index=battle_round.round_index,
    )

    return PairingPreview(
        round_id=round_id,
        pairing_system=system,
        seed=seed,
        pairings=run.pairings,
        warnings=merge_warnings(run.warnings, validation.warnings),
    )


def confirm_pairings(
    session: Session,
    round_id: int,
    pairings: List[PairingResult],
    actor_id: Optional[str],
) -> List[BattleMatch]:
    """
    Persist an accepted preview as the round's matches.

    The round must be draft or open and have no matches yet; regenerating
    means clearing the ledger first. match_index follows the preview order.
    """
    if not pairings:
        raise ValidationError("No pairings to confirm")

    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_moderator(session, battle_round.campaign_id, actor_id, "confirm pairings")
        require_round_not_closed(battle_round, "confirm pairings")

        existing = session.exec(
            select(func.count()).select_from(BattleMatch).where(BattleMatch.round_id == round_id)
        ).one()
        if existing:
            raise InvalidState(
                f"Round '{battle_round.name}' already has {existing} match(es). "
                "Delete them before confirming new pairings."
            )

        created = insert_matches(session, battle_round, [MatchDraft.from_pairing(p) for p in pairings], actor_id)
        session.commit()
        for match in created:
            session.refresh(match)

    logger.info("Confirmed %d pairing(s) for round %d", len(created), round_id)
    notifier.emit(
        notifications.MATCHES_CREATED,
        battle_round.campaign_id,
        round_id=round_id,
        match_ids=[m.id for m in created],
    )
    return created
