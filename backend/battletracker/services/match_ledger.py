"""
Match Ledger: the matches of a round.

- Creation is all-or-nothing: every entry is validated before anything is
  added, and one ValidationError lists all offending entries
- match_index stays unique and contiguous from 0; deleting a match
  renumbers the ones after it
- Deleting matches also removes their reports and results
- Every write holds the round lock and refuses closed rounds
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlmodel import Session, func, select

from battletracker.errors import ValidationError
from battletracker.models.battle_match import BattleMatch
from battletracker.models.battle_round import BattleRound
from battletracker.models.campaign_player import CampaignPlayer
from battletracker.services import notifications
from battletracker.services.audit_trail import ENTITY_MATCH, ENTITY_ROUND, record_audit
from battletracker.services.match_history import build_match_history
from battletracker.services.notifications import notifier
from battletracker.services.pairing import validate_pairings
from battletracker.services.pairing_types import SIDE_A, SIDE_B, Participant, PairingResult
from battletracker.utils.guards import (
    get_match_or_404,
    get_round_or_404,
    lock_round_row,
    require_moderator,
    require_round_not_closed,
)
from battletracker.utils.locks import scoped_lock

logger = logging.getLogger(__name__)

DEFAULT_SIDES = (SIDE_A, SIDE_B)


@dataclass
class MatchDraft:
    """A match to be created: from a confirmed pairing or entered by hand."""
    participants: List[Dict[str, Any]] = field(default_factory=list)
    is_bye: bool = False
    bye_points: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_pairing(cls, pairing: PairingResult) -> "MatchDraft":
        return cls(
            participants=[p.to_dict() for p in pairing.participants],
            is_bye=pairing.is_bye,
            bye_points=pairing.bye_points if pairing.is_bye else None,
        )


def list_matches(session: Session, round_id: int) -> List[BattleMatch]:
    get_round_or_404(session, round_id)
    return list(
        session.exec(
            select(BattleMatch).where(BattleMatch.round_id == round_id).order_by(BattleMatch.match_index)
        ).all()
    )


def match_to_pairing(match: BattleMatch) -> PairingResult:
    return PairingResult(
        participants=[Participant.from_dict(p) for p in match.participants],
        is_bye=match.is_bye,
        bye_points=match.bye_points,
    )


def _load_roster(session: Session, campaign_id: str) -> Dict[str, CampaignPlayer]:
    members = session.exec(select(CampaignPlayer).where(CampaignPlayer.campaign_id == campaign_id)).all()
    return {m.player_id: m for m in members}


def _entry_problems(draft: MatchDraft, roster: Dict[str, CampaignPlayer]) -> List[str]:
    problems: List[str] = []
    count = len(draft.participants)
    if count == 0:
        return ["entry has no participants"]
    if draft.is_bye and count != 1:
        problems.append(f"a bye must have exactly one participant (got {count})")
    if not draft.is_bye and count != 2:
        problems.append(f"a match must have exactly two participants (got {count})")

    seen_players = set()
    seen_sides = set()
    for position, participant in enumerate(draft.participants):
        player_id = participant.get("player_id")
        if not player_id:
            problems.append(f"participant {position + 1} has no player_id")
            continue
        player_id = str(player_id)
        if player_id in seen_players:
            problems.append(f"player {player_id} appears twice in the same match")
        seen_players.add(player_id)
        if player_id not in roster:
            problems.append(f"player {player_id} is not on the campaign roster")

        side = participant.get("side") or (DEFAULT_SIDES[position] if position < len(DEFAULT_SIDES) else None)
        if side in seen_sides:
            problems.append(f"side '{side}' is used twice")
        seen_sides.add(side)

    if draft.bye_points is not None and draft.bye_points < 0:
        problems.append("bye_points cannot be negative")
    return problems


def _normalise_participant(position: int, participant: Dict[str, Any], member: CampaignPlayer) -> Dict[str, Any]:
    return Participant(
        player_id=member.player_id,
        player_name=participant.get("player_name") or member.display_name,
        side=participant.get("side") or DEFAULT_SIDES[position],
        faction=participant.get("faction") or member.faction,
        warband_id=participant.get("warband_id") or member.warband_id,
        warband_name=participant.get("warband_name") or member.warband_name,
    ).to_dict()


def next_match_index(session: Session, round_id: int) -> int:
    count = session.exec(select(func.count()).select_from(BattleMatch).where(BattleMatch.round_id == round_id)).one()
    return int(count or 0)


def insert_matches(
    session: Session,
    battle_round: BattleRound,
    drafts: List[MatchDraft],
    actor_id: Optional[str],
) -> List[BattleMatch]:
    """
    Validate and add matches to the session without committing.

    Callers hold the round lock and commit. Raises ValidationError with one
    detail per offending entry; nothing is added in that case.
    """
    roster = _load_roster(session, battle_round.campaign_id)

    errors = []
    for index, draft in enumerate(drafts):
        problems = _entry_problems(draft, roster)
        if problems:
            errors.append({"index": index, "problems": problems})
    if errors:
        raise ValidationError(
            f"{len(errors)} of {len(drafts)} match entries are invalid; no matches were created",
            details=errors,
        )

    start = next_match_index(session, battle_round.id)
    created: List[BattleMatch] = []
    for offset, draft in enumerate(drafts):
        participants = [
            _normalise_participant(position, p, roster[str(p["player_id"])])
            for position, p in enumerate(draft.participants)
        ]
        match = BattleMatch(
            round_id=battle_round.id,
            campaign_id=battle_round.campaign_id,
            match_index=start + offset,
            participants=participants,
            is_bye=draft.is_bye,
            bye_points=draft.bye_points if draft.is_bye else None,
            notes=draft.notes,
        )
        session.add(match)
        created.append(match)
    session.flush()

    for match in created:
        record_audit(
            session,
            battle_round.campaign_id,
            ENTITY_MATCH,
            match.id,
            "create",
            actor_id,
            changes={"match_index": match.match_index, "players": match.player_ids(), "is_bye": match.is_bye},
        )
    return created


def bulk_create_matches(
    session: Session,
    round_id: int,
    drafts: List[MatchDraft],
    actor_id: Optional[str] = None,
) -> List[BattleMatch]:
    if not drafts:
        raise ValidationError("No matches to create")

    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_round_not_closed(battle_round, "create matches")
        require_moderator(session, battle_round.campaign_id, actor_id, "create matches")
        created = insert_matches(session, battle_round, drafts, actor_id)
        session.commit()
        for match in created:
            session.refresh(match)

    logger.info("Created %d match(es) in round %d", len(created), round_id)
    notifier.emit(
        notifications.MATCHES_CREATED,
        battle_round.campaign_id,
        round_id=round_id,
        match_ids=[m.id for m in created],
    )
    return created


def create_match(
    session: Session,
    round_id: int,
    participants: List[Dict[str, Any]],
    is_bye: bool = False,
    bye_points: Optional[int] = None,
    notes: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> BattleMatch:
    draft = MatchDraft(participants=participants, is_bye=is_bye, bye_points=bye_points, notes=notes)
    return bulk_create_matches(session, round_id, [draft], actor_id)[0]


def delete_match(session: Session, match_id: int, actor_id: Optional[str] = None) -> None:
    round_id = get_match_or_404(session, match_id).round_id

    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_round_not_closed(battle_round, "delete matches")
        require_moderator(session, battle_round.campaign_id, actor_id, "delete matches")
        match = get_match_or_404(session, match_id)
        removed_index = match.match_index
        report_count = len(match.reports)

        session.delete(match)
        session.flush()

        # close the gap; one flush per row keeps (round_id, match_index) unique at every step
        later = session.exec(
            select(BattleMatch)
            .where(BattleMatch.round_id == round_id, BattleMatch.match_index > removed_index)
            .order_by(BattleMatch.match_index)
        ).all()
        for other in later:
            other.match_index -= 1
            session.add(other)
            session.flush()

        record_audit(
            session,
            battle_round.campaign_id,
            ENTITY_MATCH,
            match_id,
            "delete",
            actor_id,
            changes={"match_index": removed_index, "invalidated_reports": report_count},
        )
        session.commit()

    logger.info("Deleted match %d from round %d", match_id, round_id)
    notifier.emit(notifications.MATCH_DELETED, battle_round.campaign_id, round_id=round_id, match_id=match_id)


def delete_all_matches(session: Session, round_id: int, actor_id: Optional[str] = None) -> Dict[str, int]:
    """
    Clear a round's pairings before regenerating them.

    Reports and results of the deleted matches go with them, so no stale
    report can land on a later match. Round status is left untouched.
    """
    with scoped_lock("round", round_id):
        battle_round = lock_round_row(session, round_id)
        require_round_not_closed(battle_round, "clear matches")
        require_moderator(session, battle_round.campaign_id, actor_id, "clear matches")
        matches = session.exec(select(BattleMatch).where(BattleMatch.round_id == round_id)).all()

        deleted_reports = 0
        deleted_results = 0
        for match in matches:
            deleted_reports += len(match.reports)
            deleted_results += len(match.results)
            session.delete(match)

        record_audit(
            session,
            battle_round.campaign_id,
            ENTITY_ROUND,
            round_id,
            "clear_matches",
            actor_id,
            changes={"deleted_matches": len(matches), "invalidated_reports": deleted_reports},
        )
        session.commit()

    logger.info(
        "Cleared round %d: %d match(es), %d report(s) invalidated", round_id, len(matches), deleted_reports
    )
    notifier.emit(notifications.MATCHES_CLEARED, battle_round.campaign_id, round_id=round_id)
    return {
        "deleted_matches": len(matches),
        "invalidated_reports": deleted_reports,
        "deleted_results": deleted_results,
    }


def ledger_warnings(session: Session, round_id: int) -> List[str]:
    """Run pairing validation over the matches already in the ledger."""
    battle_round = get_round_or_404(session, round_id)
    matches = list_matches(session, round_id)
    roster = _load_roster(session, battle_round.campaign_id)
    return validate_pairings(
        [match_to_pairing(m) for m in matches],
        battle_round.constraints_config,
        build_match_history(session, battle_round),
        roster_ids=roster.keys(),
        round_index=battle_round.round_index,
    ).warnings
