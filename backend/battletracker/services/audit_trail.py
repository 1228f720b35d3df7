"""
Audit trail for rounds, matches and reports.

record_audit() only adds the entry to the session; it is committed together
with the change it describes.
"""

from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from battletracker.models.audit_entry import BattleAuditEntry

ENTITY_ROUND = "round"
ENTITY_MATCH = "match"
ENTITY_REPORT = "report"


def record_audit(
    session: Session,
    campaign_id: str,
    entity_type: str,
    entity_id: int,
    action: str,
    changed_by: Optional[str],
    changes: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> BattleAuditEntry:
    entry = BattleAuditEntry(
        campaign_id=campaign_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        changed_by=changed_by,
        changes=changes or {},
        reason=reason,
    )
    session.add(entry)
    return entry


def list_audit(
    session: Session,
    campaign_id: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> List[BattleAuditEntry]:
    query = select(BattleAuditEntry).where(BattleAuditEntry.campaign_id == campaign_id)
    if entity_type:
        query = query.where(BattleAuditEntry.entity_type == entity_type)
    if entity_id is not None:
        query = query.where(BattleAuditEntry.entity_id == entity_id)
    return list(session.exec(query.order_by(BattleAuditEntry.id)).all())
