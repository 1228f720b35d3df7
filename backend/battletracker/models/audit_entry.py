from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class BattleAuditEntry(SQLModel, table=True):
    """
    Audit trail row for round, match and report changes.

    Not linked by foreign key so entries outlive deleted rounds and matches.
    """

    __tablename__ = "battle_audit_entry"

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: str = Field(index=True)
    entity_type: str  # "round" | "match" | "report"
    entity_id: int
    action: str  # "create" | "update" | "status_change" | "delete" | "submit" | "dispute_resolve"
    changed_by: Optional[str] = Field(default=None)
    changes: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    reason: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
