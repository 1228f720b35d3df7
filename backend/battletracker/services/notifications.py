"""
Change notification.

Fire-and-forget events so UIs can refresh rounds, matches and reports
without polling. Events are emitted after the transaction commits; a failing
listener is logged and never affects the request that emitted the event.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ROUND_CREATED = "round.created"
ROUND_UPDATED = "round.updated"
ROUND_DELETED = "round.deleted"
ROUND_STATUS_CHANGED = "round.status_changed"
MATCHES_CREATED = "matches.created"
MATCH_DELETED = "match.deleted"
MATCHES_CLEARED = "matches.cleared"
REPORT_SUBMITTED = "report.submitted"
MATCH_STATUS_CHANGED = "match.status_changed"
MATCH_RESOLVED = "match.resolved"


@dataclass
class ChangeEvent:
    event_type: str
    campaign_id: str
    round_id: Optional[int] = None
    match_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


Listener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(
        self,
        event_type: str,
        campaign_id: str,
        round_id: Optional[int] = None,
        match_id: Optional[int] = None,
        **payload: Any,
    ) -> ChangeEvent:
        event = ChangeEvent(
            event_type=event_type,
            campaign_id=campaign_id,
            round_id=round_id,
            match_id=match_id,
            payload=payload,
        )
        with self._lock:
            listeners = list(self._listeners)
        logger.debug("Emitting %s (round=%s, match=%s) to %d listener(s)", event_type, round_id, match_id, len(listeners))
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Change listener failed for %s", event_type)
        return event


notifier = ChangeNotifier()
