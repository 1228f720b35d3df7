"""
Domain errors for the round and pairing engine.

Every error is a per-request failure: services raise them, the exception
handler registered in main.py turns them into JSON responses.
"""

from typing import Any, Dict, List, Optional


class BattleTrackerError(Exception):
    """Base exception for the round and pairing engine"""

    status_code: int = 400
    code: str = "BATTLE_TRACKER_ERROR"

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        self.message = message
        self.details = details or []
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["errors"] = self.details
        return body


class ValidationError(BattleTrackerError):
    """
    Malformed or constraint-violating input.

    Bulk operations attach one entry per offending item in `details`.
    """

    status_code = 422
    code = "VALIDATION_ERROR"


class InvalidState(BattleTrackerError):
    """Operation is illegal for the current round or match state."""

    status_code = 409
    code = "INVALID_STATE"


class NotFound(BattleTrackerError):
    status_code = 404
    code = "NOT_FOUND"


class PermissionDenied(BattleTrackerError):
    """Caller lacks the campaign role the operation requires."""

    status_code = 403
    code = "PERMISSION_DENIED"


class MissingReports(BattleTrackerError):
    """Arbitration attempted without any submitted report and without override."""

    status_code = 409
    code = "MISSING_REPORTS"
