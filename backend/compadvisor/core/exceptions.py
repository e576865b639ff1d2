"""
Domain error taxonomy.

Every error carries the HTTP status the web boundary should use and a
machine-readable ``reason`` so callers can tell a bad request from a stale
reference or a transient infrastructure fault without parsing messages.
A budget shortfall is deliberately absent: it is reported in the analysis
summary, never raised.
"""

from typing import Any, Dict, Optional


class CompensationError(Exception):
    """Base class for errors raised by the decision engine and the ledger"""

    status_code: int = 500
    reason: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.message,
            "reason": self.reason,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class InputValidationError(CompensationError):
    """Request rejected before anything was read or written"""

    status_code = 400
    reason = "invalid_input"


class InvalidBudgetError(InputValidationError):
    reason = "invalid_budget"


class InvalidActionError(InputValidationError):
    reason = "invalid_action"


class InvalidChangePercentError(InputValidationError):
    reason = "invalid_change_percent"


class InvalidEmployeeError(InputValidationError):
    reason = "invalid_employee"


class EmployeeNotFoundError(CompensationError):
    """The ssid does not resolve to an active employee"""

    status_code = 404
    reason = "employee_not_found"

    def __init__(self, ssid: str):
        super().__init__(f"Employee {ssid} not found", details={"ssid": ssid})
        self.ssid = ssid


class StorageError(CompensationError):
    """Infrastructure failure; nothing was committed and the call may be retried"""

    status_code = 503
    reason = "storage_unavailable"
    retryable = True


class StaleRevisionError(CompensationError):
    """The employee row changed between read and write (optimistic version check failed)"""

    status_code = 409
    reason = "stale_revision"
    retryable = True


class ConcurrentModificationError(CompensationError):
    """Optimistic retries were exhausted while competing applies kept winning"""

    status_code = 409
    reason = "concurrent_modification"
    retryable = True
