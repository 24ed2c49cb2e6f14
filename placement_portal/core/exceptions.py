"""
Domain errors for the placement workflow.

Services raise these; main.py maps them to HTTP responses. QueueUnavailable
never reaches a client - the job dispatcher catches it and runs the job inline.
"""

from typing import Optional


class PlacementError(Exception):
    """Base class. `status_code` is what the API answers with."""

    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(PlacementError):
    status_code = 404
    default_detail = "Not found"


class Forbidden(PlacementError):
    status_code = 403
    default_detail = "Forbidden"


class Conflict(PlacementError):
    status_code = 409
    default_detail = "Conflict"


class UnknownJob(PlacementError):
    status_code = 400
    default_detail = "Unknown job"


class TransactionFailure(PlacementError):
    status_code = 500
    default_detail = "Database error"


class QueueUnavailable(PlacementError):
    """Broker unreachable. Callers must do the work inline."""

    status_code = 503
    default_detail = "Job queue unavailable"

    def __init__(self, detail: Optional[str] = None, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(detail)
