"""Error types raised by the catlet lifecycle engine."""

from typing import List, Optional


class CatletError(Exception):
    """Base class for all catlet errors."""
    pass


class ConfigurationError(CatletError):
    """Catlet specification is structurally invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        if self.errors:
            message = message + ": " + "; ".join(self.errors)
        super().__init__(message)


class ComputeConnectionError(CatletError, ConnectionError):
    """Transport or authentication failure reaching the compute API."""
    pass


class ApiError(CatletError):
    """Compute API answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, problem_type: Optional[str] = None):
        self.status_code = status_code
        self.problem_type = problem_type
        super().__init__(message)


class OperationFailedError(CatletError):
    """Remote operation reached the failed status."""

    def __init__(self, operation_id: str, status_message: Optional[str] = None):
        self.operation_id = operation_id
        self.status_message = status_message or "Operation failed"
        super().__init__(f"Operation {operation_id} failed: {self.status_message}")


class OperationTimeoutError(CatletError, TimeoutError):
    """Local wait budget exceeded while the operation is still in progress.

    The remote operation may still complete; callers can poll again with a
    fresh budget. ``catlet_id`` is set when the operation had already attached
    a catlet before the wait was abandoned.
    """

    def __init__(self, operation_id: str, timeout: float, catlet_id: Optional[str] = None):
        self.operation_id = operation_id
        self.timeout = timeout
        self.catlet_id = catlet_id
        super().__init__(f"Operation {operation_id} did not finish within {timeout:g}s")


class ReconciliationError(CatletError):
    """Observed remote state contradicts the outcome of a completed step."""

    def __init__(self, catlet_id: Optional[str], message: str, operation_id: Optional[str] = None):
        self.catlet_id = catlet_id
        self.operation_id = operation_id
        subject = f"Catlet {catlet_id}" if catlet_id else f"Operation {operation_id}"
        super().__init__(f"{subject}: {message}")
