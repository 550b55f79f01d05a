"""Error taxonomy.

Every error that may reach a caller carries a stable ``kind`` and renders
as ``{"error": kind, "message": ...}``. Raw exceptions never cross the
service boundary.
"""
from typing import Any, Optional


class FormatError(Exception):
    """Base class for structured, caller-visible errors."""
    kind = "Error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        data = {"error": self.kind, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


class Unauthorized(FormatError):
    """No caller identity could be resolved."""
    kind = "Unauthorized"


class NotFound(FormatError):
    """Absent, soft-deleted, or owned by someone else. Deliberately indistinguishable."""
    kind = "NotFound"


class ValidationError(FormatError):
    """Malformed input: empty name, no specifications, bad field map."""
    kind = "ValidationError"


class Conflict(FormatError):
    """Duplicate name within one owner and service kind."""
    kind = "Conflict"


class ServiceMismatch(FormatError):
    """Record service kind differs from the target instance's."""
    kind = "ServiceMismatch"


class UpstreamError(FormatError):
    """A storage or remote collaborator failed unexpectedly."""
    kind = "UpstreamError"


class RemoteError(Exception):
    """A remote arr instance rejected or failed a request.

    Raised by remote clients; the reconciliation engine records it as a
    per-item failure.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
