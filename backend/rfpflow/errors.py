"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``rfpflow.main`` maps them onto responses using
``status_code`` and renders ``{"detail": message, **extra}``.
"""
from typing import Any


class ProcurementError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, extra: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.extra = extra or {}
        super().__init__(self.message)


class ValidationError(ProcurementError):
    """Missing or malformed caller input. Nothing was mutated."""
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(ProcurementError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ProcurementError):
    status_code = 409
    default_message = "Conflict"


class ExtractionError(ProcurementError):
    """Generator output could not be read as a structured record."""
    status_code = 502
    default_message = "Failed to parse AI response as JSON"

    def __init__(self, message: str | None = None, raw_text: str | None = None, extra: dict[str, Any] | None = None):
        super().__init__(message, extra)
        # Kept for logs only, never rendered to clients.
        self.raw_text = raw_text


class UpstreamQuotaError(ProcurementError):
    status_code = 429
    default_message = "AI generation is temporarily unavailable due to quota/rate limits"


class DependencyError(ProcurementError):
    """A collaborator (generator, mail, store) failed."""
    status_code = 503
    default_message = "A dependent service failed"


class CompletionError(DependencyError):
    default_message = "AI generation service failed"


class MailDeliveryError(DependencyError):
    default_message = "Mail delivery failed"


class InvitationBatchAborted(DependencyError):
    """Raised when a vendor in an invitation batch fails; earlier transitions are kept."""
    default_message = "Invitation batch aborted"


class InvitationBatchQuotaAborted(InvitationBatchAborted, UpstreamQuotaError):
    status_code = 429
