"""
Error taxonomy for the co-signing workflow.

Every error carries a user-facing message and an optional details mapping;
``main.py`` renders them as ``{"detail": ..., "errors": ...}`` responses.
"""

from typing import Dict, List, Optional
from fastapi import status


class CoSignError(Exception):
    """Base exception for all co-signing errors."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFound(CoSignError):
    """Unknown document, envelope, signer or token."""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "not found"):
        super().__init__(message)


class Conflict(CoSignError):
    """Raised when a document already has an active envelope."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, document_id: int, envelope_id: Optional[int] = None):
        reason = f"active envelope {envelope_id} exists" if envelope_id else "an active envelope exists"
        super().__init__(
            f"document {document_id} already has an active envelope",
            {"document_id": [reason]},
        )


class InvalidState(CoSignError):
    """Action on a signer or envelope that is no longer pending."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, current_status: Optional[str] = None):
        details = {"status": [current_status]} if current_status else None
        super().__init__(message, details)


class Forbidden(CoSignError):
    """Tenant scope mismatch on a staff operation."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "access denied"):
        super().__init__(message)


class ValidationFailed(CoSignError):
    """Malformed input; details is a field -> messages map."""
    status_code = 422

    def __init__(self, errors: Dict[str, List[str]], message: str = "validation error"):
        super().__init__(message, errors)
