from .models import (
    SIGNED, REJECTED, CANCELLED, EXPIRED,
    DOCUMENT_SIGNED, DOCUMENT_CANCELLED,
)

DOCUMENT_STATUS_BY_ENVELOPE = {
    SIGNED: DOCUMENT_SIGNED,
    REJECTED: DOCUMENT_CANCELLED,
    CANCELLED: DOCUMENT_CANCELLED,
    EXPIRED: DOCUMENT_CANCELLED,
}

def project(envelope_status: str) -> str:
    """Document status for a terminal envelope status."""
    try:
        return DOCUMENT_STATUS_BY_ENVELOPE[envelope_status]
    except KeyError:
        raise ValueError(f"{envelope_status!r} is not a terminal envelope status") from None
