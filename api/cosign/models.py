from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field as ORMField
from sqlalchemy import Index, text
from .utils import utcnow

# Envelope lifecycle
PENDING = "pending"
SIGNED = "signed"
REJECTED = "rejected"
CANCELLED = "cancelled"
EXPIRED = "expired"

ENVELOPE_STATUSES = (PENDING, SIGNED, REJECTED, CANCELLED, EXPIRED)
ACTIVE_ENVELOPE_STATUSES = (PENDING, SIGNED)
TERMINAL_ENVELOPE_STATUSES = (SIGNED, REJECTED, CANCELLED, EXPIRED)
SIGNER_STATUSES = (PENDING, SIGNED, REJECTED)

# Document lifecycle
DOCUMENT_DRAFT = "draft"
DOCUMENT_SENT = "sent"
DOCUMENT_SIGNED = "signed"
DOCUMENT_CANCELLED = "cancelled"

class Document(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    company_id: int = ORMField(index=True)
    branch_id: Optional[int] = None
    title: str
    file_path: Optional[str] = None
    status: str = DOCUMENT_DRAFT
    current_envelope_id: Optional[int] = None
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)

_ACTIVE_ENVELOPE_CLAUSE = "status IN ('pending', 'signed')"

class Envelope(SQLModel, table=True):
    # at most one pending/signed envelope per document
    __table_args__ = (
        Index(
            "uq_envelope_active_document",
            "document_id",
            unique=True,
            sqlite_where=text(_ACTIVE_ENVELOPE_CLAUSE),
            postgresql_where=text(_ACTIVE_ENVELOPE_CLAUSE),
        ),
    )

    id: Optional[int] = ORMField(default=None, primary_key=True)
    document_id: int = ORMField(index=True)
    status: str = ORMField(default=PENDING, index=True)
    created_by: int
    company_id: int = ORMField(index=True)
    branch_id: Optional[int] = None
    expires_at: datetime
    finalized_at: Optional[datetime] = None
    version: int = 0   # bumped by every signer action
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)

class Signer(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    envelope_id: int = ORMField(index=True)
    name: str
    email: str
    order: int = 1
    status: str = PENDING
    token_hash: str = ORMField(index=True, unique=True)
    signed_at: Optional[datetime] = None
    acted_at: Optional[datetime] = None

class Event(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    envelope_id: int = ORMField(index=True)
    actor: str  # system|signer:<id>|user:<id>
    type: str   # created|signed|rejected|finalized|reminder
    meta_json: str = "{}"
    at: datetime = ORMField(default_factory=utcnow)
    prev_hash: Optional[str] = None
    hash: Optional[str] = None
