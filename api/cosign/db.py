import logging

from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import inspect, text
from .config import DATABASE_URL

logger = logging.getLogger(__name__)

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True, connect_args=_connect_args)

def init_db():
    from .models import Document, Envelope, Signer, Event
    SQLModel.metadata.create_all(engine)
    _ensure_envelope_version_column()
    _ensure_active_envelope_index()
    _check_signer_token_index()

def get_session():
    with Session(engine) as session:
        yield session

def _ensure_envelope_version_column():
    inspector = inspect(engine)
    try:
        columns = [col["name"] for col in inspector.get_columns("envelope")]
    except Exception:
        return
    if "version" in columns:
        return
    with engine.begin() as conn:
        conn.execute(text("ALTER TABLE envelope ADD COLUMN version INTEGER NOT NULL DEFAULT 0"))

def _ensure_active_envelope_index():
    inspector = inspect(engine)
    try:
        indexes = inspector.get_indexes("envelope")
    except Exception:
        return
    if any(idx.get("name") == "uq_envelope_active_document" for idx in indexes):
        return
    with engine.begin() as conn:
        duplicates = conn.execute(
            text(
                "SELECT document_id FROM envelope WHERE status IN ('pending', 'signed') "
                "GROUP BY document_id HAVING COUNT(*) > 1"
            )
        ).fetchall()
        if duplicates:
            logger.warning(
                "documents with more than one active envelope; resolve before enforcing uniqueness: %s",
                ", ".join(str(row[0]) for row in duplicates),
            )
            return
        conn.execute(text(
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_envelope_active_document "
            "ON envelope(document_id) WHERE status IN ('pending', 'signed')"
        ))

def _check_signer_token_index():
    inspector = inspect(engine)
    try:
        indexes = inspector.get_indexes("signer")
    except Exception:
        return
    if not any(idx.get("unique") and idx.get("column_names") == ["token_hash"] for idx in indexes):
        logger.warning("signer.token_hash has no unique index; token uniqueness relies on mint-time checks")
