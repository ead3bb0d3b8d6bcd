from sqlmodel import Session, select
from .models import Event
from .utils import canonical_json, sha256_bytes

GENESIS_HASH = "0" * 64

def append_event(session: Session, env_id: int, actor: str, type_: str, meta: dict) -> Event:
    """Add a hash-chained audit event to the session; the caller commits."""
    last = session.exec(
        select(Event).where(Event.envelope_id == env_id).order_by(Event.id.desc())
    ).first()
    prev_hash = last.hash if last else GENESIS_HASH
    payload = {"actor": actor, "type": type_, "meta": meta}
    event = Event(
        envelope_id=env_id,
        actor=actor,
        type=type_,
        meta_json=canonical_json(payload),
        prev_hash=prev_hash,
    )
    event.hash = sha256_bytes((prev_hash + event.meta_json).encode())
    session.add(event)
    session.flush()
    return event

def list_events(session: Session, env_id: int):
    return session.exec(
        select(Event).where(Event.envelope_id == env_id).order_by(Event.id)
    ).all()
