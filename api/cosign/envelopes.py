"""Envelope store: creation, lookup, listing and the lifecycle transitions.

Every envelope transition out of ``pending`` goes through :func:`finalize`,
a compare-and-swap on the envelope status. Only the caller that wins the
swap projects the outcome onto the document, so two racing "last signer"
requests, or a sweep racing a signer, never project twice.
"""
import logging
from datetime import datetime, timedelta
from math import ceil
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from . import notifications
from .auth import StaffContext, can_access_tenant, can_manage_envelope
from .config import SIGNATURE_TTL_DAYS
from .events import append_event
from .exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from .models import (
    Document, Envelope, Signer,
    PENDING, ENVELOPE_STATUSES, ACTIVE_ENVELOPE_STATUSES, TERMINAL_ENVELOPE_STATUSES,
    CANCELLED, DOCUMENT_SENT,
)
from .projector import project
from .signers import add_signer, list_signers, serialize_signer
from .utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=SIGNATURE_TTL_DAYS)


def find_by_id(session: Session, envelope_id: int) -> Envelope:
    env = session.get(Envelope, envelope_id)
    if not env:
        raise NotFound("envelope not found")
    return env


def active_envelope(session: Session, document_id: int) -> Optional[Envelope]:
    return session.exec(
        select(Envelope).where(
            Envelope.document_id == document_id,
            Envelope.status.in_(ACTIVE_ENVELOPE_STATUSES),
        )
    ).first()


def create(
    session: Session,
    context: StaffContext,
    document_id: int,
    signers: list,
    ttl: Optional[timedelta] = None,
    now: Optional[datetime] = None,
):
    """Open a pending envelope for ``document_id``.

    ``signers`` is a list of objects with ``name``, ``email`` and ``order``.
    Returns ``(envelope, [(signer, token), ...])``.
    """
    if not signers:
        raise ValidationFailed({"signers": ["at least one signer is required"]})
    document = session.get(Document, document_id)
    if not document:
        raise NotFound("document not found")
    if not can_access_tenant(context, document.company_id, document.branch_id):
        raise Forbidden("access denied for this document")
    existing = active_envelope(session, document_id)
    if existing:
        raise Conflict(document_id, existing.id)

    now = now or utcnow()
    env = Envelope(
        document_id=document_id,
        status=PENDING,
        created_by=context.user_id,
        company_id=document.company_id,
        branch_id=document.branch_id,
        expires_at=now + (ttl if ttl is not None else DEFAULT_TTL),
        created_at=now,
        updated_at=now,
    )
    session.add(env)
    try:
        session.flush()
    except IntegrityError:
        # a concurrent create won the active-envelope index
        session.rollback()
        winner = active_envelope(session, document_id)
        raise Conflict(document_id, winner.id if winner else None)

    issued = []
    for idx, s in enumerate(signers):
        signer, token = add_signer(
            session, env.id, s.name, s.email, s.order if s.order is not None else idx + 1
        )
        issued.append((signer, token))

    document.status = DOCUMENT_SENT
    document.current_envelope_id = env.id
    document.updated_at = now
    session.add(document)
    append_event(session, env.id, context.actor, "created", {
        "document_id": document_id,
        "signers": [signer.id for signer, _ in issued],
    })
    session.commit()
    session.refresh(env)
    logger.info("envelope %s created for document %s with %d signer(s)", env.id, document_id, len(issued))

    for signer, token in issued:
        notifications.send_signing_request(signer, token, document, env)
    return env, issued


def finalize(
    session: Session,
    envelope_id: int,
    terminal_status: str,
    actor: str = "system",
    now: Optional[datetime] = None,
) -> bool:
    """Move a pending envelope to ``terminal_status`` and project it.

    Returns False without touching anything when the envelope already left
    ``pending``. The caller owns the commit.
    """
    if terminal_status not in TERMINAL_ENVELOPE_STATUSES:
        raise ValueError(f"{terminal_status!r} is not a terminal envelope status")
    now = now or utcnow()
    result = session.exec(
        update(Envelope)
        .where(Envelope.id == envelope_id, Envelope.status == PENDING)
        .values(status=terminal_status, finalized_at=now, updated_at=now)
    )
    if result.rowcount != 1:
        logger.info("envelope %s already finalized, %s ignored", envelope_id, terminal_status)
        return False

    env = session.get(Envelope, envelope_id)
    session.refresh(env)
    document_status = project(terminal_status)
    document = session.get(Document, env.document_id)
    if document:
        document.status = document_status
        document.updated_at = now
        session.add(document)
    append_event(session, envelope_id, actor, "finalized", {
        "status": terminal_status,
        "document_status": document_status,
    })
    logger.info("envelope %s finalized as %s, document %s -> %s",
                envelope_id, terminal_status, env.document_id, document_status)
    return True


def cancel(session: Session, context: StaffContext, envelope_id: int) -> Envelope:
    env = find_by_id(session, envelope_id)
    if not can_manage_envelope(context, env):
        raise Forbidden()
    if env.status != PENDING:
        raise InvalidState("only pending envelopes can be cancelled", env.status)
    if not finalize(session, env.id, CANCELLED, actor=context.actor):
        session.rollback()
        session.refresh(env)
        raise InvalidState("only pending envelopes can be cancelled", env.status)
    session.commit()
    session.refresh(env)
    return env


def remind(session: Session, context: StaffContext, envelope_id: int) -> List[Signer]:
    """Re-notify every signer still pending; returns those signers."""
    env = find_by_id(session, envelope_id)
    if not can_manage_envelope(context, env):
        raise Forbidden()
    if env.status != PENDING:
        raise InvalidState("reminders can only be sent for pending envelopes", env.status)
    document = session.get(Document, env.document_id)
    waiting = [s for s in list_signers(session, env.id) if s.status == PENDING]
    append_event(session, env.id, context.actor, "reminder", {"signers": [s.id for s in waiting]})
    session.commit()
    for signer in waiting:
        notifications.send_reminder(signer, document, env)
    return waiting


def _tenant_conditions(filters: dict) -> list:
    return [getattr(Envelope, key) == value for key, value in filters.items()]


def list_envelopes(
    session: Session,
    filters: dict,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    conditions = _tenant_conditions(filters)
    if status:
        conditions.append(Envelope.status == status)
    if search:
        matching = select(Document.id).where(Document.title.ilike(f"%{search}%"))
        conditions.append(Envelope.document_id.in_(matching))

    count_query = select(func.count(Envelope.id))
    query = select(Envelope)
    for condition in conditions:
        count_query = count_query.where(condition)
        query = query.where(condition)
    total = session.exec(count_query).one()
    items = session.exec(
        query.order_by(Envelope.created_at.desc(), Envelope.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": ceil(total / page_size) if total else 0,
    }


def list_pending(session: Session, filters: dict) -> List[Envelope]:
    query = select(Envelope).where(Envelope.status == PENDING)
    for condition in _tenant_conditions(filters):
        query = query.where(condition)
    return session.exec(query.order_by(Envelope.expires_at, Envelope.id)).all()


def stats(session: Session, filters: dict) -> dict:
    query = select(Envelope.status, func.count(Envelope.id)).group_by(Envelope.status)
    for condition in _tenant_conditions(filters):
        query = query.where(condition)
    counts = {status: 0 for status in ENVELOPE_STATUSES}
    for status, count in session.exec(query).all():
        counts[status] = count
    counts["total"] = sum(counts[status] for status in ENVELOPE_STATUSES)
    return counts


def serialize_envelope(session: Session, env: Envelope, issued=None) -> dict:
    """Envelope with document summary and signers; ``issued`` adds tokens."""
    document = session.get(Document, env.document_id)
    if issued is not None:
        signers = [serialize_signer(s, token) for s, token in issued]
    else:
        signers = [serialize_signer(s) for s in list_signers(session, env.id)]
    return {
        "id": env.id,
        "document_id": env.document_id,
        "status": env.status,
        "created_by": env.created_by,
        "company_id": env.company_id,
        "branch_id": env.branch_id,
        "expires_at": env.expires_at,
        "finalized_at": env.finalized_at,
        "created_at": env.created_at,
        "document": {
            "id": document.id,
            "title": document.title,
            "status": document.status,
        } if document else None,
        "signers": signers,
    }
