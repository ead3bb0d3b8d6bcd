"""Completion evaluator: applies a signer's sign/reject and settles the envelope."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from . import tokens
from .envelopes import finalize
from .events import append_event
from .exceptions import InvalidState
from .models import Envelope, Signer, PENDING, SIGNED, REJECTED
from .signers import list_signers
from .utils import utcnow

logger = logging.getLogger(__name__)

SIGN = "sign"
REJECT = "reject"
ACTIONS = {SIGN: SIGNED, REJECT: REJECTED}


def act(session: Session, token: str, action: str, now: Optional[datetime] = None) -> tokens.ResolvedToken:
    if action not in ACTIONS:
        raise ValueError(f"unknown signer action {action!r}")
    now = now or utcnow()
    resolved = tokens.resolve(session, token)
    signer, env = resolved.signer, resolved.envelope

    if signer.status != PENDING:
        raise InvalidState("this signer has already acted", signer.status)
    if env.status != PENDING:
        raise InvalidState("this envelope is no longer open for signing", env.status)
    if env.expires_at <= now:
        raise InvalidState("this envelope has expired", env.status)

    # claim the envelope row first; concurrent signers of one envelope queue
    # here, so the completion re-scan below sees every earlier action
    claimed = session.exec(
        update(Envelope)
        .where(Envelope.id == env.id, Envelope.status == PENDING)
        .values(version=Envelope.version + 1, updated_at=now)
    )
    if claimed.rowcount != 1:
        session.rollback()
        raise InvalidState("this envelope is no longer open for signing", env.status)

    new_status = ACTIONS[action]
    values = {"status": new_status, "acted_at": now}
    if action == SIGN:
        values["signed_at"] = now
    result = session.exec(
        update(Signer).where(Signer.id == signer.id, Signer.status == PENDING).values(**values)
    )
    if result.rowcount != 1:
        session.rollback()
        raise InvalidState("this signer has already acted")
    append_event(session, env.id, f"signer:{signer.id}", new_status, {"signer_id": signer.id})

    target = None
    if action == REJECT:
        target = REJECTED
    else:
        signers = list_signers(session, env.id)
        if all(s.status == SIGNED for s in signers):
            target = SIGNED
        else:
            logger.info("envelope %s waiting on %d signer(s)",
                        env.id, len([s for s in signers if s.status != SIGNED]))
    if target and not finalize(session, env.id, target, actor=f"signer:{signer.id}", now=now):
        # lost the race; fine only if the winner reached the same outcome
        session.refresh(env)
        if env.status != target:
            session.rollback()
            raise InvalidState("this envelope is no longer open for signing", env.status)
    session.commit()

    for obj in (signer, env, resolved.document):
        session.refresh(obj)
    logger.info("signer %s %s envelope %s (now %s)", signer.id, new_status, env.id, env.status)
    return resolved
