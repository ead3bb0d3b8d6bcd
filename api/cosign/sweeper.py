import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .envelopes import finalize
from .models import Envelope, PENDING, EXPIRED
from .utils import utcnow

logger = logging.getLogger(__name__)


def sweep(session: Session, now: Optional[datetime] = None) -> int:
    """Expire every pending envelope whose ``expires_at`` has passed.

    Returns how many envelopes this call moved to ``expired``. Envelopes
    finalized concurrently by a signer or another sweep are skipped.
    """
    now = now or utcnow()
    due = session.exec(
        select(Envelope.id).where(Envelope.status == PENDING, Envelope.expires_at <= now)
    ).all()
    processed = 0
    for envelope_id in due:
        try:
            if finalize(session, envelope_id, EXPIRED, now=now):
                session.commit()
                processed += 1
            else:
                session.rollback()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("failed to expire envelope %s", envelope_id)
    logger.info("sweep at %s expired %d of %d due envelope(s)", now, processed, len(due))
    return processed
