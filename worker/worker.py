import logging
import os
from celery import Celery
from sqlmodel import Session
from cosign.config import REDIS_URL, WORKER_QUEUE, SWEEP_INTERVAL_SECONDS, LOG_LEVEL
from cosign.db import engine
from cosign.sweeper import sweep

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

cel = Celery("signing", broker=REDIS_URL, backend=REDIS_URL)

cel.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    beat_schedule={
        "sweep-expired-envelopes": {
            "task": "sweep_expired_envelopes",
            "schedule": float(SWEEP_INTERVAL_SECONDS),
            "options": {"queue": WORKER_QUEUE},
        },
    },
)

@cel.task(name="sweep_expired_envelopes", queue=WORKER_QUEUE)
def sweep_expired_envelopes():
    with Session(engine) as session:
        processed = sweep(session)
    logger.info("worker %s: sweep processed %d envelope(s)", os.getpid(), processed)
    return {"processed": processed}
