import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from rq import Queue, get_current_job
from .db import SessionLocal
from .models import CopierCommand

SWEEP_JOB_ID = "expire-stale-commands"
EXPIRED_RESULT = "expired"

def command_ttl_seconds() -> int:
    return int(os.getenv("COPIER_COMMAND_TTL_SECONDS", "3600"))

def sweep_interval_seconds() -> int:
    return int(os.getenv("COPIER_SWEEP_INTERVAL_SECONDS", "60"))

def fail_expired(db: Session, ttl_seconds: int, now: Optional[datetime] = None) -> int:
    # a command the agent never picked up is failed rather than left pending forever
    if ttl_seconds <= 0:
        return 0
    now = now or datetime.now(timezone.utc)
    res = db.execute(
        update(CopierCommand)
        .where(CopierCommand.status == "pending", CopierCommand.created_at < now - timedelta(seconds=ttl_seconds))
        .values(status="failed", result=EXPIRED_RESULT, executed_at=now)
    )
    db.commit()
    return res.rowcount

def schedule_next(queue: Queue, interval: int):
    # fixed job id keeps one pending sweep in the scheduled registry
    return queue.enqueue_in(timedelta(seconds=interval), "worker.jobs.expire_stale_commands",
                            job_id=SWEEP_JOB_ID, kwargs={"reschedule": True})

def expire_stale_commands(ttl_seconds: Optional[int] = None, reschedule: bool = False):
    ttl = command_ttl_seconds() if ttl_seconds is None else ttl_seconds
    db = SessionLocal()
    try:
        n = fail_expired(db, ttl)
    finally:
        db.close()
    if n:
        print(f"Expired {n} pending command(s) older than {ttl}s", flush=True)
    if reschedule:
        job = get_current_job()
        if job is not None:
            schedule_next(Queue(job.origin, connection=job.connection), sweep_interval_seconds())
    return {"ok": True, "expired": n}
