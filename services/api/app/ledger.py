"""Append-only journal of master-account fills."""
import logging
from datetime import datetime, timezone
import uuid

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import DatastoreUnavailable
from .models import CopierAccount, CopierTradeEvent, store_now
from .schemas import TradeEventIn, TradeEventOut

log = logging.getLogger(__name__)

MAX_LIMIT = 500


def submit(db: Session, payload: TradeEventIn) -> uuid.UUID:
    """Persist one fill report and return its id. Never touches copier_accounts.

    No retry here: on failure the agent resends on its next cycle.
    """
    ev = CopierTradeEvent(
        master_account=payload.master_account,
        instrument=payload.instrument,
        action=payload.action,
        quantity=payload.quantity,
        fill_price=payload.fill_price,
        fill_time=payload.fill_time or store_now(),
        execution_id=payload.execution_id,
        slaves_copied=[s.model_dump() for s in payload.slaves_copied],
    )
    try:
        db.add(ev)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("trade event insert failed execution_id=%s master=%s: %s",
                  payload.execution_id, payload.master_account, e.__class__.__name__)
        raise DatastoreUnavailable("trade event not stored", operation="submit_trade_event",
                                   execution_id=payload.execution_id,
                                   master_account=payload.master_account) from e
    log.info("trade event %s %sx %s @ %s on %s (execution_id=%s)", payload.action, payload.quantity,
             payload.instrument, payload.fill_price, payload.master_account, payload.execution_id)
    return ev.id


def list_recent(db: Session, limit: int = 50) -> list[dict]:
    limit = max(1, min(limit, MAX_LIMIT))
    items = db.execute(
        select(CopierTradeEvent).order_by(CopierTradeEvent.created_at.desc()).limit(limit)
    ).scalars().all()
    return [TradeEventOut.model_validate(t).model_dump() for t in items]


def local_midnight_utc(now: datetime | None = None) -> datetime:
    local = (now or datetime.now()).astimezone()
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def stats(db: Session, now: datetime | None = None) -> dict:
    trades_today = db.execute(
        select(func.count(CopierTradeEvent.id)).where(CopierTradeEvent.created_at >= local_midnight_utc(now))
    ).scalar_one()
    active = db.execute(
        select(func.count(CopierAccount.id)).where(CopierAccount.is_active == True)
    ).scalar_one()
    total = db.execute(select(func.count(CopierAccount.id))).scalar_one()
    master = db.execute(
        select(CopierAccount.account_name).where(CopierAccount.is_master == True).order_by(CopierAccount.account_name)
    ).scalars().first()
    last = db.execute(
        select(CopierTradeEvent).order_by(CopierTradeEvent.created_at.desc()).limit(1)
    ).scalars().first()
    return {
        "trades_today": trades_today,
        "active_accounts": active,
        "total_accounts": total,
        "master_account": master,
        "last_trade": TradeEventOut.model_validate(last).model_dump() if last else None,
    }
