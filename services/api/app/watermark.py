"""Rows changed since a checkpoint, for the agent's pull loop."""
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import CopierAccount
from .schemas import AccountOut, ChangesOut


def changes_since(db: Session, since: datetime) -> ChangesOut:
    """Every account with updated_at strictly after `since`.

    The returned watermark is the largest stored updated_at among those rows
    (or `since` itself when nothing changed), so the next call never depends
    on the caller's clock.
    """
    items = db.execute(
        select(CopierAccount)
        .where(CopierAccount.updated_at > since)
        .order_by(CopierAccount.updated_at, CopierAccount.account_name)
    ).scalars().all()
    watermark = max((a.updated_at for a in items), default=since)
    return ChangesOut(accounts=[AccountOut.model_validate(a) for a in items], watermark=watermark)
