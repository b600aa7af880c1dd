"""Dashboard -> agent control commands.

The agent cannot be reached inbound, so the dashboard writes commands here
(outbox) and the agent drains them on its own timer and acknowledges each one.
"""
import logging
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .errors import NotFound
from .models import CopierCommand, PENDING, TERMINAL_STATUSES, store_now
from .schemas import CommandOut

log = logging.getLogger(__name__)


def enqueue(db: Session, type: str, payload: Optional[dict[str, Any]] = None) -> CommandOut:
    cmd = CopierCommand(type=type, payload=payload or {}, status=PENDING)
    db.add(cmd)
    db.commit()
    db.refresh(cmd)
    log.info("command %s queued: %s %s", cmd.id, cmd.type, cmd.payload)
    return CommandOut.model_validate(cmd)


def poll_pending(db: Session) -> list[CommandOut]:
    """All pending commands, oldest first."""
    items = db.execute(
        select(CopierCommand)
        .where(CopierCommand.status == PENDING)
        .order_by(CopierCommand.created_at.asc(), CopierCommand.id.asc())
    ).scalars().all()
    return [CommandOut.model_validate(c) for c in items]


def list_commands(db: Session, status: Optional[str] = None, limit: int = 100) -> list[CommandOut]:
    q = select(CopierCommand)
    if status:
        q = q.where(CopierCommand.status == status)
    q = q.order_by(CopierCommand.created_at.desc(), CopierCommand.id.desc()).limit(max(1, min(limit, 500)))
    return [CommandOut.model_validate(c) for c in db.execute(q).scalars().all()]


def acknowledge(db: Session, command_id: int, terminal_status: str, result: Optional[str] = None) -> CommandOut:
    """Move a command to executed/failed.

    A command that is already terminal is returned untouched, so agent
    retries of the same acknowledgement succeed without changing anything.
    """
    if terminal_status not in TERMINAL_STATUSES:
        raise ValueError(f"terminal status must be one of {TERMINAL_STATUSES}, got {terminal_status!r}")
    # only a pending row moves; a concurrent ack or the expiry sweep that got there first wins
    res = db.execute(
        update(CopierCommand)
        .where(CopierCommand.id == command_id, CopierCommand.status == PENDING)
        .values(status=terminal_status, result=result, executed_at=store_now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    cmd = db.get(CopierCommand, command_id)
    if not cmd:
        raise NotFound("command not found", command_id=command_id)
    if res.rowcount:
        log.info("command %s (%s) acknowledged as %s", cmd.id, cmd.type, cmd.status)
    elif cmd.status != terminal_status:
        log.warning("command %s already %s, ignoring ack as %s", command_id, cmd.status, terminal_status)
    return CommandOut.model_validate(cmd)
