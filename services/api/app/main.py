import logging
import time
import uuid
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Depends, Request, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .db import Base, engine, SessionLocal
from .schemas import (TradeEventIn, SyncIn, AccountIn, AccountPatch, ResolveIn, CommandIn, CommandAck,
                      CopierStateIn)
from .auth import get_user, require_role, require_agent
from .errors import CopierError, copier_error_handler
from .queue import get_queue, SWEEP_JOB
from . import accounts, commands, directory, ledger, state, sync, watermark

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s [COPIER] %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("copier_bridge")

Base.metadata.create_all(bind=engine)

STARTED = time.monotonic()

app = FastAPI(title="Copier Bridge")
app.add_exception_handler(CopierError, copier_error_handler)

READERS = ("admin", "operator", "viewer")
WRITERS = ("admin", "operator")

@app.exception_handler(SQLAlchemyError)
async def datastore_error(request: Request, exc: SQLAlchemyError):
    log.error("datastore error on %s %s: %s", request.method, request.url.path, exc.__class__.__name__)
    return JSONResponse(status_code=503, content={"error": "datastore unavailable", "retryable": True,
                                                  "operation": f"{request.method} {request.url.path}"})

def db_dep():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# --- trade ledger (agent pushes fills) ---
@app.post("/api/trade-events", tags=["trades"])
def submit_trade_event(payload: TradeEventIn, request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *WRITERS)
    event_id = ledger.submit(db, payload)
    return {"success": True, "id": str(event_id)}

@app.get("/api/trade-events", tags=["trades"])
def list_trade_events(request: Request, limit: int = Query(50, ge=1, le=ledger.MAX_LIMIT),
                      db: Session = Depends(db_dep)):
    require_agent(request, *READERS)
    return {"data": ledger.list_recent(db, limit)}

@app.get("/api/copier-stats", tags=["trades"])
def copier_stats(request: Request, db: Session = Depends(db_dep)):
    u = get_user(request); require_role(u, *READERS)
    return ledger.stats(db)

# --- accounts ---
@app.get("/api/copier-accounts", tags=["accounts"])
def list_copier_accounts(request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *READERS)
    return {"data": accounts.list_accounts(db)}

@app.post("/api/copier-accounts", tags=["accounts"])
def create_copier_account(payload: AccountIn, request: Request, db: Session = Depends(db_dep)):
    u = get_user(request); require_role(u, *WRITERS)
    return {"data": accounts.create_account(db, payload)}

@app.get("/api/copier-accounts/changes", tags=["accounts"])
def changed_accounts(request: Request, since: datetime = Query(...), db: Session = Depends(db_dep)):
    require_agent(request, *READERS)
    return watermark.changes_since(db, since).model_dump()

@app.post("/api/copier-accounts/sync", tags=["accounts"])
def sync_accounts(payload: SyncIn, request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *WRITERS)
    return sync.reconcile(db, payload).model_dump()

@app.patch("/api/copier-accounts/{account_id}", tags=["accounts"])
def patch_copier_account(account_id: uuid.UUID, payload: AccountPatch, request: Request,
                         db: Session = Depends(db_dep)):
    u = get_user(request); require_role(u, *WRITERS)
    return {"data": accounts.patch_account(db, account_id, payload)}

# --- directory ---
@app.post("/api/directory/resolve", tags=["directory"])
def resolve_accounts(payload: ResolveIn, request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *READERS)
    return {"data": directory.resolve(db, payload.accounts)}

# --- commands (dashboard outbox, agent inbox) ---
@app.post("/api/copier-commands", tags=["commands"])
def create_command(payload: CommandIn, request: Request, db: Session = Depends(db_dep)):
    u = get_user(request); require_role(u, *WRITERS)
    return {"data": commands.enqueue(db, payload.type, payload.payload).model_dump()}

@app.get("/api/copier-commands", tags=["commands"])
def list_commands(request: Request, status: Optional[str] = None, limit: int = Query(100, ge=1, le=500),
                  db: Session = Depends(db_dep)):
    u = get_user(request); require_role(u, *READERS)
    return {"data": [c.model_dump() for c in commands.list_commands(db, status, limit)]}

@app.get("/api/copier-commands/pending", tags=["commands"])
def pending_commands(request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *WRITERS)
    return {"data": [c.model_dump() for c in commands.poll_pending(db)]}

@app.post("/api/copier-commands/{command_id}/ack", tags=["commands"])
def ack_command(command_id: int, payload: CommandAck, request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *WRITERS)
    return {"success": True, "data": commands.acknowledge(db, command_id, payload.status, payload.result).model_dump()}

@app.post("/api/copier-commands/sweep", tags=["commands"])
def sweep_commands(request: Request):
    u = get_user(request); require_role(u, *WRITERS)
    job = get_queue().enqueue(SWEEP_JOB, get_settings().command_ttl_seconds)
    return {"job_id": job.id}

# --- run state ---
@app.get("/api/copier-state", tags=["state"])
def get_copier_state(request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *READERS)
    return state.read_state(db).model_dump()

@app.patch("/api/copier-state", tags=["state"])
def set_copier_state(payload: CopierStateIn, request: Request, db: Session = Depends(db_dep)):
    require_agent(request, *WRITERS)
    return state.write_state(db, payload.is_running, payload.master_account).model_dump()

@app.get("/health", tags=["system"])
def health():
    return {"status": "ok", "uptime": round(time.monotonic() - STARTED, 3)}
