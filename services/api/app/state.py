import logging

from sqlalchemy import case, literal, or_, update
from sqlalchemy.orm import Session

from .models import CopierAccount, CopierState, STATE_ROW_ID, CONNECTED, DISCONNECTED, store_now
from .schemas import CopierStateOut

log = logging.getLogger(__name__)


def read_state(db: Session) -> CopierStateOut:
    s = db.get(CopierState, STATE_ROW_ID)
    if not s:
        return CopierStateOut(is_running=False, master_account="", updated_at=None)
    return CopierStateOut(is_running=s.is_running, master_account=s.master_account, updated_at=s.updated_at)


def rederive_statuses(db: Session, master: str, is_running: bool) -> int:
    """Bring the stored status of every account tied to `master` in line with is_running.

    Only rows whose status actually changes are written. Does not commit.
    """
    if is_running:
        target = case((or_(CopierAccount.is_master == True, CopierAccount.is_active == True), CONNECTED),
                      else_=DISCONNECTED)
    else:
        target = literal(DISCONNECTED)
    res = db.execute(
        update(CopierAccount)
        .where(or_(CopierAccount.master_account == master, CopierAccount.account_name == master),
               CopierAccount.status != target)
        .values(status=target)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount


def write_state(db: Session, is_running: bool | None = None, master_account: str | None = None) -> CopierStateOut:
    """Merge the given fields into the singleton row. Last writer wins.

    The accounts of the resulting master are re-derived in the same commit,
    so a stored status never outlives the is_running it was derived from.
    Re-asserting the same values only moves updated_at. Commits.
    """
    s = db.get(CopierState, STATE_ROW_ID)
    if not s:
        s = CopierState(id=STATE_ROW_ID, is_running=False, master_account="")
        db.add(s)
    if is_running is not None:
        s.is_running = is_running
    if master_account is not None:
        s.master_account = master_account
    s.updated_at = store_now()
    running, master = s.is_running, s.master_account
    n = rederive_statuses(db, master, running) if master else 0
    db.commit()
    db.refresh(s)
    if n:
        log.info("run state running=%s master=%s: %d account status(es) re-derived", running, master, n)
    return CopierStateOut(is_running=s.is_running, master_account=s.master_account, updated_at=s.updated_at)
