import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import NotFound, Conflict
from .models import CopierAccount, derive_status
from .schemas import AccountIn, AccountPatch, AccountOut
from .state import read_state

log = logging.getLogger(__name__)


def account_out(a: CopierAccount) -> dict:
    return AccountOut.model_validate(a).model_dump()


def list_accounts(db: Session) -> list[dict]:
    items = db.execute(select(CopierAccount).order_by(CopierAccount.account_name)).scalars().all()
    return [account_out(a) for a in items]


def _status_for(a: CopierAccount, is_running: bool) -> str:
    if a.is_master:
        return derive_status(True, is_running)
    return derive_status(a.is_active, is_running)


def create_account(db: Session, payload: AccountIn) -> dict:
    state = read_state(db)
    a = CopierAccount(**payload.model_dump())
    a.status = _status_for(a, state.is_running)
    db.add(a)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("account already exists", account_name=payload.account_name)
    db.refresh(a)
    return account_out(a)


def patch_account(db: Session, account_id: uuid.UUID, patch: AccountPatch) -> dict:
    """Apply a dashboard edit to the control fields and re-derive status."""
    a = db.get(CopierAccount, account_id)
    if not a:
        raise NotFound("account not found", account_id=account_id)
    for k, v in patch.model_dump(exclude_unset=True).items():
        if v is None and k != "notes":
            continue
        setattr(a, k, v)
    a.status = _status_for(a, read_state(db).is_running)
    db.commit()
    db.refresh(a)
    log.info("account %s patched: %s", a.account_name, patch.model_dump(exclude_unset=True))
    return account_out(a)
