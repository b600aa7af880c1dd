"""Merge agent-reported account snapshots into copier_accounts.

Two writers share these rows: the dashboard owns the control fields
(is_active, contract_size) and the agent owns the telemetry fields. A full
sync reconciles everything; a telemetry-only sync (pnl_only) writes telemetry
and the derived status and never the control fields.

Commit order inside one call: master row, then each slave row, then the
run-state singleton together with the re-derived status of every account of
the effective master. Each slave row commits on its own so one bad row is
logged and skipped without blocking its siblings.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .directory import resolve
from .errors import DatastoreUnavailable
from .models import CopierAccount, derive_status
from .schemas import SyncIn, SyncOut, AccountSnapshot
from .state import read_state, write_state

log = logging.getLogger(__name__)

Labels = dict[str, dict[str, str]]


def _labels(db: Session, names: list[str]) -> Optional[Labels]:
    try:
        return resolve(db, names)
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("directory lookup failed for %d account(s), keeping stored labels: %s", len(names), e.__class__.__name__)
        return None


def _apply_labels(a: CopierAccount, labels: Optional[Labels]):
    # None means the lookup failed: stored labels stay, new rows keep the "" column default
    if labels is None:
        return
    found = labels.get(a.account_name, {})
    a.client_name = found.get("client_name", "")
    a.agency_name = found.get("agency_name", "")


def _get(db: Session, account_name: str) -> Optional[CopierAccount]:
    return db.execute(
        select(CopierAccount).where(CopierAccount.account_name == account_name)
    ).scalars().first()


def _upsert_master(db: Session, name: str, is_running: bool, labels: Optional[Labels]) -> CopierAccount:
    a = _get(db, name)
    if not a:
        a = CopierAccount(account_name=name, is_active=True)
        db.add(a)
    a.is_master = True
    a.master_account = name
    a.status = derive_status(True, is_running)
    _apply_labels(a, labels)
    return a


def _upsert_slave(db: Session, snap: AccountSnapshot, master: str, is_running: bool, labels: Optional[Labels]) -> CopierAccount:
    a = _get(db, snap.account_name)
    if not a:
        a = CopierAccount(account_name=snap.account_name)
        db.add(a)
    a.is_master = False
    a.master_account = master
    a.is_active = snap.is_active
    a.contract_size = snap.contract_size
    for k, v in snap.telemetry().items():
        setattr(a, k, v)
    a.status = derive_status(snap.is_active, is_running)
    _apply_labels(a, labels)
    return a


def _apply_telemetry(db: Session, snap: AccountSnapshot, is_running: bool, labels: Optional[Labels]) -> Optional[CopierAccount]:
    a = _get(db, snap.account_name)
    if not a:
        return None
    fields = snap.telemetry(only_set=True)
    for k, v in fields.items():
        setattr(a, k, v)
    a.status = derive_status(True if a.is_master else a.is_active, is_running)
    _apply_labels(a, labels)
    return a


def reconcile(db: Session, payload: SyncIn) -> SyncOut:
    mode = "telemetry" if payload.pnl_only else "full"
    master = payload.master_account
    is_running = payload.is_running if payload.is_running is not None else read_state(db).is_running

    names = [s.account_name for s in payload.slave_accounts]
    if master:
        names.append(master)
    labels = _labels(db, names)

    if master:
        try:
            if payload.pnl_only:
                m = _get(db, master)
                if m:
                    m.status = derive_status(True, is_running)
            else:
                _upsert_master(db, master, is_running, labels)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error("%s sync: master upsert failed account=%s: %s", mode, master, e.__class__.__name__)
            raise DatastoreUnavailable("master account not stored", operation=f"{mode}_sync", account_name=master) from e

    synced: list[str] = []
    skipped: list[str] = []
    for snap in payload.slave_accounts:
        try:
            if payload.pnl_only:
                row = _apply_telemetry(db, snap, is_running, labels)
                if row is None:
                    log.info("telemetry sync: unknown account=%s skipped", snap.account_name)
                    skipped.append(snap.account_name)
                    continue
            else:
                _upsert_slave(db, snap, master, is_running, labels)
            db.commit()
            synced.append(snap.account_name)
        except SQLAlchemyError as e:
            db.rollback()
            log.error("%s sync: row failed account=%s master=%s: %s", mode, snap.account_name, master, e.__class__.__name__)
            skipped.append(snap.account_name)

    try:
        write_state(db, is_running=payload.is_running, master_account=master)
    except SQLAlchemyError as e:
        db.rollback()
        log.error("%s sync: run-state update failed master=%s: %s", mode, master, e.__class__.__name__)
        raise DatastoreUnavailable("run state not stored", operation=f"{mode}_sync", account_name=master or "") from e

    log.info("%s sync master=%s running=%s: %d synced, %d skipped", mode, master, is_running, len(synced), len(skipped))
    return SyncOut(success=True, mode=mode, synced=synced, skipped=skipped, is_running=is_running)
