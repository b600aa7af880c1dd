from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Float, JSON, Uuid
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.sql.expression import FunctionElement
from .db import Base

CONNECTED = "connected"
DISCONNECTED = "disconnected"

PENDING = "pending"
EXECUTED = "executed"
FAILED = "failed"
TERMINAL_STATUSES = (EXECUTED, FAILED)

STATE_ROW_ID = 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class store_now(FunctionElement):
    """Current UTC time as the database sees it, evaluated inside the write."""
    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(store_now)
def _store_now_default(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(store_now, "sqlite")
def _store_now_sqlite(element, compiler, **kw):
    # CURRENT_TIMESTAMP on sqlite is whole seconds
    return "strftime('%Y-%m-%d %H:%M:%f', 'now')"


def derive_status(is_active: bool, is_running: bool) -> str:
    return CONNECTED if (is_active and is_running) else DISCONNECTED


class CopierAccount(Base):
    __tablename__ = "copier_accounts"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_name = Column(String(200), unique=True, nullable=False)
    is_master = Column(Boolean, nullable=False, default=False)
    master_account = Column(String(200), nullable=True, index=True)  # master this row was last synced under

    # control fields: written by the dashboard, and by full syncs only
    is_active = Column(Boolean, nullable=False, default=False)
    contract_size = Column(Float, nullable=False, default=1.0)
    notes = Column(Text, nullable=True)

    # telemetry fields: written by the agent
    unrealized = Column(Float, nullable=False, default=0.0)
    realized = Column(Float, nullable=False, default=0.0)
    net_liquidation = Column(Float, nullable=False, default=0.0)
    position_qty = Column(Float, nullable=False, default=0.0)
    total_pnl = Column(Float, nullable=False, default=0.0)
    trades_copied = Column(Integer, nullable=False, default=0)
    last_trade = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=DISCONNECTED)  # connected | disconnected
    client_name = Column(String(200), nullable=False, default="")
    agency_name = Column(String(200), nullable=False, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=store_now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=store_now(), onupdate=store_now(), index=True)


class CopierTradeEvent(Base):
    __tablename__ = "copier_trade_events"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    master_account = Column(String(200), nullable=False)
    instrument = Column(String(100), nullable=False)
    action = Column(String(20), nullable=False)  # Buy | Sell | BuyToCover | SellShort
    quantity = Column(Float, nullable=False)
    fill_price = Column(Float, nullable=False)
    fill_time = Column(DateTime(timezone=True), nullable=False)
    execution_id = Column(String(200), nullable=False, index=True)
    slaves_copied = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=store_now(), index=True)


class CopierCommand(Base):
    __tablename__ = "copier_commands"
    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(50), nullable=False)  # start_copier | stop_copier | close_all_trades | set_master | ...
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=PENDING, index=True)
    result = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=store_now())
    executed_at = Column(DateTime(timezone=True), nullable=True)


class CopierState(Base):
    __tablename__ = "copier_state"
    id = Column(Integer, primary_key=True)
    is_running = Column(Boolean, nullable=False, default=False)
    master_account = Column(String(200), nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=store_now())


# Customer registry, owned by the onboarding system. Read-only here.
class Agency(Base):
    __tablename__ = "agencies"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)


class Client(Base):
    __tablename__ = "clients"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    agency_id = Column(Uuid(as_uuid=True), ForeignKey("agencies.id"), nullable=True)

    agency = relationship("Agency")


class ClientAccount(Base):
    __tablename__ = "client_accounts"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    account_number = Column(String(200), nullable=False, index=True)

    client = relationship("Client")
