from datetime import datetime
from typing import Optional, Any
import uuid

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_pascal

# --- trade ledger ---
class SlaveCopy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_pascal)

    account: str
    qty: Optional[float] = None
    status: Optional[str] = None

class TradeEventIn(BaseModel):
    # the NinjaTrader add-on posts PascalCase keys (MasterAccount, FillPrice, ...)
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_pascal)

    master_account: str = Field(min_length=1)
    instrument: str = Field(min_length=1)
    action: str = Field(min_length=1)
    quantity: float
    fill_price: float
    fill_time: Optional[datetime] = None
    execution_id: str = Field(min_length=1)
    slaves_copied: list[SlaveCopy] = []

class TradeEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    master_account: str
    instrument: str
    action: str
    quantity: float
    fill_price: float
    fill_time: datetime
    execution_id: str
    slaves_copied: list[dict[str, Any]]
    created_at: datetime

# --- accounts ---
TELEMETRY_FIELDS = ("unrealized", "realized", "net_liquidation", "position_qty",
                    "total_pnl", "trades_copied", "last_trade")

class AccountSnapshot(BaseModel):
    account_name: str = Field(min_length=1)
    # control fields, only honoured by a full sync
    is_active: bool = False
    contract_size: float = 1.0
    # telemetry
    unrealized: float = 0.0
    realized: float = 0.0
    net_liquidation: float = 0.0
    position_qty: float = 0.0
    total_pnl: float = 0.0
    trades_copied: int = 0
    last_trade: Optional[datetime] = None

    def telemetry(self, only_set: bool = False) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=only_set)
        return {k: data[k] for k in TELEMETRY_FIELDS if k in data}

class SyncIn(BaseModel):
    master_account: Optional[str] = None
    slave_accounts: list[AccountSnapshot] = []
    is_running: Optional[bool] = None
    pnl_only: bool = False

    @model_validator(mode="after")
    def _full_sync_needs_master(self):
        if not self.pnl_only and not self.master_account:
            raise ValueError("master_account is required for a full sync")
        return self

class SyncOut(BaseModel):
    success: bool
    mode: str
    synced: list[str]
    skipped: list[str]
    is_running: bool

class AccountIn(BaseModel):
    account_name: str = Field(min_length=1)
    is_master: bool = False
    is_active: bool = False
    contract_size: float = 1.0
    notes: Optional[str] = None

class AccountPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_active: Optional[bool] = None
    contract_size: Optional[float] = Field(default=None, gt=0)
    is_master: Optional[bool] = None
    notes: Optional[str] = None

class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_name: str
    is_master: bool
    master_account: Optional[str]
    is_active: bool
    contract_size: float
    notes: Optional[str]
    unrealized: float
    realized: float
    net_liquidation: float
    position_qty: float
    total_pnl: float
    trades_copied: int
    last_trade: Optional[datetime]
    status: str
    client_name: str
    agency_name: str
    created_at: Optional[datetime]
    updated_at: datetime

class ChangesOut(BaseModel):
    accounts: list[AccountOut]
    watermark: datetime

# --- directory ---
class ResolveIn(BaseModel):
    accounts: list[str]

# --- commands ---
class CommandIn(BaseModel):
    type: str = Field(min_length=1, max_length=50)
    payload: dict[str, Any] = {}

class CommandAck(BaseModel):
    status: str = Field(pattern="^(executed|failed)$")
    result: Optional[str] = None

class CommandOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    payload: dict[str, Any]
    status: str
    result: Optional[str]
    created_at: datetime
    executed_at: Optional[datetime]

# --- run state ---
class CopierStateIn(BaseModel):
    is_running: Optional[bool] = None
    master_account: Optional[str] = None

class CopierStateOut(BaseModel):
    is_running: bool
    master_account: str
    updated_at: Optional[datetime]
