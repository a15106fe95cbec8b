from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from vibeledger.core.constants import LedgerDirectionEnum, TransactionTypeEnum, WalletEffectOutcomeEnum

class WalletSchema(BaseModel):
    id: int
    user_id: int
    amount: float
    status: Optional[bool] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class WalletBalanceSchema(BaseModel):
    user_id: int
    amount: float

class WalletUpdateResult(BaseModel):
    """Outcome of applying one completed transaction to a wallet."""
    applied: bool
    outcome: WalletEffectOutcomeEnum
    user_id: int
    transaction_id: int
    direction: Optional[LedgerDirectionEnum] = None
    old_amount: Optional[float] = None
    new_amount: Optional[float] = None
    shortfall: float = 0.0

class WalletLedgerEntrySchema(BaseModel):
    id: int
    wallet_id: int
    user_id: int
    transaction_id: int
    transaction_type: TransactionTypeEnum
    direction: LedgerDirectionEnum
    requested_amount: float
    applied_delta: float
    balance_before: float
    balance_after: float
    shortfall: float
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
