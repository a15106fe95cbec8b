from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime

from vibeledger.core.constants import TransactionStatusEnum, TransactionTypeEnum
from vibeledger.schemas.subscription import PlanSubscribedSchema
from vibeledger.schemas.wallet import WalletUpdateResult

class TransactionSchema(BaseModel):
    id: int
    user_id: int
    amount: float
    status: TransactionStatusEnum
    transaction_type: TransactionTypeEnum
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    effect_applied: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class TransactionCreate(BaseModel):
    user_id: Optional[int] = None
    amount: Decimal
    transaction_type: str
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    status: str = TransactionStatusEnum.PENDING.value

class TransactionStatusUpdate(BaseModel):
    status: str

class TransitionResult(BaseModel):
    transaction: TransactionSchema
    idempotent: bool = False
    wallet_effect: Optional[WalletUpdateResult] = None
    subscription: Optional[PlanSubscribedSchema] = None
