from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from vibeledger.core.constants import PlanDurationEnum, TransactionStatusEnum

class SubscriptionPlanSchema(BaseModel):
    id: int
    plan_name: str
    price: float
    plan_duration: PlanDurationEnum
    status: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)

class PlanSubscribedSchema(BaseModel):
    id: int
    user_id: int
    plan_id: int
    transaction_id: Optional[int] = None
    transaction_status: TransactionStatusEnum
    start_plan_date: Optional[datetime] = None
    end_plan_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class SubscribeRequest(BaseModel):
    plan_id: int
    transaction_id: Optional[int] = None

class CheckoutRequest(BaseModel):
    plan_id: int
    payment_method: str
    reference_number: Optional[str] = None

class AfterTransactionRequest(BaseModel):
    transaction_id: int
