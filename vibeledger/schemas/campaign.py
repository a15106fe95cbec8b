from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from vibeledger.core.constants import CampaignDisplayStatusEnum, DisbursementStatusEnum

class CampaignStatisticsSchema(BaseModel):
    active_campaign_count: int
    total_raised: float
    total_campaign_count: int
    average_funding_goal: float
    inactive_campaign_count: int

class DisbursementRowSchema(BaseModel):
    request_id: int
    campaign_name: Optional[str] = None
    beneficiary_name: Optional[str] = None
    amount: float
    bank_name: Optional[str] = None
    status: DisbursementStatusEnum
    age_in_hours: Optional[int] = None
    request_timestamp: Optional[datetime] = None

class FundingRowSchema(BaseModel):
    date: Optional[datetime] = None
    campaign_name: Optional[str] = None
    funder_name: Optional[str] = None
    amount: float
    goal: Optional[float] = None
    derived_status: CampaignDisplayStatusEnum

class ContributionCreate(BaseModel):
    amount: Decimal

class FeeQuoteSchema(BaseModel):
    base_amount: float
    fee_percentage: float
    platform_fee: float
    total_amount: float

class ContributionReceipt(BaseModel):
    contribution_id: int
    campaign_id: int
    fundby_user_id: Optional[int] = None
    fund_amount: float
    campaign_fund_amount: float
    campaign_fund_still_needed: float
    fee: FeeQuoteSchema

class DisbursementCreate(BaseModel):
    beneficiary_user_id: Optional[int] = None
    amount: Decimal
    bank_name_id: Optional[int] = None
    bank_account_no: Optional[str] = None
    bank_account_holder_name: Optional[str] = None

class DisbursementStatusUpdate(BaseModel):
    status: str = Field(..., description="approved, rejected or processed")

class DisbursementSchema(BaseModel):
    id: int
    campaign_id: int
    beneficiary_user_id: Optional[int] = None
    amount: float
    bank_name_id: Optional[int] = None
    status: DisbursementStatusEnum
    request_date: Optional[datetime] = None
    processed_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
