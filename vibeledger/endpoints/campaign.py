from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from vibeledger.schemas.campaign import (
    CampaignStatisticsSchema,
    ContributionCreate,
    ContributionReceipt,
    DisbursementCreate,
    DisbursementRowSchema,
    DisbursementSchema,
    DisbursementStatusUpdate,
    FundingRowSchema,
)
from vibeledger.schemas.response import APIResponse
from vibeledger.schemas.user import ActorContext
from vibeledger.services.campaign import campaign_funding_service
from vibeledger.utils import deps

router = APIRouter()

@router.get("/statistics", response_model=APIResponse[CampaignStatisticsSchema])
def get_campaign_statistics(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.require_admin)
):
    stats = campaign_funding_service.get_statistics(db)
    return APIResponse(message="Campaign statistics retrieved successfully", data=stats)

@router.get("/disbursements", response_model=APIResponse[List[DisbursementRowSchema]])
def get_disbursements(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.require_admin)
):
    rows = campaign_funding_service.get_disbursements(db)
    return APIResponse(message="Disbursements retrieved successfully", data=rows)

@router.get("/funding-feed", response_model=APIResponse[List[FundingRowSchema]])
def get_funding_feed(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.require_admin)
):
    rows = campaign_funding_service.get_funding_feed(db)
    return APIResponse(message="Campaign funding feed retrieved successfully", data=rows)

@router.post("/{campaign_id}/contributions", response_model=APIResponse[ContributionReceipt], status_code=status.HTTP_201_CREATED)
def contribute_to_campaign(
    *,
    db: Session = Depends(deps.get_db),
    campaign_id: int,
    contribution_in: ContributionCreate,
    context: ActorContext = Depends(deps.get_actor_context)
):
    receipt = campaign_funding_service.contribute(
        db, campaign_id=campaign_id, fundby_user_id=context.user_id, amount=contribution_in.amount, context=context
    )
    return APIResponse(message="Contribution recorded successfully", data=receipt)

@router.post("/{campaign_id}/disbursements", response_model=APIResponse[DisbursementSchema], status_code=status.HTTP_201_CREATED)
def request_disbursement(
    *,
    db: Session = Depends(deps.get_db),
    campaign_id: int,
    disbursement_in: DisbursementCreate,
    context: ActorContext = Depends(deps.get_actor_context)
):
    disbursement = campaign_funding_service.request_disbursement(
        db,
        campaign_id=campaign_id,
        beneficiary_user_id=disbursement_in.beneficiary_user_id or context.user_id,
        amount=disbursement_in.amount,
        bank_name_id=disbursement_in.bank_name_id,
        bank_account_no=disbursement_in.bank_account_no,
        bank_account_holder_name=disbursement_in.bank_account_holder_name,
        context=context,
    )
    return APIResponse(message="Disbursement requested successfully", data=DisbursementSchema.model_validate(disbursement))

@router.patch("/disbursements/{disbursement_id}/status", response_model=APIResponse[DisbursementSchema])
def update_disbursement_status(
    *,
    db: Session = Depends(deps.get_db),
    disbursement_id: int,
    status_in: DisbursementStatusUpdate,
    context: ActorContext = Depends(deps.require_admin)
):
    disbursement = campaign_funding_service.update_disbursement_status(
        db, disbursement_id=disbursement_id, status=status_in.status, context=context
    )
    return APIResponse(message="Disbursement status updated successfully", data=DisbursementSchema.model_validate(disbursement))
