from typing import List, Optional
from fastapi import APIRouter, Depends, status
from fastapi.params import Query
from sqlalchemy.orm import Session

from vibeledger.schemas.response import APIResponse
from vibeledger.schemas.subscription import AfterTransactionRequest, CheckoutRequest, PlanSubscribedSchema, SubscribeRequest
from vibeledger.schemas.user import ActorContext
from vibeledger.services.subscription import subscription_service
from vibeledger.utils import deps

router = APIRouter()

@router.post("", response_model=APIResponse[PlanSubscribedSchema], status_code=status.HTTP_201_CREATED)
def subscribe_to_plan(
    *,
    db: Session = Depends(deps.get_db),
    subscribe_in: SubscribeRequest,
    context: ActorContext = Depends(deps.get_actor_context)
):
    subscription = subscription_service.subscribe(
        db,
        user_id=context.user_id,
        plan_id=subscribe_in.plan_id,
        transaction_id=subscribe_in.transaction_id,
        context=context,
    )
    return APIResponse(message="Subscription activated successfully", data=PlanSubscribedSchema.model_validate(subscription))

@router.post("/checkout", response_model=APIResponse[PlanSubscribedSchema], status_code=status.HTTP_201_CREATED)
def start_checkout(
    *,
    db: Session = Depends(deps.get_db),
    checkout_in: CheckoutRequest,
    context: ActorContext = Depends(deps.get_actor_context)
):
    subscription = subscription_service.start_checkout(
        db,
        user_id=context.user_id,
        plan_id=checkout_in.plan_id,
        payment_method=checkout_in.payment_method,
        reference_number=checkout_in.reference_number,
        context=context,
    )
    return APIResponse(message="Checkout started, awaiting payment", data=PlanSubscribedSchema.model_validate(subscription))

@router.post("/after-transaction", response_model=APIResponse[PlanSubscribedSchema])
def update_after_transaction(
    *,
    db: Session = Depends(deps.get_db),
    request_in: AfterTransactionRequest,
    context: ActorContext = Depends(deps.require_admin)
):
    subscription = subscription_service.reactivate_after_transaction_completion(
        db, transaction_id=request_in.transaction_id, context=context
    )
    return APIResponse(message="Subscription synchronised with transaction", data=PlanSubscribedSchema.model_validate(subscription))

@router.get("/me", response_model=APIResponse[List[PlanSubscribedSchema]])
def list_my_subscriptions(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.get_actor_context),
    transaction_status: Optional[str] = Query(None)
):
    subscriptions = subscription_service.list_for_user(db, user_id=context.user_id, transaction_status=transaction_status)
    return APIResponse(
        message="Subscriptions retrieved successfully",
        data=[PlanSubscribedSchema.model_validate(s) for s in subscriptions]
    )
