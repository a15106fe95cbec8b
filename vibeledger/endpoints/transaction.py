from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.params import Query
from sqlalchemy.orm import Session

from vibeledger.core.constants import TransactionStatusEnum
from vibeledger.schemas.response import APIResponse, PaginatedResponse
from vibeledger.schemas.transaction import TransactionCreate, TransactionSchema, TransactionStatusUpdate, TransitionResult
from vibeledger.schemas.user import ActorContext
from vibeledger.services.transaction import transaction_service
from vibeledger.utils import deps

router = APIRouter()

@router.post("", response_model=APIResponse[TransitionResult], status_code=status.HTTP_201_CREATED)
def create_transaction(
    *,
    db: Session = Depends(deps.get_db),
    transaction_in: TransactionCreate,
    context: ActorContext = Depends(deps.get_actor_context)
):
    user_id = transaction_in.user_id if transaction_in.user_id is not None else context.user_id
    deps.ensure_self_or_admin(context, user_id)
    if transaction_in.status != TransactionStatusEnum.PENDING.value and not context.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can record settled transactions."
        )

    result = transaction_service.create_transaction(
        db,
        user_id=user_id,
        amount=transaction_in.amount,
        transaction_type=transaction_in.transaction_type,
        payment_method=transaction_in.payment_method,
        reference_number=transaction_in.reference_number,
        status=transaction_in.status,
        context=context,
    )
    return APIResponse(message="Transaction created successfully", data=result)

@router.get("", response_model=APIResponse[PaginatedResponse[TransactionSchema]])
def list_transactions(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.require_admin),
    user_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    transaction_type: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500)
):
    page = transaction_service.list_transactions(
        db, user_id=user_id, status=status_filter, transaction_type=transaction_type, skip=skip, limit=limit
    )
    return APIResponse(message="Transactions retrieved successfully", data=page)

@router.get("/me", response_model=APIResponse[PaginatedResponse[TransactionSchema]])
def list_my_transactions(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.get_actor_context),
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500)
):
    page = transaction_service.list_for_actor(db, context=context, status=status_filter, skip=skip, limit=limit)
    return APIResponse(message="Transactions retrieved successfully", data=page)

@router.get("/{transaction_id}", response_model=APIResponse[TransactionSchema])
def get_transaction(
    *,
    db: Session = Depends(deps.get_db),
    transaction_id: int,
    context: ActorContext = Depends(deps.get_actor_context)
):
    txn = transaction_service.get_transaction(db, transaction_id=transaction_id, context=context)
    return APIResponse(message="Transaction retrieved successfully", data=TransactionSchema.model_validate(txn))

@router.patch("/{transaction_id}/status", response_model=APIResponse[TransitionResult])
def transition_transaction(
    *,
    db: Session = Depends(deps.get_db),
    transaction_id: int,
    status_in: TransactionStatusUpdate,
    context: ActorContext = Depends(deps.require_admin)
):
    result = transaction_service.transition(db, transaction_id=transaction_id, new_status=status_in.status, context=context)
    message = "Transaction already in requested status" if result.idempotent else "Transaction status updated successfully"
    return APIResponse(message=message, data=result)
