from typing import List
from fastapi import APIRouter, Depends, status
from fastapi.params import Query
from sqlalchemy.orm import Session

from vibeledger.schemas.response import APIResponse
from vibeledger.schemas.user import ActorContext
from vibeledger.schemas.wallet import WalletBalanceSchema, WalletLedgerEntrySchema, WalletSchema
from vibeledger.services.wallet import wallet_ledger_service
from vibeledger.utils import deps

router = APIRouter()

@router.get("/me", response_model=APIResponse[WalletSchema])
def get_my_wallet(
    *,
    db: Session = Depends(deps.get_db),
    context: ActorContext = Depends(deps.get_actor_context)
):
    wallet = wallet_ledger_service.get_wallet(db, user_id=context.user_id)
    return APIResponse(message="Wallet retrieved successfully", data=WalletSchema.model_validate(wallet))

@router.post("/{user_id}", response_model=APIResponse[WalletSchema], status_code=status.HTTP_201_CREATED)
def open_wallet(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    context: ActorContext = Depends(deps.require_admin)
):
    wallet = wallet_ledger_service.open_wallet(db, user_id=user_id, context=context)
    return APIResponse(message="Wallet opened successfully", data=WalletSchema.model_validate(wallet))

@router.get("/{user_id}/balance", response_model=APIResponse[WalletBalanceSchema])
def get_wallet_balance(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    context: ActorContext = Depends(deps.get_actor_context)
):
    deps.ensure_self_or_admin(context, user_id)
    amount = wallet_ledger_service.get_balance(db, user_id=user_id)
    return APIResponse(message="Wallet balance retrieved successfully", data=WalletBalanceSchema(user_id=user_id, amount=float(amount)))

@router.get("/{user_id}/ledger", response_model=APIResponse[List[WalletLedgerEntrySchema]])
def get_wallet_ledger(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    context: ActorContext = Depends(deps.get_actor_context),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500)
):
    deps.ensure_self_or_admin(context, user_id)
    entries = wallet_ledger_service.get_entries(db, user_id=user_id, skip=skip, limit=limit)
    return APIResponse(
        message="Wallet ledger retrieved successfully",
        data=[WalletLedgerEntrySchema.model_validate(entry) for entry in entries]
    )
