import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vibeledger.core.config import settings
from vibeledger.core.constants import (
    CREDIT_TRANSACTION_TYPES,
    DEBIT_TRANSACTION_TYPES,
    DebitPolicyEnum,
    LedgerDirectionEnum,
    TransactionTypeEnum,
    WalletEffectOutcomeEnum,
)
from vibeledger.core.decorators import retry_on_storage_error
from vibeledger.core.exceptions import InsufficientFundsError, LedgerValidationError, NotFoundError
from vibeledger.crud.user import user as crud_user
from vibeledger.crud.wallet import wallet as crud_wallet, wallet_ledger_entry as crud_wallet_ledger_entry
from vibeledger.models.transaction import Transaction
from vibeledger.models.wallet import Wallet, WalletLedgerEntry
from vibeledger.schemas.user import ActorContext
from vibeledger.schemas.wallet import WalletUpdateResult

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

def classify_transaction_type(transaction_type) -> LedgerDirectionEnum:
    try:
        parsed = TransactionTypeEnum(transaction_type)
    except ValueError:
        raise LedgerValidationError(f"Unsupported transaction type '{transaction_type}'")
    if parsed in CREDIT_TRANSACTION_TYPES:
        return LedgerDirectionEnum.CREDIT
    if parsed in DEBIT_TRANSACTION_TYPES:
        return LedgerDirectionEnum.DEBIT
    raise LedgerValidationError(f"Transaction type '{parsed.value}' has no wallet direction")

class WalletLedgerService:
    """
    Owns Wallet.amount.

    apply_effect runs inside the caller's unit of work and never commits; the
    other public methods are units of work of their own.
    """
    def __init__(self, debit_policy: Optional[DebitPolicyEnum] = None, clock: Optional[Callable[[], datetime]] = None):
        self._debit_policy = debit_policy
        self.clock = clock or datetime.utcnow

    @property
    def debit_policy(self) -> DebitPolicyEnum:
        return DebitPolicyEnum(self._debit_policy or settings.WALLET_DEBIT_POLICY)

    def apply_effect(self, db: Session, *, transaction: Transaction, context: ActorContext) -> WalletUpdateResult:
        wallet = crud_wallet.get_by_user_id_for_update(db, user_id=transaction.user_id)
        if wallet is None:
            logger.warning(
                f"Wallet not found for user {transaction.user_id}; "
                f"transaction {transaction.id} completed without a balance change"
            )
            return WalletUpdateResult(
                applied=False,
                outcome=WalletEffectOutcomeEnum.WALLET_MISSING,
                user_id=transaction.user_id,
                transaction_id=transaction.id,
            )

        existing_entry = crud_wallet_ledger_entry.get_by_transaction_id(db, transaction_id=transaction.id)
        if existing_entry is not None:
            logger.info(f"Transaction {transaction.id} already applied to wallet {wallet.id}, skipping")
            return WalletUpdateResult(
                applied=False,
                outcome=WalletEffectOutcomeEnum.ALREADY_APPLIED,
                user_id=transaction.user_id,
                transaction_id=transaction.id,
                direction=existing_entry.direction,
                old_amount=float(existing_entry.balance_before),
                new_amount=float(existing_entry.balance_after),
                shortfall=float(existing_entry.shortfall),
            )

        amount = _money(transaction.amount)
        old_amount = _money(wallet.amount)
        direction = classify_transaction_type(transaction.transaction_type)
        now = self.clock()
        shortfall = Decimal("0.00")

        if direction == LedgerDirectionEnum.CREDIT:
            crud_wallet.increment(db, wallet_id=wallet.id, delta=amount, updated_by=context.user_id, updated_at=now)
        elif self.debit_policy == DebitPolicyEnum.REJECT:
            if not crud_wallet.decrement_if_sufficient(db, wallet_id=wallet.id, delta=amount, updated_by=context.user_id, updated_at=now):
                logger.info(f"Rejected debit of {amount} for user {transaction.user_id}: balance {old_amount}")
                raise InsufficientFundsError(
                    "Insufficient wallet balance",
                    details={
                        "user_id": transaction.user_id,
                        "transaction_id": transaction.id,
                        "required": float(amount),
                        "available": float(old_amount),
                    },
                )
        else:
            crud_wallet.decrement_clamped(db, wallet_id=wallet.id, delta=amount, updated_by=context.user_id, updated_at=now)
            shortfall = max(amount - old_amount, Decimal("0.00"))

        db.refresh(wallet)
        new_amount = _money(wallet.amount)

        crud_wallet_ledger_entry.create(
            db,
            obj_in={
                "wallet_id": wallet.id,
                "user_id": transaction.user_id,
                "transaction_id": transaction.id,
                "transaction_type": TransactionTypeEnum(transaction.transaction_type),
                "direction": direction,
                "requested_amount": amount,
                "applied_delta": new_amount - old_amount,
                "balance_before": old_amount,
                "balance_after": new_amount,
                "shortfall": shortfall,
                "note": f"Debit clamped at zero, shortfall {shortfall}" if shortfall > 0 else None,
                "created_by": context.user_id,
                "created_at": now,
            },
            commit=False,
        )

        if shortfall > 0:
            logger.warning(f"Debit for transaction {transaction.id} clamped at zero, shortfall {shortfall}")
        logger.info(
            f"Wallet {wallet.id} {direction.value} {amount} for transaction {transaction.id}: "
            f"{old_amount} -> {new_amount}"
        )

        return WalletUpdateResult(
            applied=True,
            outcome=WalletEffectOutcomeEnum.APPLIED,
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            direction=direction,
            old_amount=float(old_amount),
            new_amount=float(new_amount),
            shortfall=float(shortfall),
        )

    @retry_on_storage_error()
    def open_wallet(self, db: Session, *, user_id: int, context: ActorContext) -> Wallet:
        """Get or create the wallet for a user, starting at zero."""
        if crud_user.get(db, id=user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        existing = crud_wallet.get_by_user_id(db, user_id=user_id)
        if existing is not None:
            return existing

        try:
            wallet = crud_wallet.create(
                db,
                obj_in={"user_id": user_id, "amount": Decimal("0.00"), "status": True, "created_by": context.user_id},
            )
        except IntegrityError:
            # created concurrently
            db.rollback()
            return crud_wallet.get_by_user_id(db, user_id=user_id)

        logger.info(f"Opened wallet {wallet.id} for user {user_id}")
        return wallet

    @retry_on_storage_error()
    def get_wallet(self, db: Session, *, user_id: int) -> Wallet:
        wallet = crud_wallet.get_by_user_id(db, user_id=user_id)
        if wallet is None:
            raise NotFoundError(f"Wallet not found for user {user_id}")
        return wallet

    def get_balance(self, db: Session, *, user_id: int) -> Decimal:
        return _money(self.get_wallet(db, user_id=user_id).amount)

    @retry_on_storage_error()
    def get_entries(self, db: Session, *, user_id: int, skip: int = 0, limit: int = 100) -> List[WalletLedgerEntry]:
        if crud_wallet.get_by_user_id(db, user_id=user_id) is None:
            raise NotFoundError(f"Wallet not found for user {user_id}")
        return crud_wallet_ledger_entry.get_multi_by_user(db, user_id=user_id, skip=skip, limit=limit)

wallet_ledger_service = WalletLedgerService()
