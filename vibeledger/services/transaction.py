import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from vibeledger.core.constants import (
    ALLOWED_TRANSACTION_TRANSITIONS,
    LedgerEventEnum,
    TransactionStatusEnum,
    TransactionTypeEnum,
)
from vibeledger.core.decorators import retry_on_storage_error
from vibeledger.core.exceptions import InvalidTransitionError, LedgerValidationError, NotFoundError
from vibeledger.crud.transaction import transaction as crud_transaction
from vibeledger.crud.user import user as crud_user
from vibeledger.models.transaction import Transaction
from vibeledger.schemas.response import PaginatedResponse
from vibeledger.schemas.subscription import PlanSubscribedSchema
from vibeledger.schemas.transaction import TransactionSchema, TransitionResult
from vibeledger.schemas.user import ActorContext
from vibeledger.services.wallet import WalletLedgerService, wallet_ledger_service
from vibeledger.utils.events import EventBus, event_bus as default_event_bus

logger = logging.getLogger(__name__)

PendingEvents = List[Tuple[str, Dict[str, Any]]]

def parse_transaction_status(value) -> TransactionStatusEnum:
    try:
        return TransactionStatusEnum(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TransactionStatusEnum)
        raise LedgerValidationError(f"Unknown transaction status '{value}'. Allowed: {allowed}")

def parse_transaction_type(value) -> TransactionTypeEnum:
    try:
        return TransactionTypeEnum(value)
    except ValueError:
        allowed = ", ".join(t.value for t in TransactionTypeEnum)
        raise LedgerValidationError(f"Unsupported transaction type '{value}'. Allowed: {allowed}")

def parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise LedgerValidationError(f"Invalid amount '{value}'")
    if not amount.is_finite():
        raise LedgerValidationError(f"Invalid amount '{value}'")
    if amount < 0:
        raise LedgerValidationError("Amount must be greater than or equal to 0", details={"amount": str(value)})
    if amount.normalize().as_tuple().exponent < -2:
        raise LedgerValidationError("Amount cannot have more than 2 decimal places", details={"amount": str(value)})
    return amount.quantize(Decimal("0.01"))

class TransactionService:
    """
    Transaction lifecycle: pending -> completed | failed.

    Entering completed applies the wallet effect and, for Package_Buy
    transactions linked to a subscription, re-activates the subscription.
    Status change and effects commit together; events go out after commit.
    """
    def __init__(
        self,
        wallet_ledger: Optional[WalletLedgerService] = None,
        activator=None,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.wallet_ledger = wallet_ledger or wallet_ledger_service
        self._activator = activator
        self.clock = clock or datetime.utcnow
        self.event_bus = event_bus or default_event_bus

    @property
    def activator(self):
        if self._activator is None:
            from vibeledger.services.subscription import subscription_service
            self._activator = subscription_service
        return self._activator

    @retry_on_storage_error()
    def create_transaction(
        self,
        db: Session,
        *,
        user_id: int,
        amount,
        transaction_type: str,
        payment_method: Optional[str] = None,
        reference_number: Optional[str] = None,
        status: str = TransactionStatusEnum.PENDING.value,
        context: ActorContext,
    ) -> TransitionResult:
        try:
            result, events = self.create_in_unit_of_work(
                db,
                user_id=user_id,
                amount=amount,
                transaction_type=transaction_type,
                payment_method=payment_method,
                reference_number=reference_number,
                status=status,
                context=context,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        self.publish_events(events)
        return result

    def create_in_unit_of_work(
        self,
        db: Session,
        *,
        user_id: int,
        amount,
        transaction_type: str,
        payment_method: Optional[str] = None,
        reference_number: Optional[str] = None,
        status: str = TransactionStatusEnum.PENDING.value,
        context: ActorContext,
    ) -> Tuple[TransitionResult, PendingEvents]:
        """Insert a transaction without committing; a completed one runs the completion effects."""
        parsed_amount = parse_amount(amount)
        parsed_type = parse_transaction_type(transaction_type)
        initial_status = parse_transaction_status(status)
        if initial_status == TransactionStatusEnum.FAILED:
            raise LedgerValidationError("A transaction cannot be created as failed")

        if crud_user.get(db, id=user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        txn = crud_transaction.create(
            db,
            obj_in={
                "user_id": user_id,
                "amount": parsed_amount,
                "transaction_type": parsed_type,
                "status": TransactionStatusEnum.PENDING,
                "payment_method": payment_method,
                "reference_number": reference_number,
                "effect_applied": False,
                "created_by": context.user_id,
                "created_at": self.clock(),
            },
            commit=False,
        )
        logger.info(f"Created {parsed_type.value} transaction {txn.id} for user {user_id}: {parsed_amount}")
        events: PendingEvents = [(
            LedgerEventEnum.TRANSACTION_CREATED.value,
            {"transaction_id": txn.id, "user_id": user_id, "transaction_type": parsed_type.value, "amount": str(parsed_amount)},
        )]

        if initial_status == TransactionStatusEnum.COMPLETED:
            result, transition_events = self._apply_transition(db, txn, TransactionStatusEnum.COMPLETED, context)
            return result, events + transition_events

        return TransitionResult(transaction=TransactionSchema.model_validate(txn)), events

    @retry_on_storage_error()
    def transition(self, db: Session, *, transaction_id: int, new_status: str, context: ActorContext) -> TransitionResult:
        target = parse_transaction_status(new_status)
        try:
            txn = crud_transaction.get(db, id=transaction_id)
            if txn is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")

            if txn.status == target:
                logger.info(f"Transaction {transaction_id} already {target.value}, nothing to apply")
                return TransitionResult(transaction=TransactionSchema.model_validate(txn), idempotent=True)

            if target not in ALLOWED_TRANSACTION_TRANSITIONS[TransactionStatusEnum(txn.status)]:
                raise InvalidTransitionError(
                    f"Cannot move transaction {transaction_id} from {txn.status.value} to {target.value}",
                    details={"current_status": txn.status.value, "requested_status": target.value},
                )

            result, events = self._apply_transition(db, txn, target, context)
            db.commit()
        except Exception:
            db.rollback()
            raise

        self.publish_events(events)
        return result

    def _apply_transition(
        self, db: Session, txn: Transaction, target: TransactionStatusEnum, context: ActorContext
    ) -> Tuple[TransitionResult, PendingEvents]:
        moved = crud_transaction.compare_and_set_status(
            db,
            transaction_id=txn.id,
            expected=TransactionStatusEnum.PENDING,
            new_status=target,
            updated_by=context.user_id,
            updated_at=self.clock(),
        )
        db.refresh(txn)

        if not moved:
            # another request got there first
            if txn.status == target:
                logger.info(f"Transaction {txn.id} was moved to {target.value} concurrently, nothing to apply")
                return TransitionResult(transaction=TransactionSchema.model_validate(txn), idempotent=True), []
            raise InvalidTransitionError(
                f"Cannot move transaction {txn.id} from {txn.status.value} to {target.value}",
                details={"current_status": txn.status.value, "requested_status": target.value},
            )

        logger.info(f"Transaction {txn.id} moved from pending to {target.value} by user {context.user_id}")
        events: PendingEvents = []
        wallet_effect = None
        subscription = None

        if target == TransactionStatusEnum.COMPLETED:
            wallet_effect = self.wallet_ledger.apply_effect(db, transaction=txn, context=context)
            events.append((
                LedgerEventEnum.TRANSACTION_COMPLETED.value,
                {"transaction_id": txn.id, "user_id": txn.user_id, "transaction_type": txn.transaction_type.value, "amount": str(txn.amount)},
            ))
            if wallet_effect.applied:
                events.append((LedgerEventEnum.WALLET_UPDATED.value, wallet_effect.model_dump(mode="json")))
        else:
            events.append((
                LedgerEventEnum.TRANSACTION_FAILED.value,
                {"transaction_id": txn.id, "user_id": txn.user_id, "transaction_type": txn.transaction_type.value},
            ))

        if txn.transaction_type == TransactionTypeEnum.PACKAGE_BUY:
            linked = self.activator.apply_transaction_status(db, transaction=txn, context=context)
            if linked is not None:
                subscription = PlanSubscribedSchema.model_validate(linked)
                if target == TransactionStatusEnum.COMPLETED:
                    events.append((LedgerEventEnum.SUBSCRIPTION_ACTIVATED.value, subscription.model_dump(mode="json")))

        return TransitionResult(
            transaction=TransactionSchema.model_validate(txn),
            wallet_effect=wallet_effect,
            subscription=subscription,
        ), events

    def publish_events(self, events: PendingEvents):
        for event_type, payload in events:
            self.event_bus.publish(event_type, payload)

    @retry_on_storage_error()
    def get_transaction(self, db: Session, *, transaction_id: int, context: ActorContext) -> Transaction:
        txn = crud_transaction.get(db, id=transaction_id)
        if txn is None or (not context.is_admin and txn.user_id != context.user_id):
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    @retry_on_storage_error()
    def list_transactions(
        self,
        db: Session,
        *,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        transaction_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> PaginatedResponse[TransactionSchema]:
        items, total = crud_transaction.get_multi_filtered(
            db,
            user_id=user_id,
            status=parse_transaction_status(status) if status else None,
            transaction_type=parse_transaction_type(transaction_type) if transaction_type else None,
            skip=skip,
            limit=limit,
        )
        return PaginatedResponse[TransactionSchema](
            items=[TransactionSchema.model_validate(item) for item in items],
            total=total,
            skip=skip,
            limit=limit,
            has_next=skip + len(items) < total,
        )

    def list_for_actor(self, db: Session, *, context: ActorContext, status: Optional[str] = None, skip: int = 0, limit: int = 100):
        return self.list_transactions(db, user_id=context.user_id, status=status, skip=skip, limit=limit)

transaction_service = TransactionService()
