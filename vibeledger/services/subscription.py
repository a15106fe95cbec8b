import calendar
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from vibeledger.core.constants import (
    LedgerEventEnum,
    PLAN_REFERENCE_PREFIX,
    PlanDurationEnum,
    TransactionStatusEnum,
    TransactionTypeEnum,
    WALLET_PAYMENT_METHOD,
    WalletEffectOutcomeEnum,
)
from vibeledger.core.decorators import retry_on_storage_error
from vibeledger.core.exceptions import InvalidTransactionError, NotFoundError
from vibeledger.crud.subscription import plan_subscribed as crud_plan_subscribed, subscription_plan as crud_subscription_plan
from vibeledger.crud.transaction import transaction as crud_transaction
from vibeledger.models.subscription import PlanSubscribed
from vibeledger.models.transaction import Transaction
from vibeledger.schemas.subscription import PlanSubscribedSchema
from vibeledger.schemas.user import ActorContext
from vibeledger.services.transaction import TransactionService, parse_transaction_status, transaction_service
from vibeledger.utils.events import EventBus, event_bus as default_event_bus

logger = logging.getLogger(__name__)

def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; a day past the end of the target month lands on its last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)

def compute_plan_window(start: datetime, plan_duration) -> Tuple[datetime, datetime]:
    if PlanDurationEnum(plan_duration) == PlanDurationEnum.MONTHLY:
        return start, add_months(start, 1)
    return start, add_months(start, 12)

class SubscriptionService:
    def __init__(
        self,
        transaction_store: Optional[TransactionService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.transaction_store = transaction_store or transaction_service
        self.clock = clock or datetime.utcnow
        self.event_bus = event_bus or default_event_bus

    @retry_on_storage_error()
    def subscribe(
        self,
        db: Session,
        *,
        user_id: int,
        plan_id: int,
        transaction_id: Optional[int] = None,
        context: ActorContext,
    ) -> PlanSubscribed:
        """
        Activate a plan for a user right away.

        Without transaction_id the plan is bought from the wallet: a completed
        Package_Buy transaction for the plan price is created, which debits the
        wallet. With transaction_id, that transaction must be a completed
        Package_Buy of the same user that no other subscription uses.
        """
        events = []
        try:
            plan = crud_subscription_plan.get(db, id=plan_id)
            if plan is None:
                raise NotFoundError(f"Subscription plan {plan_id} not found")

            now = self.clock()
            if transaction_id is None:
                reference = f"{PLAN_REFERENCE_PREFIX}-{plan.id}-{int(now.timestamp())}"
                purchase, events = self.transaction_store.create_in_unit_of_work(
                    db,
                    user_id=user_id,
                    amount=plan.price,
                    transaction_type=TransactionTypeEnum.PACKAGE_BUY.value,
                    payment_method=WALLET_PAYMENT_METHOD,
                    reference_number=reference,
                    status=TransactionStatusEnum.COMPLETED.value,
                    context=context,
                )
                if purchase.wallet_effect and purchase.wallet_effect.outcome == WalletEffectOutcomeEnum.WALLET_MISSING:
                    logger.warning(f"User {user_id} has no wallet; plan {plan_id} activated without a wallet debit")
                linked_transaction_id = purchase.transaction.id
            else:
                self._check_backing_transaction(db, transaction_id=transaction_id, user_id=user_id)
                linked_transaction_id = transaction_id

            start, end = compute_plan_window(now, plan.plan_duration)
            subscription = crud_plan_subscribed.create(
                db,
                obj_in={
                    "user_id": user_id,
                    "plan_id": plan.id,
                    "transaction_id": linked_transaction_id,
                    "transaction_status": TransactionStatusEnum.COMPLETED,
                    "start_plan_date": start,
                    "end_plan_date": end,
                    "created_by": context.user_id,
                    "created_at": now,
                },
                commit=False,
            )
            snapshot = PlanSubscribedSchema.model_validate(subscription)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"User {user_id} subscribed to plan {plan_id} until {end.isoformat()} (transaction {linked_transaction_id})")
        self.transaction_store.publish_events(events)
        self.event_bus.publish(LedgerEventEnum.SUBSCRIPTION_ACTIVATED.value, snapshot.model_dump(mode="json"))
        return subscription

    def _check_backing_transaction(self, db: Session, *, transaction_id: int, user_id: int):
        txn = crud_transaction.get(db, id=transaction_id)
        if txn is None:
            raise InvalidTransactionError(f"Transaction {transaction_id} does not exist")
        if txn.user_id != user_id:
            raise InvalidTransactionError(f"Transaction {transaction_id} belongs to another user")
        if txn.transaction_type != TransactionTypeEnum.PACKAGE_BUY:
            raise InvalidTransactionError(
                f"Transaction {transaction_id} is a {txn.transaction_type.value} transaction, expected Package_Buy"
            )
        if txn.status != TransactionStatusEnum.COMPLETED:
            raise InvalidTransactionError(f"Transaction {transaction_id} is {txn.status.value}, expected completed")
        if crud_plan_subscribed.get_by_transaction_id(db, transaction_id=transaction_id) is not None:
            raise InvalidTransactionError(f"Transaction {transaction_id} already backs another subscription")

    @retry_on_storage_error()
    def start_checkout(
        self,
        db: Session,
        *,
        user_id: int,
        plan_id: int,
        payment_method: str,
        reference_number: Optional[str] = None,
        context: ActorContext,
    ) -> PlanSubscribed:
        """Open a pending Package_Buy plus a pending subscription; completing the transaction activates it."""
        try:
            plan = crud_subscription_plan.get(db, id=plan_id)
            if plan is None:
                raise NotFoundError(f"Subscription plan {plan_id} not found")

            now = self.clock()
            checkout, events = self.transaction_store.create_in_unit_of_work(
                db,
                user_id=user_id,
                amount=plan.price,
                transaction_type=TransactionTypeEnum.PACKAGE_BUY.value,
                payment_method=payment_method,
                reference_number=reference_number or f"{PLAN_REFERENCE_PREFIX}-{plan.id}-{int(now.timestamp())}",
                status=TransactionStatusEnum.PENDING.value,
                context=context,
            )
            subscription = crud_plan_subscribed.create(
                db,
                obj_in={
                    "user_id": user_id,
                    "plan_id": plan.id,
                    "transaction_id": checkout.transaction.id,
                    "transaction_status": TransactionStatusEnum.PENDING,
                    "created_by": context.user_id,
                    "created_at": now,
                },
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Checkout started for user {user_id}, plan {plan_id}, transaction {checkout.transaction.id}")
        self.transaction_store.publish_events(events)
        return subscription

    @retry_on_storage_error()
    def reactivate_after_transaction_completion(self, db: Session, *, transaction_id: int, context: ActorContext) -> PlanSubscribed:
        """Re-sync the subscription behind a transaction with that transaction's status."""
        try:
            txn = crud_transaction.get(db, id=transaction_id)
            if txn is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")

            subscription = self.apply_transaction_status(db, transaction=txn, context=context)
            if subscription is None:
                raise NotFoundError(f"No subscription is linked to transaction {transaction_id}")
            snapshot = PlanSubscribedSchema.model_validate(subscription)
            db.commit()
        except Exception:
            db.rollback()
            raise

        if snapshot.transaction_status == TransactionStatusEnum.COMPLETED:
            self.event_bus.publish(LedgerEventEnum.SUBSCRIPTION_ACTIVATED.value, snapshot.model_dump(mode="json"))
        return subscription

    def apply_transaction_status(self, db: Session, *, transaction: Transaction, context: ActorContext) -> Optional[PlanSubscribed]:
        """
        Mirror a transaction's status onto its linked subscription, without committing.

        A completed transaction (re)starts the plan window at now; any other
        status leaves the dates alone. Returns None when nothing is linked.
        """
        subscription = crud_plan_subscribed.get_by_transaction_id(db, transaction_id=transaction.id)
        if subscription is None:
            return None

        plan = crud_subscription_plan.get(db, id=subscription.plan_id)
        if plan is None:
            raise NotFoundError(f"Subscription plan {subscription.plan_id} not found")

        status = TransactionStatusEnum(transaction.status)
        now = self.clock()
        subscription.transaction_status = status
        if status == TransactionStatusEnum.COMPLETED:
            subscription.start_plan_date, subscription.end_plan_date = compute_plan_window(now, plan.plan_duration)
        subscription.updated_by = context.user_id
        subscription.updated_at = now
        db.add(subscription)
        db.flush()
        db.refresh(subscription)

        logger.info(f"Subscription {subscription.id} now {status.value} after transaction {transaction.id}")
        return subscription

    @retry_on_storage_error()
    def list_for_user(self, db: Session, *, user_id: int, transaction_status: Optional[str] = None) -> List[PlanSubscribed]:
        status = parse_transaction_status(transaction_status) if transaction_status else None
        return crud_plan_subscribed.get_multi_by_user(db, user_id=user_id, transaction_status=status)

subscription_service = SubscriptionService()
