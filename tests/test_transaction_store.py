import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from vibeledger.core.config import settings
from vibeledger.core.constants import (
    DebitPolicyEnum,
    LedgerEventEnum,
    TransactionStatusEnum,
    TransactionTypeEnum,
    WalletEffectOutcomeEnum,
)
from vibeledger.core.exceptions import (
    InsufficientFundsError,
    InvalidTransitionError,
    LedgerValidationError,
    NotFoundError,
    StorageUnavailableError,
)
from vibeledger.crud import transaction as crud_transaction_module
from vibeledger.crud.transaction import transaction as crud_transaction
from vibeledger.crud.wallet import wallet_ledger_entry as crud_wallet_ledger_entry
from vibeledger.services.transaction import TransactionService, transaction_service
from vibeledger.services.wallet import WalletLedgerService
from vibeledger.utils.events import EventBus
from tests.helpers.ledger import wallet_balance


def _pending(db: Session, context, user_id: int, amount: str, transaction_type: str = "deposit") -> int:
    result = transaction_service.create_transaction(
        db, user_id=user_id, amount=amount, transaction_type=transaction_type, context=context
    )
    return result.transaction.id


def test_create_defaults_to_pending_without_wallet_effect(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="5.00")

    result = transaction_service.create_transaction(
        db_session,
        user_id=user.id,
        amount="12.50",
        transaction_type="deposit",
        payment_method="card",
        reference_number="REF-1",
        context=admin_context,
    )

    assert result.transaction.id is not None
    assert result.transaction.status == TransactionStatusEnum.PENDING
    assert result.transaction.effect_applied is False
    assert result.transaction.created_by == admin_context.user_id
    assert result.wallet_effect is None
    assert wallet_balance(db_session, user.id) == Decimal("5.00")


def test_ids_are_sequential(db_session: Session, user_factory, admin_context):
    user = user_factory()
    first = _pending(db_session, admin_context, user.id, "1")
    second = _pending(db_session, admin_context, user.id, "1")
    assert second == first + 1


def test_create_completed_applies_effect_once(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="0")

    result = transaction_service.create_transaction(
        db_session, user_id=user.id, amount="20", transaction_type="RechargeByAdmin", status="completed", context=admin_context
    )

    assert result.transaction.status == TransactionStatusEnum.COMPLETED
    assert result.transaction.effect_applied is True
    assert result.wallet_effect.outcome == WalletEffectOutcomeEnum.APPLIED
    assert wallet_balance(db_session, user.id) == Decimal("20.00")


@pytest.mark.parametrize("amount", ["-0.01", "-100", "abc", "NaN", "0.004", "0.015"])
def test_create_rejects_invalid_amount(db_session: Session, user_factory, admin_context, amount):
    user = user_factory()
    with pytest.raises(LedgerValidationError):
        transaction_service.create_transaction(
            db_session, user_id=user.id, amount=amount, transaction_type="deposit", context=admin_context
        )


def test_create_accepts_zero_amount(db_session: Session, user_factory, admin_context):
    user = user_factory()
    result = transaction_service.create_transaction(
        db_session, user_id=user.id, amount="0", transaction_type="Call", context=admin_context
    )
    assert result.transaction.amount == 0.0


def test_create_accepts_trailing_zeros_past_cents(db_session: Session, user_factory, admin_context):
    user = user_factory()
    result = transaction_service.create_transaction(
        db_session, user_id=user.id, amount="12.500", transaction_type="deposit", context=admin_context
    )
    assert result.transaction.amount == 12.5


def test_create_rejects_unknown_type(db_session: Session, user_factory, admin_context):
    user = user_factory()
    with pytest.raises(LedgerValidationError):
        transaction_service.create_transaction(
            db_session, user_id=user.id, amount="10", transaction_type="refund", context=admin_context
        )


def test_create_rejects_failed_initial_status(db_session: Session, user_factory, admin_context):
    user = user_factory()
    with pytest.raises(LedgerValidationError):
        transaction_service.create_transaction(
            db_session, user_id=user.id, amount="10", transaction_type="deposit", status="failed", context=admin_context
        )


def test_create_for_unknown_user_raises(db_session: Session, admin_context):
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(
            db_session, user_id=4242, amount="10", transaction_type="deposit", context=admin_context
        )


def test_completing_deposit_adds_to_balance(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="30.00")
    txn_id = _pending(db_session, admin_context, user.id, "70.00")

    result = transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert result.idempotent is False
    assert result.transaction.status == TransactionStatusEnum.COMPLETED
    assert result.transaction.updated_by == admin_context.user_id
    assert result.wallet_effect.applied is True
    assert wallet_balance(db_session, user.id) == Decimal("100.00")


def test_completing_debit_within_balance_subtracts(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="100.00")
    txn_id = _pending(db_session, admin_context, user.id, "35.00", "Registration_fee")

    transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert wallet_balance(db_session, user.id) == Decimal("65.00")


def test_recompleting_is_a_no_op(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="0")
    txn_id = _pending(db_session, admin_context, user.id, "25.00")

    transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)
    again = transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert again.idempotent is True
    assert again.wallet_effect is None
    assert wallet_balance(db_session, user.id) == Decimal("25.00")


def test_failing_pending_transaction_leaves_balance(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="10.00")
    txn_id = _pending(db_session, admin_context, user.id, "10.00")

    result = transaction_service.transition(db_session, transaction_id=txn_id, new_status="failed", context=admin_context)

    assert result.transaction.status == TransactionStatusEnum.FAILED
    assert result.transaction.effect_applied is False
    assert result.wallet_effect is None
    assert wallet_balance(db_session, user.id) == Decimal("10.00")


@pytest.mark.parametrize("first,second", [
    ("completed", "pending"),
    ("completed", "failed"),
    ("failed", "completed"),
    ("failed", "pending"),
])
def test_unsupported_transitions_raise(db_session: Session, user_factory, admin_context, first, second):
    user = user_factory(balance="100.00")
    txn_id = _pending(db_session, admin_context, user.id, "10.00")
    transaction_service.transition(db_session, transaction_id=txn_id, new_status=first, context=admin_context)
    balance_before = wallet_balance(db_session, user.id)

    with pytest.raises(InvalidTransitionError):
        transaction_service.transition(db_session, transaction_id=txn_id, new_status=second, context=admin_context)

    assert wallet_balance(db_session, user.id) == balance_before


def test_transition_of_unknown_transaction_raises(db_session: Session, admin_context):
    with pytest.raises(NotFoundError):
        transaction_service.transition(db_session, transaction_id=31337, new_status="completed", context=admin_context)


def test_transition_to_unknown_status_raises(db_session: Session, user_factory, admin_context):
    user = user_factory()
    txn_id = _pending(db_session, admin_context, user.id, "1")
    with pytest.raises(LedgerValidationError):
        transaction_service.transition(db_session, transaction_id=txn_id, new_status="refunded", context=admin_context)


def test_insufficient_funds_rolls_back_status_change(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="20.00")
    txn_id = _pending(db_session, admin_context, user.id, "50.00", "withdraw")

    with pytest.raises(InsufficientFundsError):
        transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    db_session.expire_all()
    txn = crud_transaction.get(db_session, id=txn_id)
    assert txn.status == TransactionStatusEnum.PENDING
    assert txn.effect_applied is False
    assert wallet_balance(db_session, user.id) == Decimal("20.00")
    assert crud_wallet_ledger_entry.get_by_transaction_id(db_session, transaction_id=txn_id) is None


def test_clamp_policy_completes_overdraft_at_zero(db_session: Session, user_factory, admin_context):
    user = user_factory(balance="20.00")
    txn_id = _pending(db_session, admin_context, user.id, "50.00", "withdraw")
    service = TransactionService(wallet_ledger=WalletLedgerService(debit_policy=DebitPolicyEnum.CLAMP))

    result = service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert result.transaction.status == TransactionStatusEnum.COMPLETED
    assert result.wallet_effect.shortfall == 30.0
    assert wallet_balance(db_session, user.id) == Decimal("0")


def test_completion_without_wallet_reports_missing_wallet(db_session: Session, user_factory, admin_context):
    user = user_factory(with_wallet=False)
    txn_id = _pending(db_session, admin_context, user.id, "15.00")

    result = transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert result.transaction.status == TransactionStatusEnum.COMPLETED
    assert result.wallet_effect.applied is False
    assert result.wallet_effect.outcome == WalletEffectOutcomeEnum.WALLET_MISSING


def test_events_are_published_after_commit(db_session: Session, user_factory, admin_context):
    bus = EventBus()
    received = []
    bus.subscribe(LedgerEventEnum.TRANSACTION_COMPLETED.value, lambda data: received.append(("completed", data)))
    bus.subscribe(LedgerEventEnum.WALLET_UPDATED.value, lambda data: received.append(("wallet", data)))
    service = TransactionService(event_bus=bus)

    user = user_factory(balance="0")
    txn_id = _pending(db_session, admin_context, user.id, "8.00")
    service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert [kind for kind, _ in received] == ["completed", "wallet"]
    assert received[0][1]["transaction_id"] == txn_id
    assert received[1][1]["new_amount"] == 8.0


def test_no_events_when_transition_rolls_back(db_session: Session, user_factory, admin_context):
    bus = EventBus()
    received = []
    bus.subscribe(LedgerEventEnum.TRANSACTION_COMPLETED.value, received.append)
    service = TransactionService(event_bus=bus)

    user = user_factory(balance="0")
    txn_id = _pending(db_session, admin_context, user.id, "8.00", "Call")
    with pytest.raises(InsufficientFundsError):
        service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert received == []


def test_listing_filters_by_user_status_and_type(db_session: Session, user_factory, admin_context):
    alice = user_factory(full_name="Alice", balance="100")
    bob = user_factory(full_name="Bob", balance="100")
    completed_id = _pending(db_session, admin_context, alice.id, "5")
    transaction_service.transition(db_session, transaction_id=completed_id, new_status="completed", context=admin_context)
    _pending(db_session, admin_context, alice.id, "6", "Call")
    _pending(db_session, admin_context, bob.id, "7")

    alice_page = transaction_service.list_transactions(db_session, user_id=alice.id)
    completed_page = transaction_service.list_transactions(db_session, status="completed")
    calls_page = transaction_service.list_transactions(db_session, transaction_type="Call")
    first_page = transaction_service.list_transactions(db_session, skip=0, limit=2)

    assert alice_page.total == 2
    assert [t.id for t in completed_page.items] == [completed_id]
    assert calls_page.total == 1
    assert len(first_page.items) == 2
    assert first_page.has_next is True


def test_non_admin_cannot_read_foreign_transaction(db_session: Session, user_factory, admin_context):
    from vibeledger.schemas.user import ActorContext
    owner = user_factory()
    other = user_factory()
    txn_id = _pending(db_session, admin_context, owner.id, "3")

    assert transaction_service.get_transaction(
        db_session, transaction_id=txn_id, context=ActorContext(user_id=owner.id)
    ).id == txn_id
    with pytest.raises(NotFoundError):
        transaction_service.get_transaction(db_session, transaction_id=txn_id, context=ActorContext(user_id=other.id))


def test_concurrent_completions_for_same_user_are_all_applied(session_factory, db_session: Session, user_factory, admin_context):
    user = user_factory(balance="10.00")
    txn_ids = [_pending(db_session, admin_context, user.id, amount) for amount in ("5.00", "7.00", "11.00")]
    barrier = threading.Barrier(len(txn_ids))
    errors = []

    def complete(txn_id):
        db = session_factory()
        try:
            barrier.wait()
            transaction_service.transition(db, transaction_id=txn_id, new_status="completed", context=admin_context)
        except Exception as e:
            errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=complete, args=(txn_id,)) for txn_id in txn_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert wallet_balance(db_session, user.id) == Decimal("33.00")


def test_racing_completions_of_one_transaction_apply_once(session_factory, db_session: Session, user_factory, admin_context):
    user = user_factory(balance="0")
    txn_id = _pending(db_session, admin_context, user.id, "40.00")
    barrier = threading.Barrier(4)
    results = []
    errors = []

    def complete():
        db = session_factory()
        try:
            barrier.wait()
            results.append(
                transaction_service.transition(db, transaction_id=txn_id, new_status="completed", context=admin_context)
            )
        except Exception as e:
            errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=complete) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sum(1 for r in results if not r.idempotent) == 1
    assert wallet_balance(db_session, user.id) == Decimal("40.00")


def test_transient_storage_errors_surface_as_unavailable(db_session: Session, monkeypatch, admin_context):
    calls = []

    def locked(*args, **kwargs):
        calls.append(1)
        raise OperationalError("SELECT transactions", {}, Exception("database is locked"))

    monkeypatch.setattr(settings, "STORAGE_RETRY_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "STORAGE_RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr(crud_transaction_module.transaction, "get", locked)

    with pytest.raises(StorageUnavailableError) as exc_info:
        transaction_service.transition(db_session, transaction_id=1, new_status="completed", context=admin_context)

    assert len(calls) == 3
    assert exc_info.value.details["attempts"] == 3


def test_transient_storage_error_is_retried(db_session: Session, monkeypatch, user_factory, admin_context):
    user = user_factory(balance="0")
    txn_id = _pending(db_session, admin_context, user.id, "9.00")
    original_get = crud_transaction.get
    failures = []

    def flaky_get(db, id):
        if not failures:
            failures.append(1)
            raise OperationalError("SELECT transactions", {}, Exception("database is locked"))
        return original_get(db, id=id)

    monkeypatch.setattr(settings, "STORAGE_RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr(crud_transaction, "get", flaky_get)

    result = transaction_service.transition(db_session, transaction_id=txn_id, new_status="completed", context=admin_context)

    assert failures == [1]
    assert result.transaction.status == TransactionStatusEnum.COMPLETED
    assert wallet_balance(db_session, user.id) == Decimal("9.00")
