from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import case, update
from sqlalchemy.orm import Session
from vibeledger.crud.base import CRUDBase
from vibeledger.models.wallet import Wallet, WalletLedgerEntry
from vibeledger.schemas.wallet import WalletLedgerEntrySchema, WalletSchema

class CRUDWallet(CRUDBase[Wallet, WalletSchema, WalletSchema]):
    def get_by_user_id(self, db: Session, *, user_id: int) -> Optional[Wallet]:
        return db.query(self.model).filter(self.model.user_id == user_id).first()

    def get_by_user_id_for_update(self, db: Session, *, user_id: int) -> Optional[Wallet]:
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    # The balance expressions below are evaluated by the database so that
    # concurrent writers never overwrite each other's result.

    def increment(self, db: Session, *, wallet_id: int, delta: Decimal, updated_by: Optional[int], updated_at: datetime) -> bool:
        result = db.execute(
            update(self.model)
            .where(self.model.id == wallet_id)
            .values(amount=self.model.amount + delta, updated_by=updated_by, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def decrement_if_sufficient(self, db: Session, *, wallet_id: int, delta: Decimal, updated_by: Optional[int], updated_at: datetime) -> bool:
        result = db.execute(
            update(self.model)
            .where(self.model.id == wallet_id, self.model.amount >= delta)
            .values(amount=self.model.amount - delta, updated_by=updated_by, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def decrement_clamped(self, db: Session, *, wallet_id: int, delta: Decimal, updated_by: Optional[int], updated_at: datetime) -> bool:
        result = db.execute(
            update(self.model)
            .where(self.model.id == wallet_id)
            .values(
                amount=case((self.model.amount >= delta, self.model.amount - delta), else_=Decimal("0")),
                updated_by=updated_by,
                updated_at=updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

class CRUDWalletLedgerEntry(CRUDBase[WalletLedgerEntry, WalletLedgerEntrySchema, WalletLedgerEntrySchema]):
    def get_by_transaction_id(self, db: Session, *, transaction_id: int) -> Optional[WalletLedgerEntry]:
        return db.query(self.model).filter(self.model.transaction_id == transaction_id).first()

    def get_multi_by_user(self, db: Session, *, user_id: int, skip: int = 0, limit: int = 100) -> List[WalletLedgerEntry]:
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .order_by(self.model.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

wallet = CRUDWallet(Wallet)
wallet_ledger_entry = CRUDWalletLedgerEntry(WalletLedgerEntry)
