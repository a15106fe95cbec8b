from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vibeledger.core.database import Base
from vibeledger.core.constants import LedgerDirectionEnum, TransactionTypeEnum
from vibeledger.models.user import User
from vibeledger.models.transaction import Transaction  # noqa: F401

class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_wallets_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Boolean(), default=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship(User)
    entries = relationship("WalletLedgerEntry", back_populates="wallet", order_by="WalletLedgerEntry.id")

class WalletLedgerEntry(Base):
    __tablename__ = "wallet_ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # one application per transaction
    transaction_id = Column(Integer, ForeignKey("transactions.id"), unique=True, nullable=False)
    transaction_type = Column(Enum(TransactionTypeEnum), nullable=False)
    direction = Column(Enum(LedgerDirectionEnum), nullable=False)
    requested_amount = Column(Numeric(12, 2), nullable=False)
    applied_delta = Column(Numeric(12, 2), nullable=False)
    balance_before = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    shortfall = Column(Numeric(12, 2), nullable=False, default=0)
    note = Column(String, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    wallet = relationship("Wallet", back_populates="entries")
