from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vibeledger.core.database import Base
from vibeledger.core.constants import TransactionStatusEnum, TransactionTypeEnum
from vibeledger.models.user import User

class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(TransactionStatusEnum), nullable=False, default=TransactionStatusEnum.PENDING, index=True)
    transaction_type = Column(Enum(TransactionTypeEnum), nullable=False)
    payment_method = Column(String, nullable=True)
    reference_number = Column(String, nullable=True, index=True)
    # flipped in the same UPDATE that moves the row into completed
    effect_applied = Column(Boolean(), nullable=False, default=False)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship(User, foreign_keys=[user_id])
