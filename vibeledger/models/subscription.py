from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vibeledger.core.database import Base
from vibeledger.core.constants import PlanDurationEnum, TransactionStatusEnum
from vibeledger.models.user import User  # noqa: F401
from vibeledger.models.transaction import Transaction

class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    plan_name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    plan_duration = Column(Enum(PlanDurationEnum), nullable=False)
    status = Column(Boolean(), default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class PlanSubscribed(Base):
    __tablename__ = "plan_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), unique=True, nullable=True)
    transaction_status = Column(Enum(TransactionStatusEnum), nullable=False, default=TransactionStatusEnum.PENDING)
    start_plan_date = Column(DateTime(timezone=True), nullable=True)
    end_plan_date = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    plan = relationship("SubscriptionPlan")
    transaction = relationship(Transaction)
