from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vibeledger.core.database import Base
from vibeledger.core.constants import DisbursementStatusEnum
from vibeledger.models.user import User  # noqa: F401

class BankName(Base):
    __tablename__ = "bank_names"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    status = Column(Boolean(), default=True)

class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    funding_goal = Column(Numeric(12, 2), nullable=False, default=0)
    fund_amount = Column(Numeric(12, 2), nullable=False, default=0)
    fund_still_needed = Column(Numeric(12, 2), nullable=False, default=0)
    approved_status = Column(Boolean(), default=False)
    status = Column(Boolean(), default=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    contributions = relationship("FundingContribution", back_populates="campaign")

class FundingContribution(Base):
    __tablename__ = "funding_contributions"

    id = Column(Integer, primary_key=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    fundby_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    fund_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Boolean(), default=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    campaign = relationship("Campaign", back_populates="contributions")

class Disbursement(Base):
    __tablename__ = "disbursements"

    id = Column(Integer, primary_key=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    beneficiary_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    bank_name_id = Column(Integer, ForeignKey("bank_names.id"), nullable=True)
    bank_account_no = Column(String, nullable=True)
    bank_account_holder_name = Column(String, nullable=True)
    status = Column(Enum(DisbursementStatusEnum), nullable=False, default=DisbursementStatusEnum.PENDING)
    request_date = Column(DateTime(timezone=True), server_default=func.now())
    processed_date = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
