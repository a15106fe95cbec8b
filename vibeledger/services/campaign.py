import logging
import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from vibeledger.core.config import settings
from vibeledger.core.constants import (
    ALLOWED_DISBURSEMENT_TRANSITIONS,
    CampaignDisplayStatusEnum,
    DisbursementStatusEnum,
    LedgerEventEnum,
)
from vibeledger.core.decorators import retry_on_storage_error
from vibeledger.core.exceptions import InvalidTransitionError, LedgerValidationError, NotFoundError
from vibeledger.crud.campaign import (
    campaign as crud_campaign,
    disbursement as crud_disbursement,
    funding_contribution as crud_funding_contribution,
)
from vibeledger.models.campaign import BankName, Campaign, Disbursement, FundingContribution
from vibeledger.models.user import User
from vibeledger.schemas.campaign import (
    CampaignStatisticsSchema,
    ContributionReceipt,
    DisbursementRowSchema,
    FeeQuoteSchema,
    FundingRowSchema,
)
from vibeledger.schemas.user import ActorContext
from vibeledger.utils.events import EventBus, event_bus as default_event_bus

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

def _positive_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        raise LedgerValidationError(f"Invalid amount '{value}'")
    if not amount.is_finite():
        raise LedgerValidationError(f"Invalid amount '{value}'")
    if amount <= 0:
        raise LedgerValidationError("Amount must be greater than 0", details={"amount": str(value)})
    if amount.normalize().as_tuple().exponent < -2:
        raise LedgerValidationError("Amount cannot have more than 2 decimal places", details={"amount": str(value)})
    return _money(amount)

def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def quote_platform_fee(base_amount, fee_percentage: Optional[float] = None) -> FeeQuoteSchema:
    """Fee the funder pays on top of the contribution; the campaign receives the base amount."""
    percentage = Decimal(str(fee_percentage if fee_percentage is not None else settings.PLATFORM_FEE_PERCENTAGE))
    base = _money(base_amount)
    fee = (base * percentage / Decimal("100")).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return FeeQuoteSchema(
        base_amount=float(base),
        fee_percentage=float(percentage),
        platform_fee=float(fee),
        total_amount=float(base + fee),
    )

def derive_campaign_status(campaign: Optional[Campaign], contribution_status: Optional[bool]) -> CampaignDisplayStatusEnum:
    if campaign is None:
        return CampaignDisplayStatusEnum.ACTIVE if contribution_status else CampaignDisplayStatusEnum.INACTIVE
    if not campaign.status:
        return CampaignDisplayStatusEnum.INACTIVE
    if not campaign.approved_status:
        return CampaignDisplayStatusEnum.PENDING_APPROVAL
    return CampaignDisplayStatusEnum.ACTIVE

class CampaignFundingService:
    """
    Campaign funding bookkeeping and reporting.

    Never touches wallets or transactions.
    """
    def __init__(self, clock: Optional[Callable[[], datetime]] = None, event_bus: Optional[EventBus] = None):
        self.clock = clock or datetime.utcnow
        self.event_bus = event_bus or default_event_bus

    @retry_on_storage_error()
    def get_statistics(self, db: Session) -> CampaignStatisticsSchema:
        active_count = (
            db.query(func.count(Campaign.id))
            .filter(Campaign.status.is_(True), Campaign.approved_status.is_(True))
            .scalar()
        )
        total_count = db.query(func.count(Campaign.id)).scalar()
        inactive_count = db.query(func.count(Campaign.id)).filter(Campaign.status.is_(False)).scalar()
        total_raised = (
            db.query(func.coalesce(func.sum(FundingContribution.fund_amount), 0))
            .filter(FundingContribution.status.is_(True))
            .scalar()
        )
        average_goal = db.query(func.avg(Campaign.funding_goal)).scalar()

        return CampaignStatisticsSchema(
            active_campaign_count=active_count or 0,
            total_raised=float(_money(total_raised)),
            total_campaign_count=total_count or 0,
            average_funding_goal=float(_money(average_goal)) if average_goal is not None else 0.0,
            inactive_campaign_count=inactive_count or 0,
        )

    @retry_on_storage_error()
    def get_disbursements(self, db: Session, *, now: Optional[datetime] = None) -> List[DisbursementRowSchema]:
        now = _as_naive_utc(now or self.clock())
        rows = (
            db.query(Disbursement, Campaign.title, User.full_name, BankName.name)
            .outerjoin(Campaign, Campaign.id == Disbursement.campaign_id)
            .outerjoin(User, User.id == Disbursement.beneficiary_user_id)
            .outerjoin(BankName, BankName.id == Disbursement.bank_name_id)
            .order_by(Disbursement.request_date.desc(), Disbursement.id.desc())
            .all()
        )

        result = []
        for disbursement, campaign_title, beneficiary_name, bank_name in rows:
            age_in_hours = None
            if disbursement.request_date is not None:
                elapsed = now - _as_naive_utc(disbursement.request_date)
                age_in_hours = math.floor(elapsed.total_seconds() / 3600)
            result.append(DisbursementRowSchema(
                request_id=disbursement.id,
                campaign_name=campaign_title,
                beneficiary_name=beneficiary_name,
                amount=float(_money(disbursement.amount)),
                bank_name=bank_name,
                status=disbursement.status,
                age_in_hours=age_in_hours,
                request_timestamp=disbursement.request_date,
            ))
        return result

    @retry_on_storage_error()
    def get_funding_feed(self, db: Session) -> List[FundingRowSchema]:
        rows = (
            db.query(FundingContribution, Campaign, User.full_name)
            .outerjoin(Campaign, Campaign.id == FundingContribution.campaign_id)
            .outerjoin(User, User.id == FundingContribution.fundby_user_id)
            .order_by(FundingContribution.created_at.desc(), FundingContribution.id.desc())
            .all()
        )

        return [
            FundingRowSchema(
                date=contribution.created_at,
                campaign_name=campaign.title if campaign is not None else None,
                funder_name=funder_name,
                amount=float(_money(contribution.fund_amount)),
                goal=float(_money(campaign.funding_goal)) if campaign is not None else None,
                derived_status=derive_campaign_status(campaign, contribution.status),
            )
            for contribution, campaign, funder_name in rows
        ]

    @retry_on_storage_error()
    def contribute(self, db: Session, *, campaign_id: int, fundby_user_id: int, amount, context: ActorContext) -> ContributionReceipt:
        fund_amount = _positive_amount(amount)
        try:
            campaign = crud_campaign.get(db, id=campaign_id)
            if campaign is None:
                raise NotFoundError(f"Campaign {campaign_id} not found")

            now = self.clock()
            contribution = crud_funding_contribution.create(
                db,
                obj_in={
                    "campaign_id": campaign_id,
                    "fundby_user_id": fundby_user_id,
                    "fund_amount": fund_amount,
                    "status": True,
                    "created_by": context.user_id,
                    "created_at": now,
                },
                commit=False,
            )
            crud_campaign.add_funds(db, campaign_id=campaign_id, amount=fund_amount, updated_by=context.user_id, updated_at=now)
            db.refresh(campaign)

            receipt = ContributionReceipt(
                contribution_id=contribution.id,
                campaign_id=campaign_id,
                fundby_user_id=fundby_user_id,
                fund_amount=float(fund_amount),
                campaign_fund_amount=float(_money(campaign.fund_amount)),
                campaign_fund_still_needed=float(_money(campaign.fund_still_needed)),
                fee=quote_platform_fee(fund_amount),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Campaign {campaign_id} funded {fund_amount} by user {fundby_user_id}, raised {receipt.campaign_fund_amount}")
        self.event_bus.publish(LedgerEventEnum.CAMPAIGN_FUNDED.value, receipt.model_dump(mode="json"))
        return receipt

    @retry_on_storage_error()
    def request_disbursement(
        self,
        db: Session,
        *,
        campaign_id: int,
        beneficiary_user_id: Optional[int],
        amount,
        bank_name_id: Optional[int] = None,
        bank_account_no: Optional[str] = None,
        bank_account_holder_name: Optional[str] = None,
        context: ActorContext,
    ) -> Disbursement:
        disbursement_amount = _positive_amount(amount)
        try:
            if crud_campaign.get(db, id=campaign_id) is None:
                raise NotFoundError(f"Campaign {campaign_id} not found")

            now = self.clock()
            disbursement = crud_disbursement.create(
                db,
                obj_in={
                    "campaign_id": campaign_id,
                    "beneficiary_user_id": beneficiary_user_id,
                    "amount": disbursement_amount,
                    "bank_name_id": bank_name_id,
                    "bank_account_no": bank_account_no,
                    "bank_account_holder_name": bank_account_holder_name,
                    "status": DisbursementStatusEnum.PENDING,
                    "request_date": now,
                    "created_by": context.user_id,
                    "created_at": now,
                },
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Disbursement {disbursement.id} of {disbursement_amount} requested for campaign {campaign_id}")
        return disbursement

    @retry_on_storage_error()
    def update_disbursement_status(self, db: Session, *, disbursement_id: int, status: str, context: ActorContext) -> Disbursement:
        try:
            target = DisbursementStatusEnum(status)
        except ValueError:
            allowed = ", ".join(s.value for s in DisbursementStatusEnum)
            raise LedgerValidationError(f"Unknown disbursement status '{status}'. Allowed: {allowed}")

        try:
            disbursement = crud_disbursement.get_for_update(db, id=disbursement_id)
            if disbursement is None:
                raise NotFoundError(f"Disbursement {disbursement_id} not found")

            current = DisbursementStatusEnum(disbursement.status)
            if target not in ALLOWED_DISBURSEMENT_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Cannot move disbursement {disbursement_id} from {current.value} to {target.value}",
                    details={"current_status": current.value, "requested_status": target.value},
                )

            now = self.clock()
            update_data = {"status": target, "updated_by": context.user_id, "updated_at": now}
            if target in (DisbursementStatusEnum.PROCESSED, DisbursementStatusEnum.REJECTED):
                update_data["processed_date"] = now
            disbursement = crud_disbursement.update(db, db_obj=disbursement, obj_in=update_data, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Disbursement {disbursement_id} moved from {current.value} to {target.value} by user {context.user_id}")
        self.event_bus.publish(
            LedgerEventEnum.DISBURSEMENT_UPDATED.value,
            {"disbursement_id": disbursement_id, "status": target.value, "previous_status": current.value},
        )
        return disbursement

campaign_funding_service = CampaignFundingService()
