from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import case, update
from sqlalchemy.orm import Session
from vibeledger.crud.base import CRUDBase
from vibeledger.models.campaign import Campaign, Disbursement, FundingContribution
from vibeledger.schemas.campaign import ContributionCreate, DisbursementCreate, DisbursementSchema

class CRUDCampaign(CRUDBase[Campaign, ContributionCreate, ContributionCreate]):
    def add_funds(self, db: Session, *, campaign_id: int, amount: Decimal, updated_by: Optional[int], updated_at: datetime) -> bool:
        raised = self.model.fund_amount + amount
        result = db.execute(
            update(self.model)
            .where(self.model.id == campaign_id)
            .values(
                fund_amount=raised,
                fund_still_needed=case(
                    (self.model.funding_goal > raised, self.model.funding_goal - raised),
                    else_=Decimal("0"),
                ),
                updated_by=updated_by,
                updated_at=updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

class CRUDFundingContribution(CRUDBase[FundingContribution, ContributionCreate, ContributionCreate]):
    pass

class CRUDDisbursement(CRUDBase[Disbursement, DisbursementCreate, DisbursementSchema]):
    pass

campaign = CRUDCampaign(Campaign)
funding_contribution = CRUDFundingContribution(FundingContribution)
disbursement = CRUDDisbursement(Disbursement)
