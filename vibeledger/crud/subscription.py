from typing import List, Optional
from sqlalchemy.orm import Session
from vibeledger.core.constants import TransactionStatusEnum
from vibeledger.crud.base import CRUDBase
from vibeledger.models.subscription import PlanSubscribed, SubscriptionPlan
from vibeledger.schemas.subscription import PlanSubscribedSchema, SubscriptionPlanSchema

class CRUDSubscriptionPlan(CRUDBase[SubscriptionPlan, SubscriptionPlanSchema, SubscriptionPlanSchema]):
    pass

class CRUDPlanSubscribed(CRUDBase[PlanSubscribed, PlanSubscribedSchema, PlanSubscribedSchema]):
    def get_by_transaction_id(self, db: Session, *, transaction_id: int) -> Optional[PlanSubscribed]:
        return (
            db.query(self.model)
            .filter(self.model.transaction_id == transaction_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_multi_by_user(
        self, db: Session, *, user_id: int, transaction_status: Optional[TransactionStatusEnum] = None
    ) -> List[PlanSubscribed]:
        query = db.query(self.model).filter(self.model.user_id == user_id)
        if transaction_status is not None:
            query = query.filter(self.model.transaction_status == transaction_status)
        return query.order_by(self.model.id.desc()).all()

subscription_plan = CRUDSubscriptionPlan(SubscriptionPlan)
plan_subscribed = CRUDPlanSubscribed(PlanSubscribed)
