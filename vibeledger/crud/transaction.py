from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.orm import Session
from vibeledger.core.constants import TransactionStatusEnum, TransactionTypeEnum
from vibeledger.crud.base import CRUDBase
from vibeledger.models.transaction import Transaction
from vibeledger.schemas.transaction import TransactionCreate, TransactionSchema

class CRUDTransaction(CRUDBase[Transaction, TransactionCreate, TransactionSchema]):
    def get_multi_filtered(
        self,
        db: Session,
        *,
        user_id: Optional[int] = None,
        status: Optional[TransactionStatusEnum] = None,
        transaction_type: Optional[TransactionTypeEnum] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Transaction], int]:
        query = db.query(self.model)
        if user_id is not None:
            query = query.filter(self.model.user_id == user_id)
        if status is not None:
            query = query.filter(self.model.status == status)
        if transaction_type is not None:
            query = query.filter(self.model.transaction_type == transaction_type)

        total = query.count()
        items = query.order_by(self.model.id.desc()).offset(skip).limit(limit).all()
        return items, total

    def compare_and_set_status(
        self,
        db: Session,
        *,
        transaction_id: int,
        expected: TransactionStatusEnum,
        new_status: TransactionStatusEnum,
        updated_by: Optional[int],
        updated_at: datetime,
    ) -> bool:
        """Move the row to new_status only if it still holds expected. Returns whether it moved."""
        result = db.execute(
            update(self.model)
            .where(self.model.id == transaction_id, self.model.status == expected)
            .values(
                status=new_status,
                effect_applied=(new_status == TransactionStatusEnum.COMPLETED),
                updated_by=updated_by,
                updated_at=updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

transaction = CRUDTransaction(Transaction)
