# storefront/repos/transaction_repo.py
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.transaction import TransactionModel


class TransactionRepo:
    """Insert and read only. There is deliberately no update or delete here."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, record: TransactionModel) -> TransactionModel:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def list_for_user(self, user_id: str) -> list[TransactionModel]:
        return list(
            self.db.execute(
                select(TransactionModel)
                .where(TransactionModel.user_id == user_id)
                .order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
            ).scalars()
        )

    def successful_since(self, since: datetime) -> list[TransactionModel]:
        return list(
            self.db.execute(
                select(TransactionModel).where(
                    TransactionModel.status == "success",
                    TransactionModel.created_at >= since,
                )
            ).scalars()
        )

    def rollback(self):
        self.db.rollback()
