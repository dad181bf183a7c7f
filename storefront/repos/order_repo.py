# storefront/repos/order_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def list_for_user(self, user_id: str) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc())
            ).scalars()
        )

    def payment_references(self, references: list[str]) -> set[str]:
        if not references:
            return set()
        rows = self.db.execute(
            select(OrderModel.payment_reference).where(OrderModel.payment_reference.in_(references))
        ).scalars()
        return set(rows)

    def rollback(self):
        self.db.rollback()
