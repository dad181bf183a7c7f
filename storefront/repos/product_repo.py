# storefront/repos/product_repo.py
from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: str) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def current_stock(self, product_id: str) -> int | None:
        product = self.db.get(ProductModel, product_id, populate_existing=True)
        if not product or product.status != "active":
            return None
        return product.stock

    def apply_delta(self, product_id: str, delta: int) -> int:
        """
        UPDATE products SET stock = stock + :delta
        WHERE id = :id AND stock + :delta >= 0
        Single statement, so concurrent buyers cannot lose each other's update.
        """
        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.stock + delta >= 0,
            )
            .values(stock=ProductModel.stock + delta)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
