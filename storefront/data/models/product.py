from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="General")
    price = Column(Numeric(10, 2), nullable=False)

    #shared counter, touched only through InventoryLedger.adjust
    stock = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="active")

    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)
