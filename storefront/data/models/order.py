from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON
from datetime import datetime, timezone

from storefront.data.database import Base

class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True)
    user_id = Column(String, nullable=False, index=True)

    items = Column(JSON, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount_code = Column(String, nullable=True)
    total = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    status = Column(String, nullable=False, default="pending")  # pending, completed, failed
    payment_method = Column(String, nullable=False)
    payment_reference = Column(String, nullable=False, index=True)

    shipping_address_id = Column(Integer, nullable=False)
    shipping_snapshot = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
