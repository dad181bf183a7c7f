from sqlalchemy import Column, Integer, String, DateTime, Numeric
from datetime import datetime, timezone

from storefront.data.database import Base


class TransactionModel(Base):
    """Append-only. No code path updates or deletes rows of this table."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    checkout_id = Column(String(32), nullable=False, index=True)
    attempt = Column(Integer, nullable=False, default=1)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String, nullable=False)

    status = Column(String, nullable=False)  # success, failed
    provider_transaction_id = Column(String, nullable=True, index=True)
    failure_reason = Column(String, nullable=True)
    description = Column(String, nullable=False, default="Store Order")

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
