# storefront/tasks/reconcile.py
from datetime import datetime, timezone, timedelta

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.order_repo import OrderRepo
from storefront.repos.transaction_repo import TransactionRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

LOOKBACK = timedelta(days=2)


def find_unmatched_payments(db: Session, since: datetime) -> list[dict]:
    """Successful payments since `since` with no order carrying their reference."""
    payments = TransactionRepo(db).successful_since(since)
    references = [p.provider_transaction_id for p in payments if p.provider_transaction_id]
    matched = OrderRepo(db).payment_references(references)

    return [
        {
            "transaction_id": p.id,
            "checkout_id": p.checkout_id,
            "user_id": p.user_id,
            "payment_reference": p.provider_transaction_id,
            "amount": str(p.amount),
            "currency": p.currency,
        }
        for p in payments
        if p.provider_transaction_id not in matched
    ]


@celery_app.task(name="storefront.tasks.reconcile.reconcile_payments_task")
def reconcile_payments_task():
    logger.info("Payment reconciliation started")

    db = SessionLocal()
    try:
        since = datetime.now(timezone.utc) - LOOKBACK
        unmatched = find_unmatched_payments(db, since)

        for item in unmatched:
            logger.error(
                f"RECONCILE payment {item['payment_reference']} ({item['amount']} {item['currency']}) "
                f"for user {item['user_id']} has no order, checkout {item['checkout_id']}"
            )

        logger.info(f"Payment reconciliation finished, {len(unmatched)} unmatched")
        return {"unmatched": len(unmatched)}

    finally:
        db.close()
