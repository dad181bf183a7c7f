# storefront/services/inventory_service.py
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from storefront.domain.checkout import AdjustmentResult, CartLine, StockCheck
from storefront.repos.product_repo import ProductRepo
from storefront.utils.retry import db_retry
from storefront.utils.settings import LOW_STOCK_THRESHOLD
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class StockOracle:
    """Read-only view of committed stock. Every call goes to the database."""

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    @db_retry()
    def get_available_stock(self, product_id: str) -> int:
        stock = self.repo.current_stock(product_id)
        return stock if stock is not None else 0

    def validate_stock(self, items: Iterable[CartLine]) -> StockCheck:
        for item in items:
            available = self.get_available_stock(item.product_id)
            if item.quantity > available:
                logger.info(
                    f"Insufficient stock for {item.product_id}: "
                    f"requested {item.quantity}, available {available}"
                )
                return StockCheck(ok=False, product_id=item.product_id, available=available)

        return StockCheck(ok=True)


class InventoryLedger:
    """
    -atomic, guarded stock adjustment (negative delta for a sale)
    -would-go-negative is a soft failure (ok=False), never an exception
    -low stock alert when the remaining count drops under the threshold
    """

    def __init__(
        self,
        db: Session,
        low_stock_threshold: int = LOW_STOCK_THRESHOLD,
        on_low_stock: Callable[[str, int], None] | None = None,
    ):
        self.repo = ProductRepo(db)
        self.low_stock_threshold = low_stock_threshold
        self.on_low_stock = on_low_stock

    def adjust(self, product_id: str, delta: int) -> AdjustmentResult:
        rowcount = self._apply_delta(product_id, delta)
        # the commit and everything after it run once; a retried commit could apply delta twice
        try:
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        if rowcount == 0:
            logger.warning(f"Inventory adjustment {delta:+d} rejected for {product_id}")
            return AdjustmentResult(ok=False, product_id=product_id)

        try:
            remaining = self.repo.current_stock(product_id)
        except Exception as e:
            logger.warning(f"Inventory {product_id} adjusted by {delta:+d}, remaining unknown: {e}")
            return AdjustmentResult(ok=True, product_id=product_id)
        logger.info(f"Inventory {product_id} adjusted by {delta:+d}, remaining {remaining}")

        if delta < 0 and remaining is not None and remaining < self.low_stock_threshold:
            self._alert_low_stock(product_id, remaining)

        return AdjustmentResult(ok=True, product_id=product_id, remaining=remaining)

    def _alert_low_stock(self, product_id: str, remaining: int) -> None:
        if not self.on_low_stock:
            return
        try:
            self.on_low_stock(product_id, remaining)
        except Exception as e:
            logger.warning(f"Low stock alert for {product_id} not sent: {e}")

    @db_retry()
    def _apply_delta(self, product_id: str, delta: int) -> int:
        try:
            return self.repo.apply_delta(product_id, delta)
        except Exception:
            self.repo.rollback()
            raise
