# storefront/services/cart_service.py
from decimal import Decimal
from typing import List

from storefront.domain.checkout import CartLine
from storefront.domain.errors import StockCeilingExceeded
from storefront.repos.cart_repo import CartRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Cart of a single user.
    commands (add_item, update_quantity, remove_item, clear) build the new
    lines, persist the full snapshot and only then adopt it; queries (lines, count, total) are derived
    from the current lines and never stored.
    """

    def __init__(self, user_id: str, repo: CartRepo):
        self.user_id = user_id
        self.repo = repo
        self._lines: List[CartLine] = repo.load(user_id)

    #queries
    def lines(self) -> List[CartLine]:
        return [line.model_copy() for line in self._lines]

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0.00"))

    def is_empty(self) -> bool:
        return not self._lines

    #commands
    def add_item(self, product_id: str, name: str, unit_price: Decimal, max_stock: int) -> CartLine:
        existing = self._find(product_id)

        if existing:
            if existing.quantity + 1 > max_stock:
                logger.info(f"Cart {self.user_id}: {product_id} already at ceiling {max_stock}")
                raise StockCeilingExceeded(product_id, max_stock)

            line = existing.model_copy(update={
                "quantity": existing.quantity + 1,
                "stock_ceiling": max_stock,
                "unit_price": Decimal(unit_price),
            })
        else:
            if max_stock < 1:
                raise StockCeilingExceeded(product_id, max_stock)

            line = CartLine(
                product_id=product_id,
                name=name,
                unit_price=Decimal(unit_price),
                quantity=1,
                stock_ceiling=max_stock,
            )

        self._commit(self._replace(line))
        logger.info(f"Cart {self.user_id}: {product_id} x{line.quantity}")
        return line.model_copy()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        line = self._find(product_id)
        if not line:
            return

        clamped = max(0, min(quantity, line.stock_ceiling))
        if clamped == 0:
            self.remove_item(product_id)
            return

        self._commit(self._replace(line.model_copy(update={"quantity": clamped})))

    def remove_item(self, product_id: str) -> None:
        lines = [line for line in self._lines if line.product_id != product_id]
        if len(lines) != len(self._lines):
            self._commit(lines)

    def clear(self) -> None:
        self.repo.delete(self.user_id)
        self._lines = []
        logger.info(f"Cart {self.user_id} cleared")

    def _find(self, product_id: str) -> CartLine | None:
        return next((line for line in self._lines if line.product_id == product_id), None)

    def _replace(self, line: CartLine) -> List[CartLine]:
        """New line list with `line` in place of its product's line, or appended."""
        if self._find(line.product_id) is None:
            return self._lines + [line]
        return [line if current.product_id == line.product_id else current for current in self._lines]

    def _commit(self, lines: List[CartLine]) -> None:
        # the in-memory cart only changes once the snapshot is saved
        self.repo.save(self.user_id, lines)
        self._lines = lines
