# storefront/services/order_service.py
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.checkout import OrderPayload
from storefront.domain.errors import OrderNotPersisted
from storefront.repos.order_repo import OrderRepo
from storefront.utils.retry import db_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Order Store. Orders are written once and never edited here;
    status transitions after creation belong to fulfilment.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def create_order(self, payload: OrderPayload, status: str = "completed") -> str:
        """
        Use Case: persist the order of a paid checkout.

        The id is generated here, before the insert, so the caller always
        gets it back: when the insert keeps failing, OrderNotPersisted
        carries the id that was issued.
        """
        order_id = uuid.uuid4().hex
        try:
            self._insert(order_id, payload, status)
        except Exception as e:
            logger.error(
                f"RECONCILE order {order_id} not recorded for user {payload.user_id}, "
                f"payment {payload.payment_reference}: {e}"
            )
            raise OrderNotPersisted(order_id) from e
        logger.info(
            f"Order {order_id} created for user {payload.user_id}: "
            f"{payload.total} {payload.currency}, payment {payload.payment_reference}"
        )
        return order_id

    @db_retry()
    def _insert(self, order_id: str, payload: OrderPayload, status: str) -> OrderModel:
        # a commit that failed to report success may still have written the row
        existing = self.repo.get_order(order_id)
        if existing is not None:
            return existing

        order = OrderModel(
            id=order_id,
            user_id=payload.user_id,
            items=[line.model_dump(mode="json") for line in payload.items],
            subtotal=payload.subtotal,
            discount_code=payload.discount_code,
            total=payload.total,
            currency=payload.currency,
            status=status,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            shipping_address_id=payload.shipping_address_id,
            shipping_snapshot=dict(payload.shipping_snapshot),
        )
        try:
            return self.repo.create_order(order)
        except IntegrityError:
            self.repo.rollback()
            existing = self.repo.get_order(order_id)
            if existing is None:
                raise
            return existing
        except Exception:
            self.repo.rollback()
            raise

    def get_order(self, order_id: str, user_id: str) -> OrderModel:
        """
        Use Case: order detail (Query).
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise ValueError("Order not found")

        if order.user_id != user_id:
            raise PermissionError("No access to this order")

        return order

    def list_orders(self, user_id: str) -> list[OrderModel]:
        return self.repo.list_for_user(user_id)
