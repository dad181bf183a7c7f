# storefront/services/checkout_service.py
import uuid
from decimal import Decimal
from typing import List, Optional

from storefront.domain.checkout import (
    TERMINAL_STATES,
    CartLine,
    CheckoutContext,
    CheckoutReason,
    CheckoutSession,
    CheckoutState,
    CheckoutStatus,
    Confirmation,
    OrderPayload,
    PaymentFailure,
    PaymentResult,
    TransactionEntry,
)
from storefront.domain.errors import InvalidCheckoutTransition, InvalidCoupon, OrderNotPersisted
from storefront.domain.schemas import AddressDraft
from storefront.services.address_service import AddressBook, shipping_snapshot
from storefront.services.cart_service import CartService
from storefront.services.discount_service import CENT, CouponBook, apply_discount
from storefront.services.inventory_service import InventoryLedger, StockOracle
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.transaction_log import TransactionLog
from storefront.utils.settings import MAX_PAYMENT_ATTEMPTS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# outcome unknown: the provider may have charged, so a retry reuses the idempotency key
AMBIGUOUS_PAYMENT_FAILURES = frozenset({"timeout", "gateway_error"})

SUPPORT_MESSAGE = (
    "Your payment was received but the order could not be recorded. "
    "Please contact support and quote the payment reference."
)


class CheckoutOrchestrator:
    """
    One checkout attempt, from cart to confirmation.

        IDLE -> VALIDATING_STOCK -> COLLECTING_ADDRESS -> AWAITING_PAYMENT -> FINALIZING -> DONE
                      |                                          |
                      v                                          v
                   ABORTED                                    ABORTED

    Steps run strictly one after another; every collaborator call finishes
    before the next step starts. DONE and ABORTED are terminal, a new attempt
    needs a new instance (and therefore a new stock check).

    Once FINALIZING starts the buyer has paid, so nothing after that point is
    allowed to turn into an error for the buyer. Discrepancies are logged with
    a RECONCILE marker and the transaction log is the source of truth.
    """

    def __init__(
        self,
        context: CheckoutContext,
        cart: CartService,
        stock_oracle: StockOracle,
        address_book: AddressBook,
        payment_gateway: PaymentGateway,
        order_store: OrderService,
        inventory_ledger: InventoryLedger,
        transaction_log: TransactionLog,
        coupons: CouponBook | None = None,
        notifier: NotificationService | None = None,
        max_payment_attempts: int = MAX_PAYMENT_ATTEMPTS,
        payment_key: str | None = None,
    ):
        self.context = context
        self.cart = cart
        self.stock_oracle = stock_oracle
        self.address_book = address_book
        self.payment_gateway = payment_gateway
        self.order_store = order_store
        self.inventory_ledger = inventory_ledger
        self.transaction_log = transaction_log
        self.coupons = coupons
        self.notifier = notifier
        self.max_payment_attempts = max_payment_attempts

        self.checkout_id = uuid.uuid4().hex
        self.state = CheckoutState.IDLE
        self.reason: Optional[CheckoutReason] = None
        self.detail: dict = {}

        self.lines: List[CartLine] = []
        self.available_addresses: list = []
        self.address = None
        self.coupon_code: Optional[str] = None
        self.discount_percentage = 0
        self.payment_attempts = 0
        self.last_payment_failure: Optional[PaymentFailure] = None
        self.confirmation: Optional[Confirmation] = None
        self._payment_key = payment_key or self._new_payment_key()

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def status(self) -> CheckoutStatus:
        return CheckoutStatus(state=self.state, reason=self.reason, detail=dict(self.detail))

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0.00"))

    @property
    def amount_due(self) -> Decimal:
        if not self.discount_percentage:
            return self.subtotal.quantize(CENT)
        return apply_discount(self.subtotal, self.discount_percentage)

    # =====================================================
    # COMMANDS
    # =====================================================
    def begin(self) -> CheckoutStatus:
        self._require("begin checkout", CheckoutState.IDLE)

        lines = self.cart.lines()
        if not lines:
            return self._abort(CheckoutReason.EMPTY_CART)

        self.state = CheckoutState.VALIDATING_STOCK
        logger.info(f"Checkout {self.checkout_id}: validating stock for {len(lines)} lines")

        try:
            check = self.stock_oracle.validate_stock(lines)
        except Exception:
            # nothing happened yet, the buyer can simply try again
            self.state = CheckoutState.IDLE
            raise

        if not check.ok:
            return self._abort(
                CheckoutReason.INSUFFICIENT_STOCK,
                product_id=check.product_id,
                available=check.available,
            )

        self.lines = lines
        self.available_addresses = self.address_book.list_addresses(self.context.user_id)
        self.state = CheckoutState.COLLECTING_ADDRESS
        return self.status

    def select_address(self, address_id: int) -> CheckoutStatus:
        self._require("select an address", CheckoutState.COLLECTING_ADDRESS)

        self.address = self.address_book.get_address(self.context.user_id, address_id)
        self.state = CheckoutState.AWAITING_PAYMENT
        logger.info(f"Checkout {self.checkout_id}: shipping to address {self.address.id}")
        return self.status

    def submit_address(self, draft: AddressDraft) -> CheckoutStatus:
        """Persist a new address first; only a durable id may be referenced by the order."""
        self._require("submit an address", CheckoutState.COLLECTING_ADDRESS)

        address = self.address_book.create_address(self.context.user_id, draft)
        return self.select_address(address.id)

    def apply_coupon(self, code: str | None) -> Decimal:
        self._require(
            "apply a coupon",
            CheckoutState.COLLECTING_ADDRESS,
            CheckoutState.AWAITING_PAYMENT,
        )

        self.coupon_code = None
        self.discount_percentage = 0

        if not code or not code.strip():
            return self.amount_due

        if not self.coupons:
            raise InvalidCoupon(code.strip().upper())

        coupon = self.coupons.lookup(code)
        self.coupon_code = coupon.code
        self.discount_percentage = coupon.percentage
        logger.info(f"Checkout {self.checkout_id}: coupon {coupon.code} ({coupon.percentage}% off)")
        return self.amount_due

    def pay(self, method: str) -> CheckoutStatus:
        self._require("pay", CheckoutState.AWAITING_PAYMENT)

        self.payment_attempts += 1
        amount = self.amount_due
        result = self._authorize(amount, method)

        # logged before anything else looks at the result
        self._record_attempt(amount, method, result)

        if not result.success:
            return self._payment_failed(result)

        return self._finalize(result)

    def cancel(self) -> CheckoutStatus:
        if self.state == CheckoutState.FINALIZING or self.state in TERMINAL_STATES:
            raise InvalidCheckoutTransition("cancel", self.state)
        return self._abort(CheckoutReason.CANCELLED)

    # =====================================================
    # SESSION
    # =====================================================
    def to_session(self) -> CheckoutSession:
        self._require("save the checkout", CheckoutState.AWAITING_PAYMENT)
        return CheckoutSession(
            checkout_id=self.checkout_id,
            user_id=self.context.user_id,
            currency=self.context.currency,
            lines=self.lines,
            address_id=self.address.id,
            coupon_code=self.coupon_code,
            discount_percentage=self.discount_percentage,
            payment_attempts=self.payment_attempts,
            payment_key=self._payment_key,
        )

    @classmethod
    def resume(cls, session: CheckoutSession, **collaborators) -> "CheckoutOrchestrator":
        """
        Rebuild a checkout that is awaiting payment, keeping its id, attempt
        count and idempotency key so a retried charge can be deduplicated.
        """
        checkout = cls(
            CheckoutContext(user_id=session.user_id, currency=session.currency),
            payment_key=session.payment_key,
            **collaborators,
        )
        checkout.checkout_id = session.checkout_id
        checkout.lines = list(session.lines)
        checkout.address = checkout.address_book.get_address(session.user_id, session.address_id)
        checkout.coupon_code = session.coupon_code
        checkout.discount_percentage = session.discount_percentage
        checkout.payment_attempts = session.payment_attempts
        checkout.state = CheckoutState.AWAITING_PAYMENT
        return checkout

    # =====================================================
    # PAYMENT
    # =====================================================
    def _authorize(self, amount: Decimal, method: str) -> PaymentResult:
        logger.info(
            f"Checkout {self.checkout_id}: payment attempt {self.payment_attempts} "
            f"for {amount} {self.context.currency} via {method}"
        )
        try:
            return self.payment_gateway.authorize(
                amount=amount,
                currency=self.context.currency,
                method=method,
                idempotency_key=self._payment_key,
            )
        except Exception as e:
            # never read a crash as a success
            logger.error(f"Checkout {self.checkout_id}: payment gateway raised {e!r}")
            return PaymentFailure(reason="gateway_error", retryable=True)

    def _record_attempt(self, amount: Decimal, method: str, result: PaymentResult) -> None:
        if result.success:
            entry = TransactionEntry(
                user_id=self.context.user_id,
                checkout_id=self.checkout_id,
                attempt=self.payment_attempts,
                amount=result.amount,
                currency=result.currency,
                method=result.method,
                status="success",
                provider_transaction_id=result.provider_transaction_id,
                description=f"Store Order: {len(self.lines)} items",
            )
        else:
            entry = TransactionEntry(
                user_id=self.context.user_id,
                checkout_id=self.checkout_id,
                attempt=self.payment_attempts,
                amount=amount,
                currency=self.context.currency,
                method=method,
                status="failed",
                failure_reason=result.reason,
                description=f"Store Order: {len(self.lines)} items",
            )
        self.transaction_log.record(entry)

    def _payment_failed(self, failure: PaymentFailure) -> CheckoutStatus:
        self.last_payment_failure = failure
        logger.warning(
            f"Checkout {self.checkout_id}: payment failed ({failure.reason}, "
            f"retryable={failure.retryable}), attempt {self.payment_attempts}"
        )

        if failure.retryable and self.payment_attempts < self.max_payment_attempts:
            if failure.reason not in AMBIGUOUS_PAYMENT_FAILURES:
                self._payment_key = self._new_payment_key()
            self.detail = {
                "reason": failure.reason,
                "retryable": True,
                "attempts_left": self.max_payment_attempts - self.payment_attempts,
            }
            return self.status

        return self._abort(
            CheckoutReason.PAYMENT_FAILED,
            reason=failure.reason,
            retryable=False,
        )

    # =====================================================
    # FINALIZING
    # =====================================================
    def _finalize(self, payment) -> CheckoutStatus:
        self.state = CheckoutState.FINALIZING
        self.detail = {}
        snapshot = shipping_snapshot(self.address)

        # 1. order
        payload = OrderPayload(
            user_id=self.context.user_id,
            items=self.lines,
            subtotal=self.subtotal,
            discount_code=self.coupon_code,
            total=payment.amount,
            currency=payment.currency,
            payment_method=payment.method,
            payment_reference=payment.provider_transaction_id,
            shipping_address_id=self.address.id,
            shipping_snapshot=snapshot,
        )
        try:
            order_id = self.order_store.create_order(payload)
            order_recorded = True
        except OrderNotPersisted as e:
            # the buyer paid; the sale goes ahead on the issued id and reconciliation picks it up
            logger.error(
                f"RECONCILE checkout {self.checkout_id}: payment "
                f"{payment.provider_transaction_id} succeeded but order {e.order_id} was not recorded"
            )
            order_id = e.order_id
            order_recorded = False
        except Exception as e:
            # no order id at all, nothing to confirm against
            logger.error(
                f"RECONCILE checkout {self.checkout_id}: payment "
                f"{payment.provider_transaction_id} succeeded but no order id was issued: {e!r}"
            )
            return self._abort(
                CheckoutReason.ORDER_CREATION_FAILED,
                payment_reference=payment.provider_transaction_id,
                message=SUPPORT_MESSAGE,
            )

        # 2. inventory, one line at a time, no rollback
        discrepancies = []
        for line in self.lines:
            if not self._decrement(order_id, line):
                discrepancies.append(line.product_id)

        # 3. cart
        try:
            self.cart.clear()
        except Exception as e:
            logger.warning(f"Checkout {self.checkout_id}: cart not cleared after order {order_id}: {e!r}")

        # 4. confirmation
        self.confirmation = Confirmation(
            order_id=order_id,
            total=payment.amount,
            currency=payment.currency,
            payment_method=payment.method,
            payment_reference=payment.provider_transaction_id,
            shipping_snapshot=snapshot,
            items=self.lines,
            inventory_discrepancies=discrepancies,
            order_recorded=order_recorded,
        )
        self._notify(order_id, snapshot)

        self.state = CheckoutState.DONE
        self.detail = {"order_id": order_id}
        logger.info(f"Checkout {self.checkout_id} done: order {order_id}")
        return self.status

    def _decrement(self, order_id: str, line: CartLine) -> bool:
        try:
            result = self.inventory_ledger.adjust(line.product_id, -line.quantity)
        except Exception as e:
            logger.error(
                f"RECONCILE order {order_id}: inventory decrement for {line.product_id} "
                f"x{line.quantity} raised {e!r}"
            )
            return False

        if not result.ok:
            logger.error(
                f"RECONCILE order {order_id}: inventory decrement for {line.product_id} "
                f"x{line.quantity} rejected, stock would go negative"
            )
            return False
        return True

    def _notify(self, order_id: str, snapshot: dict) -> None:
        if not self.notifier:
            return
        try:
            self.notifier.send_order_confirmation(self.context.user_id, order_id, snapshot.get("city", ""))
        except Exception as e:
            logger.warning(f"Order {order_id}: confirmation notification not queued: {e!r}")

    # =====================================================
    # helpers
    # =====================================================
    def _require(self, operation: str, *states: CheckoutState) -> None:
        if self.state not in states:
            raise InvalidCheckoutTransition(operation, self.state)

    def _abort(self, reason: CheckoutReason, /, **detail) -> CheckoutStatus:
        self.state = CheckoutState.ABORTED
        self.reason = reason
        self.detail = detail
        logger.info(f"Checkout {self.checkout_id} aborted: {reason.value} {detail}")
        return self.status

    @staticmethod
    def _new_payment_key() -> str:
        return uuid.uuid4().hex
