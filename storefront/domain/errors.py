# storefront/domain/errors.py


class CheckoutError(Exception):
    """Base class for errors raised by the storefront services."""


class StockCeilingExceeded(CheckoutError):
    def __init__(self, product_id: str, ceiling: int):
        self.product_id = product_id
        self.ceiling = ceiling
        super().__init__(f"Maximum stock available for {product_id}: {ceiling}")


class AddressValidationError(CheckoutError):
    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("Invalid address: " + ", ".join(f"{k}: {v}" for k, v in errors.items()))


class AddressNotFound(CheckoutError):
    def __init__(self, address_id: int):
        self.address_id = address_id
        super().__init__(f"Address {address_id} not found")


class InvalidCoupon(CheckoutError):
    def __init__(self, code: str):
        self.code = code
        super().__init__("Invalid or expired coupon code.")


class InvalidCheckoutTransition(CheckoutError):
    def __init__(self, operation: str, state):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while checkout is {state.value}")


class OrderNotPersisted(CheckoutError):
    """The order id was issued but the order row could not be written."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} could not be recorded")
