# storefront/domain/checkout.py
"""Value types shared by the checkout orchestrator and its collaborators."""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CheckoutState(str, Enum):
    IDLE = "IDLE"
    VALIDATING_STOCK = "VALIDATING_STOCK"
    COLLECTING_ADDRESS = "COLLECTING_ADDRESS"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    FINALIZING = "FINALIZING"
    DONE = "DONE"
    ABORTED = "ABORTED"


TERMINAL_STATES = frozenset({CheckoutState.DONE, CheckoutState.ABORTED})


class CheckoutReason(str, Enum):
    EMPTY_CART = "EMPTY_CART"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    ORDER_CREATION_FAILED = "ORDER_CREATION_FAILED"
    CANCELLED = "CANCELLED"


class CheckoutContext(BaseModel):
    """Who is checking out and in which currency. Passed in, never read from globals."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    currency: str = "INR"


class CheckoutStatus(BaseModel):
    state: CheckoutState
    reason: Optional[CheckoutReason] = None
    detail: Dict[str, Any] = Field(default_factory=dict)


class CartLine(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock_ceiling: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class StockCheck(BaseModel):
    ok: bool
    product_id: Optional[str] = None
    available: Optional[int] = None


class PaymentSuccess(BaseModel):
    success: Literal[True] = True
    method: str
    provider_transaction_id: str
    amount: Decimal
    currency: str
    timestamp_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PaymentFailure(BaseModel):
    success: Literal[False] = False
    reason: str
    retryable: bool = False


PaymentResult = Union[PaymentSuccess, PaymentFailure]


class TransactionEntry(BaseModel):
    user_id: str
    checkout_id: str
    attempt: int
    amount: Decimal
    currency: str
    method: str
    status: Literal["success", "failed"]
    provider_transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    description: str = "Store Order"


class OrderPayload(BaseModel):
    user_id: str
    items: List[CartLine]
    subtotal: Decimal
    discount_code: Optional[str] = None
    total: Decimal
    currency: str
    payment_method: str
    payment_reference: str
    shipping_address_id: int
    shipping_snapshot: Dict[str, Any]


class AdjustmentResult(BaseModel):
    ok: bool
    product_id: str
    remaining: Optional[int] = None


class Confirmation(BaseModel):
    order_id: str
    total: Decimal
    currency: str
    payment_method: str
    payment_reference: str
    shipping_snapshot: Dict[str, Any]
    items: List[CartLine]
    inventory_discrepancies: List[str] = Field(default_factory=list)
    # False when the order row is missing and only the transaction log has the sale
    order_recorded: bool = True


class CheckoutSession(BaseModel):
    """What a checkout awaiting payment needs to survive between requests."""

    checkout_id: str
    user_id: str
    currency: str
    lines: List[CartLine]
    address_id: int
    coupon_code: Optional[str] = None
    discount_percentage: int = 0
    payment_attempts: int = 0
    payment_key: str
