# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from storefront.domain.checkout import CartLine


class ItemIn(BaseModel):
    """Add one unit of a catalogue product to the cart."""

    product_id: str = Field(..., min_length=1)


class QuantityIn(BaseModel):
    quantity: int


class CartOut(BaseModel):
    user_id: str
    items: List[CartLine]
    count: int
    total: Decimal


class AddressDraft(BaseModel):
    """Address as submitted by the buyer. Field rules are checked by AddressBook."""

    label: str = "Home"
    full_name: str = ""
    phone: str = ""
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "India"
    is_default: bool = False


class AddressOut(BaseModel):
    id: int
    label: str
    full_name: str
    phone: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    zip: str
    country: str
    is_default: bool

    model_config = ConfigDict(from_attributes=True)


class CheckoutIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    address_id: Optional[int] = None
    address: Optional[AddressDraft] = None
    coupon_code: Optional[str] = None
    payment_method: str = Field(..., min_length=1)


class PaymentIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1)


class ConfirmationOut(BaseModel):
    checkout_id: str
    order_id: str
    total: Decimal
    currency: str
    payment_method: str
    payment_reference: str
    shipping_snapshot: dict
    items: List[CartLine]


class OrderOut(BaseModel):
    id: str
    user_id: str
    items: list
    subtotal: Decimal
    discount_code: Optional[str] = None
    total: Decimal
    currency: str
    status: str
    payment_method: str
    payment_reference: str
    shipping_snapshot: dict
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionOut(BaseModel):
    id: int
    checkout_id: str
    attempt: int
    amount: Decimal
    currency: str
    method: str
    status: str
    provider_transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
