# storefront/api/routers/checkout.py
import redis
from fastapi import APIRouter, Depends, Header, HTTPException, Response
from sqlalchemy.orm import Session

from storefront.api.deps import get_notifier, get_payment_gateway, get_redis
from storefront.data.database import get_db
from storefront.domain.checkout import CheckoutContext, CheckoutReason, CheckoutState
from storefront.domain.errors import (
    AddressNotFound,
    AddressValidationError,
    InvalidCoupon,
)
from storefront.domain.schemas import CheckoutIn, ConfirmationOut, PaymentIn
from storefront.repos.cart_repo import CartRepo
from storefront.repos.checkout_repo import CheckoutSessionRepo
from storefront.services.address_service import AddressBook
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutOrchestrator
from storefront.services.discount_service import CouponBook
from storefront.services.inventory_service import InventoryLedger, StockOracle
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.transaction_log import TransactionLog
from storefront.utils.settings import DEFAULT_CURRENCY

router = APIRouter(prefix="/checkout", tags=["checkout"])

_ABORT_STATUS = {
    CheckoutReason.EMPTY_CART: 409,
    CheckoutReason.INSUFFICIENT_STOCK: 409,
    CheckoutReason.PAYMENT_FAILED: 402,
    CheckoutReason.ORDER_CREATION_FAILED: 502,
    CheckoutReason.CANCELLED: 409,
}


def _collaborators(
    user_id: str,
    db: Session,
    client: redis.Redis,
    gateway: PaymentGateway,
    notifier: NotificationService,
) -> dict:
    return dict(
        cart=CartService(user_id, CartRepo(client)),
        stock_oracle=StockOracle(db),
        address_book=AddressBook(db),
        payment_gateway=gateway,
        order_store=OrderService(db),
        inventory_ledger=InventoryLedger(db, on_low_stock=notifier.send_low_stock_alert),
        transaction_log=TransactionLog(db),
        coupons=CouponBook(db),
        notifier=notifier,
    )


def get_orchestrator(
    payload: CheckoutIn,
    db: Session,
    client: redis.Redis,
    gateway: PaymentGateway,
    notifier: NotificationService,
    idempotency_key: str | None = None,
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        context=CheckoutContext(user_id=payload.user_id, currency=payload.currency or DEFAULT_CURRENCY),
        payment_key=idempotency_key,
        **_collaborators(payload.user_id, db, client, gateway, notifier),
    )


def _fail(checkout: CheckoutOrchestrator):
    status = checkout.status
    code = _ABORT_STATUS.get(status.reason, 402)
    raise HTTPException(
        status_code=code,
        detail={
            "checkout_id": checkout.checkout_id,
            "state": status.state.value,
            "reason": status.reason.value if status.reason else None,
            "detail": status.detail,
        },
    )


def _settle(checkout: CheckoutOrchestrator, sessions: CheckoutSessionRepo) -> ConfirmationOut:
    """Keep a checkout still awaiting payment for the next attempt, drop a finished one."""
    if checkout.state == CheckoutState.AWAITING_PAYMENT:
        sessions.save(checkout.to_session())
        _fail(checkout)

    sessions.delete(checkout.checkout_id)
    if checkout.state != CheckoutState.DONE:
        _fail(checkout)

    confirmation = checkout.confirmation
    return ConfirmationOut(
        checkout_id=checkout.checkout_id,
        order_id=confirmation.order_id,
        total=confirmation.total,
        currency=confirmation.currency,
        payment_method=confirmation.payment_method,
        payment_reference=confirmation.payment_reference,
        shipping_snapshot=confirmation.shipping_snapshot,
        items=confirmation.items,
    )


def _load_session(checkout_id: str, user_id: str, sessions: CheckoutSessionRepo):
    session = sessions.load(checkout_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Checkout not found or expired")
    if session.user_id != user_id:
        raise HTTPException(status_code=403, detail="No access to this checkout")
    return session


@router.post("/", response_model=ConfirmationOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    db: Session = Depends(get_db),
    client: redis.Redis = Depends(get_redis),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
    idempotency_key: str | None = Header(None),
):
    """
    Runs a checkout from stock check to the first payment attempt. A retryable
    payment failure answers 402 with retryable=true and keeps the checkout;
    the client retries it with POST /checkout/{checkout_id}/pay, which reuses
    the idempotency key the provider already saw.
    """
    checkout = get_orchestrator(payload, db, client, gateway, notifier, idempotency_key)

    if checkout.begin().state == CheckoutState.ABORTED:
        _fail(checkout)

    try:
        if payload.address_id is not None:
            checkout.select_address(payload.address_id)
        elif payload.address is not None:
            checkout.submit_address(payload.address)
        elif checkout.available_addresses:
            checkout.select_address(checkout.available_addresses[0].id)
        else:
            raise HTTPException(status_code=422, detail="Shipping address required")
    except AddressValidationError as e:
        raise HTTPException(status_code=422, detail={"message": "Invalid address", "errors": e.errors})
    except AddressNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    if payload.coupon_code:
        try:
            checkout.apply_coupon(payload.coupon_code)
        except InvalidCoupon as e:
            raise HTTPException(status_code=400, detail=str(e))

    checkout.pay(payload.payment_method)
    return _settle(checkout, CheckoutSessionRepo(client))


@router.post("/{checkout_id}/pay", response_model=ConfirmationOut, status_code=201)
def retry_payment(
    checkout_id: str,
    payload: PaymentIn,
    db: Session = Depends(get_db),
    client: redis.Redis = Depends(get_redis),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
):
    sessions = CheckoutSessionRepo(client)
    session = _load_session(checkout_id, payload.user_id, sessions)

    try:
        checkout = CheckoutOrchestrator.resume(
            session, **_collaborators(payload.user_id, db, client, gateway, notifier)
        )
    except AddressNotFound as e:
        sessions.delete(checkout_id)
        raise HTTPException(status_code=404, detail=str(e))

    checkout.pay(payload.payment_method)
    return _settle(checkout, sessions)


@router.delete("/{checkout_id}", status_code=204)
def cancel_checkout(
    checkout_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    client: redis.Redis = Depends(get_redis),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
):
    sessions = CheckoutSessionRepo(client)
    session = _load_session(checkout_id, user_id, sessions)

    try:
        checkout = CheckoutOrchestrator.resume(session, **_collaborators(user_id, db, client, gateway, notifier))
    except AddressNotFound:
        # nothing left to resume, dropping the session is the cancellation
        sessions.delete(checkout_id)
        return Response(status_code=204)

    checkout.cancel()
    sessions.delete(checkout_id)
    return Response(status_code=204)
