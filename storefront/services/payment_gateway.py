# storefront/services/payment_gateway.py
from decimal import Decimal

import requests
from requests import RequestException, Timeout

from storefront.domain.checkout import PaymentFailure, PaymentResult, PaymentSuccess
from storefront.utils.settings import PAYMENT_GATEWAY_URL, PAYMENT_TIMEOUT_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentGateway:
    """Opaque payment capability: amount + currency + method in, PaymentResult out."""

    def authorize(
        self,
        amount: Decimal,
        currency: str,
        method: str,
        idempotency_key: str,
    ) -> PaymentResult:
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):
    """
    Talks to the provider over HTTP.
    No automatic retry here: a repeated charge must be an explicit new attempt.
    Anything that is not an explicit success is a failure, a timeout included.
    """

    def __init__(self, base_url: str | None = None, timeout: float = PAYMENT_TIMEOUT_SECONDS):
        self.base_url = (base_url or PAYMENT_GATEWAY_URL).rstrip("/")
        self.timeout = timeout

    def authorize(self, amount, currency, method, idempotency_key):
        url = f"{self.base_url}/payments/authorize"
        logger.info(f"PaymentGateway POST {url} {amount} {currency} via {method}")

        try:
            resp = requests.post(
                url,
                json={"amount": str(amount), "currency": currency, "method": method},
                headers={"Idempotency-Key": idempotency_key},
                timeout=self.timeout,
            )
        except Timeout:
            logger.warning(f"Payment authorization timed out after {self.timeout}s")
            return PaymentFailure(reason="timeout", retryable=True)
        except RequestException as e:
            logger.warning(f"Payment gateway unreachable: {e}")
            return PaymentFailure(reason="gateway_error", retryable=True)

        if resp.status_code >= 500:
            return PaymentFailure(reason="gateway_error", retryable=True)

        try:
            body = resp.json()
        except ValueError:
            logger.warning(f"Payment gateway returned non-JSON body ({resp.status_code})")
            return PaymentFailure(reason="gateway_error", retryable=True)

        if resp.ok and body.get("status") == "success" and body.get("transaction_id"):
            return PaymentSuccess(
                method=body.get("method") or method,
                provider_transaction_id=body["transaction_id"],
                amount=Decimal(str(body.get("amount", amount))),
                currency=body.get("currency", currency),
            )

        return PaymentFailure(
            reason=body.get("reason") or f"http_{resp.status_code}",
            retryable=bool(body.get("retryable", False)),
        )
