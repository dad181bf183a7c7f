# storefront/payment_gateway/main.py
import uuid
from decimal import Decimal

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

app = FastAPI(title="Payment Gateway (dev mock)")

# test card methods, anything else is approved
DECLINED_METHODS = {"card_declined": "card_declined", "card_insufficient": "insufficient_funds"}

_processed: dict[str, dict] = {}


class AuthorizeIn(BaseModel):
    amount: Decimal
    currency: str
    method: str


@app.post("/payments/authorize")
def authorize(payload: AuthorizeIn, idempotency_key: str = Header(...)):
    if idempotency_key in _processed:
        result = _processed[idempotency_key]
    elif payload.method in DECLINED_METHODS:
        result = {"status": "failed", "reason": DECLINED_METHODS[payload.method], "retryable": False}
    else:
        result = {
            "status": "success",
            "transaction_id": f"mock_{uuid.uuid4().hex[:16]}",
            "method": payload.method,
            "amount": str(payload.amount),
            "currency": payload.currency,
        }
    _processed[idempotency_key] = result

    return JSONResponse(status_code=200 if result["status"] == "success" else 402, content=result)
