import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.celery_worker import celery_app
from storefront.data.database import Base
from storefront.data.models import AddressModel, CouponModel, ProductModel
from storefront.domain.checkout import PaymentFailure, PaymentSuccess
from storefront.repos.cart_repo import CartRepo
from storefront.services.payment_gateway import PaymentGateway

celery_app.conf.task_always_eager = True


class FakeRedis:
    """Just enough of redis.Redis for the cart and checkout snapshots."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, name):
        return self.data.get(name)

    def set(self, name, value, ex=None):
        self.data[name] = value
        self.ttls[name] = ex
        return True

    def delete(self, *names):
        removed = 0
        for name in names:
            if self.data.pop(name, None) is not None:
                removed += 1
            self.ttls.pop(name, None)
        return removed


class FakeGateway(PaymentGateway):
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def authorize(self, amount, currency, method, idempotency_key):
        self.calls.append(
            {"amount": amount, "currency": currency, "method": method, "idempotency_key": idempotency_key}
        )
        if self.results:
            result = self.results.pop(0)
        else:
            result = "ok"

        if isinstance(result, Exception):
            raise result
        if result == "ok":
            return PaymentSuccess(
                method=method,
                provider_transaction_id=f"pay_{len(self.calls)}",
                amount=amount,
                currency=currency,
            )
        return result


def declined(reason="card_declined", retryable=False):
    return PaymentFailure(reason=reason, retryable=retryable)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cart_repo(fake_redis):
    return CartRepo(fake_redis, ttl=900)


@pytest.fixture
def make_product(db):
    def _make(product_id="sku1", stock=5, price="500.00", name=None, status="active"):
        product = ProductModel(
            id=product_id,
            name=name or f"Product {product_id}",
            category="General",
            price=Decimal(price),
            stock=stock,
            status=status,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_address(db):
    def _make(user_id="u1", is_default=False, **overrides):
        fields = dict(
            user_id=user_id,
            label="Home",
            full_name="Asha Rao",
            phone="+91 98765 43210",
            line1="12 Temple Road",
            city="Pune",
            state="Maharashtra",
            zip="411001",
            country="India",
            is_default=is_default,
        )
        fields.update(overrides)
        address = AddressModel(**fields)
        db.add(address)
        db.commit()
        return address

    return _make


@pytest.fixture
def coupon(db):
    c = CouponModel(code="MYSTIC10", percentage=10, status="active")
    db.add(c)
    db.add(CouponModel(code="OLD50", percentage=50, status="expired"))
    db.commit()
    return c
