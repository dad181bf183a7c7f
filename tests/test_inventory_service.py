from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from storefront.data.models import ProductModel
from storefront.domain.checkout import CartLine
from storefront.repos.product_repo import ProductRepo
from storefront.services.inventory_service import InventoryLedger, StockOracle


def line(product_id, quantity):
    return CartLine(product_id=product_id, name=product_id, unit_price="500", quantity=quantity, stock_ceiling=10)


def test_stock_oracle_reads_current_stock(db, make_product):
    make_product("sku1", stock=7)

    assert StockOracle(db).get_available_stock("sku1") == 7


def test_unknown_or_inactive_product_has_no_stock(db, make_product):
    make_product("gone", stock=9, status="inactive")

    oracle = StockOracle(db)
    assert oracle.get_available_stock("missing") == 0
    assert oracle.get_available_stock("gone") == 0


def test_stock_oracle_sees_changes_committed_by_other_sessions(db, session_factory, make_product):
    make_product("sku1", stock=5)
    oracle = StockOracle(db)
    assert oracle.get_available_stock("sku1") == 5

    other = session_factory()
    InventoryLedger(other).adjust("sku1", -4)
    other.close()

    assert oracle.get_available_stock("sku1") == 1


def test_validate_stock_names_offending_product(db, make_product):
    make_product("sku1", stock=5)
    make_product("sku2", stock=1)

    check = StockOracle(db).validate_stock([line("sku1", 2), line("sku2", 3)])

    assert not check.ok
    assert check.product_id == "sku2"
    assert check.available == 1


def test_validate_stock_ok(db, make_product):
    make_product("sku1", stock=5)

    assert StockOracle(db).validate_stock([line("sku1", 5)]).ok


def test_decrement_is_applied(db, make_product):
    product = make_product("sku1", stock=10)

    result = InventoryLedger(db).adjust("sku1", -3)

    db.refresh(product)
    assert result.ok
    assert result.remaining == 7
    assert product.stock == 7


def test_decrement_below_zero_is_soft_failure(db, make_product):
    product = make_product("sku1", stock=2)

    result = InventoryLedger(db).adjust("sku1", -3)

    db.refresh(product)
    assert not result.ok
    assert product.stock == 2


def test_decrement_of_unknown_product_is_soft_failure(db):
    assert not InventoryLedger(db).adjust("missing", -1).ok


def test_two_sessions_cannot_oversell(session_factory, db, make_product):
    make_product("sku1", stock=3)
    first, second = session_factory(), session_factory()

    a = InventoryLedger(first).adjust("sku1", -2)
    b = InventoryLedger(second).adjust("sku1", -2)
    first.close()
    second.close()

    assert a.ok and not b.ok
    assert db.get(ProductModel, "sku1", populate_existing=True).stock == 1


def test_low_stock_alert(db, make_product):
    make_product("sku1", stock=6)
    alerts = []

    ledger = InventoryLedger(db, low_stock_threshold=5, on_low_stock=lambda pid, left: alerts.append((pid, left)))
    ledger.adjust("sku1", -1)
    ledger.adjust("sku1", -2)

    assert alerts == [("sku1", 3)]


def test_failing_low_stock_alert_does_not_fail_adjustment(db, make_product):
    make_product("sku1", stock=2)

    def broken(product_id, remaining):
        raise RuntimeError("broker down")

    result = InventoryLedger(db, on_low_stock=broken).adjust("sku1", -1)

    assert result.ok


def test_error_after_commit_does_not_apply_delta_twice(db, make_product):
    make_product("sku1", stock=10)
    real_current_stock = ProductRepo.current_stock
    calls = []

    def drops_once(self, product_id):
        calls.append(product_id)
        if len(calls) == 1:
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return real_current_stock(self, product_id)

    with patch.object(ProductRepo, "current_stock", drops_once):
        result = InventoryLedger(db).adjust("sku1", -3)

    assert result.ok
    assert result.remaining is None
    assert calls == ["sku1"]
    assert db.get(ProductModel, "sku1", populate_existing=True).stock == 7


def test_error_before_commit_is_retried(db, make_product):
    make_product("sku1", stock=10)
    real_apply_delta = ProductRepo.apply_delta
    calls = []

    def drops_once(self, product_id, delta):
        calls.append(delta)
        if len(calls) == 1:
            raise OperationalError("UPDATE", {}, Exception("connection reset"))
        return real_apply_delta(self, product_id, delta)

    with patch.object(ProductRepo, "apply_delta", drops_once):
        result = InventoryLedger(db).adjust("sku1", -3)

    assert result.ok
    assert result.remaining == 7
    assert calls == [-3, -3]


def test_failed_commit_is_not_retried(db, make_product):
    make_product("sku1", stock=10)
    real_apply_delta = ProductRepo.apply_delta
    applied = []

    def counting(self, product_id, delta):
        applied.append(delta)
        return real_apply_delta(self, product_id, delta)

    error = OperationalError("COMMIT", {}, Exception("connection reset"))
    with patch.object(ProductRepo, "apply_delta", counting), \
            patch.object(ProductRepo, "commit", side_effect=error):
        with pytest.raises(OperationalError):
            InventoryLedger(db).adjust("sku1", -3)

    assert applied == [-3]
    assert db.get(ProductModel, "sku1", populate_existing=True).stock == 10
