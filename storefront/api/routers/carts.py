# storefront/api/routers/carts.py
import redis
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import get_redis
from storefront.data.database import get_db
from storefront.domain.errors import StockCeilingExceeded
from storefront.domain.schemas import CartOut, ItemIn, QuantityIn
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import StockOracle

router = APIRouter(prefix="/carts", tags=["carts"])


def get_cart(user_id: str, client: redis.Redis):
    return CartService(user_id=user_id, repo=CartRepo(client))


def cart_out(cart: CartService) -> CartOut:
    return CartOut(user_id=cart.user_id, items=cart.lines(), count=cart.count, total=cart.total)


@router.get("/{user_id}", response_model=CartOut)
def view_cart(user_id: str, client: redis.Redis = Depends(get_redis)):
    return cart_out(get_cart(user_id, client))


@router.post("/{user_id}/items", response_model=CartOut)
def add_item(
    user_id: str,
    payload: ItemIn,
    db: Session = Depends(get_db),
    client: redis.Redis = Depends(get_redis),
):
    product = ProductRepo(db).get_product(payload.product_id)
    if not product or product.status != "active":
        raise HTTPException(status_code=404, detail="Product not found")

    #ceiling is whatever the catalogue holds right now, re-checked at checkout
    max_stock = StockOracle(db).get_available_stock(product.id)

    cart = get_cart(user_id, client)
    try:
        cart.add_item(product.id, product.name, product.price, max_stock)
    except StockCeilingExceeded as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "product_id": e.product_id, "ceiling": e.ceiling},
        )
    return cart_out(cart)


@router.patch("/{user_id}/items/{product_id}", response_model=CartOut)
def update_quantity(
    user_id: str,
    product_id: str,
    payload: QuantityIn,
    client: redis.Redis = Depends(get_redis),
):
    cart = get_cart(user_id, client)
    cart.update_quantity(product_id, payload.quantity)
    return cart_out(cart)


@router.delete("/{user_id}/items/{product_id}", response_model=CartOut)
def remove_item(user_id: str, product_id: str, client: redis.Redis = Depends(get_redis)):
    cart = get_cart(user_id, client)
    cart.remove_item(product_id)
    return cart_out(cart)


@router.delete("/{user_id}", response_model=CartOut)
def clear_cart(user_id: str, client: redis.Redis = Depends(get_redis)):
    cart = get_cart(user_id, client)
    cart.clear()
    return cart_out(cart)
