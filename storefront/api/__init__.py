# storefront/api/__init__.py
from fastapi import FastAPI
from storefront.api.routers import health, carts, addresses, checkout, orders, transactions


def create_app(lifespan=None) -> FastAPI:
    app = FastAPI(
        title="Storefront Checkout Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(addresses.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(transactions.router)

    return app
