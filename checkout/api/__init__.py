# checkout/api/__init__.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from checkout.api.routers import admin, carts, checkout, health, orders, payments
from checkout.data.database import Database
from checkout.services.payment_gateway import PaymentGateway, PaystackClient
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(database: Database | None = None, gateway: PaymentGateway | None = None) -> FastAPI:
    # an injected handle belongs to the caller, who closes it
    owns_database = database is None
    database = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db.open()
        logger.info("Checkout service started")
        yield
        if owns_database:
            app.state.db.close()
        logger.info("Checkout service stopped")

    app = FastAPI(title="Checkout Service", version="1.0.0", lifespan=lifespan)
    app.state.db = database
    app.state.gateway = gateway or PaystackClient()

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(admin.router)

    return app
