from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.health import router as health_router
from app.api.routes_export import router as export_router
from app.api.routes_movements import router as movements_router
from app.api.routes_products import router as products_router
from app.api.routes_stats import router as stats_router
from app.config import settings
from app.services.alert_service import AlertService
from app.services.inventory_service import InventoryService
from app.storage import build_storage
from app.utils.log import get_logger

log = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup: load the ledger unless one was injected
    if getattr(app.state, "inventory", None) is None:
        app.state.inventory = InventoryService(build_storage(settings))

    scheduler = None
    if settings.LOW_STOCK_SCAN_SECONDS > 0:
        scheduler = BackgroundScheduler()

        def low_stock_job():
            AlertService(app.state.inventory).scan()

        scheduler.add_job(
            low_stock_job,
            "interval",
            seconds=settings.LOW_STOCK_SCAN_SECONDS,
            id="low_stock_scan",
        )
        scheduler.start()
        log.info("Low-stock scan every %ds", settings.LOW_STOCK_SCAN_SECONDS)

    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)


def create_app(inventory: Optional[InventoryService] = None) -> FastAPI:
    app = FastAPI(title="Stock Ledger - Backend", version="0.1.0", lifespan=lifespan)
    app.state.inventory = inventory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.FRONTEND_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, prefix="/api", tags=["health"])

    app.include_router(products_router, prefix="/api/products", tags=["products"])

    app.include_router(movements_router, tags=["movements"])

    app.include_router(stats_router, tags=["stats"])

    app.include_router(export_router, tags=["export"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
