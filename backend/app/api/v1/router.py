from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.articles import router as articles_router
from backend.app.api.v1.endpoints.suppliers import router as suppliers_router
from backend.app.api.v1.endpoints.locations import router as locations_router
from backend.app.api.v1.endpoints.stock_movements import router as stock_movements_router
from backend.app.api.v1.endpoints.reorders import router as reorders_router
from backend.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from backend.app.api.v1.endpoints.inventory_sessions import router as inventory_sessions_router
from backend.app.api.v1.endpoints.reports import router as reports_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(articles_router, tags=["articles"])
router.include_router(suppliers_router, tags=["suppliers"])
router.include_router(locations_router, tags=["locations"])
router.include_router(stock_movements_router, tags=["stock_movements"])
router.include_router(reorders_router, tags=["reorders"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(inventory_sessions_router, tags=["inventory_sessions"])
router.include_router(reports_router, tags=["reports"])
