from fastapi import APIRouter

from clinic_stock.app.api.v1.endpoints.health import router as health_router
from clinic_stock.app.api.v1.endpoints.stock import router as stock_router
from clinic_stock.app.api.v1.endpoints.product_units import router as product_units_router
from clinic_stock.app.api.v1.endpoints.forms import router as forms_router
from clinic_stock.app.api.v1.endpoints.inventory_requests import router as requests_router
from clinic_stock.app.api.v1.endpoints.withdrawals import router as withdrawals_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(stock_router, tags=["stock"])
router.include_router(product_units_router, tags=["product_units"])
router.include_router(forms_router, tags=["forms"])
router.include_router(requests_router, tags=["requests"])
router.include_router(withdrawals_router, tags=["withdrawals"])
