from fastapi import FastAPI

from clinic_stock.app.api.v1.router import router as v1_router
from clinic_stock.app.core.logging_config import configure_logging

configure_logging()

app = FastAPI(title="Clinic Stock Reconciliation", version="0.1.0")
app.include_router(v1_router, prefix="/v1")
