from fastapi import APIRouter

from rfq_exchange.api.v1.health import router as health_router
from rfq_exchange.api.v1.tenders import router as tenders_router
from rfq_exchange.api.v1.bids import router as bids_router
from rfq_exchange.api.v1.admin import router as admin_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# MARKET OPS
# ------------------------------------------------------------------
v1_router.include_router(tenders_router, tags=["tenders"])
v1_router.include_router(bids_router, tags=["bids"])

# ------------------------------------------------------------------
# ADMIN
# ------------------------------------------------------------------
v1_router.include_router(admin_router, tags=["admin"])
