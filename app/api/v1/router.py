# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from app.api.v1 import analytics, dashboard

api_router = APIRouter()

# Overview, windowed reports, MRR/ARR, churn, LTV, comparisons
api_router.include_router(analytics.router)
# User layouts, widget data, widget catalog
api_router.include_router(dashboard.router)

@api_router.get("/health")
async def api_health():
    return {"status": "healthy", "version": "v1"}
