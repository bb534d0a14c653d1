# ============================================================================
# Analytics API Endpoints
# ============================================================================
"""
Reporting endpoints for the admin analytics area.

All endpoints require admin authentication via the require_admin dependency
and return ``{"success": true, "data": ...}``.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Tuple, Dict, Any
from datetime import datetime

from app.api.deps import get_date_range, get_filters
from app.core.database import get_db
from app.core.exceptions import MissingParameters
from app.core.security import require_admin
from app.models.user import User
from app.schemas.responses import ErrorResponse
from app.services.reporting.analytics_service import AnalyticsService
from app.services.reporting.date_ranges import parse_date_range


router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


# ============================================================================
# Snapshots
# ============================================================================
@router.get("/overview")
async def get_overview(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Headline KPIs with month-over-month growth"""
    service = AnalyticsService(db)
    return ok(await service.get_overview_dashboard())


@router.get("/realtime")
async def get_realtime(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_realtime_stats())


# ============================================================================
# Windowed Reports
# ============================================================================
@router.get("/users")
async def get_user_analytics(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    filters: Optional[Dict[str, Any]] = Depends(get_filters),
    db: AsyncSession = Depends(get_db)
):
    """
    User growth and composition.

    Filters:
    - role: STUDENT, INSTRUCTOR or ADMIN
    - subscription_tier: FREE, BASIC, PREMIUM or ENTERPRISE
    """
    service = AnalyticsService(db)
    return ok(await service.get_user_analytics(*date_range, filters=filters))


@router.get("/revenue")
async def get_revenue_analytics(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    filters: Optional[Dict[str, Any]] = Depends(get_filters),
    db: AsyncSession = Depends(get_db)
):
    """
    Completed payment revenue.

    Filters:
    - provider: payment provider name
    - currency: ISO currency code
    """
    service = AnalyticsService(db)
    return ok(await service.get_revenue_analytics(*date_range, filters=filters))


@router.get("/revenue/by-plan")
async def get_revenue_by_plan(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_revenue_by_plan(*date_range))


@router.get("/subscriptions")
async def get_subscription_analytics(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    filters: Optional[Dict[str, Any]] = Depends(get_filters),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_subscription_analytics(*date_range, filters=filters))


@router.get("/content")
async def get_content_analytics(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    filters: Optional[Dict[str, Any]] = Depends(get_filters),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_content_analytics(*date_range, filters=filters))


@router.get("/engagement")
async def get_engagement_analytics(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    filters: Optional[Dict[str, Any]] = Depends(get_filters),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_engagement_analytics(*date_range, filters=filters))


# ============================================================================
# Instructors
# ============================================================================
@router.get("/instructors")
async def list_instructor_analytics(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_instructor_analytics(*date_range))


@router.get("/instructors/{instructor_id}")
async def get_instructor_analytics(
    instructor_id: str,
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_instructor_analytics(*date_range, instructor_id=instructor_id))


# ============================================================================
# Comparison
# ============================================================================
@router.get("/compare")
async def compare_periods(
    metric: Optional[str] = Query(None),
    period1_from: Optional[str] = Query(None, alias="period1From"),
    period1_to: Optional[str] = Query(None, alias="period1To"),
    period2_from: Optional[str] = Query(None, alias="period2From"),
    period2_to: Optional[str] = Query(None, alias="period2To"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Compare a metric (revenue, users, subscriptions) across two periods.

    The change is expressed relative to period 2.
    """
    params = {
        "metric": metric,
        "period1From": period1_from,
        "period1To": period1_to,
        "period2From": period2_from,
        "period2To": period2_to,
    }
    missing = [name for name, value in params.items() if not value]
    if missing:
        raise MissingParameters(missing)

    period1 = parse_date_range(period1_from, period1_to)
    period2 = parse_date_range(period2_from, period2_to)

    service = AnalyticsService(db)
    return ok(await service.compare_periods(metric, period1, period2))


# ============================================================================
# Recurring Revenue, Churn & Retention
# ============================================================================
@router.get("/mrr")
async def get_mrr(
    months: Optional[int] = Query(None, ge=1, le=36),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Monthly recurring revenue, oldest month first"""
    service = AnalyticsService(db)
    return ok(await service.get_mrr_report(months))


@router.get("/arr")
async def get_arr(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_arr_report())


@router.get("/churn")
async def get_churn(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_churn_report(*date_range))


@router.get("/ltv")
async def get_ltv(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_ltv_report())


@router.get("/retention")
async def get_retention(
    admin: User = Depends(require_admin),
    date_range: Tuple[datetime, datetime] = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AnalyticsService(db)
    return ok(await service.get_retention_report(*date_range))
