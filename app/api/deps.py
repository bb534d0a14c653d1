# ============================================================================
# API Dependencies
# ============================================================================
from typing import Optional, Tuple, Dict, Any
from datetime import datetime
from fastapi import Query

from app.services.reporting.date_ranges import parse_date_range, parse_filters


# ============================================================================
# Reporting Query Dependencies
# ============================================================================
async def get_date_range(
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    date_range_type: Optional[str] = Query(None, alias="dateRangeType")
) -> Tuple[datetime, datetime]:
    """
    Resolve the reporting window from query parameters.

    Usage:
        @router.get("/users")
        async def user_analytics(
            date_range: Tuple[datetime, datetime] = Depends(get_date_range)
        ):
            start, end = date_range
    """
    return parse_date_range(date_from, date_to, date_range_type)


async def get_filters(
    filters: Optional[str] = Query(None, description="JSON object of report filters")
) -> Optional[Dict[str, Any]]:
    return parse_filters(filters)
