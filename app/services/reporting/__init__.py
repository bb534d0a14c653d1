# ============================================================================
# Reporting Services Module
# ============================================================================
"""
Reporting services for the admin analytics area.

Services:
- AnalyticsService: Users, revenue, subscriptions, content, engagement,
  instructors, MRR/ARR, churn, LTV and period comparison
- DashboardService: Widget catalog, per-user layouts and widget data
"""

from app.services.reporting.analytics_service import AnalyticsService
from app.services.reporting.dashboard_service import DashboardService
from app.services.reporting.date_ranges import DateRangeType, parse_date_range, parse_filters

__all__ = [
    "AnalyticsService",
    "DashboardService",
    "DateRangeType",
    "parse_date_range",
    "parse_filters",
]
