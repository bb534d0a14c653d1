# ============================================================================
# Reporting Analytics Service
# ============================================================================
"""
Service layer for the admin reporting endpoints.
Aggregates users, revenue, subscriptions, content, engagement and instructor
data, and derives growth, churn, retention, MRR/ARR and LTV figures.

Money is stored in minor currency units and returned in major units.
"""
from typing import Dict, List, Optional, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID
import logging

from app.config import get_settings
from app.core.exceptions import InvalidFilters, UnknownMetric, InstructorNotFound
from app.models.user import User, InstructorProfile, UserRole, SubscriptionTier
from app.models.payment import (
    Payment, PaymentStatus, Subscription, SubscriptionStatus,
    SubscriptionPlan, monthly_price
)
from app.models.content import (
    Program, ProgramSession, YogaClass, Pose, VideoProgress,
    PlannerEntry, ChallengeEnrollment
)
from app.services.reporting.date_ranges import month_start, shift_months

logger = logging.getLogger(__name__)
settings = get_settings()

CHURNED_STATUSES = (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED)


def percent_change(current: float, previous: float) -> float:
    """Growth of current over previous in percent; 0 when there is no baseline"""
    if not previous or previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def round_half_up(value: float) -> int:
    # Halves round away from zero, not to even
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount: Any) -> float:
    return float(amount or 0) / 100


def _date_key(value: Any) -> Optional[str]:
    # DATE() comes back as a date on postgres and as text on sqlite
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _period(start: datetime, end: datetime) -> Dict[str, str]:
    return {"from": start.isoformat(), "to": end.isoformat()}


def _enum_filter(enum_cls, value: Any, name: str):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise InvalidFilters(f"Invalid value for filter '{name}': {value}")


class AnalyticsService:
    """
    Reporting analytics over the platform's relational store.

    Provides:
    - User, revenue, subscription, content and engagement aggregates
    - Instructor performance stats
    - MRR/ARR month walk, churn, LTV and retention reports
    - Period comparison and the overview/realtime snapshots
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _scalar(self, query) -> Any:
        result = await self.db.execute(query)
        return result.scalar() or 0

    # =========================================================================
    # Snapshots
    # =========================================================================
    async def get_realtime_stats(self) -> Dict[str, Any]:
        """Activity in the last hour plus today's headline counts"""
        now = datetime.utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        hour_ago = now - timedelta(hours=1)

        active_users = await self._scalar(
            select(func.count(func.distinct(VideoProgress.user_id)))
            .where(VideoProgress.updated_at >= hour_ago)
        )
        new_users_today = await self._scalar(
            select(func.count(User.id)).where(User.created_at >= today_start)
        )
        revenue_today = await self._scalar(
            select(func.sum(Payment.amount))
            .where(Payment.status == PaymentStatus.COMPLETED)
            .where(Payment.created_at >= today_start)
        )
        active_subscriptions = await self._count_active_subscriptions()

        return {
            "active_users_last_hour": active_users,
            "new_users_today": new_users_today,
            "revenue_today": to_major_units(revenue_today),
            "active_subscriptions": active_subscriptions,
            "timestamp": now.isoformat(),
        }

    async def get_overview_dashboard(self) -> Dict[str, Any]:
        """
        Headline KPIs for the admin landing page.

        Growth figures compare this calendar month so far against the whole
        of last month.
        """
        try:
            now = datetime.utcnow()
            this_month = month_start(now)
            last_month = shift_months(this_month, -1)

            total_users = await self._scalar(select(func.count(User.id)))
            new_this_month = await self._scalar(
                select(func.count(User.id)).where(User.created_at >= this_month)
            )
            new_last_month = await self._scalar(
                select(func.count(User.id))
                .where(User.created_at >= last_month)
                .where(User.created_at < this_month)
            )
            revenue_this_month = to_major_units(await self._scalar(
                select(func.sum(Payment.amount))
                .where(Payment.status == PaymentStatus.COMPLETED)
                .where(Payment.created_at >= this_month)
            ))
            revenue_last_month = to_major_units(await self._scalar(
                select(func.sum(Payment.amount))
                .where(Payment.status == PaymentStatus.COMPLETED)
                .where(Payment.created_at >= last_month)
                .where(Payment.created_at < this_month)
            ))

            return {
                "total_users": total_users,
                "new_users_this_month": new_this_month,
                "user_growth": percent_change(new_this_month, new_last_month),
                "active_subscriptions": await self._count_active_subscriptions(),
                "revenue_this_month": revenue_this_month,
                "revenue_growth": percent_change(revenue_this_month, revenue_last_month),
                "total_programs": await self._scalar(select(func.count(Program.id))),
                "total_classes": await self._scalar(select(func.count(YogaClass.id))),
                "last_updated": now.isoformat(),
            }
        except Exception as e:
            logger.error(f"Error building overview dashboard: {e}")
            raise

    async def _count_active_subscriptions(self) -> int:
        return await self._scalar(
            select(func.count(Subscription.id))
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
        )

    # =========================================================================
    # User Analytics
    # =========================================================================
    async def get_user_analytics(
        self,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Get user growth and composition metrics.

        Filters:
            role: narrow new-user counts to one role
            subscription_tier: narrow new-user counts to one tier

        Returns:
            Totals, breakdowns by role and tier, retention and daily signups
        """
        filters = filters or {}
        conditions = [User.created_at >= start, User.created_at <= end]
        if filters.get("role"):
            conditions.append(User.role == _enum_filter(UserRole, filters["role"], "role"))
        if filters.get("subscription_tier"):
            conditions.append(User.subscription_tier == _enum_filter(
                SubscriptionTier, filters["subscription_tier"], "subscription_tier"
            ))

        total_users = await self._scalar(select(func.count(User.id)))
        new_users = await self._scalar(select(func.count(User.id)).where(and_(*conditions)))

        role_result = await self.db.execute(
            select(User.role, func.count(User.id)).group_by(User.role)
        )
        tier_result = await self.db.execute(
            select(User.subscription_tier, func.count(User.id)).group_by(User.subscription_tier)
        )

        signup_date = func.date(User.created_at)
        daily_result = await self.db.execute(
            select(signup_date.label("date"), func.count(User.id).label("count"))
            .where(and_(*conditions))
            .group_by(signup_date)
            .order_by(signup_date)
        )

        return {
            "total_users": total_users,
            "new_users": new_users,
            "users_by_role": [
                {"role": role.value, "count": count} for role, count in role_result.all()
            ],
            "users_by_subscription": [
                {"tier": tier.value, "count": count} for tier, count in tier_result.all()
            ],
            "retention_rate": await self._calculate_retention_rate(start, end),
            "daily_signups": [
                {"date": _date_key(row.date), "count": row.count}
                for row in daily_result.all()
            ],
            "period": _period(start, end),
        }

    async def _calculate_retention_rate(self, start: datetime, end: datetime) -> int:
        """Percent of users who signed up in the window and were active after it"""
        new_users = await self._scalar(
            select(func.count(User.id))
            .where(User.created_at >= start)
            .where(User.created_at <= end)
        )
        if new_users == 0:
            return 0

        came_back = (
            select(VideoProgress.id)
            .where(VideoProgress.user_id == User.id)
            .where(VideoProgress.updated_at > end)
            .exists()
        )
        returning_users = await self._scalar(
            select(func.count(User.id))
            .where(User.created_at >= start)
            .where(User.created_at <= end)
            .where(came_back)
        )
        return round_half_up(returning_users / new_users * 100)

    async def get_retention_report(self, start: datetime, end: datetime) -> Dict[str, Any]:
        return {
            "retention_rate": await self._calculate_retention_rate(start, end),
            "period": _period(start, end),
        }

    # =========================================================================
    # Revenue Analytics
    # =========================================================================
    async def get_revenue_analytics(
        self,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Get completed-payment revenue for the window.

        Filters:
            provider: payment provider key (stripe, iyzico, ...)
            currency: ISO currency code
        """
        filters = filters or {}
        conditions = [
            Payment.status == PaymentStatus.COMPLETED,
            Payment.created_at >= start,
            Payment.created_at <= end,
        ]
        if filters.get("provider"):
            conditions.append(Payment.provider == str(filters["provider"]))
        if filters.get("currency"):
            conditions.append(Payment.currency == str(filters["currency"]).upper())

        totals_result = await self.db.execute(
            select(
                func.sum(Payment.amount).label("total"),
                func.count(Payment.id).label("count"),
                func.avg(Payment.amount).label("average"),
            ).where(and_(*conditions))
        )
        totals = totals_result.one()

        provider_result = await self.db.execute(
            select(
                Payment.provider,
                func.sum(Payment.amount).label("revenue"),
                func.count(Payment.id).label("count"),
            )
            .where(and_(*conditions))
            .group_by(Payment.provider)
        )

        payment_date = func.date(Payment.created_at)
        daily_result = await self.db.execute(
            select(
                payment_date.label("date"),
                func.sum(Payment.amount).label("revenue"),
                func.count(Payment.id).label("count"),
            )
            .where(and_(*conditions))
            .group_by(payment_date)
            .order_by(payment_date)
        )

        return {
            "total_revenue": to_major_units(totals.total),
            "transaction_count": totals.count or 0,
            "average_order_value": round(to_major_units(totals.average), 2),
            "revenue_by_provider": [
                {"provider": row.provider, "revenue": to_major_units(row.revenue), "count": row.count}
                for row in provider_result.all()
            ],
            "daily_revenue": [
                {"date": _date_key(row.date), "revenue": to_major_units(row.revenue), "transactions": row.count}
                for row in daily_result.all()
            ],
            "currency": settings.CURRENCY,
            "period": _period(start, end),
        }

    async def get_revenue_by_plan(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Completed revenue grouped by subscription plan"""
        result = await self.db.execute(
            select(
                SubscriptionPlan.name,
                func.sum(Payment.amount).label("revenue"),
                func.count(Payment.id).label("count"),
            )
            .select_from(Payment)
            .outerjoin(SubscriptionPlan, Payment.plan_id == SubscriptionPlan.id)
            .where(Payment.status == PaymentStatus.COMPLETED)
            .where(Payment.created_at >= start)
            .where(Payment.created_at <= end)
            .group_by(SubscriptionPlan.name)
            .order_by(func.sum(Payment.amount).desc())
        )

        return [
            {"plan": row.name or "unassigned", "revenue": to_major_units(row.revenue), "count": row.count}
            for row in result.all()
        ]

    # =========================================================================
    # Subscription Analytics
    # =========================================================================
    async def get_subscription_analytics(
        self,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Subscription counts, churn and tier/status breakdowns"""
        filters = filters or {}
        scope = []
        if filters.get("tier"):
            scope.append(Subscription.tier == _enum_filter(SubscriptionTier, filters["tier"], "tier"))

        def count_where(*conditions):
            return select(func.count(Subscription.id)).where(*scope, *conditions)

        total = await self._scalar(count_where())
        active = await self._scalar(count_where(Subscription.status == SubscriptionStatus.ACTIVE))
        new = await self._scalar(count_where(
            Subscription.created_at >= start,
            Subscription.created_at <= end,
        ))
        cancelled = await self._scalar(count_where(
            Subscription.status.in_(CHURNED_STATUSES),
            Subscription.updated_at >= start,
            Subscription.updated_at <= end,
        ))

        tier_result = await self.db.execute(
            select(Subscription.tier, func.count(Subscription.id))
            .where(*scope)
            .group_by(Subscription.tier)
        )
        status_result = await self.db.execute(
            select(Subscription.status, func.count(Subscription.id))
            .where(*scope)
            .group_by(Subscription.status)
        )

        churn_rate = round(cancelled / active * 100, 2) if active > 0 else 0

        return {
            "total_subscriptions": total,
            "active_subscriptions": active,
            "new_subscriptions": new,
            "cancelled_subscriptions": cancelled,
            "churn_rate": churn_rate,
            "subscriptions_by_tier": [
                {"tier": tier.value, "count": count} for tier, count in tier_result.all()
            ],
            "subscriptions_by_status": [
                {"status": status.value, "count": count} for status, count in status_result.all()
            ],
            "period": _period(start, end),
        }

    # =========================================================================
    # Content & Engagement Analytics
    # =========================================================================
    async def get_content_analytics(
        self,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Catalog sizes, most-followed programs and video completion"""
        session_count = func.count(ProgramSession.id)
        top_result = await self.db.execute(
            select(Program.id, Program.title, session_count.label("sessions"))
            .outerjoin(ProgramSession, ProgramSession.program_id == Program.id)
            .group_by(Program.id, Program.title)
            .order_by(session_count.desc(), Program.title)
            .limit(10)
        )

        completion_result = await self.db.execute(
            select(VideoProgress.completed, func.count(VideoProgress.id))
            .where(VideoProgress.updated_at >= start)
            .where(VideoProgress.updated_at <= end)
            .group_by(VideoProgress.completed)
        )
        views_by_state = {bool(completed): count for completed, count in completion_result.all()}
        total_views = sum(views_by_state.values())
        completed_views = views_by_state.get(True, 0)
        completion_rate = round(completed_views / total_views * 100, 2) if total_views > 0 else 0

        return {
            "total_programs": await self._scalar(select(func.count(Program.id))),
            "total_classes": await self._scalar(select(func.count(YogaClass.id))),
            "total_poses": await self._scalar(select(func.count(Pose.id))),
            "top_programs": [
                {"id": str(row.id), "title": row.title, "sessions_count": row.sessions}
                for row in top_result.all()
            ],
            "total_views": total_views,
            "completed_views": completed_views,
            "completion_rate": completion_rate,
            "period": _period(start, end),
        }

    async def get_engagement_analytics(
        self,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Video, planner and challenge activity within the window"""
        in_window = [VideoProgress.updated_at >= start, VideoProgress.updated_at <= end]

        active_users = await self._scalar(
            select(func.count(func.distinct(VideoProgress.user_id))).where(*in_window)
        )
        progress_result = await self.db.execute(
            select(func.count(VideoProgress.id), func.avg(VideoProgress.percentage)).where(*in_window)
        )
        sessions, avg_progress = progress_result.one()

        planner_usage = await self._scalar(
            select(func.count(PlannerEntry.id))
            .where(PlannerEntry.created_at >= start)
            .where(PlannerEntry.created_at <= end)
        )
        challenge_participation = await self._scalar(
            select(func.count(ChallengeEnrollment.id))
            .where(ChallengeEnrollment.joined_at >= start)
            .where(ChallengeEnrollment.joined_at <= end)
        )

        return {
            "daily_active_users": active_users,
            "total_sessions": sessions or 0,
            "average_progress": round((avg_progress or 0) * 100),
            "planner_usage": planner_usage,
            "challenge_participation": challenge_participation,
            "period": _period(start, end),
        }

    # =========================================================================
    # Instructor Analytics
    # =========================================================================
    async def get_instructor_analytics(
        self,
        start: datetime,
        end: datetime,
        instructor_id: Optional[str] = None
    ) -> Any:
        """
        Get instructor profile stats.

        Returns a list for all instructors, or a single entry when
        instructor_id (the instructor's user id) is given.
        """
        query = select(InstructorProfile).order_by(InstructorProfile.display_name)
        if instructor_id is not None:
            try:
                query = query.where(InstructorProfile.user_id == UUID(instructor_id))
            except ValueError:
                raise InstructorNotFound(instructor_id)

        result = await self.db.execute(query)
        instructors = [
            {
                "instructor_id": str(profile.user_id),
                "name": profile.display_name,
                "total_classes": profile.total_classes or 0,
                "total_reviews": profile.total_reviews or 0,
                "average_rating": float(profile.average_rating or 0),
                "total_students": profile.total_students or 0,
            }
            for profile in result.scalars().all()
        ]

        if instructor_id is not None:
            if not instructors:
                raise InstructorNotFound(instructor_id)
            return instructors[0]
        return instructors

    # =========================================================================
    # Recurring Revenue & Churn
    # =========================================================================
    async def get_mrr_report(
        self,
        months: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Walk back month by month and estimate MRR from active subscriptions.

        A subscription counts for a month when it is ACTIVE, was created by the
        end of that month and its period had not ended before the month began.
        Subscriptions with a plan are priced at the plan's monthly price; the
        rest use AVERAGE_SUBSCRIPTION_PRICE and are reported as estimated.

        Returns:
            One entry per calendar month, oldest first, ending with the
            current month
        """
        months = months or settings.DEFAULT_MRR_MONTHS
        current_month = month_start(now or datetime.utcnow())

        results = []
        previous_mrr = 0.0
        total_estimated = 0

        for offset in range(months - 1, -1, -1):
            period_start = shift_months(current_month, -offset)
            period_end = shift_months(period_start, 1) - timedelta(microseconds=1)

            result = await self.db.execute(
                select(
                    SubscriptionPlan.price,
                    SubscriptionPlan.interval,
                    func.count(Subscription.id).label("count"),
                )
                .select_from(Subscription)
                .outerjoin(SubscriptionPlan, Subscription.plan_id == SubscriptionPlan.id)
                .where(Subscription.status == SubscriptionStatus.ACTIVE)
                .where(Subscription.created_at <= period_end)
                .where(or_(
                    Subscription.current_period_end.is_(None),
                    Subscription.current_period_end >= period_start
                ))
                .group_by(SubscriptionPlan.price, SubscriptionPlan.interval)
            )

            mrr = 0.0
            active = 0
            estimated = 0
            for price, interval, count in result.all():
                active += count
                if price is None:
                    estimated += count
                    mrr += count * settings.AVERAGE_SUBSCRIPTION_PRICE
                else:
                    mrr += count * monthly_price(price, interval)

            results.append({
                "month": period_start.strftime("%Y-%m"),
                "mrr": round(mrr, 2),
                "growth": percent_change(mrr, previous_mrr),
                "active_subscriptions": active,
                "estimated_subscriptions": estimated,
            })
            previous_mrr = mrr
            total_estimated += estimated

        if total_estimated:
            logger.warning(
                f"MRR report priced {total_estimated} subscription-months without a plan "
                f"at the average price {settings.AVERAGE_SUBSCRIPTION_PRICE}"
            )

        return results

    async def get_arr_report(self) -> List[Dict[str, Any]]:
        mrr_report = await self.get_mrr_report(12)
        return [{**entry, "arr": round(entry["mrr"] * 12, 2)} for entry in mrr_report]

    async def get_churn_report(self, start: datetime, end: datetime) -> Dict[str, Any]:
        """
        Churn of the subscriber base over a window.

        churn_rate = churned / starting_subscriptions * 100, or 0 without a
        starting base.
        """
        starting = await self._scalar(
            select(func.count(Subscription.id))
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .where(Subscription.created_at < start)
        )
        ending = await self._scalar(
            select(func.count(Subscription.id))
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .where(Subscription.created_at < end)
        )
        churned = await self._scalar(
            select(func.count(Subscription.id))
            .where(Subscription.status.in_(CHURNED_STATUSES))
            .where(Subscription.updated_at >= start)
            .where(Subscription.updated_at <= end)
        )

        churn_rate = round(churned / starting * 100, 2) if starting > 0 else 0

        return {
            "starting_subscriptions": starting,
            "ending_subscriptions": ending,
            "churned": churned,
            "churn_rate": churn_rate,
            "period": _period(start, end),
        }

    async def get_ltv_report(self) -> Dict[str, Any]:
        """Simplified LTV: average MRR over a year divided by annual churn"""
        now = datetime.utcnow()
        mrr_report = await self.get_mrr_report(12, now=now)
        churn = await self.get_churn_report(now - timedelta(days=365), now)

        average_mrr = sum(entry["mrr"] for entry in mrr_report) / len(mrr_report)
        churn_fraction = churn["churn_rate"] / 100
        if churn_fraction > 0:
            ltv = average_mrr / churn_fraction
        else:
            ltv = average_mrr * settings.LTV_FALLBACK_LIFETIME_MONTHS

        return {
            "average_ltv": round(ltv, 2),
            "average_mrr": round(average_mrr, 2),
            "churn_rate": churn["churn_rate"],
            "calculation_method": "simple",
        }

    # =========================================================================
    # Period Comparison
    # =========================================================================
    async def compare_periods(
        self,
        metric: str,
        period1: Tuple[datetime, datetime],
        period2: Tuple[datetime, datetime]
    ) -> Dict[str, Any]:
        """
        Compare one metric across two windows.

        Args:
            metric: revenue, users or subscriptions
            period1: (start, end) of the period being evaluated
            period2: (start, end) of the baseline period

        Raises:
            UnknownMetric: for any other metric name
        """
        metric_functions = {
            "revenue": self._metric_revenue,
            "users": self._metric_new_users,
            "subscriptions": self._metric_new_subscriptions,
        }
        if metric not in metric_functions:
            raise UnknownMetric(metric)

        value1 = await metric_functions[metric](*period1)
        value2 = await metric_functions[metric](*period2)

        if value1 > value2:
            direction = "up"
        elif value1 < value2:
            direction = "down"
        else:
            direction = "same"

        return {
            "metric": metric,
            "period1": {**_period(*period1), "value": value1},
            "period2": {**_period(*period2), "value": value2},
            "change": percent_change(value1, value2),
            "direction": direction,
        }

    # Metric functions
    async def _metric_revenue(self, start: datetime, end: datetime) -> float:
        return to_major_units(await self._scalar(
            select(func.sum(Payment.amount))
            .where(Payment.status == PaymentStatus.COMPLETED)
            .where(Payment.created_at >= start)
            .where(Payment.created_at <= end)
        ))

    async def _metric_new_users(self, start: datetime, end: datetime) -> int:
        return await self._scalar(
            select(func.count(User.id))
            .where(User.created_at >= start)
            .where(User.created_at <= end)
        )

    async def _metric_new_subscriptions(self, start: datetime, end: datetime) -> int:
        return await self._scalar(
            select(func.count(Subscription.id))
            .where(Subscription.created_at >= start)
            .where(Subscription.created_at <= end)
        )
