# ============================================================================
# Reporting Dashboard Service
# ============================================================================
"""
Service layer for the configurable admin dashboard.
Manages the widget catalog, per-user widget placements and resolves each
widget's data source to a concrete query.
"""
from typing import Dict, List, Optional, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from datetime import datetime, timedelta, date
from uuid import UUID
import logging

from app.config import get_settings
from app.core.exceptions import (
    WidgetNotFound, PlacementNotFound, PlacementExists, UnknownDataSource
)
from app.models.user import User
from app.models.payment import Payment, PaymentStatus, Subscription, SubscriptionStatus
from app.models.content import Program, ProgramSession
from app.models.dashboard import DashboardWidget, UserDashboardWidget, WidgetType
from app.services.reporting.analytics_service import AnalyticsService, to_major_units
from app.services.reporting.date_ranges import month_start

logger = logging.getLogger(__name__)
settings = get_settings()

# Grid slots for the default dashboard, in widget display order
DEFAULT_LAYOUT = [
    {"x": 0, "y": 0, "width": 3, "height": 1},
    {"x": 3, "y": 0, "width": 3, "height": 1},
    {"x": 6, "y": 0, "width": 3, "height": 1},
    {"x": 9, "y": 0, "width": 3, "height": 1},
    {"x": 0, "y": 1, "width": 8, "height": 3},
    {"x": 8, "y": 1, "width": 4, "height": 3},
    {"x": 0, "y": 4, "width": 4, "height": 3},
    {"x": 4, "y": 4, "width": 8, "height": 3},
]

DEFAULT_WIDGETS = [
    {
        "name": "Total Revenue",
        "description": "Total revenue this month",
        "type": WidgetType.NUMBER,
        "data_source": "revenue_total",
        "default_width": 3,
        "default_height": 1,
    },
    {
        "name": "Active Subscribers",
        "description": "Number of active subscribers",
        "type": WidgetType.NUMBER,
        "data_source": "subscribers_active",
        "default_width": 3,
        "default_height": 1,
    },
    {
        "name": "New Users Today",
        "description": "Users registered today",
        "type": WidgetType.NUMBER,
        "data_source": "users_new_today",
        "default_width": 3,
        "default_height": 1,
    },
    {
        "name": "MRR",
        "description": "Monthly Recurring Revenue",
        "type": WidgetType.NUMBER,
        "data_source": "mrr_current",
        "default_width": 3,
        "default_height": 1,
    },
    {
        "name": "Revenue Chart",
        "description": "Revenue trend over time",
        "type": WidgetType.CHART,
        "data_source": "revenue_chart",
        "chart_type": "area",
        "default_width": 8,
        "default_height": 3,
    },
    {
        "name": "User Growth",
        "description": "User growth trend",
        "type": WidgetType.CHART,
        "data_source": "user_growth_chart",
        "chart_type": "line",
        "default_width": 4,
        "default_height": 3,
    },
    {
        "name": "Top Programs",
        "description": "Most popular programs",
        "type": WidgetType.LIST,
        "data_source": "top_programs",
        "default_width": 4,
        "default_height": 3,
    },
    {
        "name": "Recent Transactions",
        "description": "Latest payment transactions",
        "type": WidgetType.TABLE,
        "data_source": "recent_transactions",
        "default_width": 8,
        "default_height": 3,
    },
]

DATA_SOURCES = (
    "revenue_total",
    "subscribers_active",
    "users_new_today",
    "mrr_current",
    "revenue_chart",
    "user_growth_chart",
    "top_programs",
    "recent_transactions",
    "realtime",
    "overview",
)

UPDATABLE_WIDGET_FIELDS = (
    "name", "description", "type", "data_source", "query", "chart_type",
    "chart_config", "refresh_interval", "default_width", "default_height",
    "display_order", "is_active", "is_default",
)


def widget_slug(name: str) -> str:
    return "-".join(name.lower().split())


def serialize_widget(widget: DashboardWidget) -> Dict[str, Any]:
    return {
        "id": widget.id,
        "name": widget.name,
        "description": widget.description,
        "type": widget.type.value,
        "data_source": widget.data_source,
        "query": widget.query,
        "chart_type": widget.chart_type,
        "chart_config": widget.chart_config,
        "refresh_interval": widget.refresh_interval,
        "default_width": widget.default_width,
        "default_height": widget.default_height,
        "display_order": widget.display_order,
        "is_default": widget.is_default,
        "is_active": widget.is_active,
    }


def serialize_placement(placement: UserDashboardWidget) -> Dict[str, Any]:
    return {
        "id": str(placement.id),
        "widget_id": placement.widget_id,
        "widget": serialize_widget(placement.widget),
        "position": {
            "x": placement.position_x,
            "y": placement.position_y,
            "width": placement.width,
            "height": placement.height,
        },
        "custom_config": placement.custom_config,
        "is_visible": placement.is_visible,
    }


class DashboardService:
    """
    Widget dashboard service.

    Provides:
    - Widget catalog CRUD and built-in widget seeding
    - Per-user placements with lazy default layout
    - Widget data resolution by data source key
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Widget Catalog
    # =========================================================================
    async def get_widgets(self) -> List[Dict[str, Any]]:
        """Active widgets available for placement"""
        result = await self.db.execute(
            select(DashboardWidget)
            .where(DashboardWidget.is_active == True)
            .order_by(DashboardWidget.name)
        )
        return [serialize_widget(widget) for widget in result.scalars().all()]

    async def _load_widget(self, widget_id: str) -> DashboardWidget:
        widget = await self.db.get(DashboardWidget, widget_id)
        if not widget:
            raise WidgetNotFound(widget_id)
        return widget

    async def get_widget(self, widget_id: str) -> Dict[str, Any]:
        return serialize_widget(await self._load_widget(widget_id))

    async def create_widget(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a catalog widget.

        Raises:
            UnknownDataSource: if data_source has no registered query
        """
        if data["data_source"] not in DATA_SOURCES:
            raise UnknownDataSource(data["data_source"])

        widget = DashboardWidget(**{
            field: value for field, value in data.items()
            if field in UPDATABLE_WIDGET_FIELDS and value is not None
        })
        self.db.add(widget)
        await self.db.commit()
        await self.db.refresh(widget)

        logger.info(f"Created widget: {widget.name} ({widget.data_source})")
        return serialize_widget(widget)

    async def update_widget(self, widget_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        widget = await self._load_widget(widget_id)

        data_source = updates.get("data_source")
        if data_source is not None and data_source not in DATA_SOURCES:
            raise UnknownDataSource(data_source)

        for field, value in updates.items():
            if value is not None and field in UPDATABLE_WIDGET_FIELDS:
                setattr(widget, field, value)

        await self.db.commit()
        await self.db.refresh(widget)
        return serialize_widget(widget)

    async def delete_widget(self, widget_id: str) -> Dict[str, Any]:
        """Delete a widget together with every user placement of it"""
        widget = await self._load_widget(widget_id)

        result = await self.db.execute(
            delete(UserDashboardWidget).where(UserDashboardWidget.widget_id == widget_id)
        )
        await self.db.delete(widget)
        await self.db.commit()

        logger.info(f"Deleted widget {widget_id} and {result.rowcount} placements")
        return {"id": widget_id, "placements_removed": result.rowcount}

    async def seed_default_widgets(self) -> int:
        """Insert or refresh the built-in widgets, keyed by slug"""
        for order, definition in enumerate(DEFAULT_WIDGETS):
            widget_id = widget_slug(definition["name"])
            widget = await self.db.get(DashboardWidget, widget_id)
            if widget is None:
                widget = DashboardWidget(id=widget_id)
                self.db.add(widget)
            for field, value in definition.items():
                setattr(widget, field, value)
            widget.display_order = order
            widget.is_default = True
            widget.is_active = True

        await self.db.commit()
        logger.info(f"Seeded {len(DEFAULT_WIDGETS)} default widgets")
        return len(DEFAULT_WIDGETS)

    # =========================================================================
    # Widget Data
    # =========================================================================
    async def get_widget_data(self, widget_id: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Resolve a widget's payload.

        Raises:
            WidgetNotFound: if the widget does not exist
            UnknownDataSource: if its data source has no registered query
        """
        widget = await self._load_widget(widget_id)
        return await self.fetch_widget_data(widget.data_source, params)

    async def fetch_widget_data(self, data_source: str, params: Optional[Dict[str, Any]] = None) -> Any:
        params = params or {}
        analytics = AnalyticsService(self.db)
        data_functions = {
            "revenue_total": self._revenue_total_data,
            "subscribers_active": self._active_subscribers_data,
            "users_new_today": self._new_users_today_data,
            "mrr_current": self._current_mrr_data,
            "revenue_chart": lambda: self._revenue_chart_data(params),
            "user_growth_chart": lambda: self._user_growth_chart_data(params),
            "top_programs": self._top_programs_data,
            "recent_transactions": self._recent_transactions_data,
            "realtime": analytics.get_realtime_stats,
            "overview": analytics.get_overview_dashboard,
        }
        if data_source not in data_functions:
            raise UnknownDataSource(data_source)
        return await data_functions[data_source]()

    # Number widgets
    async def _revenue_total_data(self) -> Dict[str, Any]:
        result = await self.db.execute(
            select(func.sum(Payment.amount))
            .where(Payment.status == PaymentStatus.COMPLETED)
            .where(Payment.created_at >= month_start(datetime.utcnow()))
        )
        return {
            "value": to_major_units(result.scalar()),
            "label": "Revenue This Month",
            "format": "currency",
        }

    async def _active_subscribers_data(self) -> Dict[str, Any]:
        result = await self.db.execute(
            select(func.count(Subscription.id))
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
        )
        return {
            "value": result.scalar() or 0,
            "label": "Active Subscribers",
            "format": "number",
        }

    async def _new_users_today_data(self) -> Dict[str, Any]:
        today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        result = await self.db.execute(
            select(func.count(User.id)).where(User.created_at >= today_start)
        )
        return {
            "value": result.scalar() or 0,
            "label": "New Users Today",
            "format": "number",
        }

    async def _current_mrr_data(self) -> Dict[str, Any]:
        """MRR from active subscriptions priced by tier list price"""
        result = await self.db.execute(
            select(Subscription.tier, func.count(Subscription.id))
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .group_by(Subscription.tier)
        )
        mrr = sum(
            settings.TIER_PRICING.get(tier.value, 0) * count
            for tier, count in result.all()
        )
        return {
            "value": round(mrr, 2),
            "label": "Monthly Recurring Revenue",
            "format": "currency",
        }

    # Chart widgets
    def _chart_days(self, params: Dict[str, Any]) -> int:
        try:
            days = int(params.get("days") or 30)
        except (TypeError, ValueError):
            days = 30
        return max(days, 1)

    def _day_labels(self, start: date) -> List[str]:
        labels = []
        current = start
        today = datetime.utcnow().date()
        while current <= today:
            labels.append(current.isoformat())
            current += timedelta(days=1)
        return labels

    async def _revenue_chart_data(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Daily completed revenue with gap filling"""
        start = (datetime.utcnow() - timedelta(days=self._chart_days(params))).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        result = await self.db.execute(
            select(Payment.amount, Payment.created_at)
            .where(Payment.status == PaymentStatus.COMPLETED)
            .where(Payment.created_at >= start)
            .order_by(Payment.created_at)
        )

        totals: Dict[str, int] = {}
        for amount, created_at in result.all():
            key = created_at.date().isoformat()
            totals[key] = totals.get(key, 0) + amount

        labels = self._day_labels(start.date())
        return {
            "labels": labels,
            "datasets": [
                {
                    "label": "Revenue",
                    "data": [to_major_units(totals.get(label, 0)) for label in labels],
                    "borderColor": "#4F46E5",
                    "backgroundColor": "rgba(79, 70, 229, 0.1)",
                    "fill": True,
                },
            ],
        }

    async def _user_growth_chart_data(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Daily signups and the running user total"""
        start = (datetime.utcnow() - timedelta(days=self._chart_days(params))).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        result = await self.db.execute(
            select(User.created_at)
            .where(User.created_at >= start)
            .order_by(User.created_at)
        )
        initial = await self.db.execute(
            select(func.count(User.id)).where(User.created_at < start)
        )
        cumulative = initial.scalar() or 0

        signups: Dict[str, int] = {}
        for (created_at,) in result.all():
            key = created_at.date().isoformat()
            signups[key] = signups.get(key, 0) + 1

        labels = self._day_labels(start.date())
        new_users = []
        total_users = []
        for label in labels:
            count = signups.get(label, 0)
            cumulative += count
            new_users.append(count)
            total_users.append(cumulative)

        return {
            "labels": labels,
            "datasets": [
                {
                    "label": "New Users",
                    "data": new_users,
                    "borderColor": "#10B981",
                    "backgroundColor": "rgba(16, 185, 129, 0.1)",
                    "fill": False,
                },
                {
                    "label": "Total Users",
                    "data": total_users,
                    "borderColor": "#6366F1",
                    "backgroundColor": "rgba(99, 102, 241, 0.1)",
                    "fill": False,
                    "yAxisID": "y1",
                },
            ],
        }

    # List widgets
    async def _top_programs_data(self) -> List[Dict[str, Any]]:
        session_count = func.count(ProgramSession.id)
        result = await self.db.execute(
            select(Program.id, Program.title, Program.thumbnail_url, session_count.label("sessions"))
            .outerjoin(ProgramSession, ProgramSession.program_id == Program.id)
            .group_by(Program.id, Program.title, Program.thumbnail_url)
            .order_by(session_count.desc(), Program.title)
            .limit(5)
        )
        return [
            {
                "rank": index + 1,
                "id": str(row.id),
                "title": row.title,
                "thumbnail": row.thumbnail_url,
                "sessions": row.sessions,
            }
            for index, row in enumerate(result.all())
        ]

    # Table widgets
    async def _recent_transactions_data(self) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Payment, User)
            .join(User, Payment.user_id == User.id)
            .where(Payment.status == PaymentStatus.COMPLETED)
            .order_by(Payment.created_at.desc())
            .limit(10)
        )
        return [
            {
                "id": str(payment.id),
                "user": user.full_name or user.email,
                "amount": to_major_units(payment.amount),
                "currency": payment.currency,
                "provider": payment.provider,
                "date": payment.created_at.isoformat() if payment.created_at else None,
            }
            for payment, user in result.all()
        ]

    # =========================================================================
    # User Dashboards
    # =========================================================================
    async def _load_placements(self, user_id: UUID) -> List[UserDashboardWidget]:
        result = await self.db.execute(
            select(UserDashboardWidget)
            .options(selectinload(UserDashboardWidget.widget))
            .where(UserDashboardWidget.user_id == user_id)
            .order_by(UserDashboardWidget.position_y, UserDashboardWidget.position_x)
        )
        return list(result.scalars().all())

    async def _load_placement(self, user_id: UUID, widget_id: str) -> UserDashboardWidget:
        result = await self.db.execute(
            select(UserDashboardWidget)
            .options(selectinload(UserDashboardWidget.widget))
            .where(UserDashboardWidget.user_id == user_id)
            .where(UserDashboardWidget.widget_id == widget_id)
        )
        placement = result.scalar_one_or_none()
        if not placement:
            raise PlacementNotFound(widget_id)
        return placement

    async def get_user_dashboard(self, user_id: UUID) -> List[Dict[str, Any]]:
        """
        Get a user's widget placements, seeding the default layout on first
        access.

        Returns:
            Placements ordered top-to-bottom, left-to-right
        """
        placements = await self._load_placements(user_id)
        if not placements:
            try:
                await self._initialize_default_dashboard(user_id)
            except IntegrityError:
                # A concurrent first access seeded the catalog or this dashboard
                await self.db.rollback()
                logger.info(f"Default dashboard for user {user_id} initialized concurrently")
                if not await self._load_placements(user_id):
                    await self._initialize_default_dashboard(user_id)
            placements = await self._load_placements(user_id)

        return [serialize_placement(placement) for placement in placements]

    async def _default_widgets(self) -> List[DashboardWidget]:
        result = await self.db.execute(
            select(DashboardWidget)
            .where(DashboardWidget.is_default == True)
            .where(DashboardWidget.is_active == True)
            .order_by(DashboardWidget.display_order, DashboardWidget.name)
        )
        return list(result.scalars().all())

    async def _initialize_default_dashboard(self, user_id: UUID) -> None:
        widgets = await self._default_widgets()
        if not widgets:
            logger.info("No default widgets in catalog, seeding built-ins")
            await self.seed_default_widgets()
            widgets = await self._default_widgets()

        for index, widget in enumerate(widgets):
            if index < len(DEFAULT_LAYOUT):
                slot = DEFAULT_LAYOUT[index]
            else:
                slot = {
                    "x": 0,
                    "y": index,
                    "width": widget.default_width,
                    "height": widget.default_height,
                }
            self.db.add(UserDashboardWidget(
                user_id=user_id,
                widget=widget,
                position_x=slot["x"],
                position_y=slot["y"],
                width=slot["width"],
                height=slot["height"],
                is_visible=True,
            ))

        await self.db.commit()
        logger.info(f"Initialized default dashboard for user {user_id} with {len(widgets)} widgets")

    async def add_widget_to_dashboard(
        self,
        user_id: UUID,
        widget_id: str,
        position: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Place a catalog widget on the user's dashboard.

        Width and height fall back to the widget's defaults.
        """
        widget = await self._load_widget(widget_id)

        existing = await self.db.execute(
            select(UserDashboardWidget.id)
            .where(UserDashboardWidget.user_id == user_id)
            .where(UserDashboardWidget.widget_id == widget_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise PlacementExists(widget_id)

        placement = UserDashboardWidget(
            user_id=user_id,
            widget=widget,
            position_x=position.get("x") or 0,
            position_y=position.get("y") or 0,
            width=position.get("width") or widget.default_width,
            height=position.get("height") or widget.default_height,
            is_visible=True,
        )
        self.db.add(placement)
        await self.db.commit()

        return serialize_placement(await self._load_placement(user_id, widget_id))

    async def update_widget_position(
        self,
        user_id: UUID,
        widget_id: str,
        position: Dict[str, Any]
    ) -> Dict[str, Any]:
        placement = await self._load_placement(user_id, widget_id)
        placement.position_x = position["x"]
        placement.position_y = position["y"]
        placement.width = position["width"]
        placement.height = position["height"]
        await self.db.commit()
        return serialize_placement(placement)

    async def remove_widget_from_dashboard(self, user_id: UUID, widget_id: str) -> Dict[str, Any]:
        placement = await self._load_placement(user_id, widget_id)
        await self.db.delete(placement)
        await self.db.commit()
        return {"widget_id": widget_id, "removed": True}

    async def reset_dashboard(self, user_id: UUID) -> List[Dict[str, Any]]:
        """Drop every placement and restore the default layout"""
        await self.db.execute(
            delete(UserDashboardWidget).where(UserDashboardWidget.user_id == user_id)
        )
        await self._initialize_default_dashboard(user_id)
        return await self.get_user_dashboard(user_id)

    async def update_dashboard_layout(
        self,
        user_id: UUID,
        widgets: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Apply a batch of position updates as one unit.

        Every referenced placement must exist before anything is changed, and
        the whole batch is committed together; on any failure the session is
        rolled back and no placement moves.
        """
        try:
            placements = {
                placement.widget_id: placement
                for placement in await self._load_placements(user_id)
            }
            for item in widgets:
                if item["widget_id"] not in placements:
                    raise PlacementNotFound(item["widget_id"])

            for item in widgets:
                placement = placements[item["widget_id"]]
                placement.position_x = item["position_x"]
                placement.position_y = item["position_y"]
                placement.width = item["width"]
                placement.height = item["height"]

            await self.db.commit()
        except Exception as e:
            logger.error(f"Dashboard layout update failed for user {user_id}: {e}")
            await self.db.rollback()
            raise

        return await self.get_user_dashboard(user_id)
