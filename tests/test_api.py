# ============================================================================
# API Endpoint Tests
# ============================================================================
import json
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

from app.models.payment import Payment, PaymentStatus, Subscription, SubscriptionStatus
from app.models.user import SubscriptionTier

from tests.conftest import make_user, auth_headers

class TestHealthEndpoint:
    """Tests for health check endpoint"""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Test health check returns OK"""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

class TestAuthorization:
    """Tests for access control on reporting endpoints"""

    @pytest.mark.asyncio
    async def test_analytics_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/analytics/overview")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_analytics_requires_admin(self, client: AsyncClient, user_headers):
        response = await client.get("/api/v1/analytics/overview", headers=user_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/dashboard",
            headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user(self, client: AsyncClient, db_session):
        user = await make_user(db_session, "sleepy@yoga.test", is_active=False)
        response = await client.get("/api/v1/dashboard", headers=auth_headers(user))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_widget_catalog_admin_only(self, client: AsyncClient, user_headers):
        response = await client.post(
            "/api/v1/dashboard/admin/widgets/seed",
            headers=user_headers
        )
        assert response.status_code == 403

class TestAnalyticsEndpoints:
    """Tests for analytics endpoints"""

    @pytest.mark.asyncio
    async def test_overview(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/analytics/overview", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_users"] == 1
        assert "revenue_growth" in body["data"]

    @pytest.mark.asyncio
    async def test_revenue_with_filters(self, client: AsyncClient, admin_user, admin_headers, db_session):
        now = datetime.utcnow()
        db_session.add_all([
            Payment(user_id=admin_user.id, amount=2500, currency="USD", provider="stripe",
                    status=PaymentStatus.COMPLETED, created_at=now - timedelta(days=2)),
            Payment(user_id=admin_user.id, amount=1000, currency="USD", provider="iyzico",
                    status=PaymentStatus.COMPLETED, created_at=now - timedelta(days=2)),
        ])
        await db_session.commit()

        response = await client.get(
            "/api/v1/analytics/revenue",
            params={"dateRangeType": "last_7_days", "filters": json.dumps({"provider": "stripe"})},
            headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_revenue"] == 25.0
        assert data["transaction_count"] == 1

    @pytest.mark.asyncio
    async def test_malformed_filters(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/analytics/users",
            params={"filters": "{not json"},
            headers=admin_headers
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "INVALID_FILTERS"

    @pytest.mark.asyncio
    async def test_inverted_range(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/analytics/subscriptions",
            params={"dateFrom": "2024-03-01", "dateTo": "2024-02-01"},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_DATE_RANGE"

    @pytest.mark.asyncio
    async def test_compare_missing_parameters(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/analytics/compare",
            params={"metric": "revenue", "period1From": "2024-02-01"},
            headers=admin_headers
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "MISSING_PARAMETERS"
        assert "period2To" in body["error"]

    @pytest.mark.asyncio
    async def test_compare_unknown_metric(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/analytics/compare",
            params={
                "metric": "pageviews",
                "period1From": "2024-02-01",
                "period1To": "2024-02-29",
                "period2From": "2024-01-01",
                "period2To": "2024-01-31",
            },
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "UNKNOWN_METRIC"

    @pytest.mark.asyncio
    async def test_compare_users(self, client: AsyncClient, admin_headers):
        today = datetime.utcnow().date()
        response = await client.get(
            "/api/v1/analytics/compare",
            params={
                "metric": "users",
                "period1From": (today - timedelta(days=1)).isoformat(),
                "period1To": today.isoformat(),
                "period2From": (today - timedelta(days=10)).isoformat(),
                "period2To": (today - timedelta(days=9)).isoformat(),
            },
            headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["period1"]["value"] == 1
        assert data["period2"]["value"] == 0
        assert data["direction"] == "up"

    @pytest.mark.asyncio
    async def test_mrr_months(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/analytics/mrr", params={"months": 6}, headers=admin_headers)

        assert response.status_code == 200
        report = response.json()["data"]
        assert len(report) == 6
        assert report[-1]["month"] == datetime.utcnow().strftime("%Y-%m")

    @pytest.mark.asyncio
    async def test_mrr_months_out_of_range(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/analytics/mrr", params={"months": 37}, headers=admin_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_churn_for_january(self, client: AsyncClient, admin_user, admin_headers, db_session):
        def sub(status, created_at, updated_at=None):
            return Subscription(
                user_id=admin_user.id,
                tier=SubscriptionTier.BASIC,
                status=status,
                created_at=created_at,
                updated_at=updated_at or created_at,
            )

        db_session.add_all(
            [sub(SubscriptionStatus.ACTIVE, datetime(2023, 12, day)) for day in (1, 5, 10, 20)] + [
                sub(SubscriptionStatus.ACTIVE, datetime(2024, 1, 20)),
                sub(SubscriptionStatus.CANCELLED, datetime(2023, 6, 1), datetime(2024, 1, 15)),
                # Late on the last day still falls inside a date-only dateTo
                sub(SubscriptionStatus.EXPIRED, datetime(2023, 6, 1), datetime(2024, 1, 31, 18, 0)),
                sub(SubscriptionStatus.CANCELLED, datetime(2023, 6, 1), datetime(2024, 2, 1, 0, 0, 1)),
                sub(SubscriptionStatus.CANCELLED, datetime(2023, 6, 1), datetime(2023, 12, 31, 23, 0)),
            ]
        )
        await db_session.commit()

        response = await client.get(
            "/api/v1/analytics/churn",
            params={"dateFrom": "2024-01-01", "dateTo": "2024-01-31"},
            headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["starting_subscriptions"] == 4
        assert data["ending_subscriptions"] == 5
        assert data["churned"] == 2
        assert data["churn_rate"] == round(data["churned"] / data["starting_subscriptions"] * 100, 2)
        assert data["churn_rate"] == 50.0
        assert data["period"]["to"].startswith("2024-01-31T23:59:59")

    @pytest.mark.asyncio
    async def test_instructor_not_found(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/analytics/instructors/00000000-0000-0000-0000-000000000000",
            headers=admin_headers
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "INSTRUCTOR_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_report_endpoints(self, client: AsyncClient, admin_headers):
        for path in ("realtime", "content", "engagement", "instructors", "arr",
                     "churn", "ltv", "retention", "revenue/by-plan"):
            response = await client.get(f"/api/v1/analytics/{path}", headers=admin_headers)
            assert response.status_code == 200, path
            assert response.json()["success"] is True

class TestDashboardEndpoints:
    """Tests for dashboard endpoints"""

    @pytest.mark.asyncio
    async def test_get_dashboard_seeds_defaults(self, client: AsyncClient, user_headers):
        response = await client.get("/api/v1/dashboard", headers=user_headers)

        assert response.status_code == 200
        placements = response.json()["data"]
        assert len(placements) == 8
        assert placements[0]["position"] == {"x": 0, "y": 0, "width": 3, "height": 1}

    @pytest.mark.asyncio
    async def test_add_widget_conflict_and_missing(self, client: AsyncClient, user_headers):
        await client.get("/api/v1/dashboard", headers=user_headers)

        duplicate = await client.post(
            "/api/v1/dashboard/widgets",
            json={"widgetId": "mrr", "position": {"x": 0, "y": 9}},
            headers=user_headers
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["error_code"] == "PLACEMENT_EXISTS"

        missing = await client.post(
            "/api/v1/dashboard/widgets",
            json={"widgetId": "does-not-exist"},
            headers=user_headers
        )
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_move_remove_and_re_add(self, client: AsyncClient, user_headers):
        await client.get("/api/v1/dashboard", headers=user_headers)

        moved = await client.patch(
            "/api/v1/dashboard/widgets/mrr",
            json={"x": 0, "y": 12, "width": 4, "height": 2},
            headers=user_headers
        )
        assert moved.status_code == 200
        assert moved.json()["data"]["position"]["y"] == 12

        removed = await client.delete("/api/v1/dashboard/widgets/mrr", headers=user_headers)
        assert removed.status_code == 200

        again = await client.delete("/api/v1/dashboard/widgets/mrr", headers=user_headers)
        assert again.status_code == 404

        added = await client.post(
            "/api/v1/dashboard/widgets",
            json={"widgetId": "mrr", "position": {"x": 2, "y": 12}},
            headers=user_headers
        )
        assert added.status_code == 201
        assert added.json()["data"]["position"] == {"x": 2, "y": 12, "width": 3, "height": 1}

    @pytest.mark.asyncio
    async def test_position_bounds(self, client: AsyncClient, user_headers):
        await client.get("/api/v1/dashboard", headers=user_headers)

        response = await client.patch(
            "/api/v1/dashboard/widgets/mrr",
            json={"x": -1, "y": 0, "width": 13, "height": 2},
            headers=user_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_layout_update_atomic(self, client: AsyncClient, user_headers):
        await client.get("/api/v1/dashboard", headers=user_headers)

        failed = await client.put(
            "/api/v1/dashboard",
            json={"widgets": [
                {"widgetId": "mrr", "positionX": 0, "positionY": 30, "width": 3, "height": 1},
                {"widgetId": "unknown", "positionX": 0, "positionY": 31, "width": 3, "height": 1},
            ]},
            headers=user_headers
        )
        assert failed.status_code == 404

        dashboard = (await client.get("/api/v1/dashboard", headers=user_headers)).json()["data"]
        mrr = next(p for p in dashboard if p["widget_id"] == "mrr")
        assert mrr["position"]["y"] == 0

        applied = await client.put(
            "/api/v1/dashboard",
            json={"widgets": [
                {"widgetId": "mrr", "positionX": 0, "positionY": 30, "width": 3, "height": 1},
            ]},
            headers=user_headers
        )
        assert applied.status_code == 200
        assert applied.json()["data"][-1]["widget_id"] == "mrr"

    @pytest.mark.asyncio
    async def test_reset(self, client: AsyncClient, user_headers):
        await client.get("/api/v1/dashboard", headers=user_headers)
        await client.delete("/api/v1/dashboard/widgets/top-programs", headers=user_headers)

        response = await client.post("/api/v1/dashboard/reset", headers=user_headers)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 8

    @pytest.mark.asyncio
    async def test_widget_data(self, client: AsyncClient, user_headers):
        await client.get("/api/v1/dashboard", headers=user_headers)

        response = await client.get(
            "/api/v1/dashboard/widgets/revenue-chart/data",
            params={"days": 14},
            headers=user_headers
        )

        assert response.status_code == 200
        assert len(response.json()["data"]["labels"]) == 15

        missing = await client.get("/api/v1/dashboard/widgets/nothing/data", headers=user_headers)
        assert missing.status_code == 404
        assert missing.json()["error_code"] == "WIDGET_NOT_FOUND"

class TestWidgetAdminEndpoints:
    """Tests for widget catalog management"""

    @pytest.mark.asyncio
    async def test_create_update_delete(self, client: AsyncClient, admin_headers):
        created = await client.post(
            "/api/v1/dashboard/admin/widgets",
            json={"name": "Live Activity", "type": "NUMBER", "dataSource": "realtime", "refreshInterval": 15},
            headers=admin_headers
        )
        assert created.status_code == 201
        widget_id = created.json()["data"]["id"]

        updated = await client.patch(
            f"/api/v1/dashboard/admin/widgets/{widget_id}",
            json={"defaultWidth": 6},
            headers=admin_headers
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["default_width"] == 6
        assert updated.json()["data"]["refresh_interval"] == 15

        deleted = await client.delete(f"/api/v1/dashboard/admin/widgets/{widget_id}", headers=admin_headers)
        assert deleted.status_code == 200

        gone = await client.get(f"/api/v1/dashboard/admin/widgets/{widget_id}", headers=admin_headers)
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_data_source(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/dashboard/admin/widgets",
            json={"name": "Weather", "type": "NUMBER", "dataSource": "weather"},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "UNKNOWN_DATA_SOURCE"

    @pytest.mark.asyncio
    async def test_update_rejects_blank_data_source(self, client: AsyncClient, admin_headers):
        await client.post("/api/v1/dashboard/admin/widgets/seed", headers=admin_headers)

        blank = await client.patch(
            "/api/v1/dashboard/admin/widgets/mrr",
            json={"dataSource": ""},
            headers=admin_headers
        )
        assert blank.status_code == 422

        unknown = await client.patch(
            "/api/v1/dashboard/admin/widgets/mrr",
            json={"dataSource": "weather"},
            headers=admin_headers
        )
        assert unknown.status_code == 400

        data = await client.get("/api/v1/dashboard/widgets/mrr/data", headers=admin_headers)
        assert data.status_code == 200

    @pytest.mark.asyncio
    async def test_seed(self, client: AsyncClient, admin_headers):
        response = await client.post("/api/v1/dashboard/admin/widgets/seed", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["seeded"] == 8

        catalog = await client.get("/api/v1/dashboard/admin/widgets", headers=admin_headers)
        assert len(catalog.json()["data"]) == 8
