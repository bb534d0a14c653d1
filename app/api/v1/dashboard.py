# ============================================================================
# Dashboard API Endpoints
# ============================================================================
"""
Widget dashboard endpoints.

User routes act on the caller's own dashboard and need an active user;
catalog management under /dashboard/admin requires an admin.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict

from app.core.database import get_db
from app.core.security import get_current_active_user, require_admin
from app.models.user import User
from app.schemas.responses import ErrorResponse
from app.schemas.reporting import (
    AddWidgetRequest, DashboardLayoutUpdate, WidgetPosition,
    WidgetCreate, WidgetUpdate
)
from app.services.reporting.dashboard_service import DashboardService


router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


# ============================================================================
# User Dashboard
# ============================================================================
@router.get("")
async def get_dashboard(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the caller's widget placements.

    The default layout is created on first access.
    """
    service = DashboardService(db)
    return ok(await service.get_user_dashboard(current_user.id))


@router.put("")
async def update_dashboard_layout(
    layout: DashboardLayoutUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Move several widgets at once. Either every move applies or none does."""
    service = DashboardService(db)
    widgets = [item.model_dump() for item in layout.widgets]
    return ok(await service.update_dashboard_layout(current_user.id, widgets))


@router.post("/reset")
async def reset_dashboard(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.reset_dashboard(current_user.id))


# ============================================================================
# Placements
# ============================================================================
@router.get("/widgets")
async def list_available_widgets(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.get_widgets())


@router.post("/widgets", status_code=201)
async def add_widget(
    payload: AddWidgetRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.add_widget_to_dashboard(
        current_user.id,
        payload.widget_id,
        payload.position.model_dump()
    ))


@router.patch("/widgets/{widget_id}")
async def update_widget_position(
    widget_id: str,
    position: WidgetPosition,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.update_widget_position(current_user.id, widget_id, position.model_dump()))


@router.delete("/widgets/{widget_id}")
async def remove_widget(
    widget_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.remove_widget_from_dashboard(current_user.id, widget_id))


@router.get("/widgets/{widget_id}/data")
async def get_widget_data(
    widget_id: str,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Resolve a widget's data. Any query parameters are passed through to the
    data source (chart widgets read ``days``).
    """
    service = DashboardService(db)
    return ok(await service.get_widget_data(widget_id, dict(request.query_params)))


# ============================================================================
# Widget Catalog (Admin)
# ============================================================================
@router.get("/admin/widgets")
async def admin_list_widgets(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.get_widgets())


@router.post("/admin/widgets", status_code=201)
async def admin_create_widget(
    widget: WidgetCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.create_widget(widget.model_dump()))


@router.post("/admin/widgets/seed")
async def admin_seed_widgets(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Insert or refresh the built-in widgets"""
    service = DashboardService(db)
    return ok({"seeded": await service.seed_default_widgets()})


@router.get("/admin/widgets/{widget_id}")
async def admin_get_widget(
    widget_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.get_widget(widget_id))


@router.patch("/admin/widgets/{widget_id}")
async def admin_update_widget(
    widget_id: str,
    updates: WidgetUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.update_widget(widget_id, updates.model_dump(exclude_unset=True)))


@router.delete("/admin/widgets/{widget_id}")
async def admin_delete_widget(
    widget_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DashboardService(db)
    return ok(await service.delete_widget(widget_id))
