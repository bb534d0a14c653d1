# ============================================================================
# Reporting Schemas
# ============================================================================
"""
Request bodies for the dashboard endpoints.
Clients send camelCase field names; services receive snake_case dicts via
``model_dump()``.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any

from app.models.dashboard import WidgetType


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Placements
# ============================================================================
class WidgetPosition(CamelModel):
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., ge=1, le=12)
    height: int = Field(..., ge=1, le=10)

class NewWidgetPosition(CamelModel):
    """Position for a new placement; size defaults to the widget's own"""
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    width: Optional[int] = Field(None, ge=1, le=12)
    height: Optional[int] = Field(None, ge=1, le=10)

class AddWidgetRequest(CamelModel):
    widget_id: str = Field(..., alias="widgetId", min_length=1)
    position: NewWidgetPosition = Field(default_factory=NewWidgetPosition)

class LayoutItem(CamelModel):
    widget_id: str = Field(..., alias="widgetId", min_length=1)
    position_x: int = Field(..., alias="positionX", ge=0)
    position_y: int = Field(..., alias="positionY", ge=0)
    width: int = Field(..., ge=1, le=12)
    height: int = Field(..., ge=1, le=10)

class DashboardLayoutUpdate(CamelModel):
    widgets: List[LayoutItem]


# ============================================================================
# Widget Catalog
# ============================================================================
class WidgetCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: WidgetType
    data_source: str = Field(..., alias="dataSource", min_length=1)
    query: Optional[Dict[str, Any]] = None
    chart_type: Optional[str] = Field(None, alias="chartType")
    chart_config: Optional[Dict[str, Any]] = Field(None, alias="chartConfig")
    refresh_interval: Optional[int] = Field(None, alias="refreshInterval", ge=0)
    default_width: int = Field(4, alias="defaultWidth", ge=1, le=12)
    default_height: int = Field(2, alias="defaultHeight", ge=1, le=10)
    display_order: int = Field(0, alias="displayOrder")
    is_default: bool = Field(False, alias="isDefault")
    is_active: bool = Field(True, alias="isActive")

class WidgetUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[WidgetType] = None
    data_source: Optional[str] = Field(None, alias="dataSource", min_length=1)
    query: Optional[Dict[str, Any]] = None
    chart_type: Optional[str] = Field(None, alias="chartType")
    chart_config: Optional[Dict[str, Any]] = Field(None, alias="chartConfig")
    refresh_interval: Optional[int] = Field(None, alias="refreshInterval", ge=0)
    default_width: Optional[int] = Field(None, alias="defaultWidth", ge=1, le=12)
    default_height: Optional[int] = Field(None, alias="defaultHeight", ge=1, le=10)
    display_order: Optional[int] = Field(None, alias="displayOrder")
    is_default: Optional[bool] = Field(None, alias="isDefault")
    is_active: Optional[bool] = Field(None, alias="isActive")
