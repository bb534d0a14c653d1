# ============================================================================
# Dashboard Widget Models
# ============================================================================
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy import Text, Enum, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from app.core.database import Base

class WidgetType(str, enum.Enum):
    NUMBER = "NUMBER"
    CHART = "CHART"
    LIST = "LIST"
    TABLE = "TABLE"

class DashboardWidget(Base):
    __tablename__ = "dashboard_widgets"

    # Slug for built-in widgets ("total-revenue"), uuid string otherwise
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text)
    type = Column(Enum(WidgetType), nullable=False)
    data_source = Column(String(50), nullable=False)
    query = Column(JSON)
    chart_type = Column(String(30))  # line, area, bar, donut
    chart_config = Column(JSON)
    refresh_interval = Column(Integer)  # seconds
    default_width = Column(Integer, nullable=False, default=4)
    default_height = Column(Integer, nullable=False, default=2)
    display_order = Column(Integer, nullable=False, default=0)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    placements = relationship("UserDashboardWidget", back_populates="widget", passive_deletes=True)

    def __repr__(self):
        return f"<DashboardWidget {self.id} ({self.type.value})>"

class UserDashboardWidget(Base):
    __tablename__ = "user_dashboard_widgets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    widget_id = Column(String(64), ForeignKey("dashboard_widgets.id", ondelete="CASCADE"), nullable=False)
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)
    is_visible = Column(Boolean, default=True)
    custom_config = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    widget = relationship("DashboardWidget", back_populates="placements")

    __table_args__ = (
        UniqueConstraint('user_id', 'widget_id', name='unique_user_widget'),
    )

    def __repr__(self):
        return f"<UserDashboardWidget {self.user_id} -> {self.widget_id}>"
