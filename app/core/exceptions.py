# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional, Sequence

class ReportingException(Exception):
    """Base exception for the reporting service"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "REPORTING_ERROR"
        super().__init__(self.detail)

class MissingParameters(ReportingException):
    def __init__(self, names: Sequence[str]):
        super().__init__(
            detail=f"Missing required parameters: {', '.join(names)}",
            status_code=400,
            error_code="MISSING_PARAMETERS"
        )
        self.names = list(names)

class InvalidDateRange(ReportingException):
    def __init__(self, message: str = "Invalid date range"):
        super().__init__(
            detail=message,
            status_code=400,
            error_code="INVALID_DATE_RANGE"
        )

class InvalidFilters(ReportingException):
    def __init__(self, message: str = "filters must be a JSON object"):
        super().__init__(
            detail=message,
            status_code=400,
            error_code="INVALID_FILTERS"
        )

class UnknownMetric(ReportingException):
    def __init__(self, metric: str):
        super().__init__(
            detail=f"Unknown metric: {metric}",
            status_code=400,
            error_code="UNKNOWN_METRIC"
        )
        self.metric = metric

class UnknownDataSource(ReportingException):
    def __init__(self, data_source: str):
        super().__init__(
            detail=f"Unknown data source: {data_source}",
            status_code=400,
            error_code="UNKNOWN_DATA_SOURCE"
        )
        self.data_source = data_source

class WidgetNotFound(ReportingException):
    def __init__(self, widget_id: str):
        super().__init__(
            detail=f"Widget not found: {widget_id}",
            status_code=404,
            error_code="WIDGET_NOT_FOUND"
        )

class PlacementNotFound(ReportingException):
    def __init__(self, widget_id: str):
        super().__init__(
            detail=f"Widget {widget_id} is not on this dashboard",
            status_code=404,
            error_code="PLACEMENT_NOT_FOUND"
        )

class PlacementExists(ReportingException):
    def __init__(self, widget_id: str):
        super().__init__(
            detail=f"Widget {widget_id} is already on this dashboard",
            status_code=409,
            error_code="PLACEMENT_EXISTS"
        )

class InstructorNotFound(ReportingException):
    def __init__(self, instructor_id: str):
        super().__init__(
            detail=f"Instructor not found: {instructor_id}",
            status_code=404,
            error_code="INSTRUCTOR_NOT_FOUND"
        )
