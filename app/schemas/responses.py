# ============================================================================
# Common Response Schemas
# ============================================================================
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    error_code: Optional[str] = None

class HealthCheckResponse(BaseModel):
    status: str
    app: str
    version: str
    timestamp: datetime
