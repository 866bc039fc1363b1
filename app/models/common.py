from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
