
from .common import ErrorResponse, HealthStatus
from .watermark import WatermarkAppearance, WatermarkRequest, parse_phrases

__all__ = [
    "ErrorResponse",
    "HealthStatus",
    "WatermarkAppearance",
    "WatermarkRequest",
    "parse_phrases",
]
