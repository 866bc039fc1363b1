
from . import health, watermark

routers = [
    watermark.router,
    health.router,
]

__all__ = [
    "routers",
]
