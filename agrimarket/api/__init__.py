"""API layer module.

Contains FastAPI routers, middleware and request/response schemas.
"""

from agrimarket.api.health import router as health_router
from agrimarket.api.notifications import router as notifications_router
from agrimarket.api.orders import router as orders_router
from agrimarket.api.payments import router as payments_router

__all__ = [
    "health_router",
    "notifications_router",
    "orders_router",
    "payments_router",
]
