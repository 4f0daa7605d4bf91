"""Application layer module.

Use cases orchestrating the order domain and the order store: the
transition engine, the query engine, notification hooks, idempotency and
payment webhook processing.
"""

from agrimarket.application.idempotency_service import (
    IdempotencyService,
    get_idempotency_service,
)
from agrimarket.application.notifications import (
    NotificationDispatcher,
    OrderNotificationLog,
    get_notification_dispatcher,
    get_notification_log,
)
from agrimarket.application.order_service import (
    OrderService,
    get_order_service,
)
from agrimarket.application.payment_webhook_service import (
    PaymentWebhookService,
    get_payment_webhook_service,
)
from agrimarket.application.query_engine import (
    OrderFilters,
    OrderPage,
    OrderStatistics,
    PageRequest,
    QueryEngine,
    SortDirection,
    SortField,
    SortOrder,
)
from agrimarket.application.transition_engine import TransitionEngine

__all__ = [
    "IdempotencyService",
    "get_idempotency_service",
    "NotificationDispatcher",
    "OrderNotificationLog",
    "get_notification_dispatcher",
    "get_notification_log",
    "OrderService",
    "get_order_service",
    "PaymentWebhookService",
    "get_payment_webhook_service",
    "OrderFilters",
    "OrderPage",
    "OrderStatistics",
    "PageRequest",
    "QueryEngine",
    "SortDirection",
    "SortField",
    "SortOrder",
    "TransitionEngine",
]
