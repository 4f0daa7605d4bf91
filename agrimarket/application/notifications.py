"""Notification/projection hooks.

Subscribers are called after an order change has been committed. They
cannot veto or roll back the change: a subscriber that raises is logged
and skipped, and the remaining subscribers still run.
"""

import inspect
import threading
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

import structlog

from agrimarket.domain.base import DomainEvent, utc_now
from agrimarket.domain.events import (
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderTransitioned,
)
from agrimarket.infrastructure.config import settings

logger = structlog.get_logger()

EventHandler = Callable[[DomainEvent], Awaitable[None] | None]
TransitionHandler = Callable[[OrderTransitioned], Awaitable[None] | None]


@dataclass
class _Subscription:
    handler: EventHandler
    event_types: frozenset[str] | None

    def accepts(self, event: DomainEvent) -> bool:
        return self.event_types is None or event.event_type in self.event_types


class NotificationDispatcher:
    """Fan-out of committed order events to subscribers."""

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler, event_types: Iterable[str] | None = None) -> None:
        """Register a handler.

        Args:
            handler: Sync or async callable receiving the event.
            event_types: Event types to receive; all events when omitted.
        """
        types = frozenset(event_types) if event_types is not None else None
        with self._lock:
            self._subscriptions.append(_Subscription(handler=handler, event_types=types))

    def on_transition(self, handler: TransitionHandler) -> TransitionHandler:
        """Register a handler for committed status transitions.

        Usable as a decorator. The handler receives one ``OrderTransitioned``
        per successful transition and is never called for a rejected one.
        """
        self.subscribe(handler, event_types=[OrderTransitioned.event_type])  # type: ignore[arg-type]
        return handler

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.handler is not handler]

    async def publish(self, events: Iterable[DomainEvent]) -> None:
        """Deliver committed events to every matching subscriber, in order."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for event in events:
            for subscription in subscriptions:
                if subscription.accepts(event):
                    await self._deliver(subscription.handler, event)

    async def _deliver(self, handler: EventHandler, event: DomainEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "Order event subscriber failed",
                event_type=event.event_type,
                aggregate_id=event.aggregate_id,
                subscriber=getattr(handler, "__qualname__", repr(handler)),
            )


# ============================================================================
# Built-in subscriber: per-actor notification inbox
# ============================================================================


@dataclass
class Notification:
    """A message shown to a buyer or seller about one of their orders."""

    recipient_id: str
    order_id: str
    order_number: str
    event_type: str
    message: str
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    read: bool = False


_TRANSITION_MESSAGES = {
    "confirmed": "Order {number} was confirmed by the seller",
    "shipped": "Order {number} has shipped",
    "delivered": "Order {number} was delivered",
    "cancelled": "Order {number} was cancelled",
}

_PAYMENT_MESSAGES = {
    "completed": "Payment for order {number} was received",
    "failed": "Payment for order {number} failed",
    "refunded": "Payment for order {number} was refunded",
}


class OrderNotificationLog:
    """In-memory inbox that turns order events into notifications.

    Buyer and seller are notified of each other's actions; the actor who
    made a change is not notified about it. Each recipient keeps at most
    ``max_per_recipient`` notifications; the oldest are dropped first.
    """

    def __init__(self, max_per_recipient: int | None = None) -> None:
        self._max_per_recipient = (
            settings.notification_inbox_size if max_per_recipient is None else max_per_recipient
        )
        self._inbox: dict[str, deque[Notification]] = {}
        self._lock = threading.Lock()

    def __call__(self, event: DomainEvent) -> None:
        if isinstance(event, OrderTransitioned):
            template = _TRANSITION_MESSAGES.get(event.new_status)
        elif isinstance(event, OrderPaymentStatusChanged):
            template = _PAYMENT_MESSAGES.get(event.new_payment_status)
        elif isinstance(event, OrderPlaced):
            template = "New order {number} was placed"
        else:
            return
        if template is None:
            return

        message = template.format(number=event.order_number)
        recipients = {event.buyer_id, event.seller_id} - {event.actor_id, ""}
        with self._lock:
            for recipient in sorted(recipients):
                inbox = self._inbox.get(recipient)
                if inbox is None:
                    inbox = self._inbox[recipient] = deque(maxlen=self._max_per_recipient)
                inbox.append(
                    Notification(
                        recipient_id=recipient,
                        order_id=event.order_id,
                        order_number=event.order_number,
                        event_type=event.event_type,
                        message=message,
                        created_at=event.occurred_at,
                    )
                )

    def list_for(self, recipient_id: str, unread_only: bool = False) -> list[Notification]:
        """Notifications for a recipient, newest first."""
        with self._lock:
            notifications = list(self._inbox.get(recipient_id, []))
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        return list(reversed(notifications))

    def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        """Mark one notification as read.

        Returns:
            False if the recipient has no such notification.
        """
        with self._lock:
            for notification in self._inbox.get(recipient_id, []):
                if notification.id == notification_id:
                    notification.read = True
                    return True
        return False


# ============================================================================
# Global instances
# ============================================================================

_dispatcher: NotificationDispatcher | None = None
_notification_log: OrderNotificationLog | None = None


def get_notification_log() -> OrderNotificationLog:
    global _notification_log
    if _notification_log is None:
        _notification_log = OrderNotificationLog()
    return _notification_log


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the global dispatcher with the notification inbox subscribed."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
        _dispatcher.subscribe(get_notification_log())
    return _dispatcher


def reset_notifications() -> None:
    """Reset dispatcher and inbox (for testing)."""
    global _dispatcher, _notification_log
    _dispatcher = None
    _notification_log = None
