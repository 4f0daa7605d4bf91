"""Domain events emitted by the Order aggregate.

Events are recorded while the aggregate is mutated and published by the
application layer only after the new state has been committed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

from agrimarket.domain.base import DomainEvent


@dataclass(frozen=True)
class OrderEvent(DomainEvent):
    """Fields shared by every order event.

    Buyer and seller are carried so that subscribers can route
    notifications without reading the order back.
    """

    order_id: str = ""
    order_number: str = ""
    buyer_id: str = ""
    seller_id: str = ""
    actor_id: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "actor_id": self.actor_id,
        }


@dataclass(frozen=True)
class OrderPlaced(OrderEvent):
    """Event raised when a buyer places an order."""

    event_type: ClassVar[str] = "order.placed"

    total_amount: int = 0
    currency: str = ""
    item_count: int = 0

    def _payload(self) -> dict[str, Any]:
        return {
            **super()._payload(),
            "total_amount": self.total_amount,
            "currency": self.currency,
            "item_count": self.item_count,
        }


@dataclass(frozen=True)
class OrderTransitioned(OrderEvent):
    """Event raised exactly once per committed status transition.

    ``occurred_at`` equals the timestamp of the status-history entry the
    transition appended.
    """

    event_type: ClassVar[str] = "order.transitioned"

    previous_status: str = ""
    new_status: str = ""
    comment: str = ""

    @property
    def timestamp(self) -> datetime:
        return self.occurred_at

    def _payload(self) -> dict[str, Any]:
        return {
            **super()._payload(),
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class OrderPaymentStatusChanged(OrderEvent):
    """Event raised when the payment axis changes, including auto-refunds."""

    event_type: ClassVar[str] = "order.payment_status_changed"

    previous_payment_status: str = ""
    new_payment_status: str = ""
    transaction_id: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            **super()._payload(),
            "previous_payment_status": self.previous_payment_status,
            "new_payment_status": self.new_payment_status,
            "transaction_id": self.transaction_id,
        }


@dataclass(frozen=True)
class OrderItemsChanged(OrderEvent):
    """Event raised when a pending order's items are replaced."""

    event_type: ClassVar[str] = "order.items_changed"

    total_amount: int = 0
    item_count: int = 0

    def _payload(self) -> dict[str, Any]:
        return {
            **super()._payload(),
            "total_amount": self.total_amount,
            "item_count": self.item_count,
        }


@dataclass(frozen=True)
class OrderAddressesChanged(OrderEvent):
    """Event raised when a pending order's addresses are changed."""

    event_type: ClassVar[str] = "order.addresses_changed"


@dataclass(frozen=True)
class OrderTrackingUpdated(OrderEvent):
    """Event raised when tracking details of a shipped order are corrected."""

    event_type: ClassVar[str] = "order.tracking_updated"

    provider: str = ""
    tracking_number: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            **super()._payload(),
            "provider": self.provider,
            "tracking_number": self.tracking_number,
        }


# ============================================================================
# Event Registry
# ============================================================================


EVENT_REGISTRY: dict[str, type[DomainEvent]] = {
    OrderPlaced.event_type: OrderPlaced,
    OrderTransitioned.event_type: OrderTransitioned,
    OrderPaymentStatusChanged.event_type: OrderPaymentStatusChanged,
    OrderItemsChanged.event_type: OrderItemsChanged,
    OrderAddressesChanged.event_type: OrderAddressesChanged,
    OrderTrackingUpdated.event_type: OrderTrackingUpdated,
}


def get_event_class(event_type: str) -> type[DomainEvent] | None:
    """Get event class by type string.

    Args:
        event_type: Event type identifier (e.g. "order.transitioned").

    Returns:
        Event class, or None if not registered.
    """
    return EVENT_REGISTRY.get(event_type)
