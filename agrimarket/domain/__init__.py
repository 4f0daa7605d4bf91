"""Domain layer - order aggregate, state machines and business rules.

This package has no dependency on storage or transport: everything here
can be exercised with plain objects.
"""

from agrimarket.domain.base import (
    AggregateRoot,
    DomainEvent,
    Entity,
    ValueObject,
)
from agrimarket.domain.commands import (
    Cancel,
    Confirm,
    Deliver,
    Ship,
    TransitionCommand,
    apply_command,
)
from agrimarket.domain.entities import (
    Order,
    OrderItem,
    PaymentHistoryEntry,
    StatusHistoryEntry,
)
from agrimarket.domain.events import (
    EVENT_REGISTRY,
    OrderAddressesChanged,
    OrderItemsChanged,
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderTrackingUpdated,
    OrderTransitioned,
    get_event_class,
)
from agrimarket.domain.exceptions import (
    ConcurrentModificationError,
    CurrencyMismatchError,
    DomainError,
    InvalidQuantityError,
    InvalidTransitionError,
    MissingTrackingInfoError,
    MoneyError,
    NegativeMoneyError,
    OrderError,
    OrderNotEditableError,
    OrderNotFoundError,
    PaymentNotSettledError,
    PermissionDeniedError,
    ValidationError,
)
from agrimarket.domain.state_machines import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    validate_order_transition,
    validate_payment_transition,
)
from agrimarket.domain.value_objects import (
    DEFAULT_CURRENCY,
    ActorRole,
    Address,
    Money,
    OrderId,
    PaymentDetails,
    TrackingInfo,
    ViewerScope,
)

__all__ = [
    # Base classes
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "ValueObject",
    # Commands
    "Cancel",
    "Confirm",
    "Deliver",
    "Ship",
    "TransitionCommand",
    "apply_command",
    # Entities
    "Order",
    "OrderItem",
    "PaymentHistoryEntry",
    "StatusHistoryEntry",
    # Events
    "EVENT_REGISTRY",
    "OrderAddressesChanged",
    "OrderItemsChanged",
    "OrderPaymentStatusChanged",
    "OrderPlaced",
    "OrderTrackingUpdated",
    "OrderTransitioned",
    "get_event_class",
    # Exceptions
    "ConcurrentModificationError",
    "CurrencyMismatchError",
    "DomainError",
    "InvalidQuantityError",
    "InvalidTransitionError",
    "MissingTrackingInfoError",
    "MoneyError",
    "NegativeMoneyError",
    "OrderError",
    "OrderNotEditableError",
    "OrderNotFoundError",
    "PaymentNotSettledError",
    "PermissionDeniedError",
    "ValidationError",
    # State machines
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "validate_order_transition",
    "validate_payment_transition",
    # Value objects
    "DEFAULT_CURRENCY",
    "ActorRole",
    "Address",
    "Money",
    "OrderId",
    "PaymentDetails",
    "TrackingInfo",
    "ViewerScope",
]
