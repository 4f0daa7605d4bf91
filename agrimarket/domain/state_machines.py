"""State machines for the order lifecycle.

Two independent axes describe an order: its fulfillment ``OrderStatus``
and its ``PaymentStatus``. Each axis has a fixed transition table; the
rules that couple them (confirm needs settled payment, cancelling a paid
order refunds it) live on the Order aggregate.
"""

from enum import Enum

from agrimarket.domain.exceptions import InvalidTransitionError


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order fulfillment states.

    State diagram:
        PENDING ──────────────────────────────► CANCELLED
          │                                        ▲
          │ confirm                                │
          ▼                                        │
        CONFIRMED ─────────────────────────────────┤
          │                                        │
          │ ship                                   │
          ▼                                        │
        SHIPPED ───────────────────────────────────┘
          │
          │ deliver
          ▼
        DELIVERED
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get valid target states in lifecycle order."""
        targets = _ORDER_TRANSITIONS.get(self, set())
        return [status for status in OrderStatus if status in targets]

    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0

    def allows_item_changes(self) -> bool:
        """Items, totals and addresses are only editable before confirmation."""
        return self is OrderStatus.PENDING

    def allows_tracking(self) -> bool:
        """Tracking details exist only once the order has shipped."""
        return self in {OrderStatus.SHIPPED, OrderStatus.DELIVERED}


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal state
    OrderStatus.CANCELLED: set(),  # Terminal state
}


# ============================================================================
# Payment State Machine
# ============================================================================


class PaymentStatus(str, Enum):
    """Payment settlement states as reported by the payment subsystem.

    State diagram:
        PENDING ──► COMPLETED ──► REFUNDED
          │  ▲          ▲
          ▼  │          │
         FAILED ────────┘
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    def can_transition_to(self, target: "PaymentStatus") -> bool:
        return target in _PAYMENT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["PaymentStatus"]:
        targets = _PAYMENT_TRANSITIONS.get(self, set())
        return [status for status in PaymentStatus if status in targets]

    def is_settled(self) -> bool:
        """Check if funds have been collected and not returned."""
        return self is PaymentStatus.COMPLETED

    def is_terminal(self) -> bool:
        return len(_PAYMENT_TRANSITIONS.get(self, set())) == 0


_PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal state
}


class PaymentMethod(str, Enum):
    """How the buyer pays for the order."""

    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    WALLET = "wallet"
    CRYPTO = "crypto"

    def defers_payment(self) -> bool:
        """Cash on delivery collects funds after the order ships."""
        return self is PaymentMethod.CASH_ON_DELIVERY


# ============================================================================
# Transition Validators
# ============================================================================


def validate_order_transition(
    order_id: str,
    current: OrderStatus,
    target: OrderStatus,
) -> None:
    """Validate an order status transition.

    Args:
        order_id: ID of the order being transitioned.
        current: Current order status.
        target: Target order status.

    Raises:
        InvalidTransitionError: If transition is not allowed.
    """
    if not current.can_transition_to(target):
        raise InvalidTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )


def validate_payment_transition(
    order_id: str,
    current: PaymentStatus,
    target: PaymentStatus,
) -> None:
    """Validate a payment status transition.

    Raises:
        InvalidTransitionError: If transition is not allowed.
    """
    if not current.can_transition_to(target):
        raise InvalidTransitionError(
            entity_type="Payment",
            entity_id=order_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )
