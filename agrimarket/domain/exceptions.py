"""Domain exceptions.

Every business-rule violation raised by the order model, the transition
engine and the query engine. Each class carries a stable ``error_code``
that the HTTP layer returns to clients.
"""

from typing import Any, ClassVar


class DomainError(Exception):
    """Base class for all domain exceptions.

    Attributes:
        error_code: Machine-readable code surfaced to API clients.
        message: Human-readable error message.
        details: Additional structured context.
    """

    error_code: ClassVar[str] = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised for malformed input: bad filters, page bounds or order data."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str) -> None:
        """Initialize validation error.

        Args:
            field: Name of the offending field.
            reason: Why the value was rejected.
        """
        super().__init__(
            f"Invalid value for '{field}': {reason}",
            details={"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason


class InvalidQuantityError(ValidationError):
    """Raised when an item quantity is not a positive integer."""

    def __init__(self, quantity: int) -> None:
        super().__init__("quantity", f"must be a positive integer, got {quantity}")
        self.quantity = quantity


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidTransitionError(DomainError):
    """Raised when a command is not allowed from the current state.

    Repeating a command against a terminal order lands here too.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid transition error.

        Args:
            entity_type: Type of state being changed ("Order", "Payment").
            entity_id: ID of the order.
            current_state: Current state value.
            target_state: Attempted target state value.
            allowed_transitions: States reachable from the current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )
        self.current_state = current_state
        self.target_state = target_state


# ============================================================================
# Order Errors
# ============================================================================


class OrderError(DomainError):
    """Base class for order-specific errors."""

    error_code = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Raised when an order does not exist or is not visible to the viewer."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}", details={"order_id": order_id})
        self.order_id = order_id


class PaymentNotSettledError(OrderError):
    """Raised when confirming an order whose payment is not completed."""

    error_code = "PAYMENT_NOT_SETTLED"

    def __init__(self, order_id: str, payment_status: str) -> None:
        super().__init__(
            f"Order {order_id} cannot be confirmed while payment is '{payment_status}'. "
            "Wait for the payment to complete or confirm as cash on delivery.",
            details={"order_id": order_id, "payment_status": payment_status},
        )


class MissingTrackingInfoError(OrderError):
    """Raised when shipping without a tracking provider and number."""

    error_code = "MISSING_TRACKING_INFO"

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"Order {order_id} requires a tracking provider and tracking number",
            details={"order_id": order_id},
        )


class OrderNotEditableError(OrderError):
    """Raised when changing fields that are frozen in the current status."""

    error_code = "ORDER_NOT_EDITABLE"

    def __init__(self, order_id: str, status: str, field: str) -> None:
        super().__init__(
            f"Cannot change {field} of order {order_id} in status '{status}'",
            details={"order_id": order_id, "status": status, "field": field},
        )


class ConcurrentModificationError(OrderError):
    """Raised when another writer committed first.

    The caller should re-fetch the order and decide again.
    """

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, order_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            details={
                "order_id": order_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class PermissionDeniedError(DomainError):
    """Raised when the acting party's role does not allow the operation."""

    error_code = "FORBIDDEN"

    def __init__(self, actor_id: str, action: str, reason: str) -> None:
        super().__init__(
            f"Actor {actor_id} may not {action}: {reason}",
            details={"actor_id": actor_id, "action": action, "reason": reason},
        )


# ============================================================================
# Money Errors
# ============================================================================


class MoneyError(DomainError):
    """Base class for money-related errors."""

    error_code = "MONEY_ERROR"


class CurrencyMismatchError(MoneyError):
    """Raised when combining amounts in different currencies."""

    def __init__(self, currency1: str, currency2: str) -> None:
        super().__init__(
            f"Cannot combine amounts in {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


class NegativeMoneyError(MoneyError):
    """Raised when an amount would become negative."""

    def __init__(self, amount: int) -> None:
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )
