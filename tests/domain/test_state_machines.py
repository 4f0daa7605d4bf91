"""Tests for domain state machines."""

import pytest

from agrimarket.domain import (
    InvalidTransitionError,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    validate_order_transition,
    validate_payment_transition,
)


class TestOrderStatus:
    """Tests for OrderStatus state machine."""

    def test_pending_can_be_confirmed_or_cancelled(self) -> None:
        """PENDING moves to CONFIRMED or CANCELLED."""
        assert OrderStatus.PENDING.allowed_transitions() == [
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
        ]

    def test_confirmed_can_ship_or_cancel(self) -> None:
        assert OrderStatus.CONFIRMED.can_transition_to(OrderStatus.SHIPPED)
        assert OrderStatus.CONFIRMED.can_transition_to(OrderStatus.CANCELLED)
        assert not OrderStatus.CONFIRMED.can_transition_to(OrderStatus.DELIVERED)

    def test_shipped_can_deliver_or_cancel(self) -> None:
        assert OrderStatus.SHIPPED.allowed_transitions() == [
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        ]

    def test_pending_cannot_skip_to_shipped(self) -> None:
        """PENDING cannot transition directly to SHIPPED."""
        assert not OrderStatus.PENDING.can_transition_to(OrderStatus.SHIPPED)

    def test_no_status_transitions_to_itself(self) -> None:
        for status in OrderStatus:
            assert not status.can_transition_to(status)

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_states(self, status: OrderStatus) -> None:
        """DELIVERED and CANCELLED accept no further transitions."""
        assert status.is_terminal()
        assert status.allowed_transitions() == []

    def test_only_pending_allows_item_changes(self) -> None:
        assert [s for s in OrderStatus if s.allows_item_changes()] == [OrderStatus.PENDING]

    def test_tracking_only_after_shipping(self) -> None:
        assert OrderStatus.SHIPPED.allows_tracking()
        assert OrderStatus.DELIVERED.allows_tracking()
        assert not OrderStatus.CONFIRMED.allows_tracking()


class TestPaymentStatus:
    """Tests for PaymentStatus state machine."""

    def test_pending_settles_or_fails(self) -> None:
        assert PaymentStatus.PENDING.allowed_transitions() == [
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
        ]

    def test_failed_payment_can_be_retried(self) -> None:
        assert PaymentStatus.FAILED.can_transition_to(PaymentStatus.PENDING)
        assert PaymentStatus.FAILED.can_transition_to(PaymentStatus.COMPLETED)

    def test_only_completed_can_be_refunded(self) -> None:
        assert [s for s in PaymentStatus if s.can_transition_to(PaymentStatus.REFUNDED)] == [
            PaymentStatus.COMPLETED
        ]

    def test_refunded_is_terminal(self) -> None:
        assert PaymentStatus.REFUNDED.is_terminal()

    def test_only_completed_is_settled(self) -> None:
        assert [s for s in PaymentStatus if s.is_settled()] == [PaymentStatus.COMPLETED]


class TestPaymentMethod:
    def test_only_cash_on_delivery_defers_payment(self) -> None:
        assert [m for m in PaymentMethod if m.defers_payment()] == [PaymentMethod.CASH_ON_DELIVERY]


class TestValidators:
    """Tests for transition validators."""

    def test_valid_order_transition_passes(self) -> None:
        validate_order_transition("order-1", OrderStatus.PENDING, OrderStatus.CONFIRMED)

    def test_invalid_order_transition_raises(self) -> None:
        """Invalid transitions carry current, target and allowed states."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_order_transition("order-1", OrderStatus.DELIVERED, OrderStatus.CANCELLED)

        error = exc_info.value
        assert error.error_code == "INVALID_TRANSITION"
        assert error.current_state == "delivered"
        assert error.target_state == "cancelled"
        assert error.details["allowed_transitions"] == []

    def test_invalid_payment_transition_raises(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_payment_transition("order-1", PaymentStatus.PENDING, PaymentStatus.REFUNDED)
        assert exc_info.value.details["entity_type"] == "Payment"
        assert exc_info.value.details["allowed_transitions"] == ["completed", "failed"]
