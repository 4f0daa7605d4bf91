"""Tests for the Order aggregate."""

import re

import pytest

from agrimarket.domain import (
    CurrencyMismatchError,
    InvalidQuantityError,
    InvalidTransitionError,
    MissingTrackingInfoError,
    Money,
    OrderAddressesChanged,
    OrderItemsChanged,
    OrderNotEditableError,
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderStatus,
    OrderTrackingUpdated,
    OrderTransitioned,
    PaymentDetails,
    PaymentMethod,
    PaymentNotSettledError,
    PaymentStatus,
    TrackingInfo,
    ValidationError,
)
from factories import BUYER_ID, SELLER_ID, make_address, make_item, make_items, make_order


def paid_order():
    order = make_order()
    order.record_payment(PaymentStatus.COMPLETED, "payment:razorpay")
    order.collect_events()
    return order


def shipped_order():
    order = paid_order()
    order.confirm(SELLER_ID)
    order.ship(TrackingInfo(provider="AE", tracking_number="AE123"), SELLER_ID)
    order.collect_events()
    return order


# ============================================================================
# Placement
# ============================================================================


class TestOrderPlacement:
    """Tests for Order.place."""

    def test_place_order(self) -> None:
        """A new order is pending with one history entry."""
        order = make_order()

        assert order.status is OrderStatus.PENDING
        assert order.payment_status is PaymentStatus.PENDING
        assert order.version == 1
        assert len(order.status_history) == 1
        assert order.status_history[0].status is OrderStatus.PENDING
        assert order.status_history[0].actor_id == BUYER_ID
        assert order.billing_address == order.shipping_address

    def test_total_is_sum_of_lines(self) -> None:
        """2 x 25 + 1 x 60 = 110."""
        order = make_order()
        assert order.total_amount == Money(110)

    def test_order_number_format(self) -> None:
        assert re.fullmatch(r"ORD-\d{6}-[0-9A-F]{6}", make_order().order_number)

    def test_records_order_placed(self) -> None:
        events = make_order().collect_events()
        assert len(events) == 1
        assert isinstance(events[0], OrderPlaced)
        assert events[0].total_amount == 110
        assert events[0].item_count == 2

    def test_requires_items(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            make_order(items=[])
        assert exc_info.value.field == "items"

    def test_buyer_cannot_sell_to_themselves(self) -> None:
        with pytest.raises(ValidationError):
            make_order(buyer_id="farmer-1", seller_id="farmer-1")

    def test_item_currency_must_match(self) -> None:
        with pytest.raises(CurrencyMismatchError):
            make_order(items=[make_item(currency="USD")])

    def test_quantity_must_be_positive(self) -> None:
        with pytest.raises(InvalidQuantityError):
            make_item(quantity=0)


# ============================================================================
# Transitions
# ============================================================================


class TestConfirm:
    def test_unpaid_order_cannot_be_confirmed(self) -> None:
        order = make_order()
        with pytest.raises(PaymentNotSettledError):
            order.confirm(SELLER_ID)
        assert order.status is OrderStatus.PENDING
        assert len(order.status_history) == 1
        assert order.version == 1

    def test_paid_order_confirms(self) -> None:
        order = paid_order()
        order.confirm(SELLER_ID, "Packed today")

        assert order.status is OrderStatus.CONFIRMED
        assert order.status_history[-1].comment == "Packed today"
        assert order.status_history[-1].actor_id == SELLER_ID

    def test_cash_on_delivery_override(self) -> None:
        """An unpaid order can be confirmed for collection at the door."""
        order = make_order(payment_method=PaymentMethod.UPI)
        order.confirm(SELLER_ID, payment_method=PaymentMethod.CASH_ON_DELIVERY)

        assert order.status is OrderStatus.CONFIRMED
        assert order.payment_status is PaymentStatus.PENDING
        assert order.payment_method is PaymentMethod.CASH_ON_DELIVERY

    def test_confirm_twice_is_invalid(self) -> None:
        order = paid_order()
        order.confirm(SELLER_ID)
        with pytest.raises(InvalidTransitionError):
            order.confirm(SELLER_ID)


class TestShip:
    def test_ship_requires_tracking(self) -> None:
        order = paid_order()
        order.confirm(SELLER_ID)
        with pytest.raises(MissingTrackingInfoError):
            order.ship(None, SELLER_ID)
        with pytest.raises(MissingTrackingInfoError):
            order.ship(TrackingInfo(provider="AE", tracking_number=" "), SELLER_ID)
        assert order.status is OrderStatus.CONFIRMED

    def test_ship_stores_tracking(self) -> None:
        order = shipped_order()
        assert order.status is OrderStatus.SHIPPED
        assert order.tracking_info == TrackingInfo(provider="AE", tracking_number="AE123")

    def test_pending_order_cannot_ship(self) -> None:
        """Status is checked before tracking."""
        with pytest.raises(InvalidTransitionError):
            make_order().ship(None, SELLER_ID)


class TestDeliverAndCancel:
    def test_deliver(self) -> None:
        order = shipped_order()
        order.deliver(BUYER_ID)
        assert order.status is OrderStatus.DELIVERED
        assert len(order.status_history) == 4

    def test_delivered_order_cannot_be_cancelled(self) -> None:
        order = shipped_order()
        order.deliver(BUYER_ID)
        with pytest.raises(InvalidTransitionError):
            order.cancel(BUYER_ID)
        assert order.status is OrderStatus.DELIVERED

    def test_cancel_unpaid_keeps_payment_pending(self) -> None:
        order = make_order()
        order.cancel(BUYER_ID, "Ordered by mistake")

        assert order.status is OrderStatus.CANCELLED
        assert order.payment_status is PaymentStatus.PENDING
        assert len(order.payment_history) == 1

    def test_cancel_paid_order_refunds(self) -> None:
        order = paid_order()
        order.cancel(BUYER_ID)

        assert order.status is OrderStatus.CANCELLED
        assert order.payment_status is PaymentStatus.REFUNDED
        assert order.payment_history[-1].payment_status is PaymentStatus.REFUNDED
        assert order.payment_history[-1].timestamp == order.status_history[-1].timestamp

        events = order.collect_events()
        assert [type(e) for e in events] == [OrderTransitioned, OrderPaymentStatusChanged]

    def test_cancelled_is_terminal(self) -> None:
        order = make_order()
        order.cancel(BUYER_ID)
        with pytest.raises(InvalidTransitionError):
            order.cancel(BUYER_ID)


class TestHistoryInvariants:
    def test_each_transition_bumps_version_once(self) -> None:
        order = paid_order()
        version = order.version
        order.confirm(SELLER_ID)
        assert order.version == version + 1

    def test_history_timestamps_strictly_increase(self) -> None:
        order = shipped_order()
        order.deliver(BUYER_ID)
        timestamps = [entry.timestamp for entry in order.status_history]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == len(timestamps)

    def test_last_history_entry_matches_status(self) -> None:
        order = shipped_order()
        assert order.status_history[-1].status is order.status
        assert order.updated_at == order.status_history[-1].timestamp

    def test_transition_event_matches_history(self) -> None:
        order = paid_order()
        order.confirm(SELLER_ID, "ok")
        (event,) = order.collect_events()
        assert isinstance(event, OrderTransitioned)
        assert event.previous_status == "pending"
        assert event.new_status == "confirmed"
        assert event.timestamp == order.status_history[-1].timestamp
        assert event.actor_id == SELLER_ID


# ============================================================================
# Payment axis
# ============================================================================


class TestRecordPayment:
    def test_completed_payment_stores_details(self) -> None:
        order = make_order()
        details = PaymentDetails(transaction_id="pay_1")
        order.record_payment(PaymentStatus.COMPLETED, "payment:razorpay", details=details)

        assert order.payment_status is PaymentStatus.COMPLETED
        assert order.payment_details == details
        assert order.payment_history[-1].transaction_id == "pay_1"
        assert len(order.status_history) == 1

    def test_refund_keeps_settlement_receipt(self) -> None:
        order = make_order()
        settled = PaymentDetails(
            transaction_id="txn_42",
            paid_at=order.created_at,
            receipt_url="https://pay.example/r/42",
        )
        order.record_payment(PaymentStatus.COMPLETED, "payment:razorpay", details=settled)

        order.record_payment(PaymentStatus.REFUNDED, "payment:razorpay", details=PaymentDetails())

        assert order.payment_status is PaymentStatus.REFUNDED
        assert order.payment_details == settled

    def test_later_report_overrides_provided_fields(self) -> None:
        order = make_order()
        order.record_payment(
            PaymentStatus.FAILED,
            "payment:razorpay",
            details=PaymentDetails(transaction_id="txn_1", receipt_url="https://pay.example/r/1"),
        )

        order.record_payment(
            PaymentStatus.COMPLETED,
            "payment:razorpay",
            details=PaymentDetails(transaction_id="txn_2"),
        )

        assert order.payment_details.transaction_id == "txn_2"
        assert order.payment_details.receipt_url == "https://pay.example/r/1"

    def test_failed_then_retried(self) -> None:
        order = make_order()
        order.record_payment(PaymentStatus.FAILED, "payment:razorpay")
        order.record_payment(PaymentStatus.COMPLETED, "payment:razorpay")
        assert [e.payment_status for e in order.payment_history] == [
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            PaymentStatus.COMPLETED,
        ]

    def test_cancelled_order_rejects_settlement(self) -> None:
        order = make_order()
        order.cancel(BUYER_ID)
        with pytest.raises(InvalidTransitionError):
            order.record_payment(PaymentStatus.COMPLETED, "payment:razorpay")

    def test_delivered_cash_order_can_settle(self) -> None:
        order = make_order(payment_method=PaymentMethod.CASH_ON_DELIVERY)
        order.confirm(SELLER_ID, payment_method=PaymentMethod.CASH_ON_DELIVERY)
        order.ship(TrackingInfo(provider="AE", tracking_number="AE9"), SELLER_ID)
        order.deliver(BUYER_ID)
        order.record_payment(PaymentStatus.COMPLETED, SELLER_ID, "Cash collected")
        assert order.payment_status is PaymentStatus.COMPLETED


# ============================================================================
# Edits
# ============================================================================


class TestEdits:
    def test_replace_items_recomputes_total(self) -> None:
        order = make_order()
        order.collect_events()
        order.replace_items([make_item(quantity=4, unit_price=30)], BUYER_ID)

        assert order.total_amount == Money(120)
        assert order.version == 2
        (event,) = order.collect_events()
        assert isinstance(event, OrderItemsChanged)
        assert event.total_amount == 120

    def test_items_frozen_after_confirmation(self) -> None:
        order = paid_order()
        order.confirm(SELLER_ID)
        with pytest.raises(OrderNotEditableError):
            order.replace_items(make_items(), BUYER_ID)

    def test_change_billing_only(self) -> None:
        order = make_order()
        order.collect_events()
        billing = make_address(city="Pune")
        order.change_addresses(BUYER_ID, billing_address=billing)

        assert order.billing_address == billing
        assert order.shipping_address.city == "Nashik"
        assert isinstance(order.collect_events()[0], OrderAddressesChanged)

    def test_change_addresses_requires_one(self) -> None:
        with pytest.raises(ValidationError):
            make_order().change_addresses(BUYER_ID)

    def test_update_tracking_after_shipping(self) -> None:
        order = shipped_order()
        order.update_tracking(TrackingInfo(provider="Delhivery", tracking_number="D1"), SELLER_ID)

        assert order.tracking_info.provider == "Delhivery"
        assert order.status is OrderStatus.SHIPPED
        assert isinstance(order.collect_events()[0], OrderTrackingUpdated)

    def test_update_tracking_before_shipping(self) -> None:
        with pytest.raises(OrderNotEditableError):
            paid_order().update_tracking(TrackingInfo(provider="AE", tracking_number="1"), SELLER_ID)


class TestParties:
    def test_is_party(self) -> None:
        order = make_order()
        assert order.is_party(BUYER_ID)
        assert order.is_party(SELLER_ID)
        assert not order.is_party("someone-else")

    def test_counterpart_names(self) -> None:
        order = make_order()
        assert order.counterpart_names(BUYER_ID) == ["Green Valley Farm"]
        assert order.counterpart_names(SELLER_ID) == ["Asha Traders"]
        assert order.counterpart_names("admin-1") == ["Asha Traders", "Green Valley Farm"]
