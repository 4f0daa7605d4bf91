"""Tests for role permissions on order operations."""

import pytest

from agrimarket.application.permissions import (
    ensure_can_edit,
    ensure_can_record_payment,
    ensure_can_transition,
    ensure_can_update_tracking,
)
from agrimarket.domain import (
    ActorRole,
    Cancel,
    Confirm,
    Deliver,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PermissionDeniedError,
    Ship,
    TrackingInfo,
)
from factories import BUYER_ID, SELLER_ID, make_order, make_viewer

SHIP = Ship(TrackingInfo(provider="AE", tracking_number="AE123"))


def shipped_order():
    order = make_order()
    order.confirm(SELLER_ID, payment_method=PaymentMethod.CASH_ON_DELIVERY)
    order.ship(SHIP.tracking_info, SELLER_ID)
    return order


class TestTransitionPermissions:
    @pytest.mark.parametrize("command", [Confirm(), SHIP, Deliver(), Cancel()])
    def test_admin_may_issue_anything(self, admin, command) -> None:
        ensure_can_transition(make_order(), command, admin)

    @pytest.mark.parametrize("command", [Confirm(), SHIP])
    def test_seller_confirms_and_ships(self, seller, command) -> None:
        ensure_can_transition(make_order(), command, seller)

    @pytest.mark.parametrize("command", [Confirm(), SHIP])
    def test_buyer_cannot_confirm_or_ship(self, buyer, command) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            ensure_can_transition(make_order(), command, buyer)
        assert exc_info.value.error_code == "FORBIDDEN"

    def test_either_party_marks_delivery(self, buyer, seller) -> None:
        order = shipped_order()
        ensure_can_transition(order, Deliver(), buyer)
        ensure_can_transition(order, Deliver(), seller)

    def test_outsider_cannot_deliver(self) -> None:
        with pytest.raises(PermissionDeniedError):
            ensure_can_transition(shipped_order(), Deliver(), make_viewer("buyer-9", ActorRole.BUYER))

    def test_parties_cancel_before_shipping(self, buyer, seller) -> None:
        order = make_order()
        ensure_can_transition(order, Cancel(), buyer)
        ensure_can_transition(order, Cancel(), seller)

    def test_shipped_order_cancel_is_admin_only(self, buyer, seller, admin) -> None:
        order = shipped_order()
        assert order.status is OrderStatus.SHIPPED
        for viewer in (buyer, seller):
            with pytest.raises(PermissionDeniedError):
                ensure_can_transition(order, Cancel(), viewer)
        ensure_can_transition(order, Cancel(), admin)


class TestOtherPermissions:
    def test_only_buyer_edits(self, buyer, seller) -> None:
        order = make_order()
        ensure_can_edit(order, buyer, "items")
        with pytest.raises(PermissionDeniedError):
            ensure_can_edit(order, seller, "items")

    def test_only_seller_updates_tracking(self, buyer, seller) -> None:
        order = shipped_order()
        ensure_can_update_tracking(order, seller)
        with pytest.raises(PermissionDeniedError):
            ensure_can_update_tracking(order, buyer)

    def test_record_payment_is_admin_only(self, admin, seller) -> None:
        ensure_can_record_payment(admin)
        with pytest.raises(PermissionDeniedError):
            ensure_can_record_payment(seller)

    def test_permission_is_not_a_status_check(self, seller) -> None:
        """A permitted actor still goes through the state machine later."""
        order = make_order()
        order.record_payment(PaymentStatus.COMPLETED, "payment:razorpay")
        order.confirm(SELLER_ID)
        ensure_can_transition(order, Confirm(), seller)

    def test_error_names_the_action(self, buyer) -> None:
        order = make_order()
        with pytest.raises(PermissionDeniedError) as exc_info:
            ensure_can_transition(order, Confirm(), buyer)
        assert order.order_number in exc_info.value.message
        assert BUYER_ID in exc_info.value.message
