"""Tests for notification hooks and the notification inbox."""

import pytest

from agrimarket.application.notifications import (
    NotificationDispatcher,
    OrderNotificationLog,
    get_notification_dispatcher,
    get_notification_log,
)
from agrimarket.application.transition_engine import TransitionEngine
from agrimarket.domain import Cancel, OrderTransitioned, PaymentStatus
from agrimarket.infrastructure.order_store import InMemoryOrderStore
from factories import BUYER_ID, SELLER_ID, make_order


def transitioned(actor_id: str = BUYER_ID, new_status: str = "cancelled") -> OrderTransitioned:
    return OrderTransitioned(
        order_id="order-1",
        order_number="ORD-250101-ABCDEF",
        buyer_id=BUYER_ID,
        seller_id=SELLER_ID,
        actor_id=actor_id,
        previous_status="pending",
        new_status=new_status,
    )


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_async_and_sync_handlers(self) -> None:
        dispatcher = NotificationDispatcher()
        received = []

        async def async_handler(event) -> None:
            received.append(("async", event.new_status))

        dispatcher.subscribe(async_handler)
        dispatcher.subscribe(lambda event: received.append(("sync", event.new_status)))

        await dispatcher.publish([transitioned()])

        assert received == [("async", "cancelled"), ("sync", "cancelled")]

    @pytest.mark.asyncio
    async def test_event_type_filter(self) -> None:
        dispatcher = NotificationDispatcher()
        received = []
        dispatcher.subscribe(received.append, event_types=["order.payment_status_changed"])

        await dispatcher.publish([transitioned()])

        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self) -> None:
        dispatcher = NotificationDispatcher()
        received = []

        @dispatcher.on_transition
        async def broken(event) -> None:
            raise ValueError("boom")

        dispatcher.on_transition(received.append)

        await dispatcher.publish([transitioned(), transitioned(new_status="confirmed")])

        assert [e.new_status for e in received] == ["cancelled", "confirmed"]


class TestNotificationLog:
    def test_counterparty_is_notified(self) -> None:
        log = OrderNotificationLog()
        log(transitioned(actor_id=BUYER_ID))

        assert log.list_for(BUYER_ID) == []
        (notification,) = log.list_for(SELLER_ID)
        assert notification.message == "Order ORD-250101-ABCDEF was cancelled"
        assert notification.event_type == "order.transitioned"
        assert not notification.read

    def test_third_party_actor_notifies_both(self) -> None:
        log = OrderNotificationLog()
        log(transitioned(actor_id="admin-1"))
        assert len(log.list_for(BUYER_ID)) == 1
        assert len(log.list_for(SELLER_ID)) == 1

    def test_newest_first_and_mark_read(self) -> None:
        log = OrderNotificationLog()
        log(transitioned(actor_id=SELLER_ID, new_status="confirmed"))
        log(transitioned(actor_id=SELLER_ID, new_status="shipped"))

        first, second = log.list_for(BUYER_ID)
        assert "shipped" in first.message
        assert "confirmed" in second.message

        assert log.mark_read(BUYER_ID, second.id)
        assert [n.id for n in log.list_for(BUYER_ID, unread_only=True)] == [first.id]

    def test_mark_read_of_someone_else(self) -> None:
        log = OrderNotificationLog()
        log(transitioned(actor_id=BUYER_ID))
        (notification,) = log.list_for(SELLER_ID)
        assert not log.mark_read(BUYER_ID, notification.id)

    def test_inbox_keeps_only_the_newest(self) -> None:
        log = OrderNotificationLog(max_per_recipient=2)
        for status in ("confirmed", "shipped", "delivered"):
            log(transitioned(actor_id=SELLER_ID, new_status=status))

        messages = [n.message for n in log.list_for(BUYER_ID)]

        assert len(messages) == 2
        assert "delivered" in messages[0]
        assert "shipped" in messages[1]


class TestDefaultWiring:
    @pytest.mark.asyncio
    async def test_global_dispatcher_feeds_the_inbox(self) -> None:
        engine = TransitionEngine(InMemoryOrderStore(), get_notification_dispatcher())
        order = await engine.place(make_order())
        await engine.record_payment(order.id, PaymentStatus.COMPLETED, "payment:razorpay")
        await engine.apply_transition(order.id, Cancel(), BUYER_ID)

        seller_inbox = [n.message for n in get_notification_log().list_for(SELLER_ID)]
        buyer_inbox = [n.message for n in get_notification_log().list_for(BUYER_ID)]

        assert any("was placed" in message for message in seller_inbox)
        assert any("was cancelled" in message for message in seller_inbox)
        assert any("was refunded" in message for message in seller_inbox)
        assert any("was received" in message for message in buyer_inbox)
        # The buyer cancelled, so they are not told about their own change
        assert not any("was cancelled" in message for message in buyer_inbox)
