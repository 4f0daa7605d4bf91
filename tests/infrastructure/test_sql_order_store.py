"""Tests for the SQLAlchemy Order Store, run against a SQLite file."""

import pytest

from agrimarket.application.transition_engine import TransitionEngine
from agrimarket.domain import (
    Cancel,
    ConcurrentModificationError,
    Confirm,
    Deliver,
    OrderId,
    OrderNotFoundError,
    OrderStatus,
    PaymentDetails,
    PaymentStatus,
    Ship,
    TrackingInfo,
)
from agrimarket.infrastructure.database import create_engine, create_session_factory, init_models
from agrimarket.infrastructure.sql_order_store import SqlOrderStore
from factories import ADMIN_ID, BUYER_ID, make_item, make_order


@pytest.fixture
async def store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_models(engine)
    yield SqlOrderStore(create_session_factory(engine))
    await engine.dispose()


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_add_and_get(self, store: SqlOrderStore) -> None:
        order = make_order()
        await store.add(order)

        loaded = await store.get(order.id)

        assert loaded.id == order.id
        assert loaded.order_number == order.order_number
        assert loaded.items == order.items
        assert loaded.total_amount == order.total_amount
        assert loaded.shipping_address == order.shipping_address
        assert loaded.status is OrderStatus.PENDING
        assert loaded.payment_status is PaymentStatus.PENDING
        assert loaded.status_history == order.status_history
        assert loaded.payment_history == order.payment_history
        assert loaded.created_at == order.created_at
        assert loaded.version == 1

    @pytest.mark.asyncio
    async def test_get_unknown(self, store: SqlOrderStore) -> None:
        assert await store.get(OrderId.generate()) is None

    @pytest.mark.asyncio
    async def test_list_all(self, store: SqlOrderStore) -> None:
        for _ in range(3):
            await store.add(make_order())
        assert len(await store.list_all()) == 3

    @pytest.mark.asyncio
    async def test_ping(self, store: SqlOrderStore) -> None:
        assert await store.ping() is None


class TestSave:
    @pytest.mark.asyncio
    async def test_full_lifecycle_through_engine(self, store: SqlOrderStore) -> None:
        engine = TransitionEngine(store)
        order = await engine.place(make_order())
        await engine.record_payment(
            order.id,
            PaymentStatus.COMPLETED,
            "payment:razorpay",
            details=PaymentDetails(transaction_id="pay_1"),
        )
        await engine.apply_transition(order.id, Confirm(), ADMIN_ID)
        await engine.apply_transition(
            order.id, Ship(TrackingInfo(provider="AE", tracking_number="AE123")), ADMIN_ID
        )
        await engine.apply_transition(order.id, Deliver(), ADMIN_ID, "Signed by buyer")

        loaded = await store.get(order.id)

        assert loaded.status is OrderStatus.DELIVERED
        assert [entry.status for entry in loaded.status_history] == [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]
        assert loaded.status_history[-1].comment == "Signed by buyer"
        assert loaded.tracking_info.tracking_number == "AE123"
        assert loaded.payment_details.transaction_id == "pay_1"
        assert loaded.payment_history[-1].transaction_id == "pay_1"
        assert loaded.version == 5

    @pytest.mark.asyncio
    async def test_cancel_refund_persists_both_histories(self, store: SqlOrderStore) -> None:
        engine = TransitionEngine(store)
        order = await engine.place(make_order())
        await engine.record_payment(order.id, PaymentStatus.COMPLETED, "payment:razorpay")
        await engine.apply_transition(order.id, Cancel(), BUYER_ID)

        loaded = await store.get(order.id)

        assert loaded.status is OrderStatus.CANCELLED
        assert loaded.payment_status is PaymentStatus.REFUNDED
        assert [e.payment_status for e in loaded.payment_history] == [
            PaymentStatus.PENDING,
            PaymentStatus.COMPLETED,
            PaymentStatus.REFUNDED,
        ]

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, store: SqlOrderStore) -> None:
        order = make_order()
        await store.add(order)

        first = await store.get(order.id)
        second = await store.get(order.id)
        first.cancel(BUYER_ID)
        await store.save(first, expected_version=1)

        second.record_payment(PaymentStatus.COMPLETED, "payment:razorpay")
        with pytest.raises(ConcurrentModificationError) as exc_info:
            await store.save(second, expected_version=1)

        assert exc_info.value.actual_version == 2
        loaded = await store.get(order.id)
        assert loaded.status is OrderStatus.CANCELLED
        assert loaded.payment_status is PaymentStatus.PENDING
        assert len(loaded.payment_history) == 1

    @pytest.mark.asyncio
    async def test_save_unknown_order(self, store: SqlOrderStore) -> None:
        with pytest.raises(OrderNotFoundError):
            await store.save(make_order(), expected_version=1)

    @pytest.mark.asyncio
    async def test_items_are_rewritten(self, store: SqlOrderStore) -> None:
        engine = TransitionEngine(store)
        order = await engine.place(make_order())

        await engine.replace_items(
            order.id,
            [make_item("wheat", "Sharbati Wheat", 5, 40)],
            BUYER_ID,
        )

        loaded = await store.get(order.id)
        assert [item.product_id for item in loaded.items] == ["wheat"]
        assert loaded.total_amount.amount_minor == 200
