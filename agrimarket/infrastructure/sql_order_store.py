"""SQLAlchemy-backed Order Store.

``save`` runs in one transaction: a version-guarded UPDATE of the order
row, a rewrite of the item rows, and inserts of the history entries that
are not persisted yet. Any failure rolls the whole change back.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agrimarket.domain.base import as_utc
from agrimarket.domain.entities import (
    Order,
    OrderItem,
    PaymentHistoryEntry,
    StatusHistoryEntry,
)
from agrimarket.domain.exceptions import ConcurrentModificationError, OrderNotFoundError
from agrimarket.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus
from agrimarket.domain.value_objects import (
    Address,
    Money,
    OrderId,
    PaymentDetails,
    TrackingInfo,
)
from agrimarket.infrastructure.database import get_session_factory
from agrimarket.infrastructure.models import (
    OrderItemModel,
    OrderModel,
    OrderPaymentHistoryModel,
    OrderStatusHistoryModel,
)
from agrimarket.infrastructure.order_store import OrderStore

logger = structlog.get_logger()


class SqlOrderStore(OrderStore):
    """Order Store persisting to a relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    async def add(self, order: Order) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    OrderModel(
                        id=str(order.id),
                        **_order_columns(order),
                        items=[OrderItemModel(**row) for row in _item_rows(order)],
                        status_history=[
                            OrderStatusHistoryModel(**row)
                            for row in _status_rows(order, start=0)
                        ],
                        payment_history=[
                            OrderPaymentHistoryModel(**row)
                            for row in _payment_rows(order, start=0)
                        ],
                    )
                )

    async def get(self, order_id: OrderId) -> Order | None:
        async with self._session_factory() as session:
            await _pin_snapshot(session)
            model = await session.get(OrderModel, str(order_id))
            return _to_domain(model) if model is not None else None

    async def save(self, order: Order, expected_version: int) -> None:
        order_id = str(order.id)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(OrderModel)
                    .where(OrderModel.id == order_id, OrderModel.version == expected_version)
                    .values(**_order_columns(order))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    actual = await session.scalar(
                        select(OrderModel.version).where(OrderModel.id == order_id)
                    )
                    if actual is None:
                        raise OrderNotFoundError(order_id)
                    raise ConcurrentModificationError(order_id, expected_version, actual)

                await session.execute(delete(OrderItemModel).where(OrderItemModel.order_id == order_id))
                await session.execute(insert(OrderItemModel), _item_rows(order))

                persisted = await _count(session, OrderStatusHistoryModel, order_id)
                new_status_rows = _status_rows(order, start=persisted)
                if new_status_rows:
                    await session.execute(insert(OrderStatusHistoryModel), new_status_rows)

                persisted = await _count(session, OrderPaymentHistoryModel, order_id)
                new_payment_rows = _payment_rows(order, start=persisted)
                if new_payment_rows:
                    await session.execute(insert(OrderPaymentHistoryModel), new_payment_rows)

        logger.debug(
            "Order row saved",
            order_id=order_id,
            version=order.version,
            status_entries_added=len(new_status_rows),
            payment_entries_added=len(new_payment_rows),
        )

    async def list_all(self) -> list[Order]:
        async with self._session_factory() as session:
            await _pin_snapshot(session)
            result = await session.execute(select(OrderModel))
            return [_to_domain(model) for model in result.scalars().all()]

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))


async def _pin_snapshot(session: AsyncSession) -> None:
    """Read the order row and its child rows from one database snapshot."""
    if session.get_bind().dialect.name == "postgresql":
        await session.connection(execution_options={"isolation_level": "REPEATABLE READ"})


async def _count(session: AsyncSession, model: type, order_id: str) -> int:
    count = await session.scalar(
        select(func.count()).select_from(model).where(model.order_id == order_id)
    )
    return count or 0


# ============================================================================
# Row mapping
# ============================================================================


def _order_columns(order: Order) -> dict[str, Any]:
    tracking = order.tracking_info
    payment = order.payment_details
    return {
        "order_number": order.order_number,
        "buyer_id": order.buyer_id,
        "buyer_name": order.buyer_name,
        "seller_id": order.seller_id,
        "seller_name": order.seller_name,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "payment_method": order.payment_method.value,
        "currency": order.currency,
        "total_amount": order.total_amount.amount_minor,
        "shipping_address": asdict(order.shipping_address),
        "billing_address": asdict(order.billing_address),
        "tracking_provider": tracking.provider if tracking else None,
        "tracking_number": tracking.tracking_number if tracking else None,
        "tracking_url": tracking.tracking_url if tracking else None,
        "estimated_delivery": tracking.estimated_delivery if tracking else None,
        "payment_transaction_id": payment.transaction_id if payment else None,
        "payment_paid_at": payment.paid_at if payment else None,
        "payment_receipt_url": payment.receipt_url if payment else None,
        "notes": order.notes,
        "version": order.version,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _item_rows(order: Order) -> list[dict[str, Any]]:
    return [
        {
            "order_id": str(order.id),
            "position": position,
            "product_id": item.product_id,
            "name": item.name,
            "unit": item.unit,
            "quantity": item.quantity,
            "unit_price": item.unit_price.amount_minor,
            "currency": item.unit_price.currency,
        }
        for position, item in enumerate(order.items)
    ]


def _status_rows(order: Order, start: int) -> list[dict[str, Any]]:
    return [
        {
            "order_id": str(order.id),
            "sequence": sequence,
            "status": entry.status.value,
            "comment": entry.comment,
            "actor_id": entry.actor_id,
            "created_at": entry.timestamp,
        }
        for sequence, entry in enumerate(order.status_history)
        if sequence >= start
    ]


def _payment_rows(order: Order, start: int) -> list[dict[str, Any]]:
    return [
        {
            "order_id": str(order.id),
            "sequence": sequence,
            "payment_status": entry.payment_status.value,
            "comment": entry.comment,
            "actor_id": entry.actor_id,
            "transaction_id": entry.transaction_id,
            "created_at": entry.timestamp,
        }
        for sequence, entry in enumerate(order.payment_history)
        if sequence >= start
    ]


def _to_domain(model: OrderModel) -> Order:
    tracking = None
    if model.tracking_provider is not None or model.tracking_number is not None:
        tracking = TrackingInfo(
            provider=model.tracking_provider or "",
            tracking_number=model.tracking_number or "",
            tracking_url=model.tracking_url,
            estimated_delivery=_maybe_utc(model.estimated_delivery),
        )
    payment = None
    if model.payment_transaction_id or model.payment_paid_at or model.payment_receipt_url:
        payment = PaymentDetails(
            transaction_id=model.payment_transaction_id,
            paid_at=_maybe_utc(model.payment_paid_at),
            receipt_url=model.payment_receipt_url,
        )

    return Order(
        id=OrderId.from_string(model.id),
        order_number=model.order_number,
        buyer_id=model.buyer_id,
        buyer_name=model.buyer_name,
        seller_id=model.seller_id,
        seller_name=model.seller_name,
        items=[
            OrderItem(
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=Money(amount_minor=item.unit_price, currency=item.currency),
                unit=item.unit,
            )
            for item in model.items
        ],
        shipping_address=Address(**model.shipping_address),
        billing_address=Address(**model.billing_address),
        payment_method=PaymentMethod(model.payment_method),
        currency=model.currency,
        notes=model.notes or "",
        status=OrderStatus(model.status),
        payment_status=PaymentStatus(model.payment_status),
        tracking_info=tracking,
        payment_details=payment,
        status_history=[
            StatusHistoryEntry(
                status=OrderStatus(row.status),
                timestamp=as_utc(row.created_at),
                comment=row.comment or "",
                actor_id=row.actor_id or "",
            )
            for row in model.status_history
        ],
        payment_history=[
            PaymentHistoryEntry(
                payment_status=PaymentStatus(row.payment_status),
                timestamp=as_utc(row.created_at),
                comment=row.comment or "",
                actor_id=row.actor_id or "",
                transaction_id=row.transaction_id,
            )
            for row in model.payment_history
        ],
        version=model.version,
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
    )


def _maybe_utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None
