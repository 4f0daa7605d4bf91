"""Transition Engine.

Every change to an existing order goes through the same pipeline:

1. load a detached copy of the order;
2. check the caller's ``expected_version`` when one is given;
3. validate and apply the change to the copy (nothing is stored yet);
4. commit with a compare-and-swap on the loaded version;
5. publish the recorded events to subscribers.

A failure in steps 1-4 leaves the stored order untouched and publishes
nothing. A failure in step 5 is contained by the dispatcher.
"""

from collections.abc import Callable

import structlog

from agrimarket.application.notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from agrimarket.domain.commands import TransitionCommand, apply_command
from agrimarket.domain.entities import Order, OrderItem
from agrimarket.domain.exceptions import (
    ConcurrentModificationError,
    DomainError,
    OrderNotFoundError,
)
from agrimarket.domain.state_machines import PaymentStatus
from agrimarket.domain.value_objects import Address, OrderId, PaymentDetails, TrackingInfo
from agrimarket.infrastructure.order_store import OrderStore, get_order_store

logger = structlog.get_logger()


def parse_order_id(order_id: OrderId | str) -> OrderId:
    """Accept typed or raw ids; an unparseable id is an unknown order.

    Raises:
        OrderNotFoundError: If ``order_id`` is not a valid identifier.
    """
    if isinstance(order_id, OrderId):
        return order_id
    try:
        return OrderId.from_string(order_id)
    except (TypeError, ValueError) as e:
        raise OrderNotFoundError(str(order_id)) from e


class TransitionEngine:
    """Applies commands to orders atomically and publishes the results."""

    def __init__(
        self,
        store: OrderStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        request_id: str | None = None,
    ) -> None:
        self._store = store or get_order_store()
        self._dispatcher = dispatcher or get_notification_dispatcher()
        self._log = logger.bind(request_id=request_id) if request_id else logger

    async def place(self, order: Order) -> Order:
        """Persist a newly placed order and publish ``OrderPlaced``."""
        events = order.collect_events()
        await self._store.add(order)
        self._log.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            total_amount=order.total_amount.amount_minor,
            currency=order.currency,
        )
        await self._dispatcher.publish(events)
        return order

    async def apply_transition(
        self,
        order_id: OrderId | str,
        command: TransitionCommand,
        actor_id: str,
        comment: str = "",
        expected_version: int | None = None,
    ) -> Order:
        """Move an order to the status named by ``command``.

        Args:
            order_id: Order to transition.
            command: ``Confirm``, ``Ship``, ``Deliver`` or ``Cancel``.
            actor_id: Acting party, recorded on the history entry.
            comment: Note stored on the history entry.
            expected_version: Version the caller based the decision on.

        Returns:
            The order as committed.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: If the transition is not allowed.
            PaymentNotSettledError: If confirming an unpaid order.
            MissingTrackingInfoError: If shipping without tracking details.
            ConcurrentModificationError: If another writer committed first.
        """
        return await self._mutate(
            order_id,
            lambda order: apply_command(order, command, actor_id, comment),
            action=f"transition:{command.target.value}",
            actor_id=actor_id,
            expected_version=expected_version,
        )

    async def record_payment(
        self,
        order_id: OrderId | str,
        payment_status: PaymentStatus,
        actor_id: str,
        comment: str = "",
        details: PaymentDetails | None = None,
        expected_version: int | None = None,
    ) -> Order:
        """Apply a payment status reported by the payment subsystem."""
        return await self._mutate(
            order_id,
            lambda order: order.record_payment(payment_status, actor_id, comment, details),
            action=f"payment:{payment_status.value}",
            actor_id=actor_id,
            expected_version=expected_version,
        )

    async def replace_items(
        self,
        order_id: OrderId | str,
        items: list[OrderItem],
        actor_id: str,
        expected_version: int | None = None,
    ) -> Order:
        return await self._mutate(
            order_id,
            lambda order: order.replace_items(items, actor_id),
            action="replace_items",
            actor_id=actor_id,
            expected_version=expected_version,
        )

    async def change_addresses(
        self,
        order_id: OrderId | str,
        actor_id: str,
        shipping_address: Address | None = None,
        billing_address: Address | None = None,
        expected_version: int | None = None,
    ) -> Order:
        return await self._mutate(
            order_id,
            lambda order: order.change_addresses(actor_id, shipping_address, billing_address),
            action="change_addresses",
            actor_id=actor_id,
            expected_version=expected_version,
        )

    async def update_tracking(
        self,
        order_id: OrderId | str,
        tracking_info: TrackingInfo,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Order:
        return await self._mutate(
            order_id,
            lambda order: order.update_tracking(tracking_info, actor_id),
            action="update_tracking",
            actor_id=actor_id,
            expected_version=expected_version,
        )

    async def _mutate(
        self,
        order_id: OrderId | str,
        mutation: Callable[[Order], None],
        action: str,
        actor_id: str,
        expected_version: int | None,
    ) -> Order:
        oid = parse_order_id(order_id)
        order = await self._store.get(oid)
        if order is None:
            raise OrderNotFoundError(str(oid))

        loaded_version = order.version
        previous_status = order.status
        previous_payment_status = order.payment_status
        try:
            if expected_version is not None and expected_version != loaded_version:
                raise ConcurrentModificationError(str(oid), expected_version, loaded_version)
            mutation(order)
            events = order.collect_events()
            await self._store.save(order, expected_version=loaded_version)
        except DomainError as e:
            self._log.warning(
                "Order change rejected",
                order_id=str(oid),
                action=action,
                actor_id=actor_id,
                status=previous_status.value,
                payment_status=previous_payment_status.value,
                error_code=e.error_code,
                error=e.message,
            )
            raise

        self._log.info(
            "Order changed",
            order_id=str(oid),
            order_number=order.order_number,
            action=action,
            actor_id=actor_id,
            from_status=previous_status.value,
            to_status=order.status.value,
            from_payment_status=previous_payment_status.value,
            to_payment_status=order.payment_status.value,
            version=order.version,
        )
        await self._dispatcher.publish(events)
        return order
