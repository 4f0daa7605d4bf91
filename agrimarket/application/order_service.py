"""Order service.

Entry point used by the HTTP layer: combines the Query Engine for reads,
role permissions, and the Transition Engine for writes. Every write is
checked against the order version the permission decision was based on,
so a concurrent change between the check and the commit is reported as
a concurrent modification.
"""

from agrimarket.application.notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from agrimarket.application.permissions import (
    ensure_can_edit,
    ensure_can_record_payment,
    ensure_can_transition,
    ensure_can_update_tracking,
)
from agrimarket.application.query_engine import (
    OrderFilters,
    OrderPage,
    OrderStatistics,
    PageRequest,
    QueryEngine,
    SortOrder,
)
from agrimarket.application.transition_engine import TransitionEngine
from agrimarket.domain.commands import TransitionCommand
from agrimarket.domain.entities import Order, OrderItem
from agrimarket.domain.state_machines import PaymentMethod, PaymentStatus
from agrimarket.domain.value_objects import (
    Address,
    OrderId,
    PaymentDetails,
    TrackingInfo,
    ViewerScope,
)
from agrimarket.infrastructure.config import settings
from agrimarket.infrastructure.order_store import OrderStore, get_order_store


class OrderService:
    """Order operations on behalf of an authenticated viewer."""

    def __init__(
        self,
        store: OrderStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        request_id: str | None = None,
    ) -> None:
        store = store or get_order_store()
        dispatcher = dispatcher or get_notification_dispatcher()
        self.queries = QueryEngine(store)
        self.engine = TransitionEngine(store, dispatcher, request_id=request_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, viewer: ViewerScope, order_id: OrderId | str) -> Order:
        return await self.queries.get_order(viewer, order_id)

    async def list_orders(
        self,
        viewer: ViewerScope,
        filters: OrderFilters | None = None,
        page: PageRequest | None = None,
        sort: SortOrder | None = None,
    ) -> OrderPage:
        return await self.queries.list_orders(viewer, filters, page, sort)

    async def statistics(
        self,
        viewer: ViewerScope,
        filters: OrderFilters | None = None,
    ) -> OrderStatistics:
        return await self.queries.statistics(viewer, filters)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def place_order(
        self,
        viewer: ViewerScope,
        *,
        seller_id: str,
        items: list[OrderItem],
        shipping_address: Address,
        payment_method: PaymentMethod,
        billing_address: Address | None = None,
        buyer_name: str = "",
        seller_name: str = "",
        currency: str | None = None,
        notes: str = "",
    ) -> Order:
        """Place an order with the viewer as buyer.

        Raises:
            ValidationError: If the order data is invalid.
            CurrencyMismatchError: If items are priced in another currency.
        """
        order = Order.place(
            buyer_id=viewer.viewer_id,
            buyer_name=buyer_name,
            seller_id=seller_id,
            seller_name=seller_name,
            items=items,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            currency=currency or settings.default_currency,
            notes=notes,
        )
        return await self.engine.place(order)

    async def transition(
        self,
        viewer: ViewerScope,
        order_id: OrderId | str,
        command: TransitionCommand,
        comment: str = "",
        expected_version: int | None = None,
    ) -> Order:
        """Apply a status transition after checking the viewer's rights.

        Raises:
            OrderNotFoundError: If the order is unknown or not visible.
            PermissionDeniedError: If the viewer may not issue the command.
            InvalidTransitionError, PaymentNotSettledError,
            MissingTrackingInfoError, ConcurrentModificationError:
                As raised by the Transition Engine.
        """
        order = await self.queries.get_order(viewer, order_id)
        ensure_can_transition(order, command, viewer)
        return await self.engine.apply_transition(
            order.id,
            command,
            actor_id=viewer.viewer_id,
            comment=comment,
            expected_version=_pinned(order, expected_version),
        )

    async def record_payment(
        self,
        viewer: ViewerScope,
        order_id: OrderId | str,
        payment_status: PaymentStatus,
        comment: str = "",
        details: PaymentDetails | None = None,
        expected_version: int | None = None,
    ) -> Order:
        """Record a payment status manually (administrators only)."""
        ensure_can_record_payment(viewer)
        order = await self.queries.get_order(viewer, order_id)
        return await self.engine.record_payment(
            order.id,
            payment_status,
            actor_id=viewer.viewer_id,
            comment=comment,
            details=details,
            expected_version=_pinned(order, expected_version),
        )

    async def replace_items(
        self,
        viewer: ViewerScope,
        order_id: OrderId | str,
        items: list[OrderItem],
        expected_version: int | None = None,
    ) -> Order:
        order = await self.queries.get_order(viewer, order_id)
        ensure_can_edit(order, viewer, "items")
        return await self.engine.replace_items(
            order.id,
            items,
            actor_id=viewer.viewer_id,
            expected_version=_pinned(order, expected_version),
        )

    async def change_addresses(
        self,
        viewer: ViewerScope,
        order_id: OrderId | str,
        shipping_address: Address | None = None,
        billing_address: Address | None = None,
        expected_version: int | None = None,
    ) -> Order:
        order = await self.queries.get_order(viewer, order_id)
        ensure_can_edit(order, viewer, "addresses")
        return await self.engine.change_addresses(
            order.id,
            actor_id=viewer.viewer_id,
            shipping_address=shipping_address,
            billing_address=billing_address,
            expected_version=_pinned(order, expected_version),
        )

    async def update_tracking(
        self,
        viewer: ViewerScope,
        order_id: OrderId | str,
        tracking_info: TrackingInfo,
        expected_version: int | None = None,
    ) -> Order:
        order = await self.queries.get_order(viewer, order_id)
        ensure_can_update_tracking(order, viewer)
        return await self.engine.update_tracking(
            order.id,
            tracking_info,
            actor_id=viewer.viewer_id,
            expected_version=_pinned(order, expected_version),
        )


def _pinned(order: Order, expected_version: int | None) -> int:
    """Version the write must apply to: the caller's, else the one just checked."""
    return expected_version if expected_version is not None else order.version


def get_order_service(request_id: str | None = None) -> OrderService:
    """Create an order service bound to the global store and dispatcher."""
    return OrderService(request_id=request_id)
