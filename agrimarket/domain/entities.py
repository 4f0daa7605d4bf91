"""Order aggregate.

The Order is the only aggregate of the fulfillment domain. Every public
mutation validates all of its preconditions before touching any field,
so a rejected command leaves the order exactly as it was.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Self
from uuid import uuid4

from agrimarket.domain.base import AggregateRoot, ValueObject, utc_now
from agrimarket.domain.events import (
    OrderAddressesChanged,
    OrderItemsChanged,
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderTrackingUpdated,
    OrderTransitioned,
)
from agrimarket.domain.exceptions import (
    CurrencyMismatchError,
    InvalidQuantityError,
    InvalidTransitionError,
    MissingTrackingInfoError,
    OrderNotEditableError,
    PaymentNotSettledError,
    ValidationError,
)
from agrimarket.domain.state_machines import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    validate_order_transition,
    validate_payment_transition,
)
from agrimarket.domain.value_objects import (
    DEFAULT_CURRENCY,
    Address,
    Money,
    OrderId,
    PaymentDetails,
    TrackingInfo,
)


def generate_order_number(at: datetime) -> str:
    """Human-readable order reference, e.g. ``ORD-250114-9F3A1C``."""
    return f"ORD-{at:%y%m%d}-{uuid4().hex[:6].upper()}"


# ============================================================================
# Order Line Items and Audit Entries
# ============================================================================


@dataclass(frozen=True)
class OrderItem(ValueObject):
    """A line of produce on an order.

    Attributes:
        product_id: Listing the produce was ordered from.
        name: Product name at the time of ordering.
        quantity: Ordered quantity in ``unit``.
        unit_price: Price per unit.
        unit: Selling unit (kg, quintal, dozen...).
    """

    product_id: str
    name: str
    quantity: int
    unit_price: Money
    unit: str = "kg"

    def __post_init__(self) -> None:
        if not self.product_id or not self.product_id.strip():
            raise ValidationError("product_id", "cannot be empty")
        if not self.name or not self.name.strip():
            raise ValidationError("name", "cannot be empty")
        if self.quantity <= 0:
            raise InvalidQuantityError(self.quantity)

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class StatusHistoryEntry(ValueObject):
    """One accepted status change."""

    status: OrderStatus
    timestamp: datetime
    comment: str = ""
    actor_id: str = ""


@dataclass(frozen=True)
class PaymentHistoryEntry(ValueObject):
    """One accepted payment status change."""

    payment_status: PaymentStatus
    timestamp: datetime
    comment: str = ""
    actor_id: str = ""
    transaction_id: str | None = None


# ============================================================================
# Order Aggregate
# ============================================================================


@dataclass(kw_only=True)
class Order(AggregateRoot[OrderId]):
    """A buyer's purchase of produce from a single seller.

    ``status`` tracks fulfillment, ``payment_status`` tracks settlement.
    ``status_history`` is append-only and its last entry always matches
    ``status``. The order total is derived from the items and is never
    stored on its own.

    Attributes:
        id: Opaque order identifier.
        order_number: Human-readable reference shown to users.
        buyer_id: Actor who placed the order.
        seller_id: Actor who fulfills the order.
        items: Ordered produce lines, never empty.
        shipping_address: Delivery address, frozen after confirmation.
        billing_address: Billing address, frozen after confirmation.
        payment_method: How the buyer pays.
        status: Fulfillment status.
        payment_status: Settlement status.
        tracking_info: Carrier details, present once shipped.
        status_history: Audit trail of status changes.
        payment_history: Audit trail of payment changes.
    """

    id: OrderId
    order_number: str
    buyer_id: str
    seller_id: str
    items: list[OrderItem]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    buyer_name: str = ""
    seller_name: str = ""
    currency: str = DEFAULT_CURRENCY
    notes: str = ""
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    tracking_info: TrackingInfo | None = None
    payment_details: PaymentDetails | None = None
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    payment_history: list[PaymentHistoryEntry] = field(default_factory=list)

    @classmethod
    def place(
        cls,
        *,
        buyer_id: str,
        seller_id: str,
        items: list[OrderItem],
        shipping_address: Address,
        payment_method: PaymentMethod,
        billing_address: Address | None = None,
        buyer_name: str = "",
        seller_name: str = "",
        currency: str = DEFAULT_CURRENCY,
        notes: str = "",
        order_id: OrderId | None = None,
    ) -> Self:
        """Create a new pending order.

        Args:
            buyer_id: Actor placing the order.
            seller_id: Actor selling the produce.
            items: Ordered lines; all priced in ``currency``.
            shipping_address: Delivery address.
            payment_method: Chosen payment method.
            billing_address: Billing address; defaults to the shipping address.
            buyer_name: Buyer display name.
            seller_name: Seller display name.
            currency: Order currency.
            notes: Free-text instructions from the buyer.
            order_id: Explicit identifier, generated when omitted.

        Returns:
            New order in ``pending`` with one history entry.

        Raises:
            ValidationError: If parties or items are invalid.
            CurrencyMismatchError: If an item is priced in another currency.
        """
        if not buyer_id or not buyer_id.strip():
            raise ValidationError("buyer_id", "cannot be empty")
        if not seller_id or not seller_id.strip():
            raise ValidationError("seller_id", "cannot be empty")
        if buyer_id == seller_id:
            raise ValidationError("seller_id", "buyer and seller must be different actors")
        currency = currency.upper()
        _validate_items(items, currency)

        now = utc_now()
        order = cls(
            id=order_id or OrderId.generate(),
            order_number=generate_order_number(now),
            buyer_id=buyer_id,
            seller_id=seller_id,
            buyer_name=buyer_name,
            seller_name=seller_name,
            items=list(items),
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment_method=payment_method,
            currency=currency,
            notes=notes or "",
            created_at=now,
            updated_at=now,
            status_history=[
                StatusHistoryEntry(
                    status=OrderStatus.PENDING,
                    timestamp=now,
                    comment="Order placed",
                    actor_id=buyer_id,
                )
            ],
            payment_history=[
                PaymentHistoryEntry(
                    payment_status=PaymentStatus.PENDING,
                    timestamp=now,
                    comment="Awaiting payment",
                    actor_id=buyer_id,
                )
            ],
        )
        order._record_event(
            OrderPlaced(
                occurred_at=now,
                **order._event_fields(buyer_id),
                total_amount=order.total_amount.amount_minor,
                currency=order.currency,
                item_count=len(order.items),
            )
        )
        return order

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def total_amount(self) -> Money:
        total = Money.zero(self.currency)
        for item in self.items:
            total = total + item.line_total
        return total

    def is_party(self, actor_id: str) -> bool:
        """Check if the actor is the buyer or the seller."""
        return actor_id in (self.buyer_id, self.seller_id)

    def counterpart_names(self, viewer_id: str | None) -> list[str]:
        """Names of the other party as seen by ``viewer_id``.

        Buyers see the seller, sellers see the buyer, anyone else sees both.
        """
        if viewer_id == self.buyer_id:
            return [self.seller_name]
        if viewer_id == self.seller_id:
            return [self.buyer_name]
        return [self.buyer_name, self.seller_name]

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def confirm(
        self,
        actor_id: str,
        comment: str = "",
        payment_method: PaymentMethod | None = None,
    ) -> None:
        """Seller accepts the order.

        Args:
            actor_id: Acting party.
            comment: Note stored on the history entry.
            payment_method: Pass ``CASH_ON_DELIVERY`` to confirm before the
                payment has settled.

        Raises:
            InvalidTransitionError: If order is not pending.
            PaymentNotSettledError: If payment is not completed and no
                cash-on-delivery override was given.
        """
        validate_order_transition(str(self.id), self.status, OrderStatus.CONFIRMED)
        cash_on_delivery = payment_method is not None and payment_method.defers_payment()
        if not self.payment_status.is_settled() and not cash_on_delivery:
            raise PaymentNotSettledError(str(self.id), self.payment_status.value)

        at = self._next_timestamp()
        if cash_on_delivery and not self.payment_status.is_settled():
            self.payment_method = PaymentMethod.CASH_ON_DELIVERY
        self._change_status(OrderStatus.CONFIRMED, actor_id, comment, at)
        self._touch(at)

    def ship(self, tracking_info: TrackingInfo | None, actor_id: str, comment: str = "") -> None:
        """Hand the order to a carrier.

        Raises:
            InvalidTransitionError: If order is not confirmed.
            MissingTrackingInfoError: If provider or tracking number is blank.
        """
        validate_order_transition(str(self.id), self.status, OrderStatus.SHIPPED)
        if tracking_info is None or not tracking_info.is_complete():
            raise MissingTrackingInfoError(str(self.id))

        at = self._next_timestamp()
        self.tracking_info = tracking_info
        self._change_status(OrderStatus.SHIPPED, actor_id, comment, at)
        self._touch(at)

    def deliver(self, actor_id: str, comment: str = "") -> None:
        """Record that the buyer received the consignment.

        Raises:
            InvalidTransitionError: If order is not shipped.
        """
        validate_order_transition(str(self.id), self.status, OrderStatus.DELIVERED)
        at = self._next_timestamp()
        self._change_status(OrderStatus.DELIVERED, actor_id, comment, at)
        self._touch(at)

    def cancel(self, actor_id: str, comment: str = "") -> None:
        """Cancel the order, refunding it if it was paid.

        The refund is part of the same change: no observer can see a
        cancelled order whose payment is still completed.

        Raises:
            InvalidTransitionError: If order is delivered or already cancelled.
        """
        validate_order_transition(str(self.id), self.status, OrderStatus.CANCELLED)
        at = self._next_timestamp()
        refund = self.payment_status.is_settled()
        self._change_status(OrderStatus.CANCELLED, actor_id, comment, at)
        if refund:
            self._change_payment(
                PaymentStatus.REFUNDED,
                actor_id,
                "Refunded on cancellation",
                at,
            )
        self._touch(at)

    # ------------------------------------------------------------------
    # Payment axis
    # ------------------------------------------------------------------

    def record_payment(
        self,
        payment_status: PaymentStatus,
        actor_id: str,
        comment: str = "",
        details: PaymentDetails | None = None,
    ) -> None:
        """Apply a payment status reported by the payment subsystem.

        Cancelled orders only accept refunds; delivered orders still accept
        settlement, since cash on delivery is collected at the door.
        Reported details are merged into the stored ones, so a refund
        keeps the receipt captured at settlement.

        Raises:
            InvalidTransitionError: If the payment transition is not allowed.
        """
        if self.status is OrderStatus.CANCELLED and payment_status is not PaymentStatus.REFUNDED:
            raise InvalidTransitionError(
                entity_type="Payment",
                entity_id=str(self.id),
                current_state=self.payment_status.value,
                target_state=payment_status.value,
                allowed_transitions=[
                    s.value
                    for s in self.payment_status.allowed_transitions()
                    if s is PaymentStatus.REFUNDED
                ],
            )
        validate_payment_transition(str(self.id), self.payment_status, payment_status)

        at = self._next_timestamp()
        if details is not None:
            current = self.payment_details or PaymentDetails()
            self.payment_details = current.merge(details)
        self._change_payment(
            payment_status,
            actor_id,
            comment,
            at,
            transaction_id=details.transaction_id if details else None,
        )
        self._touch(at)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def replace_items(self, items: list[OrderItem], actor_id: str) -> None:
        """Replace the order lines while the order is still pending.

        Raises:
            OrderNotEditableError: If the order has left ``pending``.
            ValidationError: If ``items`` is empty.
            CurrencyMismatchError: If an item is priced in another currency.
        """
        if not self.status.allows_item_changes():
            raise OrderNotEditableError(str(self.id), self.status.value, "items")
        _validate_items(items, self.currency)

        self.items = list(items)
        self._touch()
        self._record_event(
            OrderItemsChanged(
                occurred_at=self.updated_at,
                **self._event_fields(actor_id),
                total_amount=self.total_amount.amount_minor,
                item_count=len(self.items),
            )
        )

    def change_addresses(
        self,
        actor_id: str,
        shipping_address: Address | None = None,
        billing_address: Address | None = None,
    ) -> None:
        """Change shipping and/or billing address before confirmation.

        Raises:
            OrderNotEditableError: If the order has left ``pending``.
        """
        if not self.status.allows_item_changes():
            raise OrderNotEditableError(str(self.id), self.status.value, "addresses")
        if shipping_address is None and billing_address is None:
            raise ValidationError("addresses", "provide a shipping or billing address")

        if shipping_address is not None:
            self.shipping_address = shipping_address
        if billing_address is not None:
            self.billing_address = billing_address
        self._touch()
        self._record_event(
            OrderAddressesChanged(occurred_at=self.updated_at, **self._event_fields(actor_id))
        )

    def update_tracking(self, tracking_info: TrackingInfo, actor_id: str) -> None:
        """Correct carrier details of a shipped or delivered order.

        Raises:
            OrderNotEditableError: If the order has not shipped.
            MissingTrackingInfoError: If provider or tracking number is blank.
        """
        if not self.status.allows_tracking():
            raise OrderNotEditableError(str(self.id), self.status.value, "tracking_info")
        if not tracking_info.is_complete():
            raise MissingTrackingInfoError(str(self.id))

        self.tracking_info = tracking_info
        self._touch()
        self._record_event(
            OrderTrackingUpdated(
                occurred_at=self.updated_at,
                **self._event_fields(actor_id),
                provider=tracking_info.provider,
                tracking_number=tracking_info.tracking_number,
            )
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _event_fields(self, actor_id: str) -> dict[str, str]:
        return {
            "aggregate_id": str(self.id),
            "aggregate_type": "Order",
            "order_id": str(self.id),
            "order_number": self.order_number,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "actor_id": actor_id,
        }

    def _change_status(
        self,
        target: OrderStatus,
        actor_id: str,
        comment: str,
        at: datetime,
    ) -> None:
        previous = self.status
        self.status = target
        self.status_history.append(
            StatusHistoryEntry(
                status=target,
                timestamp=at,
                comment=comment or "",
                actor_id=actor_id,
            )
        )
        self._record_event(
            OrderTransitioned(
                occurred_at=at,
                **self._event_fields(actor_id),
                previous_status=previous.value,
                new_status=target.value,
                comment=comment or "",
            )
        )

    def _change_payment(
        self,
        target: PaymentStatus,
        actor_id: str,
        comment: str,
        at: datetime,
        transaction_id: str | None = None,
    ) -> None:
        previous = self.payment_status
        self.payment_status = target
        self.payment_history.append(
            PaymentHistoryEntry(
                payment_status=target,
                timestamp=at,
                comment=comment or "",
                actor_id=actor_id,
                transaction_id=transaction_id,
            )
        )
        self._record_event(
            OrderPaymentStatusChanged(
                occurred_at=at,
                **self._event_fields(actor_id),
                previous_payment_status=previous.value,
                new_payment_status=target.value,
                transaction_id=transaction_id,
            )
        )


def _validate_items(items: list[OrderItem], currency: str) -> None:
    if not items:
        raise ValidationError("items", "an order needs at least one item")
    for item in items:
        if item.unit_price.currency != currency:
            raise CurrencyMismatchError(currency, item.unit_price.currency)
