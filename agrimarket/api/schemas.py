"""API schemas for the order service.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from agrimarket.domain.entities import Order, OrderItem
from agrimarket.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus
from agrimarket.domain.value_objects import Address, Money, PaymentDetails, TrackingInfo


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in smallest currency unit (paise)")
    currency: str = Field(..., min_length=3, max_length=3, description="ISO 4217 currency code")

    @classmethod
    def from_money(cls, money: Money) -> "PriceSchema":
        return cls(amount=money.amount_minor, currency=money.currency)


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] = Field(default_factory=list, description="Additional error details")
    request_id: str | None = Field(default=None, description="Request ID for correlation")


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    page_count: int = Field(..., description="Number of pages")
    has_more: bool = Field(..., description="Whether there are more pages")


# ============================================================================
# Value Schemas
# ============================================================================


class AddressSchema(BaseModel):
    """Postal address."""

    street: str = Field(..., min_length=1, description="Street and house number")
    city: str = Field(..., min_length=1, description="City or village")
    state: str = Field(default="", description="State or region")
    postal_code: str = Field(..., min_length=1, description="Postal code")
    country: str = Field(default="India", description="Country")
    contact_name: str | None = Field(default=None, description="Person receiving the goods")
    contact_phone: str | None = Field(default=None, description="Contact phone number")

    def to_domain(self) -> Address:
        return Address(**self.model_dump())

    @classmethod
    def from_domain(cls, address: Address) -> "AddressSchema":
        return cls(
            street=address.street,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country,
            contact_name=address.contact_name,
            contact_phone=address.contact_phone,
        )


class TrackingInfoSchema(BaseModel):
    """Shipment tracking information."""

    provider: str = Field(..., description="Logistics provider")
    tracking_number: str = Field(..., description="Provider tracking number")
    tracking_url: str | None = Field(default=None, description="Tracking page URL")
    estimated_delivery: datetime | None = Field(default=None, description="Estimated delivery time")

    def to_domain(self) -> TrackingInfo:
        return TrackingInfo(**self.model_dump())

    @classmethod
    def from_domain(cls, tracking: TrackingInfo) -> "TrackingInfoSchema":
        return cls(
            provider=tracking.provider,
            tracking_number=tracking.tracking_number,
            tracking_url=tracking.tracking_url,
            estimated_delivery=tracking.estimated_delivery,
        )


class PaymentDetailsSchema(BaseModel):
    """Settlement details reported by the payment subsystem."""

    transaction_id: str | None = Field(default=None, description="Payment transaction id")
    paid_at: datetime | None = Field(default=None, description="When the payment settled")
    receipt_url: str | None = Field(default=None, description="Receipt URL")

    def to_domain(self) -> PaymentDetails:
        return PaymentDetails(**self.model_dump())


class OrderItemRequest(BaseModel):
    """An order line as submitted by the buyer."""

    product_id: str = Field(..., min_length=1, description="Product identifier")
    name: str = Field(..., min_length=1, description="Product name")
    quantity: int = Field(..., description="Quantity in ``unit``")
    unit_price: int = Field(..., ge=0, description="Unit price in minor units")
    unit: str = Field(default="kg", description="Unit of measure")

    def to_domain(self, currency: str) -> OrderItem:
        return OrderItem(
            product_id=self.product_id,
            name=self.name,
            quantity=self.quantity,
            unit_price=Money(self.unit_price, currency),
            unit=self.unit,
        )


class OrderItemSchema(BaseModel):
    """An order line."""

    product_id: str = Field(..., description="Product identifier")
    name: str = Field(..., description="Product name")
    quantity: int = Field(..., description="Quantity in ``unit``")
    unit: str = Field(..., description="Unit of measure")
    unit_price: PriceSchema = Field(..., description="Unit price")
    line_total: PriceSchema = Field(..., description="quantity x unit price")


class StatusHistorySchema(BaseModel):
    """One entry of the status history."""

    status: OrderStatus = Field(..., description="Status entered")
    timestamp: datetime = Field(..., description="When the status was entered")
    comment: str = Field(default="", description="Comment given with the change")
    actor_id: str = Field(default="", description="Actor who made the change")


class PaymentHistorySchema(BaseModel):
    """One entry of the payment history."""

    payment_status: PaymentStatus = Field(..., description="Payment status entered")
    timestamp: datetime = Field(..., description="When the payment status changed")
    comment: str = Field(default="", description="Comment given with the change")
    actor_id: str = Field(default="", description="Actor who reported the change")
    transaction_id: str | None = Field(default=None, description="Payment transaction id")


# ============================================================================
# Order Request Schemas
# ============================================================================


class OrderCreateRequest(BaseModel):
    """Request to place an order."""

    seller_id: str = Field(..., min_length=1, description="Seller (farmer) actor id")
    seller_name: str = Field(default="", description="Seller display name")
    buyer_name: str = Field(default="", description="Buyer display name")
    items: list[OrderItemRequest] = Field(..., min_length=1, description="Ordered lines")
    shipping_address: AddressSchema = Field(..., description="Delivery address")
    billing_address: AddressSchema | None = Field(
        default=None, description="Billing address; defaults to the shipping address"
    )
    payment_method: PaymentMethod = Field(..., description="Chosen payment method")
    currency: str | None = Field(default=None, min_length=3, max_length=3, description="Order currency")
    notes: str = Field(default="", max_length=2000, description="Instructions for the seller")


class TransitionRequest(BaseModel):
    """Common body of transition commands."""

    comment: str = Field(default="", max_length=1000, description="Comment stored in the history")
    expected_version: int | None = Field(
        default=None, ge=1, description="Reject the command if the order changed since this version"
    )


class ConfirmRequest(TransitionRequest):
    """Confirm a pending order."""

    payment_method: PaymentMethod | None = Field(
        default=None,
        description="Set to cash_on_delivery to confirm an unpaid order for collection at the door",
    )


class ShipRequest(TransitionRequest):
    """Ship a confirmed order."""

    provider: str = Field(default="", description="Logistics provider")
    tracking_number: str = Field(default="", description="Provider tracking number")
    tracking_url: str | None = Field(default=None, description="Tracking page URL")
    estimated_delivery: datetime | None = Field(default=None, description="Estimated delivery time")

    def tracking_info(self) -> TrackingInfo:
        return TrackingInfo(
            provider=self.provider,
            tracking_number=self.tracking_number,
            tracking_url=self.tracking_url,
            estimated_delivery=self.estimated_delivery,
        )


class ReplaceItemsRequest(BaseModel):
    """Replace the lines of a pending order."""

    items: list[OrderItemRequest] = Field(..., min_length=1, description="New order lines")
    expected_version: int | None = Field(default=None, ge=1)


class ChangeAddressesRequest(BaseModel):
    """Change delivery and/or billing address."""

    shipping_address: AddressSchema | None = Field(default=None, description="New delivery address")
    billing_address: AddressSchema | None = Field(default=None, description="New billing address")
    expected_version: int | None = Field(default=None, ge=1)


class UpdateTrackingRequest(TrackingInfoSchema):
    """Correct tracking of a shipped order."""

    expected_version: int | None = Field(default=None, ge=1)

    def to_domain(self) -> TrackingInfo:
        return TrackingInfo(**self.model_dump(exclude={"expected_version"}))


class RecordPaymentRequest(BaseModel):
    """Record a payment status reported outside the webhook channel."""

    payment_status: PaymentStatus = Field(..., description="New payment status")
    comment: str = Field(default="", max_length=1000)
    details: PaymentDetailsSchema | None = Field(default=None, description="Settlement details")
    expected_version: int | None = Field(default=None, ge=1)


# ============================================================================
# Order Response Schemas
# ============================================================================


class OrderResponse(BaseModel):
    """Full order representation."""

    id: str = Field(..., description="Order identifier")
    order_number: str = Field(..., description="Human-readable order number")
    buyer_id: str = Field(..., description="Buyer actor id")
    buyer_name: str = Field(default="", description="Buyer display name")
    seller_id: str = Field(..., description="Seller actor id")
    seller_name: str = Field(default="", description="Seller display name")
    status: OrderStatus = Field(..., description="Fulfilment status")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    payment_method: PaymentMethod = Field(..., description="Payment method")
    items: list[OrderItemSchema] = Field(..., description="Order lines")
    total_amount: PriceSchema = Field(..., description="Sum of line totals")
    shipping_address: AddressSchema = Field(..., description="Delivery address")
    billing_address: AddressSchema = Field(..., description="Billing address")
    tracking_info: TrackingInfoSchema | None = Field(default=None, description="Shipment tracking")
    payment_details: PaymentDetailsSchema | None = Field(default=None, description="Settlement details")
    notes: str = Field(default="", description="Buyer instructions")
    status_history: list[StatusHistorySchema] = Field(..., description="Status changes, oldest first")
    payment_history: list[PaymentHistorySchema] = Field(..., description="Payment changes, oldest first")
    version: int = Field(..., description="Version for optimistic concurrency")
    created_at: datetime = Field(..., description="When the order was placed")
    updated_at: datetime = Field(..., description="When the order last changed")

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            buyer_name=order.buyer_name,
            seller_id=order.seller_id,
            seller_name=order.seller_name,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            items=[
                OrderItemSchema(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit=item.unit,
                    unit_price=PriceSchema.from_money(item.unit_price),
                    line_total=PriceSchema.from_money(item.line_total),
                )
                for item in order.items
            ],
            total_amount=PriceSchema.from_money(order.total_amount),
            shipping_address=AddressSchema.from_domain(order.shipping_address),
            billing_address=AddressSchema.from_domain(order.billing_address),
            tracking_info=(
                TrackingInfoSchema.from_domain(order.tracking_info) if order.tracking_info else None
            ),
            payment_details=(
                PaymentDetailsSchema(
                    transaction_id=order.payment_details.transaction_id,
                    paid_at=order.payment_details.paid_at,
                    receipt_url=order.payment_details.receipt_url,
                )
                if order.payment_details
                else None
            ),
            notes=order.notes,
            status_history=history_to_schema(order),
            payment_history=payment_history_to_schema(order),
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


def history_to_schema(order: Order) -> list[StatusHistorySchema]:
    return [
        StatusHistorySchema(
            status=entry.status,
            timestamp=entry.timestamp,
            comment=entry.comment,
            actor_id=entry.actor_id,
        )
        for entry in order.status_history
    ]


def payment_history_to_schema(order: Order) -> list[PaymentHistorySchema]:
    return [
        PaymentHistorySchema(
            payment_status=entry.payment_status,
            timestamp=entry.timestamp,
            comment=entry.comment,
            actor_id=entry.actor_id,
            transaction_id=entry.transaction_id,
        )
        for entry in order.payment_history
    ]


class OrderSummarySchema(BaseModel):
    """Summary of an order for listing."""

    id: str = Field(..., description="Order identifier")
    order_number: str = Field(..., description="Human-readable order number")
    buyer_id: str = Field(..., description="Buyer actor id")
    buyer_name: str = Field(default="", description="Buyer display name")
    seller_id: str = Field(..., description="Seller actor id")
    seller_name: str = Field(default="", description="Seller display name")
    status: OrderStatus = Field(..., description="Fulfilment status")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    total_amount: PriceSchema = Field(..., description="Sum of line totals")
    item_count: int = Field(..., description="Number of order lines")
    created_at: datetime = Field(..., description="When the order was placed")
    updated_at: datetime = Field(..., description="When the order last changed")

    @classmethod
    def from_domain(cls, order: Order) -> "OrderSummarySchema":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            buyer_name=order.buyer_name,
            seller_id=order.seller_id,
            seller_name=order.seller_name,
            status=order.status,
            payment_status=order.payment_status,
            total_amount=PriceSchema.from_money(order.total_amount),
            item_count=len(order.items),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrdersListResponse(PaginatedResponse):
    """Paginated list of orders."""

    items: list[OrderSummarySchema] = Field(..., description="List of orders")


class OrderHistoryResponse(BaseModel):
    """Audit trails of one order."""

    order_id: str = Field(..., description="Order identifier")
    status: OrderStatus = Field(..., description="Current status")
    history: list[StatusHistorySchema] = Field(..., description="Status changes, oldest first")
    payment_status: PaymentStatus = Field(..., description="Current payment status")
    payment_history: list[PaymentHistorySchema] = Field(..., description="Payment changes, oldest first")


class OrderStatisticsResponse(BaseModel):
    """Counts and totals over the visible orders."""

    total_orders: int = Field(..., description="Number of matching orders")
    total_amounts: dict[str, int] = Field(..., description="Sum of totals per currency, minor units")
    status_counts: dict[str, int] = Field(..., description="Orders per status")
    payment_status_counts: dict[str, int] = Field(..., description="Orders per payment status")


# ============================================================================
# Webhook Schemas
# ============================================================================


class PaymentWebhookPayload(BaseModel):
    """Payment report sent by the payment subsystem."""

    event_id: str = Field(..., min_length=1, description="Unique event identifier")
    event_type: str = Field(..., description="payment.completed, payment.failed or payment.refunded")
    provider: str = Field(..., min_length=1, description="Payment provider")
    order_id: str = Field(..., description="Order the payment belongs to")
    timestamp: datetime = Field(..., description="When the provider recorded the change")
    data: dict[str, Any] = Field(default_factory=dict, description="Provider data")


class WebhookResponse(BaseModel):
    """Webhook processing response."""

    success: bool = Field(..., description="Whether the event was accepted")
    event_id: str = Field(..., description="Event identifier")
    status: str = Field(..., description="Processing status")
    message: str = Field(..., description="Result message")
    duplicate: bool = Field(default=False, description="Whether the event was seen before")
    error_code: str | None = Field(default=None, description="Rejection reason")


# ============================================================================
# Notification Schemas
# ============================================================================


class NotificationSchema(BaseModel):
    """A notification about an order the recipient takes part in."""

    id: str
    order_id: str
    order_number: str
    event_type: str
    message: str
    created_at: datetime
    read: bool


class NotificationsListResponse(BaseModel):
    items: list[NotificationSchema]
    unread_count: int

