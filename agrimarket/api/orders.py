"""Order API endpoints.

Provides endpoints for the order lifecycle:
- POST /orders - place an order
- GET /orders - list orders visible to the viewer (filtered, sorted, paginated)
- GET /orders/statistics - counts and totals over visible orders
- GET /orders/{id} - order details
- GET /orders/{id}/history - status and payment audit trails
- POST /orders/{id}/confirm|ship|deliver|cancel - status transitions
- PUT /orders/{id}/items|addresses|tracking|payment - order edits

Business errors raised by the services are rendered by the application's
``DomainError`` handler.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from agrimarket.api.dependencies import CurrentViewer
from agrimarket.api.schemas import (
    ChangeAddressesRequest,
    ConfirmRequest,
    ErrorResponse,
    OrderCreateRequest,
    OrderHistoryResponse,
    OrderResponse,
    OrdersListResponse,
    OrderStatisticsResponse,
    OrderSummarySchema,
    RecordPaymentRequest,
    ReplaceItemsRequest,
    ShipRequest,
    TransitionRequest,
    UpdateTrackingRequest,
    history_to_schema,
    payment_history_to_schema,
)
from agrimarket.application.order_service import OrderService, get_order_service
from agrimarket.application.query_engine import (
    OrderFilters,
    PageRequest,
    SortDirection,
    SortField,
    SortOrder,
)
from agrimarket.domain.commands import Cancel, Confirm, Deliver, Ship
from agrimarket.domain.state_machines import OrderStatus, PaymentStatus
from agrimarket.infrastructure.config import settings

router = APIRouter(prefix="/orders", tags=["Orders"])

_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> OrderService:
    """Get order service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_order_service(request_id=request_id)


Service = Annotated[OrderService, Depends(get_service)]


def get_filters(
    status_filter: OrderStatus | None = Query(default=None, alias="status", description="Order status"),
    payment_status: PaymentStatus | None = Query(default=None, description="Payment status"),
    search: str | None = Query(default=None, description="Order id, number, counterpart or product"),
    created_from: datetime | None = Query(default=None, description="Placed at or after"),
    created_to: datetime | None = Query(default=None, description="Placed at or before"),
    buyer_id: str | None = Query(default=None, description="Buyer actor id"),
    seller_id: str | None = Query(default=None, description="Seller actor id"),
) -> OrderFilters:
    return OrderFilters(
        status=status_filter,
        payment_status=payment_status,
        search=search,
        created_from=created_from,
        created_to=created_to,
        buyer_id=buyer_id,
        seller_id=seller_id,
    )


Filters = Annotated[OrderFilters, Depends(get_filters)]


# ============================================================================
# Queries
# ============================================================================


@router.get(
    "",
    response_model=OrdersListResponse,
    responses=_ERRORS,
    summary="List orders",
    description="Get a paginated list of the orders the viewer takes part in (all orders for admins).",
)
async def list_orders(
    viewer: CurrentViewer,
    service: Service,
    filters: Filters,
    page: int = Query(default=1, description="Page number (1-based)"),
    page_size: int | None = Query(default=None, description="Items per page"),
    sort_by: SortField = Query(default=SortField.CREATED_AT, description="Sort key"),
    sort_direction: SortDirection = Query(default=SortDirection.DESC, description="Sort direction"),
) -> OrdersListResponse:
    """List orders with filtering, sorting and pagination.

    Page bounds are validated by the query engine so that out-of-range
    values produce the standard ``VALIDATION_ERROR`` envelope.
    """
    result = await service.list_orders(
        viewer,
        filters,
        PageRequest(
            page_number=page,
            page_size=settings.default_page_size if page_size is None else page_size,
        ),
        SortOrder(sort_by=sort_by, direction=sort_direction),
    )
    return OrdersListResponse(
        items=[OrderSummarySchema.from_domain(order) for order in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        page_count=result.page_count,
        has_more=result.has_more,
    )


@router.get(
    "/statistics",
    response_model=OrderStatisticsResponse,
    responses=_ERRORS,
    summary="Order statistics",
)
async def order_statistics(
    viewer: CurrentViewer,
    service: Service,
    filters: Filters,
) -> OrderStatisticsResponse:
    stats = await service.statistics(viewer, filters)
    return OrderStatisticsResponse(
        total_orders=stats.total_orders,
        total_amounts=stats.total_amounts,
        status_counts=stats.status_counts,
        payment_status_counts=stats.payment_status_counts,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Get order details",
)
async def get_order(order_id: str, viewer: CurrentViewer, service: Service) -> OrderResponse:
    """Get an order by ID.

    Orders the viewer does not take part in are reported as not found.
    """
    order = await service.get_order(viewer, order_id)
    return OrderResponse.from_domain(order)


@router.get(
    "/{order_id}/history",
    response_model=OrderHistoryResponse,
    responses=_ERRORS,
    summary="Get order audit trails",
)
async def get_order_history(order_id: str, viewer: CurrentViewer, service: Service) -> OrderHistoryResponse:
    order = await service.get_order(viewer, order_id)
    return OrderHistoryResponse(
        order_id=str(order.id),
        status=order.status,
        history=history_to_schema(order),
        payment_status=order.payment_status,
        payment_history=payment_history_to_schema(order),
    )


# ============================================================================
# Placement
# ============================================================================


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Place order",
    description="Place an order with the viewer as buyer.",
)
async def place_order(
    request: OrderCreateRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    currency = request.currency or settings.default_currency
    order = await service.place_order(
        viewer,
        seller_id=request.seller_id,
        seller_name=request.seller_name,
        buyer_name=request.buyer_name,
        items=[item.to_domain(currency) for item in request.items],
        shipping_address=request.shipping_address.to_domain(),
        billing_address=request.billing_address.to_domain() if request.billing_address else None,
        payment_method=request.payment_method,
        currency=currency,
        notes=request.notes,
    )
    return OrderResponse.from_domain(order)


# ============================================================================
# Transitions
# ============================================================================


@router.post(
    "/{order_id}/confirm",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Confirm order",
    description="Confirm a pending order. Requires completed payment unless confirmed as cash on delivery.",
)
async def confirm_order(
    order_id: str,
    request: ConfirmRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.transition(
        viewer,
        order_id,
        Confirm(payment_method=request.payment_method),
        comment=request.comment,
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


@router.post(
    "/{order_id}/ship",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Ship order",
    description="Ship a confirmed order. Provider and tracking number are required.",
)
async def ship_order(
    order_id: str,
    request: ShipRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.transition(
        viewer,
        order_id,
        Ship(tracking_info=request.tracking_info()),
        comment=request.comment,
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


@router.post(
    "/{order_id}/deliver",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Mark order delivered",
)
async def deliver_order(
    order_id: str,
    request: TransitionRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.transition(
        viewer,
        order_id,
        Deliver(),
        comment=request.comment,
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Cancel order",
    description="Cancel an order that is not delivered. Completed payments are refunded.",
)
async def cancel_order(
    order_id: str,
    request: TransitionRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.transition(
        viewer,
        order_id,
        Cancel(),
        comment=request.comment,
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


# ============================================================================
# Edits
# ============================================================================


@router.put(
    "/{order_id}/items",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Replace order items",
    description="Replace the lines of a pending order.",
)
async def replace_items(
    order_id: str,
    request: ReplaceItemsRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    current = await service.get_order(viewer, order_id)
    order = await service.replace_items(
        viewer,
        order_id,
        [item.to_domain(current.currency) for item in request.items],
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


@router.put(
    "/{order_id}/addresses",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Change order addresses",
)
async def change_addresses(
    order_id: str,
    request: ChangeAddressesRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.change_addresses(
        viewer,
        order_id,
        shipping_address=request.shipping_address.to_domain() if request.shipping_address else None,
        billing_address=request.billing_address.to_domain() if request.billing_address else None,
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


@router.put(
    "/{order_id}/tracking",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Update tracking",
    description="Correct tracking information of a shipped or delivered order.",
)
async def update_tracking(
    order_id: str,
    request: UpdateTrackingRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.update_tracking(
        viewer,
        order_id,
        request.to_domain(),
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)


@router.put(
    "/{order_id}/payment",
    response_model=OrderResponse,
    responses=_ERRORS,
    summary="Record payment status",
    description="Record a payment status reported outside the webhook channel (administrators only).",
)
async def record_payment(
    order_id: str,
    request: RecordPaymentRequest,
    viewer: CurrentViewer,
    service: Service,
) -> OrderResponse:
    order = await service.record_payment(
        viewer,
        order_id,
        request.payment_status,
        comment=request.comment,
        details=request.details.to_domain() if request.details else None,
        expected_version=request.expected_version,
    )
    return OrderResponse.from_domain(order)
