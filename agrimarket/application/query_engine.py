"""Query Engine.

Read-only listing, lookup and statistics over a consistent snapshot of
the order store, always restricted to what the viewer may see.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from math import ceil

import structlog

from agrimarket.application.transition_engine import parse_order_id
from agrimarket.domain.base import as_utc
from agrimarket.domain.entities import Order
from agrimarket.domain.exceptions import OrderNotFoundError, ValidationError
from agrimarket.domain.state_machines import OrderStatus, PaymentStatus
from agrimarket.domain.value_objects import OrderId, ViewerScope
from agrimarket.infrastructure.config import settings
from agrimarket.infrastructure.order_store import OrderStore, get_order_store

logger = structlog.get_logger()


# ============================================================================
# Query inputs and results
# ============================================================================


class SortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TOTAL_AMOUNT = "total_amount"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class OrderFilters:
    """Conjunctive filters; ``None`` means "no restriction".

    Attributes:
        status: Only orders in this status.
        payment_status: Only orders with this payment status.
        search: Case-insensitive substring of id, order number,
            counterpart name or item name.
        created_from: Inclusive lower bound on ``created_at``.
        created_to: Inclusive upper bound on ``created_at``.
        buyer_id: Only orders of this buyer.
        seller_id: Only orders of this seller.
    """

    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    buyer_id: str | None = None
    seller_id: str | None = None


@dataclass(frozen=True)
class PageRequest:
    page_number: int = 1
    page_size: int = field(default_factory=lambda: settings.default_page_size)


@dataclass(frozen=True)
class SortOrder:
    sort_by: SortField = SortField.CREATED_AT
    direction: SortDirection = SortDirection.DESC


@dataclass
class OrderPage:
    """One page of a filtered, sorted order list."""

    items: list[Order]
    total: int
    page: int
    page_size: int
    page_count: int

    @property
    def has_more(self) -> bool:
        return self.page < self.page_count


@dataclass
class OrderStatistics:
    """Aggregate figures over the orders a viewer can see.

    Attributes:
        total_orders: Number of matching orders.
        total_amounts: Sum of order totals per currency, in minor units.
        status_counts: Orders per status, every status present.
        payment_status_counts: Orders per payment status, every status present.
    """

    total_orders: int
    total_amounts: dict[str, int]
    status_counts: dict[str, int]
    payment_status_counts: dict[str, int]


# ============================================================================
# Query Engine
# ============================================================================


class QueryEngine:
    """Visibility-scoped reads over the order store."""

    def __init__(self, store: OrderStore | None = None, max_page_size: int | None = None) -> None:
        self._store = store or get_order_store()
        self._max_page_size = settings.max_page_size if max_page_size is None else max_page_size

    async def list_orders(
        self,
        scope: ViewerScope,
        filters: OrderFilters | None = None,
        page: PageRequest | None = None,
        sort: SortOrder | None = None,
    ) -> OrderPage:
        """List the orders visible to ``scope``.

        Args:
            scope: Viewer whose visibility applies.
            filters: Conjunctive filters.
            page: 1-based page number and page size.
            sort: Sort key and direction; ties are broken by id ascending.

        Returns:
            The requested page. A page past the end has no items.

        Raises:
            ValidationError: If page bounds or the date range are invalid.
        """
        filters = filters or OrderFilters()
        page = page or PageRequest()
        sort = sort or SortOrder()
        self._validate(filters, page)

        orders = self._apply_filters(scope, filters, await self._store.list_all())
        orders = _sorted(orders, sort)

        total = len(orders)
        start = (page.page_number - 1) * page.page_size
        items = orders[start:start + page.page_size]
        logger.debug(
            "Orders listed",
            viewer_id=scope.viewer_id,
            viewer_role=scope.viewer_role.value,
            total=total,
            page=page.page_number,
            page_size=page.page_size,
        )
        return OrderPage(
            items=items,
            total=total,
            page=page.page_number,
            page_size=page.page_size,
            page_count=ceil(total / page.page_size),
        )

    async def get_order(self, scope: ViewerScope, order_id: OrderId | str) -> Order:
        """Get one order the viewer may see.

        Raises:
            OrderNotFoundError: If it does not exist or is not visible.
        """
        oid = parse_order_id(order_id)
        order = await self._store.get(oid)
        if order is None or not is_visible(scope, order):
            raise OrderNotFoundError(str(oid))
        return order

    async def statistics(
        self,
        scope: ViewerScope,
        filters: OrderFilters | None = None,
    ) -> OrderStatistics:
        """Counts and totals over the orders visible to ``scope``."""
        filters = filters or OrderFilters()
        self._validate(filters, None)
        orders = self._apply_filters(scope, filters, await self._store.list_all())

        totals: Counter[str] = Counter()
        for order in orders:
            totals[order.currency] += order.total_amount.amount_minor
        statuses = Counter(order.status.value for order in orders)
        payments = Counter(order.payment_status.value for order in orders)
        return OrderStatistics(
            total_orders=len(orders),
            total_amounts=dict(totals),
            status_counts={s.value: statuses.get(s.value, 0) for s in OrderStatus},
            payment_status_counts={s.value: payments.get(s.value, 0) for s in PaymentStatus},
        )

    def _validate(self, filters: OrderFilters, page: PageRequest | None) -> None:
        if page is not None:
            if page.page_number < 1:
                raise ValidationError("page", "must be 1 or greater")
            if page.page_size < 1:
                raise ValidationError("page_size", "must be 1 or greater")
            if page.page_size > self._max_page_size:
                raise ValidationError("page_size", f"must not exceed {self._max_page_size}")
        if (
            filters.created_from is not None
            and filters.created_to is not None
            and as_utc(filters.created_from) > as_utc(filters.created_to)
        ):
            raise ValidationError("created_from", "must not be later than created_to")

    def _apply_filters(
        self,
        scope: ViewerScope,
        filters: OrderFilters,
        orders: list[Order],
    ) -> list[Order]:
        needle = (filters.search or "").strip().lower()
        created_from = as_utc(filters.created_from) if filters.created_from else None
        created_to = as_utc(filters.created_to) if filters.created_to else None

        matched = []
        for order in orders:
            if not is_visible(scope, order):
                continue
            if filters.status is not None and order.status is not filters.status:
                continue
            if filters.payment_status is not None and order.payment_status is not filters.payment_status:
                continue
            if filters.buyer_id is not None and order.buyer_id != filters.buyer_id:
                continue
            if filters.seller_id is not None and order.seller_id != filters.seller_id:
                continue
            if created_from is not None and order.created_at < created_from:
                continue
            if created_to is not None and order.created_at > created_to:
                continue
            if needle and not _matches_search(order, needle, scope):
                continue
            matched.append(order)
        return matched


def is_visible(scope: ViewerScope, order: Order) -> bool:
    """Admins see every order; everyone else sees orders they are party to."""
    return scope.is_admin or order.is_party(scope.viewer_id)


def _matches_search(order: Order, needle: str, scope: ViewerScope) -> bool:
    haystack = [str(order.id), order.order_number]
    viewer = None if scope.is_admin else scope.viewer_id
    haystack.extend(order.counterpart_names(viewer))
    haystack.extend(item.name for item in order.items)
    return any(needle in value.lower() for value in haystack if value)


def _sorted(orders: list[Order], sort: SortOrder) -> list[Order]:
    # Python's sort is stable, so the id order survives as the tie-breaker
    by_id = sorted(orders, key=lambda order: str(order.id))
    if sort.sort_by is SortField.TOTAL_AMOUNT:
        key = lambda order: order.total_amount.amount_minor  # noqa: E731
    elif sort.sort_by is SortField.UPDATED_AT:
        key = lambda order: order.updated_at  # noqa: E731
    else:
        key = lambda order: order.created_at  # noqa: E731
    return sorted(by_id, key=key, reverse=sort.direction is SortDirection.DESC)
