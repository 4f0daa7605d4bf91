"""Order Store contract and in-memory implementation.

The store is the single source of truth for orders. Callers always get
detached copies: mutating a loaded order has no effect until it is
saved, and ``save`` only succeeds when the stored version still equals
the version the caller loaded.
"""

import copy
import threading
from abc import ABC, abstractmethod

import structlog

from agrimarket.domain.entities import Order
from agrimarket.domain.exceptions import ConcurrentModificationError, OrderNotFoundError
from agrimarket.domain.value_objects import OrderId
from agrimarket.infrastructure.config import settings

logger = structlog.get_logger()


class OrderStore(ABC):
    """Persistence contract for the Order aggregate."""

    @abstractmethod
    async def add(self, order: Order) -> None:
        """Persist a newly placed order."""

    @abstractmethod
    async def get(self, order_id: OrderId) -> Order | None:
        """Load a detached copy of an order, or None if it does not exist."""

    @abstractmethod
    async def save(self, order: Order, expected_version: int) -> None:
        """Replace a stored order if nobody else changed it first.

        Args:
            order: Mutated aggregate to store.
            expected_version: Version the caller loaded.

        Raises:
            OrderNotFoundError: If the order does not exist.
            ConcurrentModificationError: If the stored version differs.
        """

    @abstractmethod
    async def list_all(self) -> list[Order]:
        """Return a consistent snapshot of every order."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backing storage cannot be reached."""


class InMemoryOrderStore(OrderStore):
    """Process-local store guarded by a lock.

    All reads and writes copy under the lock, so readers never observe a
    half-applied change and two writers of the same order cannot both win.
    """

    def __init__(self) -> None:
        self._orders: dict[OrderId, Order] = {}
        self._lock = threading.Lock()

    async def add(self, order: Order) -> None:
        stored = _detach(order)
        with self._lock:
            if order.id in self._orders:
                raise ValueError(f"Order {order.id} already exists")
            self._orders[order.id] = stored

    async def get(self, order_id: OrderId) -> Order | None:
        with self._lock:
            stored = self._orders.get(order_id)
            return copy.deepcopy(stored) if stored is not None else None

    async def save(self, order: Order, expected_version: int) -> None:
        stored = _detach(order)
        with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                raise OrderNotFoundError(str(order.id))
            if current.version != expected_version:
                raise ConcurrentModificationError(str(order.id), expected_version, current.version)
            self._orders[order.id] = stored

    async def list_all(self) -> list[Order]:
        with self._lock:
            return [copy.deepcopy(order) for order in self._orders.values()]

    async def ping(self) -> None:
        return None


def _detach(order: Order) -> Order:
    stored = copy.deepcopy(order)
    stored.collect_events()
    return stored


# ============================================================================
# Store accessor
# ============================================================================

_store: OrderStore | None = None


def get_order_store() -> OrderStore:
    """Get the process-wide order store, creating it on first use.

    The backend is chosen by ``settings.order_store_backend``.
    """
    global _store
    if _store is None:
        if settings.order_store_backend == "database":
            from agrimarket.infrastructure.sql_order_store import SqlOrderStore

            _store = SqlOrderStore()
        else:
            _store = InMemoryOrderStore()
        logger.info("Order store initialized", backend=type(_store).__name__)
    return _store


def set_order_store(store: OrderStore) -> None:
    """Install a specific store (used by the app factory and tests)."""
    global _store
    _store = store


def reset_order_store() -> None:
    """Drop the current store; the next access creates a fresh one."""
    global _store
    _store = None
