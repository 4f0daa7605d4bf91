"""Test data factories shared across test packages."""

from agrimarket.domain import (
    ActorRole,
    Address,
    Money,
    Order,
    OrderItem,
    PaymentMethod,
    ViewerScope,
)
from agrimarket.infrastructure.order_store import InMemoryOrderStore

BUYER_ID = "buyer-1"
SELLER_ID = "farmer-1"
ADMIN_ID = "admin-1"


def make_address(city: str = "Nashik") -> Address:
    """Create a test address."""
    return Address(
        street="12 Market Yard Road",
        city=city,
        state="Maharashtra",
        postal_code="422001",
        contact_name="Ravi",
        contact_phone="+91-9000000000",
    )


def make_item(
    product_id: str = "tomato",
    name: str = "Tomatoes",
    quantity: int = 2,
    unit_price: int = 25,
    currency: str = "INR",
) -> OrderItem:
    """Create a test order line."""
    return OrderItem(
        product_id=product_id,
        name=name,
        quantity=quantity,
        unit_price=Money(unit_price, currency),
    )


def make_items() -> list[OrderItem]:
    """Two lines totalling 110: 2 x 25 and 1 x 60."""
    return [
        make_item("tomato", "Tomatoes", 2, 25),
        make_item("onion", "Red Onions", 1, 60),
    ]


def make_order(
    buyer_id: str = BUYER_ID,
    seller_id: str = SELLER_ID,
    items: list[OrderItem] | None = None,
    payment_method: PaymentMethod = PaymentMethod.UPI,
    buyer_name: str = "Asha Traders",
    seller_name: str = "Green Valley Farm",
) -> Order:
    """Create a freshly placed order."""
    return Order.place(
        buyer_id=buyer_id,
        seller_id=seller_id,
        buyer_name=buyer_name,
        seller_name=seller_name,
        items=items or make_items(),
        shipping_address=make_address(),
        payment_method=payment_method,
    )


def make_viewer(viewer_id: str, role: ActorRole) -> ViewerScope:
    return ViewerScope(viewer_id=viewer_id, viewer_role=role)


def actor_headers(actor_id: str, role: str) -> dict[str, str]:
    """Identity headers set by the gateway."""
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


class RivalEditOrderStore(InMemoryOrderStore):
    """Commits a buyer address change ahead of each of the next ``races`` saves."""

    def __init__(self, races: int = 1) -> None:
        super().__init__()
        self.races = races

    async def save(self, order: Order, expected_version: int) -> None:
        if self.races > 0:
            self.races -= 1
            rival = await self.get(order.id)
            loaded_version = rival.version
            rival.change_addresses(rival.buyer_id, shipping_address=make_address("Pune"))
            await super().save(rival, loaded_version)
        await super().save(order, expected_version)
