"""Value objects for the order domain.

Immutable values defined by their attributes: identifiers, money,
addresses, shipment tracking, payment receipts and the viewer scope
used for visibility decisions.
"""

from dataclasses import dataclass, fields, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Self
from uuid import UUID, uuid4

from agrimarket.domain.base import ValueObject
from agrimarket.domain.exceptions import (
    CurrencyMismatchError,
    NegativeMoneyError,
    ValidationError,
)

DEFAULT_CURRENCY = "INR"


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True)
class OrderId(ValueObject):
    """Strongly-typed, opaque order identifier."""

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        """Generate a new order ID.

        Returns:
            New OrderId with random UUID.
        """
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create OrderId from string representation.

        Args:
            value: String UUID representation.

        Returns:
            OrderId instance.

        Raises:
            ValueError: If the value is not a UUID.
        """
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Monetary value in the smallest currency unit.

    Amounts are integers (paise for INR) so that line totals and order
    totals add up exactly.

    Attributes:
        amount_minor: Amount in minor units.
        currency: ISO 4217 currency code.
    """

    amount_minor: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        if self.amount_minor < 0:
            raise NegativeMoneyError(self.amount_minor)
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Self:
        return cls(amount_minor=0, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create money from an amount in major units.

        Args:
            amount: Decimal amount (e.g. rupees).
            currency: Currency code.

        Returns:
            Money rounded half-up to the minor unit.
        """
        minor = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_minor=minor, currency=currency)

    def to_decimal(self) -> Decimal:
        """Convert to a decimal amount in major units."""
        return Decimal(self.amount_minor) / 100

    def __add__(self, other: "Money") -> "Money":
        """Add two money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(amount_minor=self.amount_minor + other.amount_minor, currency=self.currency)

    def __mul__(self, quantity: int) -> "Money":
        return Money(amount_minor=self.amount_minor * quantity, currency=self.currency)

    def __rmul__(self, quantity: int) -> "Money":
        return self.__mul__(quantity)

    def __str__(self) -> str:
        symbol = {"INR": "₹", "USD": "$", "EUR": "€"}.get(self.currency, "")
        return f"{symbol}{self.to_decimal():.2f} {self.currency}"


# ============================================================================
# Address Value Object
# ============================================================================


@dataclass(frozen=True)
class Address(ValueObject):
    """Shipping or billing address.

    Attributes:
        street: Street and house number.
        city: City or village.
        state: State or region.
        postal_code: PIN / postal code.
        country: Country name or code.
        contact_name: Person receiving the consignment (optional).
        contact_phone: Phone number for the courier (optional).
    """

    street: str
    city: str
    state: str
    postal_code: str
    country: str = "India"
    contact_name: str | None = None
    contact_phone: str | None = None

    def __post_init__(self) -> None:
        for name in ("street", "city", "postal_code"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValidationError(name, "cannot be empty")


# ============================================================================
# Shipment Tracking
# ============================================================================


@dataclass(frozen=True)
class TrackingInfo(ValueObject):
    """Carrier tracking details attached when an order ships.

    An incomplete value (blank provider or number) can be constructed so
    that the order can reject it with a tracking-specific error.

    Attributes:
        provider: Logistics provider name.
        tracking_number: Carrier tracking number.
        tracking_url: Public tracking page (optional).
        estimated_delivery: Carrier's delivery estimate (optional).
    """

    provider: str
    tracking_number: str
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider", (self.provider or "").strip())
        object.__setattr__(self, "tracking_number", (self.tracking_number or "").strip())

    def is_complete(self) -> bool:
        """Check that both provider and tracking number are present."""
        return bool(self.provider) and bool(self.tracking_number)


# ============================================================================
# Payment Receipt
# ============================================================================


@dataclass(frozen=True)
class PaymentDetails(ValueObject):
    """Receipt data reported by the payment subsystem.

    Attributes:
        transaction_id: Gateway transaction reference.
        paid_at: When the funds were captured.
        receipt_url: Link to the receipt document.
    """

    transaction_id: str | None = None
    paid_at: datetime | None = None
    receipt_url: str | None = None

    def merge(self, update: "PaymentDetails") -> Self:
        """Overlay the fields ``update`` provides; absent fields keep their value."""
        return replace(
            self,
            **{f.name: getattr(update, f.name) for f in fields(update) if getattr(update, f.name) is not None},
        )


# ============================================================================
# Viewer Scope
# ============================================================================


class ActorRole(str, Enum):
    """Marketplace roles issued by the identity provider."""

    ADMIN = "admin"
    BUYER = "buyer"
    FARMER = "farmer"
    LOGISTICS = "logistics"
    INVESTOR = "investor"
    AGRONOMIST = "agronomist"


@dataclass(frozen=True)
class ViewerScope(ValueObject):
    """Who is looking at, or acting on, orders.

    Attributes:
        viewer_id: Actor reference of the viewer.
        viewer_role: Role granted by the identity provider.
    """

    viewer_id: str
    viewer_role: ActorRole

    def __post_init__(self) -> None:
        if not self.viewer_id or not self.viewer_id.strip():
            raise ValidationError("viewer_id", "cannot be empty")

    @property
    def is_admin(self) -> bool:
        return self.viewer_role is ActorRole.ADMIN
