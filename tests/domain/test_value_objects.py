"""Tests for domain value objects."""

from decimal import Decimal
from uuid import UUID

import pytest

from agrimarket.domain import (
    ActorRole,
    Address,
    CurrencyMismatchError,
    Money,
    NegativeMoneyError,
    OrderId,
    TrackingInfo,
    ValidationError,
    ViewerScope,
)


class TestOrderId:
    def test_generate_unique(self) -> None:
        assert OrderId.generate() != OrderId.generate()

    def test_round_trips_through_string(self) -> None:
        order_id = OrderId.generate()
        assert OrderId.from_string(str(order_id)) == order_id
        assert isinstance(order_id.value, UUID)

    def test_rejects_non_uuid(self) -> None:
        with pytest.raises(ValueError):
            OrderId.from_string("not-a-uuid")


class TestMoney:
    """Tests for Money value object."""

    def test_defaults_to_rupees(self) -> None:
        assert Money(100).currency == "INR"

    def test_currency_is_normalized(self) -> None:
        assert Money(100, "usd").currency == "USD"

    def test_addition(self) -> None:
        assert Money(50) + Money(60) == Money(110)

    def test_multiplication_by_quantity(self) -> None:
        assert Money(25) * 2 == Money(50)
        assert 3 * Money(10) == Money(30)

    def test_adding_different_currencies_fails(self) -> None:
        with pytest.raises(CurrencyMismatchError) as exc_info:
            Money(100, "INR") + Money(100, "USD")
        assert exc_info.value.error_code == "MONEY_ERROR"

    def test_negative_amount_rejected(self) -> None:
        with pytest.raises(NegativeMoneyError):
            Money(-1)

    def test_from_decimal_rounds_half_up(self) -> None:
        assert Money.from_decimal(Decimal("12.345")).amount_minor == 1235

    def test_to_decimal(self) -> None:
        assert Money(1999).to_decimal() == Decimal("19.99")

    def test_str(self) -> None:
        assert str(Money(11000)) == "₹110.00 INR"

    def test_zero(self) -> None:
        assert Money.zero("EUR") == Money(0, "EUR")


class TestAddress:
    def test_valid_address(self) -> None:
        address = Address(street="1 Mandi Road", city="Pune", state="MH", postal_code="411001")
        assert address.country == "India"

    @pytest.mark.parametrize("field", ["street", "city", "postal_code"])
    def test_required_fields(self, field: str) -> None:
        values = {"street": "1 Mandi Road", "city": "Pune", "state": "MH", "postal_code": "411001"}
        values[field] = "  "
        with pytest.raises(ValidationError) as exc_info:
            Address(**values)
        assert exc_info.value.field == field


class TestTrackingInfo:
    def test_fields_are_stripped(self) -> None:
        tracking = TrackingInfo(provider=" AE ", tracking_number=" AE123 ")
        assert tracking.provider == "AE"
        assert tracking.tracking_number == "AE123"
        assert tracking.is_complete()

    def test_blank_number_is_incomplete(self) -> None:
        assert not TrackingInfo(provider="AE", tracking_number="   ").is_complete()

    def test_blank_provider_is_incomplete(self) -> None:
        assert not TrackingInfo(provider="", tracking_number="AE123").is_complete()


class TestViewerScope:
    def test_admin_flag(self) -> None:
        assert ViewerScope("u1", ActorRole.ADMIN).is_admin
        assert not ViewerScope("u1", ActorRole.FARMER).is_admin

    def test_viewer_id_required(self) -> None:
        with pytest.raises(ValidationError):
            ViewerScope(" ", ActorRole.BUYER)
