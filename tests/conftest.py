"""Shared fixtures for all tests."""

import pytest

from agrimarket.application.idempotency_service import reset_idempotency_service
from agrimarket.application.notifications import reset_notifications
from agrimarket.application.payment_webhook_service import reset_payment_webhook_service
from agrimarket.domain import ActorRole, ViewerScope
from agrimarket.infrastructure.order_store import InMemoryOrderStore, set_order_store
from factories import ADMIN_ID, BUYER_ID, SELLER_ID, make_viewer


def _reset() -> None:
    set_order_store(InMemoryOrderStore())
    reset_notifications()
    reset_idempotency_service()
    reset_payment_webhook_service()


@pytest.fixture(autouse=True)
def reset_globals():
    """Give every test a fresh store, inbox and service singletons."""
    _reset()
    yield
    _reset()


@pytest.fixture
def admin() -> ViewerScope:
    return make_viewer(ADMIN_ID, ActorRole.ADMIN)


@pytest.fixture
def buyer() -> ViewerScope:
    return make_viewer(BUYER_ID, ActorRole.BUYER)


@pytest.fixture
def seller() -> ViewerScope:
    return make_viewer(SELLER_ID, ActorRole.FARMER)
