"""Transition commands and their application to an order.

A command names the status the caller wants to reach plus the data that
transition needs. ``apply_command`` is pure with respect to storage: it
validates and mutates the given aggregate and nothing else.
"""

from dataclasses import dataclass
from typing import ClassVar

from agrimarket.domain.entities import Order
from agrimarket.domain.state_machines import OrderStatus, PaymentMethod
from agrimarket.domain.value_objects import TrackingInfo


@dataclass(frozen=True)
class Confirm:
    """Seller confirmation.

    Attributes:
        payment_method: ``CASH_ON_DELIVERY`` lets an unpaid order be confirmed.
    """

    target: ClassVar[OrderStatus] = OrderStatus.CONFIRMED

    payment_method: PaymentMethod | None = None


@dataclass(frozen=True)
class Ship:
    """Dispatch with carrier tracking details."""

    target: ClassVar[OrderStatus] = OrderStatus.SHIPPED

    tracking_info: TrackingInfo | None = None


@dataclass(frozen=True)
class Deliver:
    target: ClassVar[OrderStatus] = OrderStatus.DELIVERED


@dataclass(frozen=True)
class Cancel:
    target: ClassVar[OrderStatus] = OrderStatus.CANCELLED


TransitionCommand = Confirm | Ship | Deliver | Cancel


def apply_command(order: Order, command: TransitionCommand, actor_id: str, comment: str = "") -> None:
    """Validate and apply a transition command to an order.

    Args:
        order: Aggregate to mutate.
        command: Requested transition.
        actor_id: Acting party, recorded on the history entry.
        comment: Free-text note; ``None`` is stored as an empty string.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
        PaymentNotSettledError: If confirming an unpaid order.
        MissingTrackingInfoError: If shipping without tracking details.
        TypeError: If ``command`` is not a transition command.
    """
    comment = comment or ""
    if isinstance(command, Confirm):
        order.confirm(actor_id, comment, payment_method=command.payment_method)
    elif isinstance(command, Ship):
        order.ship(command.tracking_info, actor_id, comment)
    elif isinstance(command, Deliver):
        order.deliver(actor_id, comment)
    elif isinstance(command, Cancel):
        order.cancel(actor_id, comment)
    else:
        raise TypeError(f"Unsupported transition command: {command!r}")
