"""Role permissions for order operations.

Visibility is handled by the Query Engine; these checks decide whether a
viewer who can see an order may also change it. Status rules stay with
the Transition Engine: a permitted actor can still get an invalid
transition.
"""

from agrimarket.domain.commands import Cancel, Confirm, Deliver, Ship, TransitionCommand
from agrimarket.domain.entities import Order
from agrimarket.domain.exceptions import PermissionDeniedError
from agrimarket.domain.state_machines import OrderStatus
from agrimarket.domain.value_objects import ViewerScope


def ensure_can_transition(order: Order, command: TransitionCommand, viewer: ViewerScope) -> None:
    """Check that ``viewer`` may issue ``command`` against ``order``.

    Raises:
        PermissionDeniedError: If the viewer's role or relation to the
            order does not allow the command.
    """
    if viewer.is_admin:
        return

    action = f"{command.target.value} order {order.order_number}"
    is_buyer = viewer.viewer_id == order.buyer_id
    is_seller = viewer.viewer_id == order.seller_id

    if isinstance(command, Confirm):
        allowed = is_seller
        reason = "only the seller can confirm an order"
    elif isinstance(command, Ship):
        allowed = is_seller
        reason = "only the seller can ship an order"
    elif isinstance(command, Deliver):
        allowed = is_buyer or is_seller
        reason = "only the buyer or the seller can mark delivery"
    elif isinstance(command, Cancel):
        if not (is_buyer or is_seller):
            allowed = False
            reason = "only the buyer or the seller can cancel an order"
        else:
            allowed = order.status is not OrderStatus.SHIPPED
            reason = "a shipped order can only be cancelled by an administrator"
    else:
        allowed = False
        reason = "unsupported command"

    if not allowed:
        raise PermissionDeniedError(viewer.viewer_id, action, reason)


def ensure_can_edit(order: Order, viewer: ViewerScope, what: str) -> None:
    """Items and addresses belong to the buyer."""
    if viewer.is_admin or viewer.viewer_id == order.buyer_id:
        return
    raise PermissionDeniedError(
        viewer.viewer_id,
        f"change {what} of order {order.order_number}",
        "only the buyer can change this",
    )


def ensure_can_update_tracking(order: Order, viewer: ViewerScope) -> None:
    if viewer.is_admin or viewer.viewer_id == order.seller_id:
        return
    raise PermissionDeniedError(
        viewer.viewer_id,
        f"update tracking of order {order.order_number}",
        "only the seller can update tracking",
    )


def ensure_can_record_payment(viewer: ViewerScope) -> None:
    """Manual payment updates are an administrator action."""
    if not viewer.is_admin:
        raise PermissionDeniedError(
            viewer.viewer_id,
            "update payment status",
            "only an administrator can record payments manually",
        )
