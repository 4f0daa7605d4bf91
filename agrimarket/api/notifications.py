"""Notification inbox endpoints.

- GET /notifications - the viewer's notifications, newest first
- POST /notifications/{id}/read - mark one as read
"""

from fastapi import APIRouter, HTTPException, Query, status

from agrimarket.api.dependencies import CurrentViewer
from agrimarket.api.schemas import ErrorResponse, NotificationSchema, NotificationsListResponse
from agrimarket.application.notifications import Notification, get_notification_log

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _to_schema(notification: Notification) -> NotificationSchema:
    return NotificationSchema(
        id=notification.id,
        order_id=notification.order_id,
        order_number=notification.order_number,
        event_type=notification.event_type,
        message=notification.message,
        created_at=notification.created_at,
        read=notification.read,
    )


@router.get(
    "",
    response_model=NotificationsListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List notifications",
)
async def list_notifications(
    viewer: CurrentViewer,
    unread_only: bool = Query(default=False, description="Only unread notifications"),
) -> NotificationsListResponse:
    log = get_notification_log()
    notifications = log.list_for(viewer.viewer_id, unread_only=unread_only)
    unread = notifications if unread_only else log.list_for(viewer.viewer_id, unread_only=True)
    return NotificationsListResponse(
        items=[_to_schema(n) for n in notifications],
        unread_count=len(unread),
    )


@router.post(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Mark notification read",
)
async def mark_notification_read(notification_id: str, viewer: CurrentViewer) -> None:
    if not get_notification_log().mark_read(viewer.viewer_id, notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "NOTIFICATION_NOT_FOUND",
                "message": f"Notification not found: {notification_id}",
            },
        )
