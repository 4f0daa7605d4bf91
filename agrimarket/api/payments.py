"""Payment subsystem webhook endpoints.

Provides:
- POST /webhooks/payments - receive payment status reports
- GET /webhooks/payments/events/{event_id} - event processing status
- HMAC signature verification
- Deduplication by provider and event_id
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from agrimarket.api.schemas import ErrorResponse, PaymentWebhookPayload, WebhookResponse
from agrimarket.application.payment_webhook_service import (
    PaymentWebhookEvent,
    PaymentWebhookService,
    get_payment_webhook_service,
)
from agrimarket.infrastructure.config import settings

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks/payments", tags=["Payments"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service() -> PaymentWebhookService:
    """Get payment webhook service."""
    return get_payment_webhook_service()


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=WebhookResponse,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Receive payment webhook",
    description="Receive and apply a payment status report with HMAC verification.",
)
async def receive_payment_webhook(
    request: Request,
    payload: PaymentWebhookPayload,
    service: Annotated[PaymentWebhookService, Depends(get_service)],
    x_payment_signature: Annotated[str | None, Header()] = None,
) -> WebhookResponse:
    """Receive and process a payment report.

    Events are deduplicated by provider and event_id. Duplicates return
    success with status="duplicate"; reports the order cannot accept
    (unknown order, payment transition not allowed) return
    success=False with the rejection's error code, so that the provider
    stops retrying them. A report that keeps losing write races gets
    409 CONCURRENT_MODIFICATION, so the provider delivers it again.

    Raises:
        HTTPException: If signature verification fails.
    """
    correlation_id = getattr(request.state, "request_id", None)

    logger.info(
        "Received payment webhook",
        event_id=payload.event_id,
        event_type=payload.event_type,
        provider=payload.provider,
        order_id=payload.order_id,
        correlation_id=correlation_id,
    )

    if x_payment_signature or settings.require_webhook_signature:
        body = await request.body()
        if not service.verify_signature(body.decode("utf-8"), x_payment_signature, payload.provider):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error_code": "INVALID_SIGNATURE",
                    "message": "Webhook signature verification failed",
                },
            )
    else:
        # Allowed only when signatures are switched off for local development
        logger.warning(
            "Payment webhook received without signature",
            event_id=payload.event_id,
            provider=payload.provider,
        )

    event = PaymentWebhookEvent(
        event_id=payload.event_id,
        event_type=payload.event_type,
        provider=payload.provider,
        order_id=payload.order_id,
        timestamp=payload.timestamp,
        data=payload.data,
    )
    result = await service.process_event(event, correlation_id=correlation_id)

    return WebhookResponse(
        success=result.success,
        event_id=result.event_id,
        status=result.status.value,
        message=result.message,
        duplicate=result.duplicate,
        error_code=result.error_code,
    )


@router.get(
    "/events/{event_id}",
    response_model=dict,
    responses={404: {"model": ErrorResponse}},
    summary="Get event status",
    description="Get the status of a previously received payment event.",
)
async def get_event_status(
    event_id: str,
    provider: str,
    service: Annotated[PaymentWebhookService, Depends(get_service)],
) -> dict[str, Any]:
    event_data = await service.event_log.get(event_id, provider)
    if event_data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "EVENT_NOT_FOUND",
                "message": f"Event not found: {event_id}",
            },
        )
    return event_data
