"""Payment subsystem webhook processing.

The payment subsystem reports settlement changes as signed events:
- HMAC-SHA256 signature verification (``sha256=<hex>``)
- deduplication by provider and event id
- translation into ``record_payment`` calls on the Transition Engine
"""

import hashlib
import hmac
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from agrimarket.application.transition_engine import TransitionEngine
from agrimarket.domain.base import utc_now
from agrimarket.domain.exceptions import ConcurrentModificationError, DomainError
from agrimarket.domain.state_machines import PaymentStatus
from agrimarket.domain.value_objects import PaymentDetails
from agrimarket.infrastructure.config import settings

logger = structlog.get_logger()


class PaymentEventType(str, Enum):
    """Event types sent by the payment subsystem."""

    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"


_EVENT_PAYMENT_STATUS: dict[str, PaymentStatus] = {
    PaymentEventType.PAYMENT_COMPLETED.value: PaymentStatus.COMPLETED,
    PaymentEventType.PAYMENT_FAILED.value: PaymentStatus.FAILED,
    PaymentEventType.PAYMENT_REFUNDED.value: PaymentStatus.REFUNDED,
}


class EventStatus(str, Enum):
    """Status of a webhook event in the event log."""

    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass
class PaymentWebhookEvent:
    """A payment report for one order.

    Attributes:
        event_id: Provider's unique event identifier.
        event_type: Dotted event type, e.g. ``payment.completed``.
        provider: Payment provider that sent the event.
        order_id: Order the payment belongs to.
        timestamp: When the provider recorded the change.
        data: Provider data (transaction_id, receipt_url, ...).
    """

    event_id: str
    event_type: str
    provider: str
    order_id: str
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def compute_payload_hash(self) -> str:
        payload = json.dumps(
            {
                "event_id": self.event_id,
                "event_type": self.event_type,
                "provider": self.provider,
                "order_id": self.order_id,
                "data": self.data,
            },
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(payload.encode()).hexdigest()

    def payment_details(self) -> PaymentDetails:
        return PaymentDetails(
            transaction_id=self.data.get("transaction_id"),
            paid_at=self.timestamp if self.event_type == PaymentEventType.PAYMENT_COMPLETED.value else None,
            receipt_url=self.data.get("receipt_url"),
        )


@dataclass
class WebhookResult:
    """Result of webhook processing."""

    success: bool
    event_id: str
    status: EventStatus
    message: str
    duplicate: bool = False
    error_code: str | None = None


class WebhookSignatureVerifier:
    """Verifies HMAC-SHA256 signatures on webhook payloads."""

    def __init__(self, secret: str | None = None) -> None:
        self.secret = secret or settings.payment_webhook_secret

    def sign(self, payload: str) -> str:
        """Signature header value for ``payload``."""
        digest = hmac.new(self.secret.encode(), payload.encode(), hashlib.sha256).hexdigest()
        return f"sha256={digest}"

    def verify(self, payload: str, signature: str | None, provider: str) -> bool:
        """Verify the signature header of a webhook payload.

        Args:
            payload: Raw request body.
            signature: Signature header value (``sha256=<hex>``).
            provider: Provider name, for logging.

        Returns:
            True if the signature is present and valid.
        """
        if not signature:
            logger.warning("Missing payment webhook signature", provider=provider)
            return False

        scheme, _, received = signature.partition("=")
        if scheme != "sha256" or not received:
            logger.warning(
                "Invalid payment webhook signature format",
                provider=provider,
                signature_prefix=signature[:20],
            )
            return False

        expected = self.sign(payload).partition("=")[2]
        if not hmac.compare_digest(expected, received):
            logger.warning("Payment webhook signature mismatch", provider=provider)
            return False
        return True


class InMemoryEventLog:
    """Event log used to deduplicate provider retries."""

    def __init__(self) -> None:
        self._events: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(event_id: str, provider: str) -> str:
        return f"{provider}:{event_id}"

    async def claim(self, event: PaymentWebhookEvent, correlation_id: str | None = None) -> bool:
        """Record an event as processing unless it was seen before.

        Events that previously failed can be claimed again.

        Returns:
            False if the event is already processing or processed.
        """
        key = self._key(event.event_id, event.provider)
        with self._lock:
            existing = self._events.get(key)
            if existing is not None and existing["status"] != EventStatus.FAILED.value:
                return False
            self._events[key] = {
                "event_id": event.event_id,
                "provider": event.provider,
                "event_type": event.event_type,
                "order_id": event.order_id,
                "payload_hash": event.compute_payload_hash(),
                "received_at": utc_now(),
                "processed_at": None,
                "status": EventStatus.PROCESSING.value,
                "error_message": None,
                "correlation_id": correlation_id,
            }
            return True

    async def get(self, event_id: str, provider: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._events.get(self._key(event_id, provider))
            return dict(entry) if entry is not None else None

    async def update_status(
        self,
        event_id: str,
        provider: str,
        status: EventStatus,
        error_message: str | None = None,
    ) -> None:
        with self._lock:
            entry = self._events.get(self._key(event_id, provider))
            if entry is None:
                return
            entry["status"] = status.value
            if status in (EventStatus.PROCESSED, EventStatus.IGNORED):
                entry["processed_at"] = utc_now()
            if error_message:
                entry["error_message"] = error_message


class PaymentWebhookService:
    """Applies payment subsystem events to orders."""

    ACTOR_PREFIX = "payment"

    def __init__(
        self,
        engine: TransitionEngine | None = None,
        event_log: InMemoryEventLog | None = None,
        signature_verifier: WebhookSignatureVerifier | None = None,
        conflict_retries: int | None = None,
    ) -> None:
        self._engine = engine
        self.event_log = event_log or InMemoryEventLog()
        self.signature_verifier = signature_verifier or WebhookSignatureVerifier()
        self.conflict_retries = (
            settings.payment_conflict_retries if conflict_retries is None else conflict_retries
        )

    @property
    def engine(self) -> TransitionEngine:
        """Injected engine, or one bound to the current global store."""
        return self._engine or TransitionEngine()

    def verify_signature(self, payload: str, signature: str | None, provider: str) -> bool:
        return self.signature_verifier.verify(payload, signature, provider)

    async def process_event(
        self,
        event: PaymentWebhookEvent,
        correlation_id: str | None = None,
    ) -> WebhookResult:
        """Deduplicate and apply a payment event.

        Business rejections (unknown order, payment transition not allowed)
        are recorded as a failed event and returned, not raised. A report
        that loses a write race is re-applied up to ``conflict_retries``
        times before the conflict is raised.

        Args:
            event: Parsed webhook event.
            correlation_id: Request correlation ID.

        Returns:
            Processing result.

        Raises:
            ConcurrentModificationError: If every attempt lost its race; the
                event is left failed so a redelivery can claim it.
        """
        log = logger.bind(
            event_id=event.event_id,
            event_type=event.event_type,
            provider=event.provider,
            order_id=event.order_id,
            correlation_id=correlation_id,
        )
        log.info("Processing payment webhook event")

        if not await self.event_log.claim(event, correlation_id):
            log.info("Duplicate payment webhook event ignored")
            return WebhookResult(
                success=True,
                event_id=event.event_id,
                status=EventStatus.DUPLICATE,
                message="Event already processed",
                duplicate=True,
            )

        payment_status = _EVENT_PAYMENT_STATUS.get(event.event_type)
        if payment_status is None:
            await self.event_log.update_status(event.event_id, event.provider, EventStatus.IGNORED)
            log.info("Unhandled payment webhook event type")
            return WebhookResult(
                success=True,
                event_id=event.event_id,
                status=EventStatus.IGNORED,
                message=f"Event type '{event.event_type}' is not handled",
            )

        try:
            await self._record_payment(event, payment_status, log)
        except ConcurrentModificationError as e:
            await self.event_log.update_status(
                event.event_id,
                event.provider,
                EventStatus.FAILED,
                error_message=e.message,
            )
            log.warning("Payment webhook event kept losing write races", error=e.message)
            raise
        except DomainError as e:
            await self.event_log.update_status(
                event.event_id,
                event.provider,
                EventStatus.FAILED,
                error_message=e.message,
            )
            log.warning("Payment webhook event rejected", error_code=e.error_code, error=e.message)
            return WebhookResult(
                success=False,
                event_id=event.event_id,
                status=EventStatus.FAILED,
                message=e.message,
                error_code=e.error_code,
            )
        except Exception:
            await self.event_log.update_status(
                event.event_id,
                event.provider,
                EventStatus.FAILED,
                error_message="internal error",
            )
            raise

        await self.event_log.update_status(event.event_id, event.provider, EventStatus.PROCESSED)
        log.info("Payment webhook event processed", payment_status=payment_status.value)
        return WebhookResult(
            success=True,
            event_id=event.event_id,
            status=EventStatus.PROCESSED,
            message="Event processed successfully",
        )

    async def _record_payment(
        self,
        event: PaymentWebhookEvent,
        payment_status: PaymentStatus,
        log: Any,
    ) -> None:
        """Apply the report, re-applying it on fresh state after a lost race.

        Raises:
            ConcurrentModificationError: If every attempt lost its race.
        """
        engine = self.engine
        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await engine.record_payment(
                    event.order_id,
                    payment_status,
                    actor_id=f"{self.ACTOR_PREFIX}:{event.provider}",
                    comment=event.data.get("comment") or f"Reported by {event.provider}",
                    details=event.payment_details(),
                )
                return
            except ConcurrentModificationError:
                if attempt == attempts:
                    raise
                log.info("Payment webhook lost a write race, retrying", attempt=attempt)


# Global service instance
_payment_webhook_service: PaymentWebhookService | None = None


def get_payment_webhook_service() -> PaymentWebhookService:
    global _payment_webhook_service
    if _payment_webhook_service is None:
        _payment_webhook_service = PaymentWebhookService()
    return _payment_webhook_service


def reset_payment_webhook_service() -> None:
    """Reset the global service (for testing)."""
    global _payment_webhook_service
    _payment_webhook_service = None
