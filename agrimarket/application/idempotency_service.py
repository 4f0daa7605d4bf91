"""Idempotency for retried order mutations.

A client that did not see the outcome of a transition retries it with
the same ``Idempotency-Key``. The first request reserves the key; a
retry after completion replays the stored response instead of applying
the command again, and a retry that arrives while the first request is
still running is told so rather than racing it.
"""

import hashlib
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import structlog

from agrimarket.domain.base import utc_now
from agrimarket.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class IdempotencyScope:
    """Where a key is valid: per actor, per method and per endpoint.

    Two actors using the same key value never see each other's responses.
    """

    key: str
    actor_id: str
    method: str
    endpoint: str

    def storage_key(self) -> str:
        return f"{self.actor_id}:{self.key}:{self.method}:{self.endpoint}"


@dataclass
class CachedResponse:
    """A stored response for a completed idempotent request."""

    status_code: int
    body: dict[str, Any]
    request_hash: str | None
    created_at: datetime
    expires_at: datetime


class IdempotencyOutcome(str, Enum):
    PROCEED = "proceed"
    REPLAY = "replay"
    CONFLICT = "conflict"
    IN_PROGRESS = "in_progress"


@dataclass
class IdempotencyResult:
    """Decision for an incoming request carrying an idempotency key."""

    outcome: IdempotencyOutcome
    cached_response: CachedResponse | None = None
    message: str | None = None


class InMemoryIdempotencyStore:
    """Process-local reservations and responses, guarded by a lock."""

    def __init__(self, ttl_hours: int | None = None) -> None:
        self._responses: dict[str, CachedResponse] = {}
        self._in_flight: dict[str, str | None] = {}
        self._lock = threading.Lock()
        self.ttl = timedelta(hours=ttl_hours if ttl_hours is not None else settings.idempotency_ttl_hours)

    def reserve(self, storage_key: str, request_hash: str | None) -> IdempotencyResult:
        """Atomically look up a key and reserve it if unseen."""
        now = utc_now()
        with self._lock:
            cached = self._responses.get(storage_key)
            if cached is not None and now > cached.expires_at:
                del self._responses[storage_key]
                cached = None

            if cached is not None:
                if _differs(cached.request_hash, request_hash):
                    return IdempotencyResult(
                        outcome=IdempotencyOutcome.CONFLICT,
                        message="Idempotency key already used with a different request body",
                    )
                return IdempotencyResult(outcome=IdempotencyOutcome.REPLAY, cached_response=cached)

            if storage_key in self._in_flight:
                if _differs(self._in_flight[storage_key], request_hash):
                    return IdempotencyResult(
                        outcome=IdempotencyOutcome.CONFLICT,
                        message="Idempotency key already used with a different request body",
                    )
                return IdempotencyResult(
                    outcome=IdempotencyOutcome.IN_PROGRESS,
                    message="A request with this idempotency key is still being processed",
                )

            self._in_flight[storage_key] = request_hash
            return IdempotencyResult(outcome=IdempotencyOutcome.PROCEED)

    def complete(
        self,
        storage_key: str,
        status_code: int,
        body: dict[str, Any],
        request_hash: str | None,
    ) -> CachedResponse:
        now = utc_now()
        cached = CachedResponse(
            status_code=status_code,
            body=body,
            request_hash=request_hash,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._in_flight.pop(storage_key, None)
            self._responses[storage_key] = cached
        return cached

    def release(self, storage_key: str) -> None:
        with self._lock:
            self._in_flight.pop(storage_key, None)

    def cleanup_expired(self) -> int:
        """Remove expired responses and return how many were dropped."""
        now = utc_now()
        with self._lock:
            expired = [key for key, cached in self._responses.items() if now > cached.expires_at]
            for key in expired:
                del self._responses[key]
        return len(expired)


def _differs(stored_hash: str | None, request_hash: str | None) -> bool:
    return stored_hash is not None and request_hash is not None and stored_hash != request_hash


class IdempotencyService:
    """Begin/complete protocol around an idempotent request."""

    def __init__(self, storage: InMemoryIdempotencyStore | None = None) -> None:
        self._storage = storage or InMemoryIdempotencyStore()

    @staticmethod
    def compute_request_hash(body: dict[str, Any] | None) -> str | None:
        """SHA-256 of the canonical JSON body, or None without a body."""
        if body is None:
            return None
        payload = json.dumps(body, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    def begin(self, scope: IdempotencyScope, request_body: dict[str, Any] | None) -> IdempotencyResult:
        """Decide whether to run, replay or refuse a request.

        A ``PROCEED`` result reserves the key; the caller must follow up
        with ``complete`` or ``abandon``.
        """
        result = self._storage.reserve(scope.storage_key(), self.compute_request_hash(request_body))
        if result.outcome is not IdempotencyOutcome.PROCEED:
            logger.info(
                "Idempotency key seen before",
                idempotency_key=scope.key,
                actor_id=scope.actor_id,
                endpoint=scope.endpoint,
                outcome=result.outcome.value,
            )
        return result

    def complete(
        self,
        scope: IdempotencyScope,
        status_code: int,
        body: dict[str, Any],
        request_body: dict[str, Any] | None,
    ) -> None:
        """Store the response so that retries replay it."""
        self._storage.complete(
            scope.storage_key(),
            status_code,
            body,
            self.compute_request_hash(request_body),
        )
        logger.debug(
            "Stored idempotent response",
            idempotency_key=scope.key,
            endpoint=scope.endpoint,
            status=status_code,
        )

    def abandon(self, scope: IdempotencyScope) -> None:
        """Release the key without storing a response, allowing a retry."""
        self._storage.release(scope.storage_key())


# Global service instance
_idempotency_service: IdempotencyService | None = None


def get_idempotency_service() -> IdempotencyService:
    global _idempotency_service
    if _idempotency_service is None:
        _idempotency_service = IdempotencyService()
    return _idempotency_service


def reset_idempotency_service() -> None:
    """Reset the global service (for testing)."""
    global _idempotency_service
    _idempotency_service = None
