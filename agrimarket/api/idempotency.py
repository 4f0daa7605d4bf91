"""Idempotency middleware for mutating order endpoints.

Provides:
- Idempotency-Key header handling, scoped per acting actor
- Replay of stored responses for retried requests
- Refusal of concurrent duplicates and of keys reused with another body
"""

import json
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agrimarket.api.middleware import ACTOR_ID_HEADER
from agrimarket.application.idempotency_service import (
    IdempotencyOutcome,
    IdempotencyScope,
    IdempotencyService,
    get_idempotency_service,
)


# Endpoints honouring idempotency keys
IDEMPOTENT_ENDPOINTS = {
    "/orders": ["POST"],
    "/orders/{order_id}/confirm": ["POST"],
    "/orders/{order_id}/ship": ["POST"],
    "/orders/{order_id}/deliver": ["POST"],
    "/orders/{order_id}/cancel": ["POST"],
    "/orders/{order_id}/items": ["PUT"],
    "/orders/{order_id}/addresses": ["PUT"],
    "/orders/{order_id}/tracking": ["PUT"],
    "/orders/{order_id}/payment": ["PUT"],
}


def _matches_pattern(path: str, pattern: str) -> bool:
    """Check if ``path`` matches ``pattern``, where ``{name}`` matches one segment."""
    path_parts = path.rstrip("/").split("/")
    pattern_parts = pattern.rstrip("/").split("/")
    if len(path_parts) != len(pattern_parts):
        return False
    return all(
        (pattern_part.startswith("{") and pattern_part.endswith("}")) or path_part == pattern_part
        for path_part, pattern_part in zip(path_parts, pattern_parts)
    )


def _requires_idempotency(path: str, method: str) -> bool:
    return any(
        method in methods and _matches_pattern(path, pattern)
        for pattern, methods in IDEMPOTENT_ENDPOINTS.items()
    )


def _is_cacheable(status_code: int) -> bool:
    # Conflicts and server errors must be retryable with the same key
    return status_code < 500 and status_code != status.HTTP_409_CONFLICT


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Replays stored responses for retried mutations."""

    HEADER_NAME = "Idempotency-Key"
    REPLAY_HEADER = "X-Idempotent-Replayed"

    def __init__(self, app, service: IdempotencyService | None = None) -> None:
        super().__init__(app)
        self._service = service

    @property
    def service(self) -> IdempotencyService:
        return self._service or get_idempotency_service()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path.rstrip("/")
        method = request.method
        idempotency_key = request.headers.get(self.HEADER_NAME)

        if not idempotency_key or not _requires_idempotency(path, method):
            return await call_next(request)

        request_body = None
        body = await request.body()
        if body:
            try:
                request_body = json.loads(body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                request_body = {"_raw": body.decode("utf-8", errors="replace")}

        scope = IdempotencyScope(
            key=idempotency_key,
            actor_id=request.headers.get(ACTOR_ID_HEADER, ""),
            method=method,
            endpoint=path,
        )
        result = self.service.begin(scope, request_body)

        if result.outcome is IdempotencyOutcome.CONFLICT:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "error_code": "IDEMPOTENCY_CONFLICT",
                    "message": result.message,
                    "details": [],
                },
            )
        if result.outcome is IdempotencyOutcome.IN_PROGRESS:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "error_code": "IDEMPOTENCY_IN_PROGRESS",
                    "message": result.message,
                    "details": [],
                },
            )
        if result.outcome is IdempotencyOutcome.REPLAY and result.cached_response:
            response = JSONResponse(
                status_code=result.cached_response.status_code,
                content=result.cached_response.body,
            )
            response.headers[self.REPLAY_HEADER] = "true"
            return response

        try:
            response = await call_next(request)
        except Exception:
            self.service.abandon(scope)
            raise

        if not _is_cacheable(response.status_code):
            self.service.abandon(scope)
            return response

        response_body = b""
        async for chunk in response.body_iterator:
            response_body += chunk
        try:
            response_dict = json.loads(response_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            response_dict = {}

        self.service.complete(scope, response.status_code, response_dict, request_body)

        new_response = JSONResponse(status_code=response.status_code, content=response_dict)
        for key, value in response.headers.items():
            if key.lower() not in ("content-length", "content-type"):
                new_response.headers[key] = value
        return new_response


def setup_idempotency_middleware(app: FastAPI) -> None:
    """Add idempotency middleware to the application."""
    app.add_middleware(IdempotencyMiddleware)
