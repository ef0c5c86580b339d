"""Per-request logging context."""

from __future__ import annotations

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from topicgateway.utils.logging import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = b"x-request-id"


class RequestContextMiddleware:
    """
    Bind request_id, method and path into structlog contextvars.

    Every log line emitted while a request is handled carries those fields, the
    request id is echoed in the ``x-request-id`` response header, and one
    "Handled request" line is logged per request. Plain ASGI so the request's
    receive channel reaches the routes untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        request_id = headers.get(REQUEST_ID_HEADER, b"").decode("latin-1") or uuid.uuid4().hex
        status_code = 500
        started = time.perf_counter()

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message = {
                    **message,
                    "headers": [*message.get("headers", []), (REQUEST_ID_HEADER, request_id.encode("latin-1"))],
                }
            await send(message)

        bind_request_context(request_id, scope.get("method", ""), scope.get("path", ""))
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            logger.info(
                "Handled request",
                status=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
            )
            clear_request_context()
