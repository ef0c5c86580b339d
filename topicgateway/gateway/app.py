from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from topicgateway import __version__
from topicgateway.gateway.duration import parse_duration
from topicgateway.gateway.errors import APIError, api_error_handler, unhandled_error_handler, validation_error_handler
from topicgateway.gateway.middleware import RequestContextMiddleware
from topicgateway.gateway.routes import router
from topicgateway.store.base import LogStore
from topicgateway.utils.config import Config
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GatewaySettings:
    """
    Request-handling limits of the gateway.

    Attributes:
        max_poll_duration_s: Longest poll window a client may ask for
        disconnect_check_interval_s: Seconds between client disconnect checks
            while a poll waits; <= 0 disables the checks
    """

    max_poll_duration_s: float = 300.0
    disconnect_check_interval_s: float = 0.25

    @classmethod
    def from_config(cls, config: Config) -> "GatewaySettings":
        return cls(
            max_poll_duration_s=parse_duration(str(config.get("gateway.max_poll_duration", "5m"))),
            disconnect_check_interval_s=int(config.get("gateway.disconnect_check_interval_ms", 250)) / 1000,
        )


def create_app(store: LogStore, settings: GatewaySettings | None = None) -> FastAPI:
    """
    Build the gateway application around one shared store.

    The store is reused by every request and closed when the app shuts down.

    Args:
        store: LogStore backing all topics
        settings: Request-handling limits (defaults apply when omitted)

    Returns:
        FastAPI application
    """
    settings = settings or GatewaySettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ANN202
        logger.info(
            "Gateway started",
            store=type(store).__name__,
            max_poll_duration_s=settings.max_poll_duration_s,
        )
        try:
            yield
        finally:
            await store.close()
            logger.info("Gateway stopped")

    app = FastAPI(title="TopicGateway", version=__version__, lifespan=lifespan)
    app.state.store = store
    app.state.settings = settings

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.add_middleware(RequestContextMiddleware)

    app.include_router(router)

    return app
