from __future__ import annotations

from fastapi import Request

from topicgateway.store.base import LogStore


def get_store(request: Request) -> LogStore:
    """FastAPI dependency: the single LogStore injected at app construction."""
    return request.app.state.store


def get_settings(request: Request):
    """FastAPI dependency: the GatewaySettings the app was built with."""
    return request.app.state.settings
