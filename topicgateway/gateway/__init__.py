"""HTTP gateway exposing produce, consume and poll over a LogStore."""

from topicgateway.gateway.app import GatewaySettings, create_app

__all__ = ["GatewaySettings", "create_app"]
