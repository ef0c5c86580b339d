from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from helpers import RecordingLogStore
from topicgateway.gateway.app import GatewaySettings, create_app


@pytest.fixture
def store() -> RecordingLogStore:
    return RecordingLogStore()


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(max_poll_duration_s=10.0, disconnect_check_interval_s=0.05)


@pytest.fixture
def client(store: RecordingLogStore, settings: GatewaySettings):
    with TestClient(create_app(store, settings)) as test_client:
        yield test_client
