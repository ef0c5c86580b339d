"""Shared test doubles and helpers."""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Optional

from topicgateway.store.base import Entry, LogStore, StoreError
from topicgateway.store.memory import InMemoryLogStore


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def parse_ts(text: str) -> datetime:
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


class RecordingLogStore(InMemoryLogStore):
    """In-memory store that remembers which capabilities were called."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    async def append(self, topic: str, entry: Entry) -> int:
        self.calls.append("append")
        return await super().append(topic, entry)

    async def read_at(self, topic: str, offset: int) -> Optional[Entry]:
        self.calls.append("read_at")
        return await super().read_at(topic, offset)

    async def wait_for_next(self, topic: str, offset: int, max_wait_s: float) -> Optional[Entry]:
        self.calls.append("wait_for_next")
        return await super().wait_for_next(topic, offset, max_wait_s)


class FailingLogStore(LogStore):
    """Store whose every capability reports an engine fault."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or StoreError("disk on fire")

    async def append(self, topic: str, entry: Entry) -> int:
        raise self.exc

    async def read_at(self, topic: str, offset: int) -> Optional[Entry]:
        raise self.exc

    async def wait_for_next(self, topic: str, offset: int, max_wait_s: float) -> Optional[Entry]:
        raise self.exc
