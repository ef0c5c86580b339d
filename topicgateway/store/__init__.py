"""
Log-store capability and its engines.

- LogStore: the abstract append / read_at / wait_for_next capability
- InMemoryLogStore: deterministic in-process engine
- DiskLogStore: durable segment-file engine
"""

from topicgateway.store.base import Entry, EntryTooLargeError, LogStore, StoreError
from topicgateway.store.disk import DiskLogStore
from topicgateway.store.memory import InMemoryLogStore

__all__ = [
    "DiskLogStore",
    "Entry",
    "EntryTooLargeError",
    "InMemoryLogStore",
    "LogStore",
    "StoreError",
]
