"""
In-memory log store.

Deterministic and dependency-free; used as the gateway's test double and for
ephemeral deployments where entries need not survive a restart.
"""

from dataclasses import replace
from typing import Dict, List, Optional

from topicgateway.core.log.format import MAX_PAYLOAD_BYTES
from topicgateway.store.base import Entry, EntryTooLargeError, LogStore
from topicgateway.store.signals import TopicSignals
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryLogStore(LogStore):
    """
    Keeps every topic as a list; an entry's offset is its list position.
    
    All operations run on the event loop without awaiting between reading and
    updating a topic, so concurrent appends never share an offset.
    """
    
    def __init__(self, max_entry_bytes: int = MAX_PAYLOAD_BYTES):
        self.max_entry_bytes = max_entry_bytes
        self._topics: Dict[str, List[Entry]] = {}
        self._signals = TopicSignals()
    
    async def append(self, topic: str, entry: Entry) -> int:
        entry_bytes = len(entry.key) + len(entry.value)
        if entry_bytes > self.max_entry_bytes:
            raise EntryTooLargeError(
                f"entry of {entry_bytes} bytes exceeds the {self.max_entry_bytes} byte limit"
            )
        
        entries = self._topics.setdefault(topic, [])
        offset = len(entries)
        entries.append(replace(entry, offset=offset))
        
        self._signals.notify(topic)
        
        logger.debug("Appended entry", topic=topic, offset=offset)
        return offset
    
    async def read_at(self, topic: str, offset: int) -> Optional[Entry]:
        entries = self._topics.get(topic, [])
        if 0 <= offset < len(entries):
            return entries[offset]
        return None
    
    async def wait_for_next(
        self,
        topic: str,
        offset: int,
        max_wait_s: float,
    ) -> Optional[Entry]:
        async def check() -> Optional[Entry]:
            entries = self._topics.get(topic, [])
            if offset < len(entries):
                return entries[max(offset, 0)]
            return None
        
        return await self._signals.wait_until(topic, check, max_wait_s)
    
    def topic_length(self, topic: str) -> int:
        """
        Number of entries stored in a topic.
        
        Args:
            topic: Topic name
        
        Returns:
            Entry count (0 for unknown topics)
        """
        return len(self._topics.get(topic, []))
