"""
Log-store capability consumed by the gateway.

The gateway only ever talks to a store through these three operations, so any
engine that honors the contract below can back it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class StoreError(Exception):
    """Raised when the store itself fails to append, read or wait."""
    pass


class EntryTooLargeError(StoreError):
    """Raised by append when an entry's key and value exceed the store's limit."""
    pass


@dataclass
class Entry:
    """
    One record of a topic.
    
    Attributes:
        key: Opaque entry key
        value: Opaque payload
        timestamp: Producer-supplied, timezone-aware timestamp
        offset: Position in the topic; None until the entry is stored
    """
    
    key: bytes
    value: bytes
    timestamp: datetime
    offset: Optional[int] = None


class LogStore(ABC):
    """
    Append-only, offset-addressed store organized into topics.
    
    Implementations must be safe to call concurrently from many requests
    running on the same event loop. Topics are created by their first append;
    reading or waiting on an unknown topic behaves like reading past its end.
    """
    
    @abstractmethod
    async def append(self, topic: str, entry: Entry) -> int:
        """
        Append an entry to a topic.
        
        Args:
            topic: Topic name
            entry: Entry to append (its offset is ignored)
        
        Returns:
            Offset assigned to the entry; it is readable as soon as this returns
        
        Raises:
            EntryTooLargeError: If the entry exceeds the store's size limit
            StoreError: If the append fails
        """
    
    @abstractmethod
    async def read_at(self, topic: str, offset: int) -> Optional[Entry]:
        """
        Read the entry stored at an offset without waiting.
        
        Args:
            topic: Topic name
            offset: Offset to read
        
        Returns:
            The entry, or None if nothing is stored there
        
        Raises:
            StoreError: If the lookup fails
        """
    
    @abstractmethod
    async def wait_for_next(
        self,
        topic: str,
        offset: int,
        max_wait_s: float,
    ) -> Optional[Entry]:
        """
        Wait up to max_wait_s for an entry at or after an offset.
        
        Returns as soon as such an entry exists. A zero wait checks once and
        returns immediately.
        
        Args:
            topic: Topic name
            offset: First acceptable offset
            max_wait_s: Maximum wait in seconds
        
        Returns:
            The first entry at or after offset, or None if none arrived in time
        
        Raises:
            StoreError: If the wait fails
        """
    
    async def close(self) -> None:
        """Release resources held by the store."""
