"""
Durable log store backed by the segment-file engine.

Disk I/O is blocking, so every engine call runs on a dedicated thread pool and
the event loop only awaits its completion.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

from topicgateway.core.log.format import MAX_PAYLOAD_BYTES, Record, RecordTooLargeError
from topicgateway.core.log.log import DiskFullError
from topicgateway.core.topic.topic_manager import TopicManager
from topicgateway.store.base import Entry, EntryTooLargeError, LogStore, StoreError
from topicgateway.store.signals import TopicSignals
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ENGINE_ERRORS = (OSError, ValueError, OverflowError, DiskFullError)


def _to_entry(record: Record) -> Entry:
    return Entry(
        key=record.key,
        value=record.value,
        timestamp=record.timestamp,
        offset=record.offset,
    )


class DiskLogStore(LogStore):
    """
    LogStore over one segment-file Log per topic.
    
    Attributes:
        data_dir: Directory holding one subdirectory per topic
    """
    
    def __init__(
        self,
        data_dir: Path,
        log_config: Optional[Dict[str, Any]] = None,
        disk_io_threads: int = 8,
    ):
        """
        Initialize the store.
        
        Args:
            data_dir: Base directory for topic data
            log_config: Keyword arguments for each topic's Log
                (max_segment_bytes, max_segment_age_ms, fsync_on_append,
                index_interval_bytes, max_entry_bytes)
            disk_io_threads: Thread pool size for disk I/O
        """
        self.data_dir = Path(data_dir)
        self.max_entry_bytes = int((log_config or {}).get("max_entry_bytes", MAX_PAYLOAD_BYTES))
        self._topics = TopicManager(self.data_dir, log_config)
        self._signals = TopicSignals()
        self._executor = ThreadPoolExecutor(
            max_workers=disk_io_threads,
            thread_name_prefix="disk-io",
        )
        
        logger.info(
            "Initialized disk log store",
            data_dir=str(self.data_dir),
            disk_threads=disk_io_threads,
        )
    
    async def _run(self, operation: str, topic: str, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, fn)
        except RecordTooLargeError as e:
            logger.info("Rejected oversized entry", operation=operation, topic=topic, error=str(e))
            raise EntryTooLargeError(str(e)) from e
        except ENGINE_ERRORS as e:
            logger.error("Store operation failed", operation=operation, topic=topic, error=str(e))
            raise StoreError(f"{operation} on topic {topic!r} failed: {e}") from e
    
    async def append(self, topic: str, entry: Entry) -> int:
        entry_bytes = len(entry.key) + len(entry.value)
        if entry_bytes > self.max_entry_bytes:
            logger.info("Rejected oversized entry", topic=topic, entry_bytes=entry_bytes)
            raise EntryTooLargeError(
                f"entry of {entry_bytes} bytes exceeds the {self.max_entry_bytes} byte limit"
            )
        
        def do_append() -> int:
            log = self._topics.get_or_create_log(topic)
            return log.append(entry.key, entry.value, entry.timestamp)
        
        offset = await self._run("append", topic, do_append)
        self._signals.notify(topic)
        
        logger.debug("Appended entry", topic=topic, offset=offset)
        return offset
    
    def _read_first_at_or_after(self, topic: str, offset: int) -> Optional[Entry]:
        log = self._topics.get_log(topic)
        if log is None or log.next_offset() <= offset:
            return None
        
        for record in log.read(start_offset=offset, max_records=1):
            return _to_entry(record)
        return None
    
    async def read_at(self, topic: str, offset: int) -> Optional[Entry]:
        def do_read() -> Optional[Entry]:
            log = self._topics.get_log(topic)
            if log is None:
                return None
            record = log.read_at(offset)
            return _to_entry(record) if record is not None else None
        
        return await self._run("read", topic, do_read)
    
    async def wait_for_next(
        self,
        topic: str,
        offset: int,
        max_wait_s: float,
    ) -> Optional[Entry]:
        check = partial(
            self._run,
            "wait",
            topic,
            partial(self._read_first_at_or_after, topic, offset),
        )
        return await self._signals.wait_until(topic, check, max_wait_s)
    
    async def close(self) -> None:
        """Close every topic log and stop the disk thread pool."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._topics.close_all)
        self._executor.shutdown(wait=True)
        
        logger.info("Closed disk log store", data_dir=str(self.data_dir))
