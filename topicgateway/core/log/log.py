"""
Log manager for handling multiple segments with automatic rotation.

Manages the segments of one topic, rotating to a new segment when the active
one reaches its size or age threshold, and recovering segments on open.
"""

import errno
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from topicgateway.core.index.offset_index import OffsetIndex
from topicgateway.core.log.format import MAX_PAYLOAD_BYTES, Record, RecordTooLargeError
from topicgateway.core.log.reader import LogSegmentReader
from topicgateway.core.log.segment import LogSegment
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)


class DiskFullError(Exception):
    """Raised when disk is full."""
    pass


class Log:
    """
    Manages multiple log segments with automatic rotation.
    
    The log consists of multiple segments, where each segment is a file on disk.
    When a segment reaches its size or time threshold, a new segment is created.
    Offsets start at 0 and are assigned without gaps.
    
    Attributes:
        directory: Directory containing log segments
        max_segment_bytes: Maximum bytes per segment before rotation
        max_segment_age_ms: Maximum age in milliseconds before rotation
    """
    
    def __init__(
        self,
        directory: Path,
        max_segment_bytes: int = 1073741824,
        max_segment_age_ms: int = 604800000,
        fsync_on_append: bool = False,
        index_interval_bytes: int = OffsetIndex.DEFAULT_INTERVAL_BYTES,
        max_entry_bytes: int = MAX_PAYLOAD_BYTES,
    ):
        """
        Initialize a log.
        
        Args:
            directory: Directory to store log segments
            max_segment_bytes: Maximum segment size in bytes (default: 1GB)
            max_segment_age_ms: Maximum segment age in ms (default: 7 days)
            fsync_on_append: Whether to fsync after each append
            index_interval_bytes: Bytes between offset index entries
            max_entry_bytes: Largest key plus value accepted by append
        
        Raises:
            ValueError: If max_entry_bytes exceeds what a frame can hold
        """
        if not 0 < max_entry_bytes <= MAX_PAYLOAD_BYTES:
            raise ValueError(
                f"max_entry_bytes must be in (0, {MAX_PAYLOAD_BYTES}], got {max_entry_bytes}"
            )
        
        self.directory = Path(directory)
        self.max_entry_bytes = max_entry_bytes
        self.max_segment_bytes = max_segment_bytes
        self.max_segment_age_ms = max_segment_age_ms
        self.fsync_on_append = fsync_on_append
        self.index_interval_bytes = index_interval_bytes
        
        self.directory.mkdir(parents=True, exist_ok=True)
        
        self._segments: List[LogSegment] = []
        self._active_segment: Optional[LogSegment] = None
        
        self._write_lock = threading.RLock()
        self._segments_lock = threading.RLock()
        
        self._recover_segments()
        
        logger.info(
            "Initialized log",
            directory=str(self.directory),
            segments=len(self._segments),
            next_offset=self.next_offset(),
        )
    
    def _new_segment(self, base_offset: int) -> LogSegment:
        return LogSegment(
            base_offset=base_offset,
            directory=self.directory,
            max_size_bytes=self.max_segment_bytes,
            fsync_on_append=self.fsync_on_append,
            index_interval_bytes=self.index_interval_bytes,
        )
    
    def _recover_segments(self) -> None:
        """Recover existing segments from disk."""
        segment_files = sorted(
            self.directory.glob(f"*{LogSegment.SEGMENT_FILE_SUFFIX}"),
            key=lambda p: int(p.stem),
        )
        
        if not segment_files:
            self._create_new_segment(base_offset=0)
            return
        
        for segment_file in segment_files:
            base_offset = int(segment_file.stem)
            segment = self._new_segment(base_offset)
            
            reader = LogSegmentReader(segment_file, base_offset)
            try:
                record_count, valid_bytes = reader.recover_valid_records()
            finally:
                reader.close()
            
            segment.restore(valid_bytes, record_count)
            self._segments.append(segment)
        
        self._active_segment = self._segments[-1]
    
    def _create_new_segment(self, base_offset: int) -> None:
        """
        Create a new segment and make it active.
        
        Args:
            base_offset: Starting offset for the new segment
        
        Raises:
            DiskFullError: If disk is full
        """
        with self._segments_lock:
            if self._active_segment is not None:
                self._active_segment.flush()
            
            try:
                segment = self._new_segment(base_offset)
            except OSError as e:
                if e.errno == errno.ENOSPC:
                    raise DiskFullError("Disk is full, cannot create new segment") from e
                raise
            
            self._segments.append(segment)
            self._active_segment = segment
            
            logger.info(
                "Created new segment",
                directory=str(self.directory),
                base_offset=base_offset,
                total_segments=len(self._segments),
            )
    
    def _should_rotate(self) -> bool:
        """
        Check if active segment should be rotated.
        
        Returns:
            True if rotation is needed
        """
        if self._active_segment is None:
            return True
        
        if self._active_segment.is_full():
            logger.info(
                "Rotation triggered by size",
                size=self._active_segment.size(),
                max_size=self.max_segment_bytes,
            )
            return True
        
        age_ms = self._active_segment.age_ms()
        
        if age_ms >= self.max_segment_age_ms and self._active_segment.size() > 0:
            logger.info(
                "Rotation triggered by age",
                age_ms=age_ms,
                max_age_ms=self.max_segment_age_ms,
            )
            return True
        
        return False
    
    def append(self, key: bytes, value: bytes, timestamp: datetime) -> int:
        """
        Append an entry to the log.
        
        Thread-safe; appends are serialized so offsets never interleave.
        
        Args:
            key: Entry key
            value: Entry payload
            timestamp: Producer-supplied, timezone-aware timestamp
        
        Returns:
            The offset assigned to the entry
        
        Raises:
            RecordTooLargeError: If key and value exceed max_entry_bytes;
                nothing is written
            DiskFullError: If disk is full
        """
        entry_bytes = len(key) + len(value)
        if entry_bytes > self.max_entry_bytes:
            raise RecordTooLargeError(
                f"Entry of {entry_bytes} bytes exceeds the {self.max_entry_bytes} byte limit"
            )
        
        with self._write_lock:
            if self._should_rotate():
                self._create_new_segment(self.next_offset())
            
            record = Record(offset=0, timestamp=timestamp, key=key, value=value)
            
            try:
                offset = self._active_segment.append(record)
            except OSError as e:
                if e.errno == errno.ENOSPC:
                    raise DiskFullError("Disk is full, cannot append") from e
                raise
            
            logger.debug(
                "Appended to log",
                directory=str(self.directory),
                offset=offset,
                key_size=len(key),
                value_size=len(value),
            )
            
            return offset
    
    def _find_segment(self, offset: int) -> Optional[LogSegment]:
        with self._segments_lock:
            for segment in reversed(self._segments):
                if segment.base_offset <= offset:
                    return segment if segment.contains(offset) else None
        return None
    
    def read_at(self, offset: int) -> Optional[Record]:
        """
        Read the record stored at an offset.
        
        Uses the segment's offset index to seek close to the record.
        
        Args:
            offset: Offset to read
        
        Returns:
            The record, or None if nothing is stored at that offset
        """
        if offset < 0:
            return None
        
        segment = self._find_segment(offset)
        if segment is None:
            return None
        
        start_offset, start_position = segment.lookup_position(offset)
        
        reader = LogSegmentReader(segment.path, segment.base_offset)
        try:
            return reader.read_at_offset(
                offset,
                start_offset=start_offset,
                start_position=start_position,
            )
        finally:
            reader.close()
    
    def read(self, start_offset: int, max_records: int = 100) -> Iterator[Record]:
        """
        Read records starting from an offset.
        
        Only records appended before the call are returned.
        
        Args:
            start_offset: Offset to start reading from
            max_records: Maximum number of records to read
        
        Yields:
            Records in order
        """
        end_offset = self.next_offset()
        records_read = 0
        
        with self._segments_lock:
            segments_snapshot = list(self._segments)
        
        for segment in segments_snapshot:
            if segment.next_offset() <= start_offset:
                continue
            
            if segment.base_offset > start_offset:
                scan_offset, scan_position = segment.base_offset, 0
            else:
                scan_offset, scan_position = segment.lookup_position(start_offset)
            
            reader = LogSegmentReader(segment.path, segment.base_offset)
            try:
                for record in reader.read_all(
                    start_offset=scan_offset,
                    start_position=scan_position,
                ):
                    if record.offset >= end_offset:
                        return
                    if record.offset < start_offset:
                        continue
                    
                    yield record
                    records_read += 1
                    
                    if records_read >= max_records:
                        return
            finally:
                reader.close()
    
    def next_offset(self) -> int:
        """
        Get the offset the next append will receive.
        
        Returns:
            Next offset (0 for an empty log)
        """
        if self._active_segment is None:
            return 0
        return self._active_segment.next_offset()
    
    def segment_count(self) -> int:
        return len(self._segments)
    
    def flush(self) -> None:
        """Flush all segments to disk."""
        with self._segments_lock:
            for segment in self._segments:
                segment.flush()
    
    def close(self) -> None:
        """Close all segments."""
        with self._write_lock, self._segments_lock:
            for segment in self._segments:
                segment.close()
        
        logger.info("Closed log", directory=str(self.directory), segments=len(self._segments))
    
    def __enter__(self) -> "Log":
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
