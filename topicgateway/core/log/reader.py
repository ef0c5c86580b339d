"""
Log segment reader for sequential reads by offset.

Provides sequential reads from a segment file, optionally starting from an
indexed byte position, with partial write detection and CRC validation.
"""

import os
from pathlib import Path
from typing import Iterator, Optional

from topicgateway.core.log.format import MAX_RECORD_BYTES, Record, RecordFrame
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)


class LogSegmentReader:
    """
    Sequential reader for log segments.
    
    Reads records from a segment file sequentially, handling:
    - Partial write detection
    - CRC validation
    - Corruption recovery
    """
    
    def __init__(self, path: Path, base_offset: int):
        """
        Initialize a log segment reader.
        
        Args:
            path: Path to the segment file
            base_offset: Base offset of the segment
        
        Raises:
            FileNotFoundError: If segment file doesn't exist
        """
        if not path.exists():
            raise FileNotFoundError(f"Segment file not found: {path}")
        
        self.path = path
        self.base_offset = base_offset
        self._fd: Optional[int] = None
        self._valid_bytes = 0
    
    def open(self) -> None:
        """Open the segment file for reading."""
        if self._fd is None:
            self._fd = os.open(self.path, os.O_RDONLY)
    
    def close(self) -> None:
        """Close the segment file."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None
    
    def read_at_offset(
        self,
        offset: int,
        start_offset: Optional[int] = None,
        start_position: int = 0,
    ) -> Optional[Record]:
        """
        Read a single record at a specific offset.
        
        Args:
            offset: Logical offset to read
            start_offset: Offset of the record at start_position
                (defaults to the segment base)
            start_position: Byte position to start scanning from
        
        Returns:
            Record if found, None if offset not in segment
        
        Raises:
            ValueError: If offset is before the scan start
        """
        scan_from = self.base_offset if start_offset is None else start_offset
        if offset < scan_from:
            raise ValueError(f"Offset {offset} is before scan start {scan_from}")
        
        for record in self.read_all(start_offset=scan_from, start_position=start_position):
            if record.offset == offset:
                return record
            if record.offset > offset:
                return None
        
        return None
    
    def read_all(
        self,
        start_offset: Optional[int] = None,
        start_position: int = 0,
    ) -> Iterator[Record]:
        """
        Read records sequentially until end of file or the first bad record.
        
        Args:
            start_offset: Offset of the record at start_position
                (defaults to the segment base)
            start_position: Byte position to start reading from
        
        Yields:
            Records in order
        """
        self.open()
        
        os.lseek(self._fd, start_position, os.SEEK_SET)
        
        current_offset = self.base_offset if start_offset is None else start_offset
        file_position = start_position
        self._valid_bytes = start_position
        
        while True:
            length_bytes = os.read(self._fd, RecordFrame.LENGTH_FIELD_SIZE)
            
            if len(length_bytes) == 0:
                break
            
            if len(length_bytes) < RecordFrame.LENGTH_FIELD_SIZE:
                logger.warning(
                    "Partial write detected at end of segment",
                    path=str(self.path),
                    position=file_position,
                    bytes_read=len(length_bytes),
                )
                break
            
            length = int.from_bytes(length_bytes, byteorder="big")
            
            if length <= 0 or length > MAX_RECORD_BYTES:
                logger.error(
                    "Invalid record length",
                    path=str(self.path),
                    position=file_position,
                    length=length,
                )
                break
            
            remaining_bytes = os.read(self._fd, length)
            
            if len(remaining_bytes) < length:
                logger.warning(
                    "Incomplete record at end of segment",
                    path=str(self.path),
                    position=file_position,
                    expected=length,
                    got=len(remaining_bytes),
                )
                break
            
            full_frame = length_bytes + remaining_bytes
            
            try:
                frame = RecordFrame.deserialize(full_frame, current_offset)
            except ValueError as e:
                logger.error(
                    "Failed to deserialize record",
                    path=str(self.path),
                    position=file_position,
                    offset=current_offset,
                    error=str(e),
                )
                break
            
            current_offset += 1
            file_position += len(full_frame)
            self._valid_bytes = file_position
            yield frame.record
    
    def recover_valid_records(self) -> tuple[int, int]:
        """
        Scan a potentially torn segment for its valid prefix.
        
        Reads as many valid records as possible, stopping at the first
        corruption. Used for crash recovery.
        
        Returns:
            Tuple of (valid record count, valid byte length)
        """
        count = 0
        for _ in self.read_all():
            count += 1
        
        logger.info(
            "Recovered segment",
            path=str(self.path),
            records=count,
            bytes=self._valid_bytes,
        )
        
        return count, self._valid_bytes
    
    def __enter__(self) -> "LogSegmentReader":
        self.open()
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
