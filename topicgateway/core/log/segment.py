"""
Append-only segment files.

A topic's log is a run of segments. Each one is a ``<base offset>.log`` file of
back-to-back record frames plus a sparse ``<base offset>.index`` beside it. Only
the newest segment of a log takes writes.
"""

import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

from topicgateway.core.index.offset_index import OffsetIndex
from topicgateway.core.log.format import Record, RecordFrame
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)


class LogSegment:
    """
    One segment file and its index.

    Offsets inside a segment are consecutive from ``base_offset``. Recovery
    calls ``restore()`` after scanning the file so a torn tail is cut off before
    the next append.

    Attributes:
        base_offset: Offset of the first record in the segment
        path: Segment file path
        max_size_bytes: Size at which the segment stops taking appends
    """

    SEGMENT_FILE_SUFFIX = ".log"
    OFFSET_PADDING = 20

    def __init__(
        self,
        base_offset: int,
        directory: Path,
        max_size_bytes: int = 1073741824,
        fsync_on_append: bool = False,
        index_interval_bytes: int = OffsetIndex.DEFAULT_INTERVAL_BYTES,
    ):
        if base_offset < 0:
            raise ValueError(f"Base offset must be non-negative, got {base_offset}")

        self.base_offset = base_offset
        self.max_size_bytes = max_size_bytes
        self.fsync_on_append = fsync_on_append

        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        self.path = directory / f"{base_offset:0{self.OFFSET_PADDING}d}{self.SEGMENT_FILE_SUFFIX}"

        self._fd: Optional[int] = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        self._size = os.fstat(self._fd).st_size
        self._next_offset = base_offset
        self._opened_at = time.monotonic()

        self._index = OffsetIndex(
            base_offset=base_offset,
            directory=directory,
            interval_bytes=index_interval_bytes,
        )

        logger.debug("Opened segment", path=str(self.path), size=self._size)

    def _require_open(self) -> int:
        if self._fd is None:
            raise ValueError(f"Segment {self.path.name} is closed")
        return self._fd

    def restore(self, valid_bytes: int, record_count: int) -> None:
        """
        Adopt the state found by a recovery scan.

        Args:
            valid_bytes: Length of the intact record prefix
            record_count: Number of records in that prefix
        """
        fd = self._require_open()

        if valid_bytes < self._size:
            logger.warning(
                "Truncating torn segment tail",
                path=str(self.path),
                size=self._size,
                valid_bytes=valid_bytes,
            )
            os.ftruncate(fd, valid_bytes)
            self._index.truncate_to_position(valid_bytes)

        self._size = valid_bytes
        self._next_offset = self.base_offset + record_count

    def _write_fully(self, fd: int, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            if written == 0:
                raise OSError(f"Write to {self.path.name} made no progress")
            view = view[written:]

    def append(self, record: Record) -> int:
        """
        Write a record at the segment's next offset.

        The offset carried by ``record`` is ignored.

        Args:
            record: Record to write

        Returns:
            The offset the record was written at

        Raises:
            ValueError: If the segment is closed or full
            OSError: If the write fails
        """
        fd = self._require_open()
        if self.is_full():
            raise ValueError(f"Segment {self.path.name} is full")

        offset = self._next_offset
        data = RecordFrame(record=replace(record, offset=offset)).serialize()
        position = self._size

        self._write_fully(fd, data)
        if self.fsync_on_append:
            os.fsync(fd)

        self._size += len(data)
        self._index.append(offset, position)
        self._next_offset += 1
        return offset

    def lookup_position(self, offset: int) -> Tuple[int, int]:
        """
        Where a forward scan for ``offset`` should begin.

        Returns:
            (offset, byte position) of the nearest indexed record at or before
            the target, falling back to the start of the segment
        """
        return self._index.lookup(offset) or (self.base_offset, 0)

    def contains(self, offset: int) -> bool:
        return self.base_offset <= offset < self._next_offset

    def age_ms(self) -> int:
        """Milliseconds since this segment was opened by the current process."""
        return int((time.monotonic() - self._opened_at) * 1000)

    def flush(self) -> None:
        if self._fd is not None:
            os.fsync(self._fd)
        self._index.flush()

    def is_full(self) -> bool:
        return self._size >= self.max_size_bytes

    def size(self) -> int:
        return self._size

    def next_offset(self) -> int:
        return self._next_offset

    def close(self) -> None:
        """Flush and close the file and its index. Safe to call twice."""
        if self._fd is None:
            return

        self.flush()
        os.close(self._fd)
        self._fd = None
        self._index.close()

        logger.debug(
            "Closed segment",
            path=str(self.path),
            size=self._size,
            records=self._next_offset - self.base_offset,
        )

    def __enter__(self) -> "LogSegment":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"LogSegment(base_offset={self.base_offset}, size={self._size}, next_offset={self._next_offset})"
