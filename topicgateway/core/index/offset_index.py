"""
Sparse offset index for segment lookups.

Each segment has a fixed-size, memory-mapped ``.index`` file of 8-byte slots
holding (offset relative to the segment base, byte position). Slots fill from
the front; the first all-zero slot ends the written prefix. Position 0 is never
indexed since a scan from the segment start needs no index, which keeps every
written slot non-zero.
"""

import mmap
import struct
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, ClassVar, Optional, Tuple

from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)

_SLOT = struct.Struct(">II")
_EMPTY_SLOT = bytes(_SLOT.size)


@dataclass(frozen=True)
class IndexEntry:
    """One index slot: a record's offset within the segment and its byte position."""

    relative_offset: int
    position: int

    SIZE: ClassVar[int] = _SLOT.size

    def __post_init__(self) -> None:
        if self.relative_offset < 0:
            raise ValueError(f"Relative offset must be non-negative: {self.relative_offset}")
        if self.position < 0:
            raise ValueError(f"Position must be non-negative: {self.position}")

    def serialize(self) -> bytes:
        return _SLOT.pack(self.relative_offset, self.position)

    @classmethod
    def deserialize(cls, data: bytes) -> "IndexEntry":
        if len(data) != cls.SIZE:
            raise ValueError(f"Expected {cls.SIZE} bytes, got {len(data)}")
        return cls(*_SLOT.unpack(data))


class OffsetIndex:
    """
    Memory-mapped sparse index for one segment.

    A slot is written only once the segment has grown ``interval_bytes`` past
    the previously indexed position, so a lookup yields the nearest indexed
    record at or before the target and the reader scans forward from there.

    Attributes:
        base_offset: Base offset of the owning segment
        path: Index file path
        max_entries: Slot capacity of the file
        interval_bytes: Minimum segment bytes between indexed records
    """

    INDEX_FILE_SUFFIX = ".index"
    DEFAULT_INTERVAL_BYTES = 4096
    DEFAULT_MAX_ENTRIES = 262144

    def __init__(
        self,
        base_offset: int,
        directory: Path,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        interval_bytes: int = DEFAULT_INTERVAL_BYTES,
    ):
        self.base_offset = base_offset
        self.max_entries = max_entries
        self.interval_bytes = interval_bytes
        self.path = Path(directory) / f"{base_offset:020d}{self.INDEX_FILE_SUFFIX}"

        self._file: Optional[BinaryIO] = None
        self._mmap: Optional[mmap.mmap] = None
        self._count = 0
        self._last_position = 0

        self._map_file()

        logger.debug(
            "Opened offset index",
            base_offset=base_offset,
            path=str(self.path),
            entries=self._count,
        )

    def _map_file(self) -> None:
        self.path.touch(exist_ok=True)
        self._file = open(self.path, "r+b")

        capacity_bytes = self.max_entries * IndexEntry.SIZE
        if self.path.stat().st_size < capacity_bytes:
            self._file.truncate(capacity_bytes)

        self._mmap = mmap.mmap(self._file.fileno(), 0)

        # Written slots form a prefix, so the first empty slot can be bisected.
        slots = len(self._mmap) // IndexEntry.SIZE
        self._count = bisect_left(range(slots), True, key=self._slot_is_empty)
        if self._count:
            self._last_position = self._entry(self._count - 1).position

    def _slot(self, i: int) -> bytes:
        start = i * IndexEntry.SIZE
        return self._mmap[start : start + IndexEntry.SIZE]

    def _slot_is_empty(self, i: int) -> bool:
        return self._slot(i) == _EMPTY_SLOT

    def _entry(self, i: int) -> IndexEntry:
        if not 0 <= i < self._count:
            raise IndexError(f"Slot {i} outside written range [0, {self._count})")
        return IndexEntry.deserialize(self._slot(i))

    def _require_open(self) -> mmap.mmap:
        if self._mmap is None:
            raise RuntimeError(f"Index {self.path} is closed")
        return self._mmap

    def append(self, offset: int, position: int) -> bool:
        """
        Index a record if it is far enough past the last indexed one.

        Args:
            offset: Absolute offset of the record
            position: Byte position of the record in the segment

        Returns:
            True if a slot was written
        """
        buf = self._require_open()

        if position == 0 or position < self._last_position + self.interval_bytes:
            return False

        if self._count >= self.max_entries:
            logger.warning("Index is full", path=str(self.path), entries=self._count)
            return False

        start = self._count * IndexEntry.SIZE
        buf[start : start + IndexEntry.SIZE] = IndexEntry(offset - self.base_offset, position).serialize()

        self._count += 1
        self._last_position = position
        return True

    def lookup(self, offset: int) -> Optional[Tuple[int, int]]:
        """
        Find the nearest indexed record at or before an offset.

        Args:
            offset: Absolute target offset

        Returns:
            (absolute offset, byte position) of that record, or None when no
            indexed record precedes the target
        """
        self._require_open()

        relative = offset - self.base_offset
        if relative < 0:
            return None

        i = bisect_right(range(self._count), relative, key=lambda n: self._entry(n).relative_offset) - 1
        if i < 0:
            return None

        entry = self._entry(i)
        return self.base_offset + entry.relative_offset, entry.position

    def truncate_to_position(self, position: int) -> int:
        """
        Clear slots that point at or past a byte position.

        Args:
            position: Segment length after a torn tail was cut off

        Returns:
            Number of slots cleared
        """
        buf = self._require_open()

        keep = bisect_left(range(self._count), position, key=lambda n: self._entry(n).position)
        removed = self._count - keep
        if not removed:
            return 0

        start, end = keep * IndexEntry.SIZE, self._count * IndexEntry.SIZE
        buf[start:end] = bytes(end - start)
        buf.flush()

        self._count = keep
        self._last_position = self._entry(keep - 1).position if keep else 0

        logger.info("Truncated index", path=str(self.path), removed=removed)
        return removed

    def flush(self) -> None:
        if self._mmap is not None:
            self._mmap.flush()

    def close(self) -> None:
        """Flush and unmap the index. Safe to call twice."""
        if self._mmap is not None:
            self._mmap.flush()
            self._mmap.close()
            self._mmap = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def entries_count(self) -> int:
        return self._count

    def __enter__(self) -> "OffsetIndex":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"OffsetIndex(base_offset={self.base_offset}, entries={self._count})"
