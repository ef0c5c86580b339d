"""
Core log storage implementation.

This package provides append-only log segments with:
- Binary record format with CRC32C validation
- Automatic segment rotation
- Indexed reads by offset
- Crash recovery
"""

from topicgateway.core.log.format import (
    MAX_PAYLOAD_BYTES,
    MAX_RECORD_BYTES,
    MagicByte,
    Record,
    RecordFrame,
    RecordTooLargeError,
)
from topicgateway.core.log.log import DiskFullError, Log
from topicgateway.core.log.reader import LogSegmentReader
from topicgateway.core.log.segment import LogSegment

__all__ = [
    "DiskFullError",
    "Log",
    "LogSegment",
    "LogSegmentReader",
    "MagicByte",
    "Record",
    "RecordFrame",
    "RecordTooLargeError",
    "MAX_PAYLOAD_BYTES",
    "MAX_RECORD_BYTES",
]
