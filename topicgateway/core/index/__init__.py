"""
Offset indexing for fast segment lookups.

This package provides sparse indexing with memory-mapped files so a read by
offset can seek close to its record instead of scanning the whole segment.
"""

from topicgateway.core.index.offset_index import IndexEntry, OffsetIndex

__all__ = ["IndexEntry", "OffsetIndex"]
