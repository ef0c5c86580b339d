"""Tests for sequential segment reads and recovery."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from topicgateway.core.log.format import Record
from topicgateway.core.log.reader import LogSegmentReader
from topicgateway.core.log.segment import LogSegment

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestLogSegmentReader:
    """Test LogSegmentReader."""
    
    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)
    
    @pytest.fixture
    def segment_path(self, temp_dir):
        """Write a segment holding five records and return its path."""
        segment = LogSegment(base_offset=100, directory=temp_dir)
        for i in range(5):
            segment.append(Record(offset=0, timestamp=TS, key=b"k", value=f"msg-{i}".encode()))
        segment.close()
        return segment.path
    
    def test_missing_file_raises(self, temp_dir):
        """Test that a missing segment file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            LogSegmentReader(temp_dir / "missing.log", 0)
    
    def test_read_all(self, segment_path):
        """Test reading every record with offsets from the base."""
        with LogSegmentReader(segment_path, 100) as reader:
            records = list(reader.read_all())
        
        assert [r.offset for r in records] == [100, 101, 102, 103, 104]
        assert records[2].value == b"msg-2"
        assert records[2].timestamp == TS
    
    def test_read_at_offset(self, segment_path):
        """Test reading a single record by offset."""
        with LogSegmentReader(segment_path, 100) as reader:
            record = reader.read_at_offset(103)
            missing = reader.read_at_offset(105)
        
        assert record.value == b"msg-3"
        assert missing is None
    
    def test_read_before_base_raises(self, segment_path):
        """Test that an offset before the segment base is rejected."""
        with LogSegmentReader(segment_path, 100) as reader:
            with pytest.raises(ValueError, match="before scan start"):
                reader.read_at_offset(99)
    
    def test_recover_stops_at_partial_write(self, segment_path):
        """Test that recovery keeps only the valid prefix."""
        valid_size = segment_path.stat().st_size
        with open(segment_path, "ab") as f:
            f.write(b"\x00\x00\x00\x40partial")
        
        reader = LogSegmentReader(segment_path, 100)
        count, valid_bytes = reader.recover_valid_records()
        reader.close()
        
        assert count == 5
        assert valid_bytes == valid_size
    
    def test_recover_stops_at_corruption(self, segment_path):
        """Test that recovery stops at a record failing its CRC."""
        data = bytearray(segment_path.read_bytes())
        data[-1] ^= 0xFF
        segment_path.write_bytes(bytes(data))
        
        reader = LogSegmentReader(segment_path, 100)
        count, _ = reader.recover_valid_records()
        reader.close()
        
        assert count == 4
