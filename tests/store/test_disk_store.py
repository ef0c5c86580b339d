"""Tests for the durable segment-file log store."""

import asyncio
import tempfile
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from topicgateway.store.base import Entry, EntryTooLargeError, StoreError
from topicgateway.store.disk import DiskLogStore

TS = datetime(2024, 3, 4, 5, 6, 7, 890000, tzinfo=timezone(timedelta(hours=2)))


def make_entry(value: bytes) -> Entry:
    return Entry(key=b"key", value=value, timestamp=TS)


class TestDiskLogStore:
    """Test DiskLogStore."""
    
    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)
    
    @pytest.mark.asyncio
    async def test_append_and_read(self, temp_dir):
        """Test that an appended entry reads back unchanged."""
        store = DiskLogStore(temp_dir)
        
        offset = await store.append("orders", make_entry(b"payload"))
        entry = await store.read_at("orders", offset)
        
        assert offset == 0
        assert entry.key == b"key"
        assert entry.value == b"payload"
        assert entry.timestamp == TS
        assert entry.timestamp.utcoffset() == timedelta(hours=2)
        assert entry.offset == 0
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_read_unknown_topic_creates_nothing(self, temp_dir):
        """Test that reads of unknown topics return None without side effects."""
        store = DiskLogStore(temp_dir)
        
        assert await store.read_at("ghost", 0) is None
        assert await store.wait_for_next("ghost", 0, max_wait_s=0) is None
        assert list(temp_dir.iterdir()) == []
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_entries_survive_restart(self, temp_dir):
        """Test that offsets and entries persist across store instances."""
        store = DiskLogStore(temp_dir)
        for i in range(3):
            await store.append("events", make_entry(f"v{i}".encode()))
        await store.close()
        
        reopened = DiskLogStore(temp_dir)
        
        assert (await reopened.read_at("events", 2)).value == b"v2"
        assert await reopened.append("events", make_entry(b"v3")) == 3
        
        await reopened.close()
    
    @pytest.mark.asyncio
    async def test_wait_times_out_after_full_window(self, temp_dir):
        """Test that an empty wait returns None no earlier than the window."""
        store = DiskLogStore(temp_dir)
        await store.append("t", make_entry(b"only"))
        
        started = time.monotonic()
        entry = await store.wait_for_next("t", 1, max_wait_s=0.05)
        
        assert entry is None
        assert time.monotonic() - started >= 0.05
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_wait_wakes_on_append(self, temp_dir):
        """Test that a waiter returns as soon as the entry lands on disk."""
        store = DiskLogStore(temp_dir)
        
        async def append_later():
            await asyncio.sleep(0.05)
            await store.append("t", make_entry(b"late"))
        
        started = time.monotonic()
        writer = asyncio.create_task(append_later())
        entry = await store.wait_for_next("t", 0, max_wait_s=5.0)
        await writer
        
        assert entry.value == b"late"
        assert entry.offset == 0
        assert time.monotonic() - started < 2.0
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_concurrent_appends(self, temp_dir):
        """Test that concurrent appends receive distinct gapless offsets."""
        store = DiskLogStore(temp_dir, disk_io_threads=4)
        
        offsets = await asyncio.gather(
            *(store.append("t", make_entry(f"m{i}".encode())) for i in range(40))
        )
        
        assert sorted(offsets) == list(range(40))
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_engine_failure_becomes_store_error(self, temp_dir):
        """Test that an OS failure is reported as StoreError."""
        blocker = temp_dir / "blocked"
        blocker.mkdir()
        store = DiskLogStore(blocker)
        # A plain file where the topic directory should be.
        store._topics.topic_dir("t").write_bytes(b"not a directory")
        
        with pytest.raises(StoreError, match="append on topic 't' failed"):
            await store.append("t", make_entry(b"x"))
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_oversized_entry_is_rejected_before_writing(self, temp_dir):
        """Test that an entry over the limit creates no topic and takes no offset."""
        store = DiskLogStore(temp_dir, log_config={"max_entry_bytes": 1024})
        
        with pytest.raises(EntryTooLargeError, match="1024 byte limit"):
            await store.append("big", make_entry(b"x" * 2000))
        
        assert list(temp_dir.iterdir()) == []
        assert await store.append("big", make_entry(b"x" * 1000)) == 0
        
        await store.close()
    
    @pytest.mark.asyncio
    async def test_extreme_timestamps_survive_restart(self, temp_dir):
        """Test that instants just outside the datetime range in UTC still round-trip."""
        earliest = datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1)))
        latest = datetime(9999, 12, 31, 23, 59, tzinfo=timezone(timedelta(hours=-5)))
        store = DiskLogStore(temp_dir)
        await store.append("t", Entry(key=b"", value=b"early", timestamp=earliest))
        await store.append("t", Entry(key=b"", value=b"late", timestamp=latest))
        await store.close()
        
        reopened = DiskLogStore(temp_dir)
        first = await reopened.read_at("t", 0)
        second = await reopened.read_at("t", 1)
        
        assert first.timestamp == earliest
        assert first.timestamp.utcoffset() == timedelta(hours=1)
        assert second.timestamp == latest
        assert second.timestamp.utcoffset() == timedelta(hours=-5)
        assert await reopened.append("t", make_entry(b"next")) == 2
        
        await reopened.close()
    
    @pytest.mark.asyncio
    async def test_long_topic_name(self, temp_dir):
        """Test that a topic name longer than a path component is usable."""
        topic = "orders-" + "z" * 400
        store = DiskLogStore(temp_dir)
        
        assert await store.read_at(topic, 0) is None
        assert await store.wait_for_next(topic, 0, max_wait_s=0) is None
        assert await store.append(topic, make_entry(b"v")) == 0
        assert (await store.read_at(topic, 0)).value == b"v"
        
        await store.close()
