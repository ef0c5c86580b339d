"""Tests for the in-memory log store."""

import asyncio
import time
from datetime import datetime, timezone

import pytest

from topicgateway.store.base import Entry, EntryTooLargeError
from topicgateway.store.memory import InMemoryLogStore

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_entry(value: bytes) -> Entry:
    return Entry(key=b"key", value=value, timestamp=TS)


class TestInMemoryLogStore:
    """Test InMemoryLogStore."""
    
    @pytest.mark.asyncio
    async def test_append_assigns_offsets_per_topic(self):
        """Test that each topic counts offsets from zero."""
        store = InMemoryLogStore()
        
        assert await store.append("a", make_entry(b"1")) == 0
        assert await store.append("a", make_entry(b"2")) == 1
        assert await store.append("b", make_entry(b"1")) == 0
        assert store.topic_length("a") == 2
    
    @pytest.mark.asyncio
    async def test_read_at(self):
        """Test reading an appended entry back with its offset."""
        store = InMemoryLogStore()
        await store.append("a", make_entry(b"first"))
        
        entry = await store.read_at("a", 0)
        
        assert entry.value == b"first"
        assert entry.timestamp == TS
        assert entry.offset == 0
    
    @pytest.mark.asyncio
    async def test_read_at_absent(self):
        """Test that unknown topics and offsets read as None."""
        store = InMemoryLogStore()
        await store.append("a", make_entry(b"first"))
        
        assert await store.read_at("a", 1) is None
        assert await store.read_at("missing", 0) is None
        assert store.topic_length("missing") == 0
    
    @pytest.mark.asyncio
    async def test_append_does_not_alias_caller_entry(self):
        """Test that the stored entry is a copy carrying its offset."""
        store = InMemoryLogStore()
        entry = make_entry(b"v")
        
        await store.append("a", entry)
        
        assert entry.offset is None
        assert (await store.read_at("a", 0)).offset == 0
    
    @pytest.mark.asyncio
    async def test_wait_returns_available_entry_immediately(self):
        """Test that an existing entry is returned without waiting."""
        store = InMemoryLogStore()
        await store.append("a", make_entry(b"ready"))
        
        started = time.monotonic()
        entry = await store.wait_for_next("a", 0, max_wait_s=5.0)
        
        assert entry.value == b"ready"
        assert time.monotonic() - started < 1.0
    
    @pytest.mark.asyncio
    async def test_wait_times_out_after_full_window(self):
        """Test that an empty wait returns None no earlier than the window."""
        store = InMemoryLogStore()
        
        started = time.monotonic()
        entry = await store.wait_for_next("a", 0, max_wait_s=0.05)
        
        assert entry is None
        assert time.monotonic() - started >= 0.05
    
    @pytest.mark.asyncio
    async def test_wait_zero_duration(self):
        """Test that a zero wait returns at once, found or not."""
        store = InMemoryLogStore()
        
        assert await store.wait_for_next("a", 0, max_wait_s=0) is None
        
        await store.append("a", make_entry(b"v"))
        
        assert (await store.wait_for_next("a", 0, max_wait_s=0)).value == b"v"
    
    @pytest.mark.asyncio
    async def test_wait_wakes_on_append(self):
        """Test that a waiter returns as soon as the entry is appended."""
        store = InMemoryLogStore()
        await store.append("a", make_entry(b"old"))
        
        async def append_later():
            await asyncio.sleep(0.05)
            await store.append("a", make_entry(b"new"))
        
        started = time.monotonic()
        writer = asyncio.create_task(append_later())
        entry = await store.wait_for_next("a", 1, max_wait_s=5.0)
        await writer
        
        assert entry.value == b"new"
        assert entry.offset == 1
        assert time.monotonic() - started < 2.0
    
    @pytest.mark.asyncio
    async def test_concurrent_waiters_are_independent(self):
        """Test that waiters on different topics do not block each other."""
        store = InMemoryLogStore()
        
        async def append_later():
            await asyncio.sleep(0.05)
            await store.append("fast", make_entry(b"x"))
        
        writer = asyncio.create_task(append_later())
        fast, slow = await asyncio.gather(
            store.wait_for_next("fast", 0, max_wait_s=5.0),
            store.wait_for_next("slow", 0, max_wait_s=0.1),
        )
        await writer
        
        assert fast.value == b"x"
        assert slow is None
    
    @pytest.mark.asyncio
    async def test_oversized_entry_is_rejected(self):
        """Test that an entry over the limit is refused without taking an offset."""
        store = InMemoryLogStore(max_entry_bytes=16)
        
        with pytest.raises(EntryTooLargeError):
            await store.append("t", Entry(key=b"k" * 8, value=b"v" * 9, timestamp=TS))
        
        assert store.topic_length("t") == 0
        assert await store.append("t", Entry(key=b"k" * 8, value=b"v" * 8, timestamp=TS)) == 0
        
        await store.close()
