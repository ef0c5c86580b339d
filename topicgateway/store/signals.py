"""Wake-up signalling between appends and long-poll waiters."""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, TypeVar

T = TypeVar("T")


class TopicSignals:
    """
    Per-topic wake-ups for waiters blocked on new entries.
    
    Each topic has a current asyncio.Event. Notifying a topic retires its event
    and sets it, so a waiter that took the event before checking the store cannot
    miss an append that lands after the check. A topic's event is dropped once
    its last waiter leaves. Must be used from the event loop thread.
    """
    
    def __init__(self):
        self._events: Dict[str, asyncio.Event] = {}
        self._waiters: Dict[str, int] = {}
    
    def _current(self, topic: str) -> asyncio.Event:
        event = self._events.get(topic)
        if event is None:
            event = asyncio.Event()
            self._events[topic] = event
        return event
    
    def notify(self, topic: str) -> None:
        """
        Wake every waiter on a topic.
        
        Args:
            topic: Topic that received an append
        """
        event = self._events.pop(topic, None)
        if event is not None:
            event.set()
    
    async def wait_until(
        self,
        topic: str,
        check: Callable[[], Awaitable[Optional[T]]],
        timeout_s: float,
    ) -> Optional[T]:
        """
        Re-run a check on every append until it yields a result or time runs out.
        
        The deadline is measured on the loop's monotonic clock and None is only
        returned once that clock has reached it.
        
        Args:
            topic: Topic to watch
            check: Coroutine factory returning a result or None
            timeout_s: Maximum wait in seconds
        
        Returns:
            The check's first non-None result, or None on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(timeout_s, 0.0)
        
        self._waiters[topic] = self._waiters.get(topic, 0) + 1
        try:
            return await self._wait_loop(topic, check, deadline)
        finally:
            self._waiters[topic] -= 1
            if not self._waiters[topic]:
                del self._waiters[topic]
                self._events.pop(topic, None)
    
    async def _wait_loop(
        self,
        topic: str,
        check: Callable[[], Awaitable[Optional[T]]],
        deadline: float,
    ) -> Optional[T]:
        loop = asyncio.get_running_loop()
        while True:
            event = self._current(topic)
            
            result = await check()
            if result is not None:
                return result
            
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            
            try:
                await asyncio.wait_for(event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass
    
