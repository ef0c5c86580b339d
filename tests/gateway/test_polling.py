import asyncio

import pytest

from topicgateway.gateway.polling import ClientDisconnected, wait_unless_disconnected


class FakeRequest:
    """Request stand-in that disconnects after a number of checks."""

    def __init__(self, disconnect_after: int | None = None):
        self.disconnect_after = disconnect_after
        self.checks = 0

    async def is_disconnected(self) -> bool:
        self.checks += 1
        return self.disconnect_after is not None and self.checks > self.disconnect_after


class TestWaitUnlessDisconnected:
    """Test disconnect-aware waiting."""

    @pytest.mark.asyncio
    async def test_returns_wait_result(self):
        """Test that a finished wait wins over a connected client."""
        async def wait():
            await asyncio.sleep(0.02)
            return "entry"

        result = await wait_unless_disconnected(FakeRequest(), wait(), 0.01)

        assert result == "entry"

    @pytest.mark.asyncio
    async def test_returns_none_on_timeout(self):
        """Test that an empty wait result passes through."""
        async def wait():
            return None

        assert await wait_unless_disconnected(FakeRequest(), wait(), 0.01) is None

    @pytest.mark.asyncio
    async def test_disconnect_cancels_wait(self):
        """Test that a hang-up cancels the pending wait."""
        cancelled = asyncio.Event()

        async def wait():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        request = FakeRequest(disconnect_after=2)
        with pytest.raises(ClientDisconnected):
            await wait_unless_disconnected(request, wait(), 0.01)

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_wait_error_propagates(self):
        """Test that store errors raised by the wait are not swallowed."""
        async def wait():
            raise RuntimeError("store broke")

        with pytest.raises(RuntimeError, match="store broke"):
            await wait_unless_disconnected(FakeRequest(), wait(), 0.01)

    @pytest.mark.asyncio
    async def test_non_positive_interval_skips_checks(self):
        """Test that disabling checks never consults the request."""
        async def wait():
            return "entry"

        request = FakeRequest(disconnect_after=0)
        result = await wait_unless_disconnected(request, wait(), 0)

        assert result == "entry"
        assert request.checks == 0

    @pytest.mark.asyncio
    async def test_disconnect_check_error_propagates(self):
        """Test that a failing disconnect check is raised, not reported as a hang-up."""
        class BrokenRequest:
            async def is_disconnected(self) -> bool:
                raise RuntimeError("receive channel broke")

        cancelled = asyncio.Event()

        async def wait():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(RuntimeError, match="receive channel broke"):
            await wait_unless_disconnected(BrokenRequest(), wait(), 0.01)

        assert cancelled.is_set()
