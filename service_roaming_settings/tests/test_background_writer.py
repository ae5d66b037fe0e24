"""
Unit tests for background remote writes.
"""

import asyncio
import concurrent.futures

import pytest
from prometheus_client import CollectorRegistry

from service_roaming_settings.app.store import BackgroundWriter, UserExtensionDataStore
from shared.metrics import MetricsCollector
from shared.test_helpers import InMemoryExtensionGateway


class TestBackgroundWriter:
    """Test cases for BackgroundWriter."""

    @pytest.mark.asyncio
    async def test_dispatch_in_loop_returns_task(self):
        """Test writes inside a running loop become tasks."""
        writer = BackgroundWriter()
        written = []

        async def write():
            written.append("theme")

        future = writer.dispatch("theme", write)

        assert isinstance(future, asyncio.Task)
        assert writer.pending == 1
        await future
        await asyncio.sleep(0)
        assert written == ["theme"]
        assert writer.pending == 0

    @pytest.mark.asyncio
    async def test_flush_counts_failures(self):
        """Test flush waits for writes and reports failures without raising."""
        registry = CollectorRegistry()
        failures = []
        writer = BackgroundWriter(
            on_failure=lambda key, error: failures.append((key, str(error))),
            metrics=MetricsCollector("roaming-settings", registry),
        )

        async def ok():
            await asyncio.sleep(0)

        async def broken():
            raise ConnectionError("network down")

        writer.dispatch("a", ok)
        writer.dispatch("b", broken)
        writer.dispatch("c", ok)

        assert await writer.flush() == 1
        assert writer.pending == 0
        assert failures == [("b", "network down")]
        assert registry.get_sample_value("roaming_remote_writes_total", {"outcome": "success"}) == 2.0
        assert registry.get_sample_value("roaming_remote_writes_total", {"outcome": "failure"}) == 1.0

    @pytest.mark.asyncio
    async def test_failure_callback_errors_are_contained(self):
        """Test a raising failure callback does not escape."""
        def callback(key, error):
            raise RuntimeError("callback bug")

        writer = BackgroundWriter(on_failure=callback)

        async def broken():
            raise ConnectionError("network down")

        writer.dispatch("a", broken)

        assert await writer.flush() == 1

    def test_dispatch_without_loop_uses_worker_thread(self):
        """Test writes outside an event loop run on the thread pool."""
        writer = BackgroundWriter(max_workers=1)
        written = []

        async def write():
            await asyncio.sleep(0)
            written.append("theme")

        future = writer.dispatch("theme", write)
        try:
            assert isinstance(future, concurrent.futures.Future)
            future.result(timeout=5)
            assert written == ["theme"]
        finally:
            writer.shutdown()

    def test_store_save_outside_loop(self):
        """Test auto-sync saves from synchronous code still reach the remote."""
        gateway = InMemoryExtensionGateway()
        writer = BackgroundWriter(max_workers=1)
        store = UserExtensionDataStore(
            "user-123",
            "com.toolkit.roamingSettings",
            gateway,
            background_writer=writer,
        )

        future = store.save("theme", "dark")
        try:
            future.result(timeout=5)
        finally:
            writer.shutdown()

        assert gateway.remote("user-123", "com.toolkit.roamingSettings") == {"theme": "dark"}
