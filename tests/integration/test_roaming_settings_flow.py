"""
Integration tests for roaming settings against the mock Graph server.
"""

import pytest
import httpx

from mocks.graph.server import MockGraphServer
from service_roaming_settings.app.adapters.graph_client import GraphExtensionsClient
from service_roaming_settings.app.exceptions import ExtensionNotFoundError, GraphServiceError
from service_roaming_settings.app.store import RESERVED_KEYS, UserExtensionDataStore
from shared.retry import RetryConfig

USER_ID = "user-123"
EXTENSION_ID = "com.toolkit.roamingSettings"


class TestRoamingSettingsFlow:
    """End-to-end settings flow over HTTP."""

    @pytest.fixture
    def graph_server(self):
        return MockGraphServer()

    @pytest.fixture
    def graph_client(self, graph_server):
        return GraphExtensionsClient(
            "http://testserver/v1.0",
            "test-token",
            retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
            transport=httpx.ASGITransport(app=graph_server.app),
        )

    def make_store(self, graph_client, auto_sync=True):
        return UserExtensionDataStore(USER_ID, EXTENSION_ID, graph_client, auto_sync=auto_sync)

    @pytest.mark.asyncio
    async def test_settings_roam_between_devices(self, graph_server, graph_client):
        """Test settings written on one device appear on another after sync."""
        laptop = self.make_store(graph_client)
        await laptop.create()

        laptop.save("theme", "dark")
        laptop.save_composite("prefs", {"lang": "en", "size": 10})
        assert await laptop.flush() == 0

        assert graph_server.extensions[USER_ID][EXTENSION_ID] == {
            "theme": "dark",
            "prefs": {"lang": '"en"', "size": "10"},
        }
        assert await graph_client.get_value(USER_ID, EXTENSION_ID, "theme") == "dark"

        phone = self.make_store(graph_client, auto_sync=False)
        result = await phone.sync()

        assert result.success is True
        assert phone.read("theme") == "dark"
        assert phone.read_composite("prefs", "lang") == "en"
        assert phone.read_composite("prefs", "size", 0) == 10
        # Response metadata is merged locally but never sent back.
        assert RESERVED_KEYS <= set(phone.cache)

        phone.save("fontSize", 14)
        result = await phone.sync()
        await phone.flush()

        assert result.pushed_keys == ["fontSize"]
        assert not RESERVED_KEYS & set(graph_server.extensions[USER_ID][EXTENSION_ID])

        result = await laptop.sync()
        assert result.success is True
        assert laptop.read("fontSize", 0) == 14

    @pytest.mark.asyncio
    async def test_delete_removes_remote_extension(self, graph_client):
        """Test delete() removes the extension so later syncs fail."""
        store = self.make_store(graph_client)
        await store.create()
        store.save("theme", "dark")
        await store.flush()

        await store.delete()

        assert store.key_exists("theme") is False
        with pytest.raises(ExtensionNotFoundError):
            await graph_client.get_extension(USER_ID, EXTENSION_ID)

        failures = []
        store.add_sync_failed_listener(lambda sender: failures.append(sender))
        result = await store.sync()

        assert result.success is False
        assert failures == [store]

    @pytest.mark.asyncio
    async def test_outage_keeps_local_cache(self, graph_server, graph_client):
        """Test a Graph outage during sync leaves the cache untouched."""
        store = self.make_store(graph_client)
        await store.create()
        store.save("theme", "dark")
        await store.flush()

        graph_server.fail_requests = 5
        result = await store.sync()

        assert result.success is False
        assert store.cache == {"theme": "dark"}

    @pytest.mark.asyncio
    async def test_background_write_failure_is_reported(self, graph_server, graph_client):
        """Test failed auto-sync writes reach the failure callback only."""
        failed = []
        store = UserExtensionDataStore(
            USER_ID,
            EXTENSION_ID,
            graph_client,
            on_write_failed=lambda key, error: failed.append(key),
        )
        await store.create()

        graph_server.fail_requests = 2
        store.save("theme", "dark")

        assert await store.flush() == 1
        assert failed == ["theme"]
        assert store.read("theme") == "dark"
        assert "theme" not in graph_server.extensions[USER_ID][EXTENSION_ID]

    @pytest.mark.asyncio
    async def test_sustained_outage_opens_circuit(self, graph_server):
        """Test repeated 503s trip the circuit so later calls fail fast."""
        client = GraphExtensionsClient(
            "http://testserver/v1.0",
            retry_config=RetryConfig(max_attempts=1, base_delay=0.0, jitter=False),
            failure_threshold=3,
            transport=httpx.ASGITransport(app=graph_server.app),
        )
        graph_server.fail_requests = 100

        for _ in range(3):
            with pytest.raises(GraphServiceError) as exc_info:
                await client.get_extension(USER_ID, EXTENSION_ID)
            assert exc_info.value.status_code == 503

        assert client.circuit_breaker.is_open()
        remaining = graph_server.fail_requests

        with pytest.raises(GraphServiceError) as exc_info:
            await client.get_extension(USER_ID, EXTENSION_ID)

        assert "circuit open" in exc_info.value.message
        assert graph_server.fail_requests == remaining
