"""
Unit tests for structured logging processors.
"""

import pytest
import structlog

from shared.logging import (
    add_correlation_context,
    add_service_context,
    add_trace_context,
    clear_context,
    configure_logging,
    set_settings_context,
)


class TestLogging:
    """Test cases for the logging setup."""

    @pytest.fixture(autouse=True)
    def reset_logging(self):
        yield
        clear_context()
        structlog.contextvars.clear_contextvars()
        structlog.reset_defaults()

    def test_configure_binds_service(self):
        configure_logging("roaming-settings", "debug")

        assert structlog.contextvars.get_contextvars() == {"service": "roaming-settings"}
        assert structlog.is_configured()

    def test_correlation_context(self):
        """Test user and extension ids are added until cleared."""
        set_settings_context(user_id="user-123", extension_id="com.toolkit.roamingSettings")

        event = add_correlation_context(None, "info", {"event": "sync"})

        assert event["user_id"] == "user-123"
        assert event["extension_id"] == "com.toolkit.roamingSettings"

        clear_context()
        assert add_correlation_context(None, "info", {"event": "sync"}) == {"event": "sync"}

    def test_correlation_context_keeps_bound_values(self):
        set_settings_context(user_id="user-123")

        event = add_correlation_context(None, "info", {"user_id": "user-456"})

        assert event["user_id"] == "user-456"

    def test_component_from_logger_name(self):
        event = add_service_context(None, "info", {"logger": "roaming.graph_client"})

        assert event["component"] == "graph_client"

    def test_no_trace_without_span(self):
        assert add_trace_context(None, "info", {"event": "sync"}) == {"event": "sync"}
