"""
Wiring of the settings store from configuration.
"""

from typing import Optional

from shared.config import BaseConfig, ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_settings_context
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from .adapters.graph_client import GraphExtensionsClient
from .serializers import JsonObjectSerializer, ObjectSerializer
from .store.background import BackgroundWriter
from .store.user_extension_store import UserExtensionDataStore

logger = get_logger("roaming.factory")


def build_graph_client(config: BaseConfig, metrics: Optional[MetricsCollector] = None) -> GraphExtensionsClient:
    """Create a Graph extensions client from configuration."""
    return GraphExtensionsClient(
        config.graph_base_url,
        config.graph_access_token,
        timeout=config.graph_timeout_seconds,
        retry_config=RetryConfig(
            max_attempts=config.graph_retry_attempts,
            base_delay=config.graph_retry_base_delay,
            max_delay=10.0,
        ),
        failure_threshold=config.graph_failure_threshold,
        recovery_timeout=config.graph_recovery_timeout,
        metrics=metrics,
    )


def build_user_extension_store(
    user_id: str,
    config: Optional[ServiceConfig] = None,
    *,
    metrics: Optional[MetricsCollector] = None,
    serializer: Optional[ObjectSerializer] = None,
    gateway: Optional[GraphExtensionsClient] = None,
) -> UserExtensionDataStore:
    """Create a settings store for ``user_id`` using the configured extension.

    Also configures structured logging for the service at ``config.log_level``.
    """
    config = config or get_config()
    configure_logging(config.service_name, config.log_level)
    set_settings_context(user_id=user_id, extension_id=config.extension_id)

    store = UserExtensionDataStore(
        user_id,
        config.extension_id,
        gateway or build_graph_client(config, metrics),
        serializer or JsonObjectSerializer(),
        auto_sync=config.auto_sync,
        metrics=metrics,
        background_writer=BackgroundWriter(config.background_workers, metrics=metrics),
    )
    logger.info(
        "Created roaming settings store",
        user_id=user_id,
        extension_id=config.extension_id,
        auto_sync=config.auto_sync,
    )
    return store
