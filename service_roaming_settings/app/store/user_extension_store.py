"""
Roaming settings stored in an open extension on a Microsoft Graph user.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TYPE_CHECKING

from shared.errors import ValidationError
from shared.logging import get_logger
from ..exceptions import MissingCompositeError, SettingTypeError, UnsupportedOperationError
from ..serializers import JsonObjectSerializer, ObjectSerializer
from .background import BackgroundWriter, FailureCallback, WriteFuture
from .base import RoamingSettingsDataStore, SyncResult, SyncListener
from .values import CompositeValue, decode_composite_value, decode_value, encode_value, is_composite

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.graph_client import GraphExtensionsClient
    from shared.metrics import MetricsCollector


# Response metadata the Graph SDK folds into an extension's additional data.
RESERVED_KEYS = frozenset({"responseHeaders", "statusCode", "@odata.context"})


class UserExtensionDataStore(RoamingSettingsDataStore):
    """Settings cache backed by a Graph user open extension.

    Reads and writes go to the local cache. With ``auto_sync`` enabled every
    write is also sent to the extension in the background. ``sync()`` reconciles
    the cache with the extension: local values that differ are pushed, then the
    cache is rebuilt from the remote document.

    The cache is not locked. Callers that mutate one store from several tasks
    must serialize access themselves.
    """

    def __init__(
        self,
        user_id: str,
        extension_id: str,
        gateway: "GraphExtensionsClient",
        serializer: Optional[ObjectSerializer] = None,
        auto_sync: bool = True,
        *,
        metrics: Optional["MetricsCollector"] = None,
        background_writer: Optional[BackgroundWriter] = None,
        on_write_failed: Optional[FailureCallback] = None,
    ):
        super().__init__()
        if not user_id:
            raise ValidationError("user_id is required")
        if not extension_id:
            raise ValidationError("extension_id is required")

        self._user_id = user_id
        self._id = extension_id
        self._auto_sync = auto_sync
        self.gateway = gateway
        self.serializer = serializer or JsonObjectSerializer()
        self.metrics = metrics
        self.logger = get_logger("roaming.user_extension_store").bind(
            user_id=user_id, extension_id=extension_id
        )
        self.background_writer = background_writer or BackgroundWriter(
            on_failure=on_write_failed, metrics=metrics
        )
        if background_writer is not None and on_write_failed is not None:
            self.background_writer.on_failure = on_write_failed

        self._cache: Optional[Dict[str, Any]] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def auto_sync(self) -> bool:
        return self._auto_sync

    @property
    def cache(self) -> Optional[Dict[str, Any]]:
        return self._cache

    async def create(self) -> None:
        """Initialize the cache and, with auto-sync, the remote extension."""
        self._init_cache()

        if self.auto_sync:
            await self.gateway.create_extension(self.user_id, self.id)

    async def delete(self) -> None:
        """Discard the cache and, with auto-sync, the remote extension.

        The cache is cleared before the remote call, so it stays cleared even
        if the remote deletion fails.
        """
        self._cache = None
        self._record_cache_size()

        if self.auto_sync:
            await self.gateway.delete_extension(self.user_id, self.id)

    async def sync(self) -> SyncResult:
        """Push differing local values to the extension, then merge in remote keys.

        Differing local values are always pushed, whether or not auto-sync is
        on. Never raises. The outcome is returned and sent to the sync
        listeners. Pushes are background writes; use ``flush()`` to wait for
        them.
        """
        pushed: List[str] = []
        pulled: List[str] = []
        try:
            extension = await self.gateway.get_extension(self.user_id, self.id)
            remote_data = extension.additional_data

            if self._cache is not None:
                for key in list(self._cache.keys()):
                    if key in RESERVED_KEYS:
                        continue

                    value = self._cache[key]
                    if key not in remote_data or remote_data[key] != value:
                        self._dispatch_remote_write(key, value)
                        pushed.append(key)

            if remote_data:
                self._cache = {}

            for key, value in list(remote_data.items()):
                if key not in self._cache:
                    self._cache[key] = value
                    pulled.append(key)

        except Exception as e:
            self.logger.error("Settings sync failed", error=str(e), error_type=type(e).__name__)
            self._record_sync("failure")
            self._notify(self._sync_failed_listeners)
            return SyncResult(success=False, error=str(e), pushed_keys=pushed)

        self.logger.info("Settings sync completed", pushed=len(pushed), pulled=len(pulled))
        self._record_sync("success")
        self._record_cache_size()
        self._notify(self._sync_completed_listeners)
        return SyncResult(success=True, pushed_keys=pushed, pulled_keys=pulled)

    def key_exists(self, key: str) -> bool:
        return self._cache is not None and key in self._cache

    def key_exists_in_composite(self, composite_key: str, key: str) -> bool:
        if self.key_exists(composite_key):
            composite = self._cache[composite_key]
            if is_composite(composite):
                return key in composite
        return False

    def read(self, key: str, default: Any = None, type_: Optional[Type] = None) -> Any:
        """Read a value as ``type_`` (or the type of ``default``).

        Returns ``default`` when the key is missing. Raises SettingTypeError
        when the stored value cannot be read as the requested type.
        """
        if self._cache is None or key not in self._cache:
            return default

        return decode_value(key, self._cache[key], self._resolve_type(type_, default), self.serializer)

    def read_composite(self, composite_key: str, key: str, default: Any = None,
                       type_: Optional[Type] = None) -> Any:
        """Read one sub-value of a composite setting.

        Raises MissingCompositeError when ``composite_key`` does not exist.
        """
        if self._cache is None:
            return default
        if composite_key not in self._cache:
            raise MissingCompositeError(composite_key)

        composite = self._cache[composite_key]
        if not is_composite(composite):
            raise SettingTypeError(composite_key, CompositeValue, composite)

        value = composite.get(key)
        if value is None:
            return default

        return decode_composite_value(key, value, self._resolve_type(type_, default), self.serializer)

    def save(self, key: str, value: Any) -> Optional[WriteFuture]:
        """Store a value locally; with auto-sync, also send it to the extension.

        Returns the future of the background remote write, or ``None`` when
        auto-sync is off.
        """
        self._init_cache()
        encoded = encode_value(value, self.serializer)
        self._cache[key] = encoded
        self._record_cache_size()

        if self.auto_sync:
            return self._dispatch_remote_write(key, encoded)
        return None

    def save_composite(self, composite_key: str, values: Mapping[str, Any]) -> Optional[WriteFuture]:
        """Upsert sub-values into a composite setting, creating it if needed."""
        self._init_cache()

        if self.key_exists(composite_key):
            existing = self._cache[composite_key]
            if not is_composite(existing):
                raise SettingTypeError(composite_key, CompositeValue, existing)
            composite = CompositeValue(existing)
            composite.upsert(values, self.serializer)
        else:
            composite = CompositeValue.from_values(values, self.serializer)

        self._cache[composite_key] = composite
        self._record_cache_size()

        if self.auto_sync:
            return self._dispatch_remote_write(composite_key, composite)
        return None

    async def flush(self) -> int:
        """Wait for pending background writes; returns how many failed."""
        return await self.background_writer.flush()

    async def file_exists(self, file_path: str) -> bool:
        raise UnsupportedOperationError("file_exists")

    async def read_file(self, file_path: str, default: Any = None) -> Any:
        raise UnsupportedOperationError("read_file")

    async def save_file(self, file_path: str, value: Any) -> Any:
        raise UnsupportedOperationError("save_file")

    def _init_cache(self):
        if self._cache is None:
            self._cache = {}

    @staticmethod
    def _resolve_type(type_: Optional[Type], default: Any) -> Optional[Type]:
        if type_ is not None:
            return type_
        if default is not None:
            return type(default)
        return None

    def _dispatch_remote_write(self, key: str, value: Any) -> WriteFuture:
        user_id, extension_id = self.user_id, self.id

        async def _write():
            await self.gateway.set_value(user_id, extension_id, key, value)

        return self.background_writer.dispatch(key, _write)

    def _notify(self, listeners: List[SyncListener]):
        for listener in list(listeners):
            try:
                listener(self)
            except Exception as e:
                self.logger.error("Sync listener raised", error=str(e))

    def _record_sync(self, outcome: str):
        if self.metrics is not None:
            self.metrics.increment_counter("roaming_sync_total", outcome=outcome)

    def _record_cache_size(self):
        if self.metrics is not None:
            size = len(self._cache) if self._cache is not None else 0
            self.metrics.set_gauge("roaming_cache_keys", size, extension_id=self.id)
