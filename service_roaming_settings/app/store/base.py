"""
Contract shared by roaming settings data stores.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, Field


class SyncResult(BaseModel):
    """Outcome of a cache/remote synchronization."""

    success: bool
    error: Optional[str] = None
    pushed_keys: List[str] = Field(default_factory=list)
    pulled_keys: List[str] = Field(default_factory=list)


SyncListener = Callable[["RoamingSettingsDataStore"], None]


class RoamingSettingsDataStore(ABC):
    """Key/value settings kept in a local cache and mirrored to a remote store."""

    def __init__(self):
        self._sync_completed_listeners: List[SyncListener] = []
        self._sync_failed_listeners: List[SyncListener] = []

    @property
    @abstractmethod
    def id(self) -> str:
        """Identifier of the remote settings container."""

    @property
    @abstractmethod
    def user_id(self) -> str:
        """Owner of the remote settings container."""

    @property
    @abstractmethod
    def auto_sync(self) -> bool:
        """Whether local writes are also pushed to the remote."""

    @property
    @abstractmethod
    def cache(self) -> Optional[Dict[str, Any]]:
        """Local snapshot of the settings, ``None`` until initialized."""

    def add_sync_completed_listener(self, listener: SyncListener):
        self._sync_completed_listeners.append(listener)

    def add_sync_failed_listener(self, listener: SyncListener):
        self._sync_failed_listeners.append(listener)

    @abstractmethod
    async def create(self) -> None:
        ...

    @abstractmethod
    async def delete(self) -> None:
        ...

    @abstractmethod
    async def sync(self) -> SyncResult:
        ...

    @abstractmethod
    def key_exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def key_exists_in_composite(self, composite_key: str, key: str) -> bool:
        ...

    @abstractmethod
    def read(self, key: str, default: Any = None, type_: Optional[Type] = None) -> Any:
        ...

    @abstractmethod
    def read_composite(self, composite_key: str, key: str, default: Any = None,
                       type_: Optional[Type] = None) -> Any:
        ...

    @abstractmethod
    def save(self, key: str, value: Any):
        ...

    @abstractmethod
    def save_composite(self, composite_key: str, values: Mapping[str, Any]):
        ...

    @abstractmethod
    async def file_exists(self, file_path: str) -> bool:
        ...

    @abstractmethod
    async def read_file(self, file_path: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    async def save_file(self, file_path: str, value: Any) -> Any:
        ...
