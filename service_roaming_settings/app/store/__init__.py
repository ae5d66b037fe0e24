"""
Settings cache and its synchronization with the remote extension.
"""

from .background import BackgroundWriter
from .base import RoamingSettingsDataStore, SyncResult
from .user_extension_store import RESERVED_KEYS, UserExtensionDataStore
from .values import CompositeValue, SettingKind

__all__ = [
    "BackgroundWriter",
    "CompositeValue",
    "RESERVED_KEYS",
    "RoamingSettingsDataStore",
    "SettingKind",
    "SyncResult",
    "UserExtensionDataStore",
]
