"""
Errors raised by the roaming settings store and its Graph client.
"""

from typing import Any, Dict, Optional

from shared.errors import ServiceException, ExternalServiceError


class GraphServiceError(ExternalServiceError):
    """Microsoft Graph request failed or returned an unexpected status."""

    def __init__(self, message: str = "Graph request failed", details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None, code: str = "EXTERNAL_SERVICE_ERROR",
                 retry_after: Optional[float] = None):
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__("graph", message, details, code=code)

    @property
    def transient(self) -> bool:
        """Throttling (429) and server-side (5xx) failures may succeed later."""
        return self.status_code is not None and (self.status_code == 429 or self.status_code >= 500)


class ExtensionNotFoundError(GraphServiceError):
    """The user has no open extension with the requested id."""

    def __init__(self, user_id: str, extension_id: str):
        super().__init__(
            f"Extension '{extension_id}' not found for user '{user_id}'",
            details={"user_id": user_id, "extension_id": extension_id},
            status_code=404,
            code="EXTENSION_NOT_FOUND"
        )


class SerializationError(ServiceException, ValueError):
    """Serialized data could not be produced or parsed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("SERIALIZATION_ERROR", message, details)


class SettingTypeError(ServiceException, TypeError):
    """A cached value cannot be converted to the requested type."""

    def __init__(self, key: str, expected: Any, value: Any):
        type_name = getattr(expected, "__name__", repr(expected))
        super().__init__(
            "SETTING_TYPE_ERROR",
            f"Value for '{key}' cannot be read as {type_name}",
            {"key": key, "expected_type": type_name, "actual_type": type(value).__name__}
        )


class MissingCompositeError(ServiceException, KeyError):
    """A composite-scoped read targeted a composite key that does not exist."""

    def __init__(self, composite_key: str):
        super().__init__(
            "MISSING_COMPOSITE",
            f"Composite value '{composite_key}' does not exist",
            {"composite_key": composite_key}
        )


class SettingNotFoundError(ServiceException, KeyError):
    """The remote extension has no value for the requested key."""

    def __init__(self, key: str, extension_id: str):
        super().__init__(
            "SETTING_NOT_FOUND",
            f"Key '{key}' not found in extension '{extension_id}'",
            {"key": key, "extension_id": extension_id}
        )


class UnsupportedOperationError(ServiceException, NotImplementedError):
    """Operation is part of the data store contract but not supported."""

    def __init__(self, operation: str):
        super().__init__(
            "UNSUPPORTED_OPERATION",
            f"{operation} is not supported by this data store",
            {"operation": operation}
        )
