"""
Object serializers used to store non-primitive settings as strings.
"""

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import SerializationError

T = TypeVar("T")


class ObjectSerializer(ABC):
    """Converts setting values to and from their stored string form."""

    @abstractmethod
    def serialize(self, value: Any) -> str:
        """Serialize a value to a string."""

    @abstractmethod
    def deserialize(self, data: str, type_: Type[T]) -> T:
        """Parse a string produced by serialize() back into type_."""


@lru_cache(maxsize=256)
def _adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


class JsonObjectSerializer(ObjectSerializer):
    """JSON serializer backed by pydantic type adapters.

    Handles pydantic models, dataclasses, TypedDicts and the builtin
    containers. The type passed to deserialize() drives validation, so a
    string that is valid JSON but has the wrong shape is still rejected.
    """

    def serialize(self, value: Any) -> str:
        try:
            return _adapter(type(value)).dump_json(value).decode("utf-8")
        except (PydanticSerializationError, TypeError) as e:
            raise SerializationError(
                f"Cannot serialize value of type {type(value).__name__}",
                details={"error": str(e)}
            )

    def deserialize(self, data: str, type_: Type[T]) -> T:
        if not isinstance(data, (str, bytes)):
            raise SerializationError(
                f"Expected serialized string, got {type(data).__name__}",
                details={"expected_type": getattr(type_, "__name__", repr(type_))}
            )
        try:
            return _adapter(type_).validate_json(data)
        except (ValidationError, TypeError) as e:
            raise SerializationError(
                f"Invalid serialized data for {getattr(type_, '__name__', repr(type_))}",
                details={"error": str(e)}
            )
