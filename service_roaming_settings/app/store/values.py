"""
Setting value kinds and the conversions between cached values and the types
callers ask for.

A cached value is one of three kinds:

- primitive: ``str``, ``int``, ``float``, ``bool`` or ``None``, stored as-is
- serialized: the serializer's string form of any other value
- composite: a mapping of sub-key to serialized string

Values are encoded once on the way into the cache and decoded on the way out
for the type the caller asks for.
"""

from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar

from ..exceptions import SerializationError, SettingTypeError
from ..serializers import ObjectSerializer

T = TypeVar("T")

PRIMITIVE_TYPES = (str, int, float, bool, type(None))


class SettingKind(str, Enum):
    """How a value is held in the settings cache."""
    PRIMITIVE = "primitive"
    SERIALIZED = "serialized"
    COMPOSITE = "composite"


class CompositeValue(dict):
    """Group of related settings stored under one cache key.

    Sub-values are always serialized strings.
    """

    @classmethod
    def from_values(cls, values: Mapping[str, Any], serializer: ObjectSerializer) -> "CompositeValue":
        composite = cls()
        composite.upsert(values, serializer)
        return composite

    def upsert(self, values: Mapping[str, Any], serializer: ObjectSerializer) -> None:
        for key, value in values.items():
            self[key] = serializer.serialize(value)


def is_primitive(value: Any) -> bool:
    return isinstance(value, PRIMITIVE_TYPES)


def is_primitive_type(type_: Any) -> bool:
    return isinstance(type_, type) and issubclass(type_, PRIMITIVE_TYPES)


def is_composite(raw: Any) -> bool:
    """Composite values saved locally and plain objects pulled from the remote."""
    return isinstance(raw, Mapping)


def kind_of(value: Any) -> SettingKind:
    """Name the kind a value is stored as."""
    if isinstance(value, CompositeValue):
        return SettingKind.COMPOSITE
    if is_primitive(value):
        return SettingKind.PRIMITIVE
    return SettingKind.SERIALIZED


def encode_value(value: Any, serializer: ObjectSerializer) -> Any:
    """Turn a caller's value into the raw value kept in the cache."""
    if kind_of(value) == SettingKind.SERIALIZED:
        return serializer.serialize(value)
    return value


def coerce_primitive(key: str, raw: Any, type_: Type[T]) -> T:
    """Convert a primitive raw value to a primitive type."""
    if raw is None:
        return None
    if isinstance(raw, type_) and not (isinstance(raw, bool) and type_ is not bool):
        return raw
    if type_ is bool:
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            if lowered in ("true", "false"):
                return lowered == "true"
        elif isinstance(raw, (int, float)):
            return bool(raw)
        raise SettingTypeError(key, type_, raw)
    if type_ is type(None):
        raise SettingTypeError(key, type_, raw)
    try:
        if type_ is int and isinstance(raw, float) and not raw.is_integer():
            raise ValueError("lossy conversion")
        return type_(raw)
    except (TypeError, ValueError):
        raise SettingTypeError(key, type_, raw)


def decode_value(
    key: str,
    raw: Any,
    type_: Optional[Type[T]],
    serializer: ObjectSerializer,
) -> Any:
    """Resolve a raw cached value into the type the caller asked for.

    Without a type the raw value is returned unchanged. Primitive types are
    coerced from primitive raw values. Any other type is deserialized from a
    serialized string, or validated from a mapping received from the remote.
    """
    if type_ is None:
        return raw

    if is_primitive_type(type_):
        if not is_primitive(raw):
            raise SettingTypeError(key, type_, raw)
        return coerce_primitive(key, raw, type_)

    if isinstance(raw, str):
        try:
            return serializer.deserialize(raw, type_)
        except SerializationError:
            raise SettingTypeError(key, type_, raw)

    # Structured values pulled from the remote are plain JSON objects/arrays.
    try:
        return serializer.deserialize(serializer.serialize(raw), type_)
    except SerializationError:
        raise SettingTypeError(key, type_, raw)


def decode_composite_value(
    key: str,
    raw: Any,
    type_: Optional[Type[T]],
    serializer: ObjectSerializer,
) -> Any:
    """Resolve a composite sub-value, which is normally stored serialized.

    Sub-values written by other clients may arrive as plain JSON values or as
    bare strings that are not JSON. Plain values are decoded like top-level
    values. A bare string is returned as-is without a type, or coerced when a
    primitive type is asked for.
    """
    if not isinstance(raw, str):
        return decode_value(key, raw, type_, serializer)
    try:
        return serializer.deserialize(raw, type_ if type_ is not None else Any)
    except SerializationError:
        if type_ is None:
            return raw
        if is_primitive_type(type_):
            return coerce_primitive(key, raw, type_)
        raise SettingTypeError(key, type_, raw)
