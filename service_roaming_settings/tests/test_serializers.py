"""
Unit tests for the serializer and value decoding.
"""

import pytest
from datetime import date
from typing import Any, Dict, List

from pydantic import BaseModel

from service_roaming_settings.app.exceptions import SerializationError, SettingTypeError
from service_roaming_settings.app.serializers import JsonObjectSerializer
from service_roaming_settings.app.store.values import (
    CompositeValue,
    SettingKind,
    decode_value,
    encode_value,
    kind_of,
)


class Theme(BaseModel):
    name: str
    accent: str = "blue"


class TestJsonObjectSerializer:
    """Test cases for JsonObjectSerializer."""

    @pytest.fixture
    def serializer(self):
        return JsonObjectSerializer()

    def test_serialize_model(self, serializer):
        """Test models serialize to compact JSON."""
        assert serializer.serialize(Theme(name="dark")) == '{"name":"dark","accent":"blue"}'

    def test_deserialize_model(self, serializer):
        """Test JSON validates into the requested model."""
        theme = serializer.deserialize('{"name":"dark"}', Theme)

        assert theme == Theme(name="dark", accent="blue")

    def test_deserialize_generic_types(self, serializer):
        """Test parametrized containers are validated element-wise."""
        assert serializer.deserialize('{"a": [1, 2]}', Dict[str, List[int]]) == {"a": [1, 2]}
        assert serializer.deserialize('"2024-05-01"', date) == date(2024, 5, 1)

    def test_deserialize_invalid_json(self, serializer):
        """Test malformed input raises a format error."""
        with pytest.raises(SerializationError) as exc_info:
            serializer.deserialize("not json", Theme)

        assert isinstance(exc_info.value, ValueError)
        assert exc_info.value.code == "SERIALIZATION_ERROR"

    def test_deserialize_wrong_shape(self, serializer):
        """Test valid JSON of the wrong shape is rejected."""
        with pytest.raises(SerializationError):
            serializer.deserialize('["dark"]', Theme)

    def test_deserialize_non_string(self, serializer):
        """Test primitives cannot be deserialized."""
        with pytest.raises(SerializationError):
            serializer.deserialize(42, int)

    def test_serialize_unsupported_value(self, serializer):
        """Test values pydantic cannot serialize raise a format error."""
        with pytest.raises(SerializationError):
            serializer.serialize(object())


class TestValueEncoding:
    """Test cases for value kinds and decoding."""

    @pytest.fixture
    def serializer(self):
        return JsonObjectSerializer()

    @pytest.mark.parametrize("value, kind", [
        ("dark", SettingKind.PRIMITIVE),
        (12, SettingKind.PRIMITIVE),
        (None, SettingKind.PRIMITIVE),
        (CompositeValue(), SettingKind.COMPOSITE),
        ({"a": 1}, SettingKind.SERIALIZED),
        (Theme(name="dark"), SettingKind.SERIALIZED),
    ])
    def test_kind_of(self, value, kind):
        assert kind_of(value) == kind

    def test_encode_value(self, serializer):
        """Test only non-primitive, non-composite values are serialized."""
        composite = CompositeValue({"lang": '"en"'})

        assert encode_value("dark", serializer) == "dark"
        assert encode_value(composite, serializer) is composite
        assert encode_value({"a": 1}, serializer) == '{"a":1}'

    def test_decode_without_type(self, serializer):
        assert decode_value("k", '{"a":1}', None, serializer) == '{"a":1}'

    def test_decode_remote_object(self, serializer):
        """Test plain JSON objects from the remote validate into models."""
        raw = {"name": "dark", "accent": "red"}

        assert decode_value("theme", raw, Theme, serializer) == Theme(name="dark", accent="red")

    def test_decode_remote_object_as_primitive(self, serializer):
        """Test a structured value cannot be read as a primitive."""
        with pytest.raises(SettingTypeError):
            decode_value("theme", {"name": "dark"}, str, serializer)

    def test_decode_lossy_int(self, serializer):
        """Test fractional numbers are not truncated to int."""
        assert decode_value("size", 12.0, int, serializer) == 12
        with pytest.raises(SettingTypeError):
            decode_value("size", 12.5, int, serializer)

    def test_decode_any(self, serializer):
        """Test Any accepts whatever JSON holds."""
        assert decode_value("blob", '{"a": [1]}', Any, serializer) == {"a": [1]}
