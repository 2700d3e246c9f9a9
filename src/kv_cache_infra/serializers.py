"""Built-in value serializers and serializer resolution."""

from __future__ import annotations

import json
from typing import Any

import cbor2

from kv_cache_core.exceptions import ConfigurationError, SerializationError
from kv_cache_core.interfaces.serializer import Serializer


class JSONSerializer:
    """Plain-text structured encoding (UTF-8 JSON)."""

    name = "json"

    def serialize(self, value: Any) -> bytes:
        """Encode a value as compact JSON bytes."""
        return json.dumps(value, separators=(",", ":"), allow_nan=False).encode("utf-8")

    def deserialize(self, payload: bytes) -> Any:
        """Decode JSON bytes."""
        return json.loads(payload)


class CBORSerializer:
    """Compact binary encoding (RFC 8949 CBOR)."""

    name = "cbor"

    def serialize(self, value: Any) -> bytes:
        """Encode a value as CBOR bytes."""
        return cbor2.dumps(value)

    def deserialize(self, payload: bytes) -> Any:
        """Decode CBOR bytes."""
        return cbor2.loads(payload)


BUILTIN_SERIALIZERS: dict[str, Serializer] = {
    JSONSerializer.name: JSONSerializer(),
    CBORSerializer.name: CBORSerializer(),
}


def resolve_serializer(choice: str | Serializer) -> Serializer:
    """Return a built-in serializer by name, or validate a custom one."""
    if isinstance(choice, str):
        try:
            return BUILTIN_SERIALIZERS[choice]
        except KeyError:
            known = ", ".join(sorted(BUILTIN_SERIALIZERS))
            msg = f"Unknown serializer {choice!r} (expected one of: {known})"
            raise ConfigurationError(msg) from None
    if not isinstance(choice, Serializer):
        msg = f"Serializer {choice!r} must define serialize() and deserialize()"
        raise ConfigurationError(msg)
    return choice


def encode_value(serializer: Serializer, value: Any) -> bytes:
    """Serialize a value, normalizing the payload to bytes."""
    try:
        payload = serializer.serialize(value)
    except Exception as e:
        msg = f"Failed to serialize value of type {type(value).__name__}: {e}"
        raise SerializationError(msg) from e
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    msg = f"Serializer returned {type(payload).__name__}, expected bytes or str"
    raise SerializationError(msg)


def decode_value(serializer: Serializer, payload: bytes) -> Any:
    """Deserialize a stored payload."""
    try:
        return serializer.deserialize(payload)
    except Exception as e:
        msg = f"Failed to deserialize payload of {len(payload)} bytes: {e}"
        raise SerializationError(msg) from e
