"""Value serializer capability interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Serializer(Protocol):
    """Converts application values to and from stored payloads.

    ``serialize`` should return bytes; a ``str`` result is stored UTF-8
    encoded. Either method may raise; the cache wraps failures in
    :class:`~kv_cache_core.exceptions.SerializationError`.
    """

    def serialize(self, value: Any) -> bytes | str:
        """Encode a value to a payload."""
        ...

    def deserialize(self, payload: bytes) -> Any:
        """Decode a payload back to a value."""
        ...
