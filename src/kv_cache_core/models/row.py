"""Cache row and lookup result types."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Final


class Missing(enum.Enum):
    """Marker for a requested key that has no stored row."""

    MISSING = "missing"

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = Missing.MISSING


@dataclass(frozen=True)
class CacheRow:
    """One stored key with its serialized payload and timestamps (ms since epoch)."""

    key: str
    val: bytes | None
    created_at: int | None
    expire_at: int | None

    def is_expired(self, now_ms: int) -> bool:
        """A row is dead once its expiry instant has been reached."""
        return self.expire_at is not None and self.expire_at <= now_ms

    def is_fresh(self, now_ms: int) -> bool:
        """Present rows have a payload and have not expired."""
        return self.val is not None and not self.is_expired(now_ms)


@dataclass(frozen=True)
class KeyTTL:
    """Remaining lifetime of a key, distinguishing absent from never-expiring."""

    exists: bool
    remaining_ms: float

    @property
    def never_expires(self) -> bool:
        """True for a stored key without an expiry."""
        return self.exists and math.isinf(self.remaining_ms)
