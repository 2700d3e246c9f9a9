"""Shared constants for sqlite-kv-cache."""

from __future__ import annotations

DEFAULT_SPACE_NAME = "kv"
MEMORY_PATH = ":memory:"
DEFAULT_PATH = MEMORY_PATH
DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SERIALIZER = "cbor"
DEFAULT_BUSY_TIMEOUT_SECONDS = 5.0

# Applied to every new SQLite connection. auto_vacuum only takes effect before
# the first table is created.
CONNECTION_PRAGMAS: tuple[tuple[str, str], ...] = (
    ("auto_vacuum", "INCREMENTAL"),
    ("synchronous", "NORMAL"),
    ("journal_mode", "WAL"),
)

# Space names are interpolated into DDL, so only plain identifiers are allowed.
SPACE_NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"
