"""Relational layout of a key-value space and its statement templates.

Every space is one table::

    key TEXT PRIMARY KEY, val BLOB, created_at INTEGER, expire_at INTEGER

indexed on ``expire_at`` so sweeps do not scan the whole table.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

from sqlalchemy import (
    Column,
    Delete,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    Select,
    Table,
    Text,
    delete,
    func,
    literal_column,
    select,
)
from sqlalchemy.dialects.sqlite import Insert, insert

from kv_cache_core.constants import SPACE_NAME_PATTERN
from kv_cache_core.exceptions import ConfigurationError


def build_space_table(name: str, metadata: MetaData | None = None) -> Table:
    """Describe the table backing the key-value space ``name``."""
    if not re.match(SPACE_NAME_PATTERN, name):
        msg = f"Invalid key-value space name {name!r}"
        raise ConfigurationError(msg)
    return Table(
        name,
        metadata if metadata is not None else MetaData(),
        Column("key", Text, primary_key=True),
        Column("val", LargeBinary),
        Column("created_at", Integer),
        Column("expire_at", Integer),
        Index(f"index_expire_{name}", "expire_at"),
    )


class SpaceStatements:
    """Parametrized statements for one key-value space."""

    def __init__(self, table: Table) -> None:
        """Bind the statement set to a space table."""
        self.table = table

    def select_many(self, keys: Sequence[str]) -> Select:
        """Rows for ``keys`` in request order, one output row per requested key.

        The keys travel as a single JSON array expanded by ``json_each`` into
        ``(ordinal, key)`` rows, which are left-joined to the space. Missing
        keys come back with NULL columns; duplicates each get their own row.
        """
        t = self.table
        requested = func.json_each(json.dumps(list(keys))).table_valued(
            "key", "value", name="requested"
        )
        return (
            select(
                requested.c.value.label("key"),
                t.c.key.label("stored_key"),
                t.c.val,
                t.c.created_at,
                t.c.expire_at,
            )
            .select_from(requested.outerjoin(t, t.c.key == requested.c.value))
            .order_by(requested.c.key)
        )

    def upsert(self) -> Insert:
        """Insert a row, fully replacing any existing row for the key."""
        stmt = insert(self.table)
        return stmt.on_conflict_do_update(
            index_elements=[self.table.c.key],
            set_={
                "val": stmt.excluded.val,
                "created_at": stmt.excluded.created_at,
                "expire_at": stmt.excluded.expire_at,
            },
        )

    def delete_key(self, key: str) -> Delete:
        """Delete one key."""
        return delete(self.table).where(self.table.c.key == key)

    def truncate(self) -> Delete:
        """Delete every row in the space."""
        return delete(self.table)

    def purge_expired(self, now_ms: int) -> Delete:
        """Delete every row whose expiry is at or before ``now_ms``."""
        expire_at = self.table.c.expire_at
        return delete(self.table).where(expire_at.is_not(None), expire_at <= now_ms)

    def list_keys(self, pattern: str | None = None) -> Select:
        """Keys in creation order, optionally filtered by a LIKE pattern."""
        t = self.table
        stmt = select(t.c.key)
        if pattern:
            stmt = stmt.where(t.c.key.like(pattern))
        return stmt.order_by(t.c.created_at, literal_column("rowid"))

    def expiry_of(self, key: str) -> Select:
        """The expiry column for one key."""
        return select(self.table.c.expire_at).where(self.table.c.key == key)

    def count(self) -> Select:
        """Number of physically stored rows, expired ones included."""
        return select(func.count()).select_from(self.table)
