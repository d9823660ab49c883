"""Startup-time view of which Style Record columns the live database actually has."""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from sqlalchemy import Table, inspect
from sqlalchemy.engine import Engine

_logger = logging.getLogger(__name__)


class SchemaCapabilityError(RuntimeError):
    """Raised when a required (non-optional) column is missing from the live schema."""


def is_optional(table: Table, column_name: str) -> bool:
    column = table.columns.get(column_name)
    return bool(column is not None and column.info.get("optional"))


def migration_for(table: Table, column_name: str) -> str | None:
    column = table.columns.get(column_name)
    if column is None:
        return None
    return column.info.get("migration")


def reflect_columns(engine: Engine, table_name: str) -> set[str]:
    """Read the live column names of a table; empty when the table does not exist."""
    inspector = inspect(engine)
    if not inspector.has_table(table_name):
        return set()
    return {column["name"] for column in inspector.get_columns(table_name)}


class SchemaCapabilities:
    """Cached set of live columns for one declared table.

    Loaded once at startup and consulted on every write, so a lagging schema
    is discovered by introspection rather than by a failed statement.
    """

    def __init__(self, engine: Engine, table: Table) -> None:
        self._engine = engine
        self._table = table
        self._columns: set[str] | None = None
        self._lock = threading.Lock()

    @property
    def table(self) -> Table:
        return self._table

    @property
    def columns(self) -> frozenset[str]:
        if self._columns is None:
            self.load()
        return frozenset(self._columns or ())

    def load(self, warn: bool = True) -> "SchemaCapabilities":
        """Reflect the live columns. ``warn=False`` logs missing columns at INFO only."""
        with self._lock:
            self._columns = reflect_columns(self._engine, self._table.name)
        missing = self.missing_optional_columns()
        if missing:
            _logger.log(
                logging.WARNING if warn else logging.INFO,
                f"Table {self._table.name} is missing optional columns {sorted(missing)}; "
                f"pending migration(s): {', '.join(self.pending_migrations(missing))}",
            )
        else:
            _logger.info(f"Schema capabilities loaded for {self._table.name}: {len(self._columns)} columns")
        return self

    def refresh(self, warn: bool = True) -> "SchemaCapabilities":
        return self.load(warn=warn)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def declared_columns(self) -> set[str]:
        return {column.name for column in self._table.columns}

    def missing_columns(self) -> set[str]:
        return self.declared_columns() - self.columns

    def missing_optional_columns(self) -> set[str]:
        return {name for name in self.missing_columns() if is_optional(self._table, name)}

    def missing_required_columns(self) -> set[str]:
        return {name for name in self.missing_columns() if not is_optional(self._table, name)}

    def pending_migrations(self, columns: Iterable[str] | None = None) -> list[str]:
        """Migration files that add the given columns (all missing optional columns by default)."""
        names = self.missing_optional_columns() if columns is None else columns
        return sorted({m for m in (migration_for(self._table, name) for name in names) if m})

    def check_required(self) -> None:
        missing = self.missing_required_columns()
        if missing:
            raise SchemaCapabilityError(
                f"{self._table.name} is missing required columns: {', '.join(sorted(missing))}"
            )
