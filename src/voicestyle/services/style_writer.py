"""Best-effort writes of the per-user Style Record against a schema that may lag behind the code."""
from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from voicestyle.model.CommunicationStyle import CommunicationStyle
from voicestyle.services.schema_capabilities import SchemaCapabilities, reflect_columns

_logger = logging.getLogger(__name__)

# SQLSTATE for "undefined_column"
PG_UNDEFINED_COLUMN = "42703"


class WriteStatus(str, enum.Enum):
    OK = "ok"
    SCHEMA_GAP = "schema_gap"
    FATAL = "fatal"


@dataclass(frozen=True)
class StyleWriteResult:
    status: WriteStatus
    written: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    pending_migrations: tuple[str, ...] = ()
    rowcount: int = 0


class StyleWriteError(Exception):
    """A Style Record write failed for a reason other than a missing optional column."""

    status = WriteStatus.FATAL

    def __init__(self, message: str, *, user_id: str | None = None, original: BaseException | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id
        self.original = original


def is_undefined_column_error(exc: DBAPIError) -> bool:
    """True when the driver reports Postgres SQLSTATE 42703."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code == PG_UNDEFINED_COLUMN


class StyleWriter:
    """Writes Style Records, dropping fields whose columns the live schema does not have yet.

    Fields for columns missing from the cached capability set are skipped and
    reported with a single warning naming the migration that adds them. Any
    other failure is raised as :class:`StyleWriteError`.
    """

    def __init__(self, engine: Engine, capabilities: SchemaCapabilities | None = None) -> None:
        self._engine = engine
        self._table: Table = CommunicationStyle.__table__
        self._capabilities = capabilities or SchemaCapabilities(engine, self._table).load()

    @property
    def capabilities(self) -> SchemaCapabilities:
        return self._capabilities

    def upsert(
        self,
        user_id: str,
        fields: Mapping[str, Any],
        insert_defaults: Mapping[str, Any] | None = None,
    ) -> StyleWriteResult:
        """Insert or update the user's record.

        ``insert_defaults`` are only used when the row is created and never
        overwrite an existing record.
        """
        values = self._stamp(self._validate(user_id, fields))
        defaults = self._validate(user_id, insert_defaults or {})
        defaults.setdefault("created_at", values["last_updated"])
        return self._write(user_id, values, defaults)

    def update(self, user_id: str, fields: Mapping[str, Any]) -> StyleWriteResult:
        """Update an existing record only; a missing row is not an error."""
        values = self._stamp(self._validate(user_id, fields))
        return self._write(user_id, values, None)

    def get(self, user_id: str) -> dict[str, Any] | None:
        """Read a record using only the columns the live schema has."""
        live = self._capabilities.columns
        columns = [column for column in self._table.columns if column.name in live]
        if not columns:
            raise StyleWriteError(f"table {self._table.name} does not exist", user_id=user_id)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(select(*columns).where(self._table.c.user_id == user_id)).first()
        except DBAPIError as exc:
            _logger.error(f"Error reading style record for user {user_id}: {str(exc)}", exc_info=True)
            raise StyleWriteError(f"could not read style record: {exc.orig}", user_id=user_id, original=exc) from exc
        return dict(row._mapping) if row is not None else None

    def _validate(self, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        if not user_id:
            raise ValueError("user_id is required")
        unknown = set(fields) - {column.name for column in self._table.columns}
        if unknown:
            raise ValueError(f"unknown style record field(s): {', '.join(sorted(unknown))}")
        return {name: value for name, value in fields.items() if name != "user_id"}

    def _stamp(self, values: dict[str, Any]) -> dict[str, Any]:
        values.setdefault("last_updated", datetime.now(timezone.utc))
        return values

    def _partition(self, values: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
        live = self._capabilities.columns
        known = {name: value for name, value in values.items() if name in live}
        skipped = [name for name in values if name not in live]
        return known, skipped

    def _write(
        self,
        user_id: str,
        values: dict[str, Any],
        insert_defaults: dict[str, Any] | None,
    ) -> StyleWriteResult:
        missing_required = self._capabilities.missing_required_columns()
        if missing_required:
            raise StyleWriteError(
                f"{self._table.name} is missing required columns: {', '.join(sorted(missing_required))}",
                user_id=user_id,
            )

        known, skipped = self._partition(values)
        defaults, skipped_defaults = self._partition(insert_defaults or {})
        skipped.extend(name for name in skipped_defaults if name not in skipped)

        try:
            rowcount = self._execute(user_id, known, defaults, insert=insert_defaults is not None)
        except DBAPIError as exc:
            if not self._is_schema_gap(exc, [*known, *defaults]):
                self._raise_fatal(user_id, exc)
            # The cached capabilities went stale; re-read the schema and retry once
            self._capabilities.refresh(warn=False)
            retry_known, newly_skipped = self._partition(known)
            retry_defaults, newly_skipped_defaults = self._partition(defaults)
            dropped = [*newly_skipped, *(n for n in newly_skipped_defaults if n not in newly_skipped)]
            if not dropped or self._capabilities.missing_required_columns():
                self._raise_fatal(user_id, exc)
            skipped.extend(name for name in dropped if name not in skipped)
            known, defaults = retry_known, retry_defaults
            try:
                rowcount = self._execute(user_id, known, defaults, insert=insert_defaults is not None)
            except DBAPIError as retry_exc:
                self._raise_fatal(user_id, retry_exc)

        if not skipped:
            return StyleWriteResult(status=WriteStatus.OK, written=tuple(known), rowcount=rowcount)

        migrations = self._capabilities.pending_migrations(skipped)
        _logger.warning(
            f"Could not persist {', '.join(skipped)} for user {user_id}: "
            f"column(s) missing from {self._table.name}. "
            f"Apply pending migration(s): {', '.join(migrations) or 'unknown'}"
        )
        return StyleWriteResult(
            status=WriteStatus.SCHEMA_GAP,
            written=tuple(known),
            skipped=tuple(skipped),
            pending_migrations=tuple(migrations),
            rowcount=rowcount,
        )

    def _execute(
        self,
        user_id: str,
        values: dict[str, Any],
        insert_defaults: dict[str, Any],
        *,
        insert: bool,
    ) -> int:
        with self._engine.begin() as conn:
            if not insert:
                if not values:
                    return 0
                result = conn.execute(
                    update(self._table).where(self._table.c.user_id == user_id).values(**values)
                )
                return result.rowcount
            return self._upsert(conn, user_id, values, insert_defaults)

    def _upsert(self, conn: Connection, user_id: str, values: dict[str, Any], insert_defaults: dict[str, Any]) -> int:
        row = {**insert_defaults, **values, "user_id": user_id}
        dialect = conn.dialect.name
        if dialect in ("postgresql", "sqlite"):
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = insert(self._table).values(**row)
            if values:
                stmt = stmt.on_conflict_do_update(
                    index_elements=[self._table.c.user_id],
                    set_={name: stmt.excluded[name] for name in values},
                )
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=[self._table.c.user_id])
            return conn.execute(stmt).rowcount

        # Other dialects: select, then update or insert inside the same transaction
        exists = conn.execute(select(self._table.c.user_id).where(self._table.c.user_id == user_id)).first()
        if exists is None:
            return conn.execute(self._table.insert().values(**row)).rowcount
        if not values:
            return 0
        return conn.execute(update(self._table).where(self._table.c.user_id == user_id).values(**values)).rowcount

    def _is_schema_gap(self, exc: DBAPIError, columns: list[str]) -> bool:
        if is_undefined_column_error(exc):
            return True
        live = reflect_columns(self._engine, self._table.name)
        return bool(live) and any(name not in live for name in columns)

    def _raise_fatal(self, user_id: str, exc: DBAPIError) -> None:
        _logger.error(f"Error writing style record for user {user_id}: {str(exc)}", exc_info=True)
        raise StyleWriteError(f"could not write style record: {exc.orig}", user_id=user_id, original=exc) from exc
