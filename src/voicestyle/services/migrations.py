"""Versioned SQL migrations for the application schema."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from voicestyle.config import MIGRATIONS_DIR

_logger = logging.getLogger(__name__)


class MigrationError(RuntimeError):
    """Raised when a migration file fails to apply."""


def _ensure_migrations_table(conn: Connection) -> None:
    conn.execute(
        text(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version VARCHAR(255) PRIMARY KEY,
                applied_at TIMESTAMP NOT NULL
            )
            """
        )
    )


def list_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
    return sorted(migrations_dir.glob("*.sql"))


def applied_migrations(engine: Engine) -> set[str]:
    with engine.begin() as conn:
        _ensure_migrations_table(conn)
        return {row[0] for row in conn.execute(text("SELECT version FROM schema_migrations"))}


def pending_migrations(engine: Engine, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    applied = applied_migrations(engine)
    return [migration.name for migration in list_migrations(migrations_dir) if migration.name not in applied]


def split_statements(sql: str) -> list[str]:
    """Split a migration file into statements, dropping comment-only lines."""
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [statement.strip() for statement in "\n".join(lines).split(";") if statement.strip()]


def apply_migrations(
    engine: Engine,
    upto: str | None = None,
    migrations_dir: Path = MIGRATIONS_DIR,
) -> list[str]:
    """Apply pending SQL migrations in lexical order and stamp schema_migrations.

    Args:
        engine: target database
        upto: stop after the migration whose file name starts with this prefix
        migrations_dir: directory holding the ``*.sql`` files

    Returns:
        list[str]: file names applied by this call, in order
    """
    applied_now: list[str] = []
    already_applied = applied_migrations(engine)
    for migration in list_migrations(migrations_dir):
        if migration.name not in already_applied:
            statements = split_statements(migration.read_text(encoding="utf-8"))
            try:
                with engine.begin() as conn:
                    for statement in statements:
                        conn.exec_driver_sql(statement)
                    conn.execute(
                        text("INSERT INTO schema_migrations(version, applied_at) VALUES (:version, :applied_at)"),
                        {"version": migration.name, "applied_at": datetime.now(timezone.utc)},
                    )
            except DBAPIError as exc:
                _logger.error(f"Migration {migration.name} failed: {exc}", exc_info=True)
                raise MigrationError(f"migration {migration.name} failed: {exc.orig}") from exc
            _logger.info(f"Applied migration {migration.name}")
            applied_now.append(migration.name)
        if upto is not None and migration.name.startswith(upto):
            break
    return applied_now
