"""Ordered SQL migrations for SQLite registries.

``create_all`` builds missing tables but never alters existing ones; the
files in ``migrations/sql`` (``NNNN_description.sql``) carry those changes.
Applied versions are tracked in ``schema_migrations``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError


logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations" / "sql"

# Statements re-applied to a database that create_all already brought up to date
_IGNORABLE_ERRORS = ("duplicate column name", "already exists")


def run_migrations(engine: Engine, migrations_dir: Path = MIGRATIONS_DIR) -> List[str]:
    """Apply pending migrations; returns the versions applied by this call."""

    if not engine.url.drivername.startswith("sqlite"):
        return []

    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE IF NOT EXISTS schema_migrations ("
                "version TEXT PRIMARY KEY, "
                "applied_at DATETIME DEFAULT CURRENT_TIMESTAMP"
                ")"
            )
        )
        applied = {
            row[0]
            for row in conn.execute(text("SELECT version FROM schema_migrations")).fetchall()
        }

    pending = [path for path in _migration_files(migrations_dir) if _version(path) not in applied]
    if not pending:
        return []

    _backup_sqlite_db(engine)
    done: List[str] = []
    for path in pending:
        version = _version(path)
        with engine.begin() as conn:
            for stmt in _split_sql(path.read_text(encoding="utf-8")):
                try:
                    conn.execute(text(stmt))
                except OperationalError as exc:
                    if _is_ignorable(exc):
                        logger.debug("Migration %s: skipped already-applied statement", version)
                        continue
                    raise
            conn.execute(
                text("INSERT INTO schema_migrations (version) VALUES (:version)"),
                {"version": version},
            )
        logger.info("Applied migration %s", path.name)
        done.append(version)
    return done


def _version(path: Path) -> str:
    return path.stem.split("_", 1)[0]


def _migration_files(migrations_dir: Path) -> Iterable[Path]:
    if not migrations_dir.exists():
        return []
    return sorted(migrations_dir.glob("*.sql"))


def _split_sql(sql: str) -> list[str]:
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [stmt.strip() for stmt in "\n".join(lines).split(";") if stmt.strip()]


def _is_ignorable(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _IGNORABLE_ERRORS)


def _backup_sqlite_db(engine: Engine) -> None:
    db_path = engine.url.database
    if not db_path or db_path == ":memory:":
        return
    source = Path(db_path)
    if source.exists():
        backup = source.with_suffix(source.suffix + ".bak")
        shutil.copy2(source, backup)
        logger.info("Backed up %s to %s", source, backup)
