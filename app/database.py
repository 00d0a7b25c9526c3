"""
Database - the backing-store handle for the library.

One Database is opened at process start and closed at shutdown. It does not
keep a shared connection: every unit of work gets its own sqlite3 connection
(foreign keys on, rows addressable by column name) that commits on success
and rolls back on error.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

import structlog

from app.schema import SCHEMA_STATEMENTS, SCHEMA_VERSION

logger = structlog.get_logger()


class Database:
    """Scoped handle around a SQLite database file."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._closed = True

    def open(self) -> "Database":
        """create the parent directory and apply the schema"""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._closed = False
        self._run_migrations()
        logger.info("database_opened", path=str(self.db_path), schema_version=SCHEMA_VERSION)
        return self

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            logger.info("database_closed", path=str(self.db_path))

    @property
    def closed(self) -> bool:
        return self._closed

    def _connect(self) -> sqlite3.Connection:
        if self._closed:
            raise RuntimeError("Database handle is closed")
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row  # Enable column access by name
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for one unit of work; commit on success."""
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _run_migrations(self) -> None:
        """create tables, triggers and indexes if they don't exist"""
        with self.connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()
