"""A small thread-safe wrapper around an SQLite connection."""

from __future__ import annotations

import contextlib
import os
import sqlite3
import threading
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

Params = Union[Iterable[Any], Mapping[str, Any]]


class DatabaseError(RuntimeError):
    """Raised when an SQLite operation fails."""


def _is_busy(error: sqlite3.Error) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


class SQLite:
    """An SQLite connection that several threads may share.

    Statements run in autocommit mode; every call is serialised by a lock.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn: Optional[sqlite3.Connection] = connection
        self._lock = threading.RLock()

    @classmethod
    def connect_file(cls, db_file: Union[str, "os.PathLike[str]"]) -> "SQLite":
        """Open a database file with WAL journaling and foreign keys enabled."""
        try:
            conn = sqlite3.connect(
                os.fspath(db_file), check_same_thread=False, isolation_level=None
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to create DB connection: {e}") from e
        db = cls(conn)
        try:
            db.execute("PRAGMA journal_mode = WAL;")
            db.execute("PRAGMA foreign_keys = ON;")
        except DatabaseError:
            db.close()
            raise
        return db

    @classmethod
    def connect_memory(cls) -> "SQLite":
        """Open a fresh in-memory database."""
        return cls.connect_file(":memory:")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("The database connection is closed")
        return self._conn

    def query(self, sql: str, params: Params = ()) -> List[Tuple[Any, ...]]:
        """Run one statement and return every row it produces."""
        with self._lock:
            conn = self._connection()
            try:
                cursor = conn.execute(sql, params)
                try:
                    return cursor.fetchall()
                finally:
                    cursor.close()
            except sqlite3.OperationalError as e:
                if _is_busy(e):
                    if conn.in_transaction:
                        with contextlib.suppress(sqlite3.Error):
                            conn.execute("ROLLBACK;")
                    raise DatabaseError(str(e)) from e
                raise DatabaseError(f"Failed to evaluate SQL: {e}") from e
            except (sqlite3.Error, sqlite3.Warning) as e:
                raise DatabaseError(f"Failed to evaluate SQL: {e}") from e

    def execute(self, sql: str, params: Params = ()) -> None:
        """Run one statement whose result, if any, is not wanted."""
        self.query(sql, params)

    def query_value(self, sql: str, params: Params = ()) -> Any:
        """Run one statement and return the first column of its first row."""
        rows = self.query(sql, params)
        if not rows:
            raise DatabaseError(
                "query_value() expects a return value from SQL evaluation, "
                "but no value is returned"
            )
        return rows[0][0]

    def last_insert_row_id(self) -> int:
        """The row ID of the most recent successful INSERT."""
        return int(self.query_value("SELECT last_insert_rowid();"))

    def changed_rows_count(self) -> int:
        """Rows affected by the most recent INSERT, UPDATE or DELETE."""
        return int(self.query_value("SELECT changes();"))

    def close(self) -> None:
        """Close the connection; closing twice does nothing."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "SQLite":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()