"""Shared database handle and repository base class."""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .connection import get_connection


class RepositoryError(Exception):
    """Raised when the underlying store fails."""
    pass


class Database:
    """
    Handle to one SQLite database file.

    Each call opens its own connection unless a transaction is active on the
    current thread, in which case every repository sharing this handle reuses
    that transaction's connection.
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = db_path
        self._local = threading.local()

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "conn", None) is not None

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, committing on success."""
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return

        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise RepositoryError(f"Could not open database: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group several repository calls into one atomic unit of work."""
        if self.in_transaction:
            yield
            return

        with self.session() as conn:
            self._local.conn = conn
            try:
                yield
            finally:
                self._local.conn = None


class BaseRepository:
    """Base class for all repositories."""

    def __init__(self, db: Database | None = None):
        self.db = db or Database()

    def transaction(self):
        return self.db.transaction()
