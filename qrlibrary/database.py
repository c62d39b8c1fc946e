import logging
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from .config import settings

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Return a fresh 24-character hex identifier."""
    return secrets.token_hex(12)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> str:
    # Fixed precision keeps stored timestamps lexicographically ordered
    return value.isoformat(timespec="microseconds")


class Database:
    """Handle on the SQLite file behind the catalog, directory and ledger.

    Created explicitly and passed to the services. ``open()`` creates the
    schema, ``close()`` rejects further use. Connections are opened per
    operation.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or settings.database_file
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "Database":
        self._open = True
        create_tables(self)
        logger.info(f"Database opened: {self.db_file}")
        return self

    def close(self) -> None:
        if self._open:
            logger.info(f"Database closed: {self.db_file}")
        self._open = False

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def get_connection(self) -> sqlite3.Connection:
        if not self._open:
            raise RuntimeError("Database is not open")
        # Autocommit mode; write paths issue BEGIN/COMMIT themselves
        conn = sqlite3.connect(self.db_file, isolation_level=None, check_same_thread=False, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=10000;")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for reads or single-statement writes."""
        conn = self.get_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside BEGIN ... COMMIT, rolling back on any error.

        ``immediate`` takes the write lock up front so that checks made inside
        the block cannot be invalidated by a concurrent writer.
        """
        conn = self.get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def ping(self) -> bool:
        try:
            with self.connection() as conn:
                conn.execute("SELECT 1")
            return True
        except (sqlite3.Error, RuntimeError):
            return False


def create_tables(db: Database) -> None:
    """Create the tables and indexes if they don't exist."""
    with db.connection() as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT,
                isbn TEXT,
                description TEXT,
                total_copies INTEGER NOT NULL CHECK(total_copies >= 0),
                available_copies INTEGER NOT NULL
                    CHECK(available_copies >= 0 AND available_copies <= total_copies),
                qr_data TEXT,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS students (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                roll_no TEXT NOT NULL,
                email TEXT,
                created_at TEXT NOT NULL
            )
        """)
        # No foreign keys: history outlives deleted books and students
        conn.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                student_id TEXT NOT NULL,
                book_id TEXT NOT NULL,
                type TEXT NOT NULL CHECK(type IN ('issue', 'return')),
                status TEXT NOT NULL CHECK(status IN ('active', 'returned')),
                issue_date TEXT NOT NULL,
                due_date TEXT,
                return_date TEXT
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_pair "
            "ON transactions(student_id, book_id, type, status)"
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_transactions_issue_date ON transactions(issue_date DESC)")
