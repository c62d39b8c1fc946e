import sqlite3
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .database import Database
from .errors import InvalidInputError
from .transaction import Transaction, TransactionStatus, TransactionType
from .validators import IdentifierValidator

_SELECT_RESOLVED = """
    SELECT t.*,
           s.id AS s_id, s.name AS s_name, s.roll_no AS s_roll_no, s.email AS s_email,
           b.id AS b_id, b.title AS b_title, b.author AS b_author, b.isbn AS b_isbn
    FROM transactions t
    LEFT JOIN students s ON s.id = t.student_id
    LEFT JOIN books b ON b.id = t.book_id
"""

# Newest first; rowid breaks ties between records written in the same instant
_ORDER = " ORDER BY t.issue_date DESC, t.rowid DESC"


@dataclass
class TransactionFilter:
    student_id: Optional[str] = None
    book_id: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None

    def validate(self) -> "TransactionFilter":
        if self.student_id is not None and not IdentifierValidator.is_valid(self.student_id):
            raise InvalidInputError(f"Invalid studentId: {self.student_id}")
        if self.book_id is not None and not IdentifierValidator.is_valid(self.book_id):
            raise InvalidInputError(f"Invalid bookId: {self.book_id}")
        if self.type is not None and self.type not in {t.value for t in TransactionType}:
            raise InvalidInputError(f"Invalid type: {self.type}. Allowed: issue, return")
        if self.status is not None and self.status not in {s.value for s in TransactionStatus}:
            raise InvalidInputError(f"Invalid status: {self.status}. Allowed: active, returned")
        return self

    def to_where(self) -> Tuple[str, list]:
        clauses, params = [], []
        for column, value in (("t.student_id", self.student_id), ("t.book_id", self.book_id),
                              ("t.type", self.type), ("t.status", self.status)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        return where, params


class TransactionLedger:
    """Append-only store of issue and return records.

    Write helpers take an open connection so the workflow service can run
    them inside its own transaction.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------- Writes ------------------------- #
    @staticmethod
    def insert(conn: sqlite3.Connection, txn: Transaction) -> None:
        conn.execute(
            "INSERT INTO transactions (id, student_id, book_id, type, status, issue_date, due_date, return_date) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (txn.id, txn.student_id, txn.book_id, txn.type.value, txn.status.value,
             txn.issue_date, txn.due_date, txn.return_date),
        )

    @staticmethod
    def mark_returned(conn: sqlite3.Connection, txn_id: str, return_date: str) -> bool:
        """Flip an active issue to returned. Returns False if it was not active."""
        cursor = conn.execute(
            "UPDATE transactions SET status = 'returned', return_date = ? "
            "WHERE id = ? AND type = 'issue' AND status = 'active'",
            (return_date, txn_id),
        )
        return cursor.rowcount == 1

    # ------------------------- Reads ------------------------- #
    @staticmethod
    def find_active_issue(conn: sqlite3.Connection, student_id: str, book_id: str) -> Optional[Transaction]:
        row = conn.execute(
            "SELECT * FROM transactions WHERE student_id = ? AND book_id = ? "
            "AND type = 'issue' AND status = 'active' ORDER BY issue_date DESC, rowid DESC LIMIT 1",
            (student_id, book_id),
        ).fetchone()
        return Transaction.from_row(row) if row else None

    def get(self, txn_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Transaction]:
        """Fetch one record resolved with its student and book."""
        if conn is not None:
            row = conn.execute(_SELECT_RESOLVED + " WHERE t.id = ?", (txn_id,)).fetchone()
        else:
            with self.db.connection() as own:
                row = own.execute(_SELECT_RESOLVED + " WHERE t.id = ?", (txn_id,)).fetchone()
        return Transaction.from_row(row) if row else None

    def query(self, flt: TransactionFilter, offset: int, limit: int) -> Tuple[List[Transaction], int]:
        """Return one slice of matching records and the total match count."""
        where, params = flt.to_where()
        # One read transaction so the count and the page see the same snapshot
        with self.db.transaction() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM transactions t{where}", params).fetchone()[0]
            rows = conn.execute(
                _SELECT_RESOLVED + where + _ORDER + " LIMIT ? OFFSET ?",
                params + [limit, offset],
            ).fetchall()
        return [Transaction.from_row(row) for row in rows], total

    def list_active_for_student(self, student_id: str) -> List[Transaction]:
        flt = TransactionFilter(student_id=student_id, type=TransactionType.ISSUE.value,
                                status=TransactionStatus.ACTIVE.value)
        where, params = flt.to_where()
        with self.db.connection() as conn:
            rows = conn.execute(_SELECT_RESOLVED + where + _ORDER, params).fetchall()
        return [Transaction.from_row(row) for row in rows]
