from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class TransactionType(str, Enum):
    ISSUE = "issue"
    RETURN = "return"


class TransactionStatus(str, Enum):
    ACTIVE = "active"
    RETURNED = "returned"


class Transaction:
    """One ledger entry: a book issued to, or returned by, a student.

    ``student`` and ``book`` hold the resolved summaries of the referenced
    records, or None when the record has since been deleted.
    """

    def __init__(self, id: str, student_id: str, book_id: str, type: TransactionType,
                 status: TransactionStatus, issue_date: str, due_date: str | None = None,
                 return_date: str | None = None, student: dict | None = None,
                 book: dict | None = None) -> None:
        self.id = id
        self.student_id = student_id
        self.book_id = book_id
        self.type = TransactionType(type)
        self.status = TransactionStatus(status)
        self.issue_date = issue_date
        self.due_date = due_date
        self.return_date = return_date
        self.student = student
        self.book = book

    @property
    def is_active_issue(self) -> bool:
        return self.type is TransactionType.ISSUE and self.status is TransactionStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "bookId": self.book_id,
            "type": self.type.value,
            "status": self.status.value,
            "issueDate": self.issue_date,
            "dueDate": self.due_date,
            "returnDate": self.return_date,
            "student": self.student,
            "book": self.book,
        }

    @staticmethod
    def from_row(row: Mapping[str, Any]) -> "Transaction":
        """Build from a ledger row, joined with students/books when the columns are present."""
        keys = row.keys()
        student = None
        if "s_id" in keys and row["s_id"] is not None:
            student = {
                "id": row["s_id"],
                "name": row["s_name"],
                "rollNo": row["s_roll_no"],
                "email": row["s_email"],
            }
        book = None
        if "b_id" in keys and row["b_id"] is not None:
            book = {
                "id": row["b_id"],
                "title": row["b_title"],
                "author": row["b_author"],
                "isbn": row["b_isbn"],
            }
        return Transaction(
            id=row["id"],
            student_id=row["student_id"],
            book_id=row["book_id"],
            type=row["type"],
            status=row["status"],
            issue_date=row["issue_date"],
            due_date=row["due_date"],
            return_date=row["return_date"],
            student=student,
            book=book,
        )
