import logging
import math
from datetime import timedelta
from typing import Any, Dict, Optional

from .book import Book
from .config import settings
from .database import Database, new_id, to_timestamp, utc_now
from .errors import ConflictError, InvalidInputError, NotFoundError
from .ledger import TransactionFilter, TransactionLedger
from .transaction import Transaction, TransactionStatus, TransactionType
from .validators import IdentifierValidator

logger = logging.getLogger(__name__)


class TransactionService:
    """Issues books to students and takes them back.

    Each issue or return runs in a single immediate transaction: the
    reference checks, the duplicate/availability checks, the copy-count
    update and the ledger writes either all commit or all roll back.
    """

    def __init__(self, db: Database, ledger: Optional[TransactionLedger] = None,
                 loan_days: Optional[int] = None) -> None:
        self.db = db
        self.ledger = ledger or TransactionLedger(db)
        self.loan_days = settings.loan_days if loan_days is None else loan_days
        if self.loan_days <= 0:
            raise ValueError("loan_days must be positive")

    @staticmethod
    def _require_pair(student_id: Any, book_id: Any) -> None:
        IdentifierValidator.require(student_id, "studentId")
        IdentifierValidator.require(book_id, "bookId")

    @staticmethod
    def _load_pair(conn, student_id: str, book_id: str) -> Book:
        student = conn.execute("SELECT id FROM students WHERE id = ?", (student_id,)).fetchone()
        book = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        if not student or not book:
            raise NotFoundError("Student or Book not found")
        return Book.from_row(book)

    def issue(self, student_id: str, book_id: str) -> Dict[str, Any]:
        """Issue one copy of a book to a student.

        Returns ``{"transaction": Transaction, "updatedBook": Book}``.
        """
        self._require_pair(student_id, book_id)
        now = utc_now()

        with self.db.transaction(immediate=True) as conn:
            book = self._load_pair(conn, student_id, book_id)

            if self.ledger.find_active_issue(conn, student_id, book_id):
                logger.info(f"Issue refused, already issued: student={student_id} book={book_id}")
                raise ConflictError("Book already issued to this student")

            cursor = conn.execute(
                "UPDATE books SET available_copies = available_copies - 1 "
                "WHERE id = ? AND available_copies > 0",
                (book_id,),
            )
            if cursor.rowcount == 0:
                logger.info(f"Issue refused, no copies left: book={book_id}")
                raise ConflictError("No copies available to issue")

            txn = Transaction(
                id=new_id(),
                student_id=student_id,
                book_id=book_id,
                type=TransactionType.ISSUE,
                status=TransactionStatus.ACTIVE,
                issue_date=to_timestamp(now),
                due_date=to_timestamp(now + timedelta(days=self.loan_days)),
            )
            self.ledger.insert(conn, txn)

            resolved = self.ledger.get(txn.id, conn)
            updated = Book.from_row(conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone())

        logger.info(
            f"Book issued: txn={txn.id} student={student_id} book={book_id} "
            f"available={updated.available_copies}/{updated.total_copies}"
        )
        return {"transaction": resolved, "updatedBook": updated}

    def return_book(self, student_id: str, book_id: str) -> Dict[str, Any]:
        """Take back a copy the student currently holds.

        Returns ``{"transaction": Transaction, "updatedBook": Book}`` where the
        transaction is the new return record.
        """
        self._require_pair(student_id, book_id)
        now = to_timestamp(utc_now())

        with self.db.transaction(immediate=True) as conn:
            self._load_pair(conn, student_id, book_id)

            issue = self.ledger.find_active_issue(conn, student_id, book_id)
            if issue is None:
                logger.info(f"Return refused, not issued: student={student_id} book={book_id}")
                raise ConflictError("Book is not currently issued to this student")

            conn.execute(
                "UPDATE books SET available_copies = MIN(total_copies, available_copies + 1) WHERE id = ?",
                (book_id,),
            )
            txn = Transaction(
                id=new_id(),
                student_id=student_id,
                book_id=book_id,
                type=TransactionType.RETURN,
                status=TransactionStatus.RETURNED,
                issue_date=now,
                return_date=now,
            )
            self.ledger.insert(conn, txn)
            if not self.ledger.mark_returned(conn, issue.id, now):
                raise ConflictError("Book is not currently issued to this student")

            resolved = self.ledger.get(txn.id, conn)
            updated = Book.from_row(conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone())

        logger.info(
            f"Book returned: txn={txn.id} issue={issue.id} student={student_id} book={book_id} "
            f"available={updated.available_copies}/{updated.total_copies}"
        )
        return {"transaction": resolved, "updatedBook": updated}

    def list_transactions(self, flt: Optional[TransactionFilter] = None, page: int = 1,
                          limit: Optional[int] = None) -> Dict[str, Any]:
        """One page of ledger records, newest first."""
        flt = (flt or TransactionFilter()).validate()
        limit = settings.default_page_size if limit is None else limit
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidInputError("page must be an integer >= 1")
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= settings.max_page_size:
            raise InvalidInputError(f"limit must be between 1 and {settings.max_page_size}")

        items, total = self.ledger.query(flt, offset=(page - 1) * limit, limit=limit)
        return {
            "transactions": items,
            "total": total,
            "totalPages": math.ceil(total / limit),
            "currentPage": page,
        }

    def active_issues(self, student_id: str) -> Dict[str, Any]:
        IdentifierValidator.require(student_id, "studentId")
        issues = self.ledger.list_active_for_student(student_id)
        return {"activeIssues": issues, "count": len(issues)}

    def get_transaction(self, txn_id: str) -> Transaction:
        IdentifierValidator.require(txn_id, "transactionId")
        txn = self.ledger.get(txn_id)
        if txn is None:
            raise NotFoundError("Transaction not found")
        return txn
