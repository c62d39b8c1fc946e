import logging
from typing import Any, Dict, List, Optional

from .book import Book
from .database import Database, new_id, to_timestamp, utc_now
from .errors import InvalidInputError, NotFoundError
from .qr_generator import QRGenerator
from .student import Student
from .validators import IdentifierValidator, TextValidator, validate_copies

logger = logging.getLogger(__name__)


class Library:
    """Manages the book catalog and the student directory."""

    def __init__(self, db: Database, qr: Optional[QRGenerator] = None) -> None:
        self.db = db
        self.qr = qr or QRGenerator()

    # ------------------------- Catalog ------------------------- #
    def create_book(self, title: Optional[str], total_copies: Any, *, author: Optional[str] = None,
                    isbn: Optional[str] = None, description: Optional[str] = None) -> Book:
        """Add a title with ``total_copies`` copies, all available, and attach its QR code."""
        title = TextValidator.require(title, "title")
        total_copies = validate_copies(total_copies)

        book_id = new_id()
        book = Book(
            id=book_id,
            title=title,
            author=TextValidator.clean(author),
            isbn=TextValidator.clean(isbn),
            description=TextValidator.clean(description),
            total_copies=total_copies,
            available_copies=total_copies,
            qr_data=self.qr.generate(book_id),
            created_at=to_timestamp(utc_now()),
        )
        with self.db.connection() as conn:
            conn.execute(
                "INSERT INTO books (id, title, author, isbn, description, total_copies, available_copies, "
                "qr_data, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (book.id, book.title, book.author, book.isbn, book.description, book.total_copies,
                 book.available_copies, book.qr_data, book.created_at),
            )
        logger.info(f"Book created: {book.id} '{book.title}' ({book.total_copies} copies)")
        return book

    def find_book(self, book_id: str) -> Optional[Book]:
        if not IdentifierValidator.is_valid(book_id):
            return None
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        return Book.from_row(row) if row else None

    def get_book(self, book_id: str) -> Book:
        IdentifierValidator.require(book_id, "bookId")
        book = self.find_book(book_id)
        if not book:
            raise NotFoundError("Book not found")
        return book

    def list_books(self) -> List[Book]:
        """All books, most recently added first."""
        with self.db.connection() as conn:
            rows = conn.execute("SELECT * FROM books ORDER BY created_at DESC, rowid DESC").fetchall()
        return [Book.from_row(row) for row in rows]

    def search_books(self, query: str) -> List[Book]:
        """Search for books by title, author or ISBN."""
        # Wildcards in the query match literally
        escaped = query.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM books WHERE title LIKE ? ESCAPE '\\' OR author LIKE ? ESCAPE '\\' "
                "OR isbn LIKE ? ESCAPE '\\' "
                "ORDER BY created_at DESC, rowid DESC",
                (pattern, pattern, pattern),
            ).fetchall()
        return [Book.from_row(row) for row in rows]

    def update_book(self, book_id: str, *, title: Optional[str] = None, author: Optional[str] = None,
                    isbn: Optional[str] = None, description: Optional[str] = None,
                    total_copies: Any = None, regenerate_qr: bool = False) -> Book:
        """Merge the given fields onto a book. Fields left as None are unchanged.

        A new ``total_copies`` moves ``available_copies`` by the same amount so
        copies that are out on loan stay accounted for.
        """
        IdentifierValidator.require(book_id, "bookId")
        if title is not None:
            title = TextValidator.require(title, "title")
        if total_copies is not None:
            total_copies = validate_copies(total_copies)

        with self.db.transaction(immediate=True) as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
            if not row:
                raise NotFoundError("Book not found")
            book = Book.from_row(row)

            if title is not None:
                book.title = title
            if author is not None:
                book.author = TextValidator.clean(author)
            if isbn is not None:
                book.isbn = TextValidator.clean(isbn)
            if description is not None:
                book.description = TextValidator.clean(description)
            if total_copies is not None:
                issued = book.issued_copies
                if total_copies < issued:
                    raise InvalidInputError(
                        f"totalCopies cannot be less than the {issued} copies currently issued"
                    )
                book.total_copies = total_copies
                book.available_copies = total_copies - issued
            if regenerate_qr:
                book.qr_data = self.qr.generate(book.id)

            conn.execute(
                "UPDATE books SET title = ?, author = ?, isbn = ?, description = ?, total_copies = ?, "
                "available_copies = ?, qr_data = ? WHERE id = ?",
                (book.title, book.author, book.isbn, book.description, book.total_copies,
                 book.available_copies, book.qr_data, book.id),
            )
        logger.info(f"Book updated: {book.id}" + (" (QR regenerated)" if regenerate_qr else ""))
        return book

    def delete_book(self, book_id: str) -> None:
        """Remove a book. Its transactions stay in the ledger."""
        IdentifierValidator.require(book_id, "bookId")
        with self.db.connection() as conn:
            cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        if cursor.rowcount == 0:
            raise NotFoundError("Book not found")
        logger.info(f"Book deleted: {book_id}")

    # ------------------------- Students ------------------------- #
    def create_student(self, name: Optional[str], roll_no: Optional[str], email: Optional[str] = None) -> Student:
        student = Student(
            id=new_id(),
            name=TextValidator.require(name, "name"),
            roll_no=TextValidator.require(roll_no, "rollNo"),
            email=TextValidator.clean(email),
            created_at=to_timestamp(utc_now()),
        )
        with self.db.connection() as conn:
            conn.execute(
                "INSERT INTO students (id, name, roll_no, email, created_at) VALUES (?, ?, ?, ?, ?)",
                (student.id, student.name, student.roll_no, student.email, student.created_at),
            )
        logger.info(f"Student registered: {student.id} {student.roll_no}")
        return student

    def find_student(self, student_id: str) -> Optional[Student]:
        if not IdentifierValidator.is_valid(student_id):
            return None
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM students WHERE id = ?", (student_id,)).fetchone()
        return Student.from_row(row) if row else None

    def get_student(self, student_id: str) -> Student:
        IdentifierValidator.require(student_id, "studentId")
        student = self.find_student(student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def list_students(self) -> List[Student]:
        with self.db.connection() as conn:
            rows = conn.execute("SELECT * FROM students ORDER BY name, rowid").fetchall()
        return [Student.from_row(row) for row in rows]

    # ------------------------- Reporting ------------------------- #
    def get_statistics(self) -> Dict[str, Any]:
        """Get library statistics."""
        with self.db.connection() as conn:
            books = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(total_copies), 0), COALESCE(SUM(available_copies), 0) FROM books"
            ).fetchone()
            students = conn.execute("SELECT COUNT(*) FROM students").fetchone()[0]
            active = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE type = 'issue' AND status = 'active'"
            ).fetchone()[0]
        return {
            "total_books": books[0],
            "total_copies": books[1],
            "available_copies": books[2],
            "total_students": students,
            "active_issues": active,
        }
