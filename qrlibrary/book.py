from __future__ import annotations

from typing import Any, Mapping


class Book:
    """Represents a single title in the catalog and its copy counts."""

    def __init__(self, id: str, title: str, total_copies: int, available_copies: int | None = None,
                 author: str | None = None, isbn: str | None = None, description: str | None = None,
                 qr_data: str | None = None, created_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip() if author else author
        self.isbn = isbn.strip() if isbn else isbn
        self.description = description
        self.total_copies = total_copies
        self.available_copies = total_copies if available_copies is None else available_copies
        self.qr_data = qr_data
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author or 'Unknown'} ({self.available_copies}/{self.total_copies} available)"

    @property
    def issued_copies(self) -> int:
        return self.total_copies - self.available_copies

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "description": self.description,
            "totalCopies": self.total_copies,
            "availableCopies": self.available_copies,
            "qrData": self.qr_data,
            "createdAt": self.created_at,
        }

    def summary(self) -> dict:
        """Short form embedded in transaction records."""
        return {"id": self.id, "title": self.title, "author": self.author, "isbn": self.isbn}

    @staticmethod
    def from_row(row: Mapping[str, Any]) -> "Book":
        return Book(
            id=row["id"],
            title=row["title"],
            author=row["author"],
            isbn=row["isbn"],
            description=row["description"],
            total_copies=row["total_copies"],
            available_copies=row["available_copies"],
            qr_data=row["qr_data"],
            created_at=row["created_at"],
        )
