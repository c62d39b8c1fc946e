from __future__ import annotations

from typing import Any, Mapping


class Student:
    """A registered borrower. Records are never edited once created."""

    def __init__(self, id: str, name: str, roll_no: str, email: str | None = None,
                 created_at: str | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.roll_no = roll_no.strip()
        self.email = email.strip() if email else email
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} ({self.roll_no})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rollNo": self.roll_no,
            "email": self.email,
            "createdAt": self.created_at,
        }

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "rollNo": self.roll_no, "email": self.email}

    @staticmethod
    def from_row(row: Mapping[str, Any]) -> "Student":
        return Student(
            id=row["id"],
            name=row["name"],
            roll_no=row["roll_no"],
            email=row["email"],
            created_at=row["created_at"],
        )
