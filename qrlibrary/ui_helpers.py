import json
import os
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "QRLIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_books(books: List[Any]) -> None:
    """Print the catalog in the current output mode.
    - plain: 'id - Title by Author [available/total]' lines
    - json: array of book objects without the QR payload
    - rich: table
    """
    if not books:
        print("No books in library.")
        return

    mode = get_output_mode()
    if mode == "json":
        payload = [{k: v for k, v in b.to_dict().items() if k != "qrData"} for b in books]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("ISBN")
        table.add_column("Available", justify="right")
        for b in books:
            table.add_row(b.id, b.title, b.author or "", b.isbn or "", f"{b.available_copies}/{b.total_copies}")
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author or 'Unknown'} [{b.available_copies}/{b.total_copies}]")


def print_students(students: List[Any]) -> None:
    if not students:
        print("No students registered.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps([s.to_dict() for s in students], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Students", header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name")
        table.add_column("Roll No")
        table.add_column("Email")
        for s in students:
            table.add_row(s.id, s.name, s.roll_no, s.email or "")
        _console.print(table)
    else:
        for s in students:
            print(f"{s.id} - {s.name} ({s.roll_no})")


def _txn_line(t: Any) -> str:
    student = t.student["name"] if t.student else "(deleted student)"
    book = t.book["title"] if t.book else "(deleted book)"
    due = f" due {t.due_date[:10]}" if t.due_date else ""
    return f"{t.issue_date[:19]} {t.type.value:<6} {t.status.value:<8} {student} - {book}{due}"


def print_transactions(transactions: List[Any], total: int | None = None, page: int | None = None,
                       total_pages: int | None = None) -> None:
    mode = get_output_mode()
    if mode == "json":
        payload: Dict[str, Any] = {"transactions": [t.to_dict() for t in transactions]}
        if total is not None:
            payload.update({"total": total, "currentPage": page, "totalPages": total_pages})
        print(json.dumps(payload, ensure_ascii=False))
        return

    if not transactions:
        print("No transactions found.")
        return

    if mode == "rich":
        table = Table(title="Transactions", header_style="bold cyan")
        table.add_column("Date")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Student")
        table.add_column("Book")
        table.add_column("Due")
        for t in transactions:
            table.add_row(
                t.issue_date[:19],
                t.type.value,
                t.status.value,
                t.student["name"] if t.student else "-",
                t.book["title"] if t.book else "-",
                (t.due_date or "")[:10],
            )
        _console.print(table)
    else:
        for t in transactions:
            print(_txn_line(t))
    if total is not None:
        print(f"Page {page}/{max(total_pages or 0, 1)} ({total} total)")


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics in the current output mode."""
    if not stats:
        print("No statistics available.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]Titles:[/] {stats['total_books']}\n"
            f"[bold]Copies:[/] {stats['available_copies']}/{stats['total_copies']} available\n"
            f"[bold]Students:[/] {stats['total_students']}\n"
            f"[bold]Active Issues:[/] {stats['active_issues']}"
        )
        _console.print(Panel.fit(content, title="Stats", border_style="blue"))
    else:
        print(f"Total Books: {stats['total_books']}")
        print(f"Copies Available: {stats['available_copies']}/{stats['total_copies']}")
        print(f"Students: {stats['total_students']}")
        print(f"Active Issues: {stats['active_issues']}")
