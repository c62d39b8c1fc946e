import os
import subprocess
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

import typer

from .circulation import TransactionService
from .config import configure_logging, settings
from .database import Database
from .errors import LibraryError
from .ledger import TransactionFilter
from .library import Library
from .ui_helpers import (
    print_books,
    print_stats_result,
    print_students,
    print_transactions,
    set_output_mode,
)

APP_NAME = "QR Library CLI"

app = typer.Typer(help=APP_NAME)
books_app = typer.Typer(help="Manage the book catalog.")
students_app = typer.Typer(help="Manage the student directory.")
app.add_typer(books_app, name="books")
app.add_typer(students_app, name="students")

_state = {"db_file": None}


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain | json | rich (default: plain)"
    ),
    db_file: Optional[str] = typer.Option(
        None, "--db", envvar="LIBRARY_DB_FILE", help="SQLite database file"
    ),
):
    """Global options for the CLI."""
    if output:
        set_output_mode(output)
    _state["db_file"] = db_file or settings.database_file
    configure_logging("WARNING")


@contextmanager
def _services() -> Iterator[Tuple[Library, TransactionService]]:
    """Open the database for one command and report library errors as exit code 1."""
    with Database(_state["db_file"]) as db:
        try:
            yield Library(db), TransactionService(db)
        except LibraryError as e:
            print(f"Error: {e.message}")
            raise typer.Exit(code=1)


# --- Books ---
@books_app.command("list")
def books_list(search: Optional[str] = typer.Option(None, "--search", "-s", help="Title, author or ISBN")):
    """List the catalog, newest first."""
    with _services() as (lib, _):
        print_books(lib.search_books(search) if search else lib.list_books())


@books_app.command("add")
def books_add(
    title: str,
    copies: int = typer.Option(..., "--copies", "-c", help="Total number of copies"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    isbn: Optional[str] = typer.Option(None, "--isbn"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
):
    """Add a book and generate its QR code."""
    with _services() as (lib, _):
        book = lib.create_book(title, copies, author=author, isbn=isbn, description=description)
        print(f"Added: {book.title} ({book.id}) with {book.total_copies} copies")


@books_app.command("show")
def books_show(book_id: str):
    """Show one book's details."""
    with _services() as (lib, _):
        book = lib.get_book(book_id)
        print("Book Found")
        print(f"ID: {book.id}")
        print(f"Title: {book.title}")
        print(f"Author: {book.author or '-'}")
        print(f"ISBN: {book.isbn or '-'}")
        print(f"Copies: {book.available_copies}/{book.total_copies} available")


@books_app.command("update")
def books_update(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title"),
    author: Optional[str] = typer.Option(None, "--author"),
    isbn: Optional[str] = typer.Option(None, "--isbn"),
    description: Optional[str] = typer.Option(None, "--description"),
    copies: Optional[int] = typer.Option(None, "--copies", help="New total number of copies"),
    regenerate_qr: bool = typer.Option(False, "--regenerate-qr", help="Render the QR code again"),
):
    """Update a book's details."""
    with _services() as (lib, _):
        book = lib.update_book(book_id, title=title, author=author, isbn=isbn, description=description,
                               total_copies=copies, regenerate_qr=regenerate_qr)
        print(f"Updated: {book.title} [{book.available_copies}/{book.total_copies}]")


@books_app.command("remove")
def books_remove(book_id: str):
    """Delete a book. Its transaction history is kept."""
    with _services() as (lib, _):
        lib.delete_book(book_id)
        print(f"Book {book_id} has been removed.")


@books_app.command("qr")
def books_qr(
    book_id: str,
    output: Optional[Path] = typer.Option(None, "--out", help="PNG file to write (default: book_<id>_qr.png)"),
):
    """Write a book's QR code to a PNG file."""
    with _services() as (lib, _):
        book = lib.get_book(book_id)
        path = output or Path(f"book_{book.id}_qr.png")
        path.write_bytes(lib.qr.generate_png(book.id))
        print(f"QR code for '{book.title}' written to {path}")


# --- Students ---
@students_app.command("list")
def students_list():
    """List registered students."""
    with _services() as (lib, _):
        print_students(lib.list_students())


@students_app.command("add")
def students_add(name: str, roll_no: str, email: Optional[str] = typer.Option(None, "--email", "-e")):
    """Register a student."""
    with _services() as (lib, _):
        student = lib.create_student(name, roll_no, email)
        print(f"Registered: {student.name} ({student.id})")


# --- Circulation ---
@app.command("issue")
def cli_issue(student_id: str, book_id: str):
    """Issue a book (scanned QR value) to a student."""
    with _services() as (_, svc):
        result = svc.issue(student_id, book_id)
        txn, book = result["transaction"], result["updatedBook"]
        print(f"Issued '{book.title}' to {txn.student['name']}, due {txn.due_date[:10]}")
        print(f"Available copies: {book.available_copies}/{book.total_copies}")


@app.command("return")
def cli_return(student_id: str, book_id: str):
    """Return a book a student currently holds."""
    with _services() as (_, svc):
        result = svc.return_book(student_id, book_id)
        txn, book = result["transaction"], result["updatedBook"]
        print(f"Returned '{book.title}' from {txn.student['name']}")
        print(f"Available copies: {book.available_copies}/{book.total_copies}")


@app.command("transactions")
def cli_transactions(
    student: Optional[str] = typer.Option(None, "--student", help="Filter by student id"),
    book: Optional[str] = typer.Option(None, "--book", help="Filter by book id"),
    type_: Optional[str] = typer.Option(None, "--type", help="issue | return"),
    status: Optional[str] = typer.Option(None, "--status", help="active | returned"),
    page: int = typer.Option(1, "--page"),
    limit: Optional[int] = typer.Option(None, "--limit"),
):
    """List ledger records, newest first."""
    with _services() as (_, svc):
        flt = TransactionFilter(student_id=student, book_id=book, type=type_, status=status)
        result = svc.list_transactions(flt, page=page, limit=limit)
        print_transactions(result["transactions"], result["total"], result["currentPage"], result["totalPages"])


@app.command("active")
def cli_active(student_id: str):
    """Show the books a student currently holds."""
    with _services() as (_, svc):
        result = svc.active_issues(student_id)
        print_transactions(result["activeIssues"])
        print(f"{result['count']} active issue(s)")


@app.command("stats")
def cli_stats():
    """Show library statistics."""
    with _services() as (lib, _):
        print_stats_result(lib.get_statistics())


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Start the web API with uvicorn."""
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "qrlibrary.api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    env = dict(os.environ, LIBRARY_DB_FILE=_state["db_file"] or settings.database_file)
    subprocess.run(args, env=env)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
