import pytest

from qrlibrary.database import Database, new_id
from qrlibrary.validators import IdentifierValidator


def test_new_ids_are_well_formed_and_unique():
    ids = {new_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(IdentifierValidator.is_valid(i) for i in ids)


def test_closed_database_rejects_use(tmp_path):
    db = Database(str(tmp_path / "closed.db"))
    with pytest.raises(RuntimeError):
        db.get_connection()

    with db:
        assert db.is_open
        assert db.ping() is True
    assert not db.is_open
    assert db.ping() is False


def test_open_is_idempotent(tmp_path):
    path = str(tmp_path / "twice.db")
    Database(path).open().close()
    with Database(path) as db, db.connection() as conn:
        tables = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"books", "students", "transactions"} <= tables


def test_transaction_rolls_back_on_error(db, lib):
    book = lib.create_book("Rollback", 2)
    with pytest.raises(ValueError):
        with db.transaction(immediate=True) as conn:
            conn.execute("UPDATE books SET available_copies = 0 WHERE id = ?", (book.id,))
            raise ValueError("abort")
    assert lib.get_book(book.id).available_copies == 2


def test_copy_count_constraints(db, lib):
    import sqlite3

    book = lib.create_book("Bounded", 1)
    with pytest.raises(sqlite3.IntegrityError):
        with db.connection() as conn:
            conn.execute("UPDATE books SET available_copies = 2 WHERE id = ?", (book.id,))
    with pytest.raises(sqlite3.IntegrityError):
        with db.connection() as conn:
            conn.execute("UPDATE books SET available_copies = -1 WHERE id = ?", (book.id,))


def test_deferred_transaction_commits_and_rolls_back(db, lib):
    book = lib.create_book("Deferred", 3)
    with db.transaction() as conn:
        conn.execute("UPDATE books SET available_copies = 1 WHERE id = ?", (book.id,))
    assert lib.get_book(book.id).available_copies == 1

    with pytest.raises(KeyError):
        with db.transaction() as conn:
            conn.execute("UPDATE books SET available_copies = 0 WHERE id = ?", (book.id,))
            raise KeyError("abort")
    assert lib.get_book(book.id).available_copies == 1
