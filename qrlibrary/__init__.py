"""QR Library - Core Application Package

This package contains the library backend:
- Catalog and student directory (library.py)
- Issue/return workflow (circulation.py) over the transaction ledger (ledger.py)
- QR code rendering (qr_generator.py)
- HTTP API (api.py) and command-line client (cli.py)
- Database handle (database.py)
"""

__version__ = "1.0.0"

from .book import Book
from .circulation import TransactionService
from .database import Database
from .errors import ConflictError, InvalidInputError, LibraryError, NotFoundError, QRGenerationError
from .ledger import TransactionFilter, TransactionLedger
from .library import Library
from .qr_generator import QRGenerator
from .student import Student
from .transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "Book",
    "Student",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "Database",
    "Library",
    "TransactionLedger",
    "TransactionFilter",
    "TransactionService",
    "QRGenerator",
    "LibraryError",
    "InvalidInputError",
    "NotFoundError",
    "ConflictError",
    "QRGenerationError",
]
