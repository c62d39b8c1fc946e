import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .circulation import TransactionService
from .config import configure_logging, settings
from .database import Database
from .errors import LibraryError
from .ledger import TransactionFilter
from .library import Library
from .qr_generator import QRGenerator, decode_data_url

logger = logging.getLogger(__name__)


# --- Models ---
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BookCreateModel(_CamelModel):
    title: str
    author: str | None = None
    isbn: str | None = None
    description: str | None = None
    total_copies: int = Field(alias="totalCopies", ge=0, strict=True)


class BookUpdateModel(_CamelModel):
    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    description: str | None = None
    total_copies: int | None = Field(default=None, alias="totalCopies", ge=0, strict=True)
    regenerate_qr: bool = Field(default=False, alias="regenerateQR")


class StudentCreateModel(_CamelModel):
    name: str
    roll_no: str = Field(alias="rollNo")
    email: str | None = None


class CirculationRequest(_CamelModel):
    student_id: str = Field(alias="studentId")
    book_id: str = Field(alias="bookId")


class StatsModel(BaseModel):
    total_books: int
    total_copies: int
    available_copies: int
    total_students: int
    active_issues: int


# --- Dependencies ---
def get_library(request: Request) -> Library:
    return request.app.state.library


def get_transaction_service(request: Request) -> TransactionService:
    return request.app.state.transactions


# --- Error handlers ---
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error(exc.status_code, "Internal server error")
    return _error(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        # Drop the "body"/"query"/"path" prefix from the location
        loc = [str(p) for p in err.get("loc", ())[1:]]
        messages.append(f"{'.'.join(loc)}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error(400, "; ".join(messages) or "Invalid request")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Internal server error")


router = APIRouter()


# --- Service ---
@router.get("/")
def read_root():
    return {"message": f"{settings.app_name} backend running", "version": settings.app_version}


@router.get("/health")
def health(request: Request):
    """Lightweight health check with a database round trip."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": request.app.state.db.ping(),
    }


@router.get("/stats", response_model=StatsModel)
def get_library_stats(library: Library = Depends(get_library)):
    return StatsModel(**library.get_statistics())


# --- Books ---
@router.post("/books", status_code=201)
def create_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    book = library.create_book(
        payload.title,
        payload.total_copies,
        author=payload.author,
        isbn=payload.isbn,
        description=payload.description,
    )
    return {"message": "Book created successfully", "book": book.to_dict()}


@router.get("/books")
def list_books(
    q: Optional[str] = Query(None, description="Search title, author or ISBN"),
    library: Library = Depends(get_library),
) -> List[Dict[str, Any]]:
    books = library.search_books(q) if q else library.list_books()
    return [b.to_dict() for b in books]


@router.get("/books/{book_id}")
def get_book(book_id: str, library: Library = Depends(get_library)):
    return library.get_book(book_id).to_dict()


@router.get("/books/{book_id}/qr")
def get_book_qr(book_id: str, library: Library = Depends(get_library)):
    """Serve the book's QR code as a PNG image."""
    book = library.get_book(book_id)
    try:
        png = decode_data_url(book.qr_data)
    except ValueError:
        png = library.qr.generate_png(book.id)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="book_{book.id}_qr.png"'},
    )


@router.put("/books/{book_id}")
def update_book(book_id: str, update: BookUpdateModel, library: Library = Depends(get_library)):
    book = library.update_book(
        book_id,
        title=update.title,
        author=update.author,
        isbn=update.isbn,
        description=update.description,
        total_copies=update.total_copies,
        regenerate_qr=update.regenerate_qr,
    )
    return {"message": "Book updated successfully", "book": book.to_dict()}


@router.delete("/books/{book_id}")
def delete_book(book_id: str, library: Library = Depends(get_library)):
    library.delete_book(book_id)
    return {"message": "Book deleted successfully"}


# --- Students ---
@router.post("/students", status_code=201)
def create_student(payload: StudentCreateModel, library: Library = Depends(get_library)):
    student = library.create_student(payload.name, payload.roll_no, payload.email)
    return {"message": "Student created successfully", "student": student.to_dict()}


@router.get("/students")
def list_students(library: Library = Depends(get_library)):
    return [s.to_dict() for s in library.list_students()]


@router.get("/students/{student_id}")
def get_student(student_id: str, library: Library = Depends(get_library)):
    return library.get_student(student_id).to_dict()


# --- Transactions ---
def _circulation_response(message: str, result: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "message": message,
        "transaction": result["transaction"].to_dict(),
        "updatedBook": result["updatedBook"].to_dict(),
    }


@router.post("/transactions/issue", status_code=201)
def issue_book(payload: CirculationRequest, service: TransactionService = Depends(get_transaction_service)):
    result = service.issue(payload.student_id, payload.book_id)
    return _circulation_response("Book issued successfully", result)


@router.post("/transactions/return", status_code=201)
def return_book(payload: CirculationRequest, service: TransactionService = Depends(get_transaction_service)):
    result = service.return_book(payload.student_id, payload.book_id)
    return _circulation_response("Book returned successfully", result)


@router.get("/transactions")
def list_transactions(
    page: int = Query(1, description="Page number, starting at 1"),
    limit: Optional[int] = Query(None, description="Records per page"),
    student_id: Optional[str] = Query(None, alias="studentId"),
    book_id: Optional[str] = Query(None, alias="bookId"),
    type: Optional[str] = Query(None, description="issue | return"),
    status: Optional[str] = Query(None, description="active | returned"),
    service: TransactionService = Depends(get_transaction_service),
):
    flt = TransactionFilter(student_id=student_id, book_id=book_id, type=type, status=status)
    result = service.list_transactions(flt, page=page, limit=limit)
    result["transactions"] = [t.to_dict() for t in result["transactions"]]
    return result


@router.get("/transactions/student/{student_id}/active")
def student_active_issues(student_id: str, service: TransactionService = Depends(get_transaction_service)):
    result = service.active_issues(student_id)
    return {"activeIssues": [t.to_dict() for t in result["activeIssues"]], "count": result["count"]}


@router.get("/transactions/{txn_id}")
def get_transaction(txn_id: str, service: TransactionService = Depends(get_transaction_service)):
    return service.get_transaction(txn_id).to_dict()


def create_app(db_file: Optional[str] = None, qr: Optional[QRGenerator] = None) -> FastAPI:
    """Build the API. The database handle is opened on startup and closed on shutdown."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(db_file).open()
        app.state.db = db
        app.state.library = Library(db, qr)
        app.state.transactions = TransactionService(db)
        try:
            yield
        finally:
            db.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LibraryError, library_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()
