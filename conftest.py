import pytest
from fastapi.testclient import TestClient

from qrlibrary.api import create_app
from qrlibrary.circulation import TransactionService
from qrlibrary.database import Database
from qrlibrary.library import Library


@pytest.fixture
def db(tmp_path, request):
    # A fresh database file per test
    handle = Database(str(tmp_path / f"test_{request.node.name}.db")).open()
    yield handle
    handle.close()


@pytest.fixture
def lib(db):
    return Library(db)


@pytest.fixture
def service(db):
    return TransactionService(db)


@pytest.fixture
def client(tmp_path, request):
    app = create_app(db_file=str(tmp_path / f"api_test_{request.node.name}.db"))
    # The context manager runs the lifespan that opens the database
    with TestClient(app) as test_client:
        yield test_client
