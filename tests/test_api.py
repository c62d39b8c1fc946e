from fastapi.testclient import TestClient

from qrlibrary.api import create_app

MISSING_ID = "0" * 24
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _create_book(client, **overrides):
    payload = {
        "title": "Python Crash Course",
        "author": "Eric Matthes",
        "isbn": "9781593279288",
        "description": "Hands-on Python intro",
        "totalCopies": 5,
    }
    payload.update(overrides)
    response = client.post("/books", json=payload)
    assert response.status_code == 201
    return response.json()["book"]


def _create_student(client, name="Aarav Patel", roll_no="BTECH001"):
    response = client.post("/students", json={"name": name, "rollNo": roll_no, "email": "a@example.com"})
    assert response.status_code == 201
    return response.json()["student"]


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


def test_create_book(client):
    book = _create_book(client)
    assert book["totalCopies"] == 5
    assert book["availableCopies"] == 5
    assert book["qrData"].startswith("data:image/png;base64,")
    assert len(book["id"]) == 24


def test_create_book_missing_fields(client):
    response = client.post("/books", json={"title": "No copies"})
    assert response.status_code == 400
    assert "totalCopies" in response.json()["message"]

    response = client.post("/books", json={"totalCopies": 2})
    assert response.status_code == 400
    assert "title" in response.json()["message"]

    response = client.post("/books", json={"title": "   ", "totalCopies": 2})
    assert response.status_code == 400
    assert response.json() == {"message": "title is required"}

    response = client.post("/books", json={"title": "Negative", "totalCopies": -3})
    assert response.status_code == 400

    assert client.get("/books").json() == []


def test_book_crud(client):
    book = _create_book(client)

    response = client.get(f"/books/{book['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Python Crash Course"

    response = client.put(f"/books/{book['id']}", json={"title": "Updated Book", "author": "New Author"})
    assert response.status_code == 200
    updated = response.json()["book"]
    assert updated["title"] == "Updated Book"
    assert updated["author"] == "New Author"
    assert updated["isbn"] == "9781593279288"
    assert updated["qrData"] == book["qrData"]

    response = client.put(f"/books/{book['id']}", json={"regenerateQR": True})
    assert response.status_code == 200

    response = client.delete(f"/books/{book['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Book deleted successfully"}

    assert client.get(f"/books/{book['id']}").status_code == 404
    assert client.delete(f"/books/{book['id']}").status_code == 404


def test_book_not_found_and_malformed(client):
    response = client.get(f"/books/{MISSING_ID}")
    assert response.status_code == 404
    assert response.json() == {"message": "Book not found"}

    assert client.put(f"/books/{MISSING_ID}", json={"title": "x"}).status_code == 404
    assert client.get("/books/not-an-id").status_code == 400


def test_list_and_search_books(client):
    _create_book(client, title="Clean Code", author="Robert Martin")
    _create_book(client, title="Dune", author="Frank Herbert", isbn=None)

    titles = [b["title"] for b in client.get("/books").json()]
    assert titles == ["Dune", "Clean Code"]
    assert [b["title"] for b in client.get("/books", params={"q": "martin"}).json()] == ["Clean Code"]


def test_book_qr_image(client):
    book = _create_book(client)
    response = client.get(f"/books/{book['id']}/qr")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(PNG_SIGNATURE)
    assert client.get(f"/books/{MISSING_ID}/qr").status_code == 404


def test_students(client):
    student = _create_student(client)
    assert student["rollNo"] == "BTECH001"

    assert client.get(f"/students/{student['id']}").json()["name"] == "Aarav Patel"
    assert len(client.get("/students").json()) == 1
    assert client.get(f"/students/{MISSING_ID}").status_code == 404

    response = client.post("/students", json={"name": "No Roll"})
    assert response.status_code == 400


def test_issue_twice_then_return(client):
    book = _create_book(client)
    student = _create_student(client)
    body = {"studentId": student["id"], "bookId": book["id"]}

    response = client.post("/transactions/issue", json=body)
    assert response.status_code == 201
    data = response.json()
    assert data["updatedBook"]["availableCopies"] == 4
    assert data["transaction"]["type"] == "issue"
    assert data["transaction"]["status"] == "active"
    assert data["transaction"]["student"]["name"] == "Aarav Patel"
    assert data["transaction"]["book"]["title"] == "Python Crash Course"
    issue_id = data["transaction"]["id"]

    response = client.post("/transactions/issue", json=body)
    assert response.status_code == 400
    assert "already issued" in response.json()["message"]
    assert client.get(f"/books/{book['id']}").json()["availableCopies"] == 4

    response = client.post("/transactions/return", json=body)
    assert response.status_code == 201
    data = response.json()
    assert data["transaction"]["type"] == "return"
    assert data["updatedBook"]["availableCopies"] == 5

    assert client.get(f"/transactions/{issue_id}").json()["status"] == "returned"


def test_issue_errors(client):
    book = _create_book(client, totalCopies=0)
    student = _create_student(client)

    response = client.post("/transactions/issue", json={"studentId": student["id"]})
    assert response.status_code == 400
    assert "bookId" in response.json()["message"]

    response = client.post("/transactions/issue", json={"studentId": "bad", "bookId": book["id"]})
    assert response.status_code == 400

    response = client.post("/transactions/issue", json={"studentId": MISSING_ID, "bookId": book["id"]})
    assert response.status_code == 404
    assert response.json() == {"message": "Student or Book not found"}

    response = client.post("/transactions/issue", json={"studentId": student["id"], "bookId": book["id"]})
    assert response.status_code == 400
    assert response.json() == {"message": "No copies available to issue"}

    response = client.post("/transactions/return", json={"studentId": student["id"], "bookId": book["id"]})
    assert response.status_code == 400
    assert "not currently issued" in response.json()["message"]


def test_list_transactions(client):
    first = _create_book(client, title="First")
    second = _create_book(client, title="Second")
    alice = _create_student(client, "Alice", "R1")
    bob = _create_student(client, "Bob", "R2")

    client.post("/transactions/issue", json={"studentId": alice["id"], "bookId": first["id"]})
    client.post("/transactions/issue", json={"studentId": bob["id"], "bookId": first["id"]})
    client.post("/transactions/issue", json={"studentId": alice["id"], "bookId": second["id"]})

    response = client.get("/transactions", params={"studentId": alice["id"], "limit": 1, "page": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["totalPages"] == 2
    assert data["currentPage"] == 2
    assert [t["book"]["title"] for t in data["transactions"]] == ["First"]

    data = client.get("/transactions", params={"type": "issue", "status": "active"}).json()
    assert data["total"] == 3
    assert data["transactions"][0]["book"]["title"] == "Second"


def test_list_transactions_bad_params(client):
    assert client.get("/transactions", params={"type": "borrow"}).status_code == 400
    assert client.get("/transactions", params={"status": "late"}).status_code == 400
    assert client.get("/transactions", params={"studentId": "abc"}).status_code == 400
    assert client.get("/transactions", params={"page": 0}).status_code == 400
    response = client.get("/transactions", params={"page": "abc"})
    assert response.status_code == 400
    assert "page" in response.json()["message"]


def test_active_issues(client):
    book = _create_book(client)
    student = _create_student(client)
    client.post("/transactions/issue", json={"studentId": student["id"], "bookId": book["id"]})

    response = client.get(f"/transactions/student/{student['id']}/active")
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["activeIssues"][0]["bookId"] == book["id"]

    assert client.get("/transactions/student/not-valid/active").status_code == 400


def test_deleted_book_keeps_history(client):
    book = _create_book(client)
    student = _create_student(client)
    client.post("/transactions/issue", json={"studentId": student["id"], "bookId": book["id"]})
    client.delete(f"/books/{book['id']}")

    data = client.get("/transactions").json()
    assert data["total"] == 1
    assert data["transactions"][0]["book"] is None
    assert data["transactions"][0]["student"]["name"] == "Aarav Patel"


def test_stats(client):
    book = _create_book(client)
    student = _create_student(client)
    client.post("/transactions/issue", json={"studentId": student["id"], "bookId": book["id"]})

    stats = client.get("/stats").json()
    assert stats["total_books"] == 1
    assert stats["available_copies"] == 4
    assert stats["active_issues"] == 1


def test_unknown_route_uses_message_body(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert "message" in response.json()


def test_unexpected_error_is_generic(tmp_path, monkeypatch):
    from qrlibrary.library import Library

    def broken(self):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(Library, "list_books", broken)
    app = create_app(db_file=str(tmp_path / "broken.db"))
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/books")
    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}


def test_copy_counts_must_be_integers(client):
    for value in (True, False, "5", 2.5):
        response = client.post("/books", json={"title": "Typed", "totalCopies": value})
        assert response.status_code == 400
        assert "totalCopies" in response.json()["message"]
    assert client.get("/books").json() == []

    book = _create_book(client, totalCopies=3)
    for value in (True, False, "5"):
        response = client.put(f"/books/{book['id']}", json={"totalCopies": value})
        assert response.status_code == 400
    assert client.get(f"/books/{book['id']}").json()["totalCopies"] == 3


def test_search_wildcards_match_literally(client):
    _create_book(client, title="Alpha", isbn="111")
    _create_book(client, title="100% Python", isbn="222")

    assert [b["title"] for b in client.get("/books", params={"q": "%"}).json()] == ["100% Python"]
    assert client.get("/books", params={"q": "_"}).json() == []
