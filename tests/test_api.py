import pytest


def _login(client, email):
    response = client.post("/auth/login", json={"email": email})
    assert response.status_code == 200
    return {"X-User-Id": response.json()["id"]}


@pytest.fixture
def admin_headers(client):
    return _login(client, "admin@company.com")


@pytest.fixture
def reader_headers(client):
    response = client.post("/auth/register", json={"email": "r@example.com", "name": "Reader"})
    assert response.status_code == 201
    return {"X-User-Id": response.json()["id"]}


def test_startup_seeds_admin_and_samples(client):
    books = client.get("/books").json()["books"]
    assert [b["title"] for b in books] == ["Digital Transformation Guide",
                                           "Leadership in the Modern Era"]
    assert books[0]["readingTime"] == "45 min read"


def test_auth_errors(client):
    assert client.post("/auth/login", json={"email": "ghost@example.com"}).status_code == 404
    client.post("/auth/register", json={"email": "a@example.com", "name": "A"})
    response = client.post("/auth/register", json={"email": "a@example.com", "name": "A"})
    assert response.status_code == 409


def test_search_endpoint(client):
    body = client.get("/search", params={"q": "DIGITAL"}).json()
    assert [b["title"] for b in body["books"]] == ["Digital Transformation Guide"]
    assert body["matches"][0]["bookId"] == "book-1"
    assert all(m["kind"] == "sentence" for m in body["matches"])

    empty = client.get("/search").json()
    assert len(empty["books"]) == 2
    assert empty["matches"] == []


def test_reader_flow(client, reader_headers):
    opened = client.post("/books/book-1/open", headers=reader_headers)
    assert opened.status_code == 200
    assert opened.json()["session"]["chapterIndex"] == 0

    bookmark = client.post("/bookmarks", json={"bookId": "book-1", "chapterIndex": 1},
                           headers=reader_headers)
    assert bookmark.status_code == 201
    assert bookmark.json()["title"] == "Chapter 2"

    note = client.post("/notes", json={"bookId": "book-1", "chapterIndex": 0,
                                       "text": "Digital", "note": "remember"},
                       headers=reader_headers)
    assert note.status_code == 201

    session = client.put("/sessions/book-1", json={"chapterIndex": 2, "timeSpent": 12})
    assert session.json()["chapterIndex"] == 2
    assert client.get("/sessions/book-1").json()["timeSpent"] == 12

    assert len(client.get("/bookmarks", headers=reader_headers).json()["bookmarks"]) == 1
    assert len(client.get("/notes", headers=reader_headers).json()["notes"]) == 1

    user_id = reader_headers["X-User-Id"]
    assert client.get(f"/users/{user_id}/stats").json() == {"booksRead": 1, "bookmarks": 1, "notes": 1}


def test_annotations_without_user_or_book_are_rejected(client, reader_headers):
    assert client.post("/bookmarks", json={"bookId": "book-1"}).status_code == 422
    response = client.post("/bookmarks", json={"bookId": "missing"}, headers=reader_headers)
    assert response.status_code == 422
    response = client.post("/notes", json={"bookId": "book-1", "text": "", "note": "x"},
                           headers=reader_headers)
    assert response.status_code == 422


def test_negative_chapter_index_is_rejected(client, reader_headers):
    response = client.post("/bookmarks", json={"bookId": "book-1", "chapterIndex": -1},
                           headers=reader_headers)
    assert response.status_code == 422
    response = client.post("/notes", json={"bookId": "book-1", "chapterIndex": -1,
                                           "text": "Digital", "note": "x"},
                           headers=reader_headers)
    assert response.status_code == 422
    assert client.put("/sessions/book-1", json={"chapterIndex": -1}).status_code == 422
    assert client.get("/bookmarks", headers=reader_headers).json()["bookmarks"] == []


def test_chapter_index_past_the_end_is_rejected(client, reader_headers):
    response = client.post("/bookmarks", json={"bookId": "book-2", "chapterIndex": 2},
                           headers=reader_headers)
    assert response.status_code == 422


def test_book_without_chapters_gets_a_single_chapter(client, admin_headers):
    response = client.post("/books", json={"title": "T", "author": "A", "content": []},
                           headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["content"] == [""]


def test_publishing_upload_with_emptied_content_keeps_one_chapter(client, admin_headers):
    files = {"file": ("draft.txt", b"Some text.", "text/plain")}
    job_id = client.post("/uploads", files=files, headers=admin_headers).json()["job_id"]

    response = client.post(f"/uploads/{job_id}/publish", json={"content": []},
                           headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["content"] == [""]


def test_admin_routes_require_admin(client, reader_headers):
    assert client.get("/analytics").status_code == 401
    assert client.get("/analytics", headers=reader_headers).status_code == 403
    files = {"file": ("story.txt", b"text", "text/plain")}
    assert client.post("/uploads", files=files, headers=reader_headers).status_code == 403


def test_upload_review_publish(client, admin_headers):
    files = {"file": ("Jones-Field_Notes.txt", b"Part one.\n\n\nPart two.", "text/plain")}
    response = client.post("/uploads", files=files, headers=admin_headers)
    assert response.status_code == 202
    job_id = response.json()["job_id"]

    status = client.get(f"/uploads/{job_id}", headers=admin_headers).json()
    assert status["status"] == "review"
    assert status["progress"] == 100
    assert status["candidate"]["title"] == "Jones-Field_Notes"
    assert status["candidate"]["content"] == ["Part one.", "Part two."]

    published = client.post(f"/uploads/{job_id}/publish", json={"author": "Jones"},
                            headers=admin_headers)
    assert published.status_code == 201
    book = published.json()
    assert book["author"] == "Jones"
    assert book["isPublished"] is True

    results = client.get("/search", params={"q": "part two"}).json()
    assert results["matches"][0]["bookId"] == book["id"]


def test_unreadable_upload_reports_error(client, admin_headers):
    files = {"file": ("broken.txt", b"\xff\xfe\xfa", "text/plain")}
    job_id = client.post("/uploads", files=files, headers=admin_headers).json()["job_id"]
    status = client.get(f"/uploads/{job_id}", headers=admin_headers).json()
    assert status["status"] == "error"
    assert status["candidate"] is None


def test_delete_book_cascades(client, admin_headers, reader_headers):
    client.post("/bookmarks", json={"bookId": "book-1"}, headers=reader_headers)
    client.post("/bookmarks", json={"bookId": "book-2"}, headers=reader_headers)

    assert client.delete("/books/book-1", headers=admin_headers).status_code == 204
    assert client.get("/books/book-1").status_code == 404
    remaining = client.get("/bookmarks", headers=reader_headers).json()["bookmarks"]
    assert [b["bookId"] for b in remaining] == ["book-2"]


def test_edit_book(client, admin_headers):
    response = client.put("/books/book-2", json={"title": "Leading Today", "coverColor": "orange"},
                          headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Leading Today"
    assert response.json()["coverColor"] == "orange"
    assert client.put("/books/nope", json={"title": "x"}, headers=admin_headers).status_code == 404


def test_backup_download_and_restore(client, admin_headers):
    client.put("/settings", json={"companyName": "Acme Reading Club"}, headers=admin_headers)
    response = client.get("/backup", headers=admin_headers)
    assert response.status_code == 200
    assert 'filename="acme-reading-club-library-backup.json"' in response.headers["content-disposition"]
    document = response.json()

    client.delete("/books/book-1", headers=admin_headers)
    restored = client.post("/backup", json=document, headers=admin_headers)
    assert restored.json()["restored"]["books"] == 2
    assert client.get("/books/book-1").status_code == 200


def test_analytics(client, admin_headers, reader_headers):
    stats = client.get("/analytics", headers=admin_headers).json()
    assert stats["totalUsers"] == 2
    assert stats["activeUsers"] == 2
    assert stats["totalBooks"] == 2
    assert stats["engagement"] == 0
