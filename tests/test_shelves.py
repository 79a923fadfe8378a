"""Shelf ownership, membership and validation."""

import pytest

from bookboss.errors import ValidationError
from bookboss.models import Book, Shelf, ShelfBook, db
from bookboss.shelves.service import add_book_to_shelf, create_shelf, list_shelves
from tests.conftest import _auth_headers, _make_book, _make_user


def test_blank_shelf_name_is_rejected(client, user, user_headers):
    with pytest.raises(ValidationError):
        create_shelf(user.id, "   ")

    rv = client.post("/api/shelves", json={"name": ""}, headers=user_headers)
    assert rv.status_code == 400
    rv = client.post("/api/shelves", json={}, headers=user_headers)
    assert rv.status_code == 400
    assert Shelf.query.count() == 0


def test_created_shelf_is_listed_with_zero_books(client, user_headers):
    rv = client.post("/api/shelves", json={"name": "To Read"}, headers=user_headers)
    assert rv.status_code == 201
    created = rv.get_json()

    shelves = client.get("/api/shelves", headers=user_headers).get_json()

    assert [(s["id"], s["name"], s["book_count"]) for s in shelves] == [(created["id"], "To Read", 0)]


def test_shelves_are_listed_by_name_with_counts(user):
    b1 = _make_book(title="One")
    b2 = _make_book(title="Two")
    zeta = create_shelf(user.id, "Zeta")
    alpha = create_shelf(user.id, "Alpha")
    add_book_to_shelf(user.id, zeta.id, b1.id)
    add_book_to_shelf(user.id, zeta.id, b2.id)

    listed = list_shelves(user.id)

    assert [(s["name"], s["book_count"]) for s in listed] == [("Alpha", 0), ("Zeta", 2)]
    assert listed[0]["id"] == alpha.id


def test_shelves_are_scoped_to_their_owner(client, user, user_headers):
    other = _make_user(username="other")
    create_shelf(other.id, "Private")

    assert client.get("/api/shelves", headers=user_headers).get_json() == []


def test_duplicate_shelf_name_conflicts_per_user(client, user_headers):
    other = _make_user(username="other")
    assert client.post("/api/shelves", json={"name": "Favourites"}, headers=user_headers).status_code == 201
    assert client.post("/api/shelves", json={"name": "Favourites"}, headers=user_headers).status_code == 409
    # Another user may reuse the name
    rv = client.post("/api/shelves", json={"name": "Favourites"}, headers=_auth_headers(other))
    assert rv.status_code == 201


def test_concurrent_duplicate_shelf_name_still_conflicts(client, user, user_headers, monkeypatch):
    create_shelf(user.id, "Favourites")
    # Simulate a second request inserting between the name check and the commit
    monkeypatch.setattr("bookboss.shelves.service.shelf_name_taken", lambda user_id, name: False)

    rv = client.post("/api/shelves", json={"name": "Favourites"}, headers=user_headers)

    assert rv.status_code == 409
    assert Shelf.query.filter_by(user_id=user.id).count() == 1


def test_adding_same_book_twice_keeps_one_membership(client, user, user_headers):
    book = _make_book()
    shelf = create_shelf(user.id, "Sci-Fi")

    first = client.post(f"/api/shelves/{shelf.id}/books", json={"bookId": book.id}, headers=user_headers)
    second = client.post(f"/api/shelves/{shelf.id}/books", json={"book_id": book.id}, headers=user_headers)

    assert first.status_code == 201
    assert second.status_code == 200
    assert ShelfBook.query.filter_by(shelf_id=shelf.id, book_id=book.id).count() == 1


def test_add_unknown_book_or_shelf_returns_404(client, user, user_headers):
    book = _make_book()
    shelf = create_shelf(user.id, "Sci-Fi")

    rv = client.post(f"/api/shelves/{shelf.id}/books", json={"bookId": 999}, headers=user_headers)
    assert rv.status_code == 404
    rv = client.post("/api/shelves/999/books", json={"bookId": book.id}, headers=user_headers)
    assert rv.status_code == 404


def test_remove_book_from_shelf_is_idempotent(client, user, user_headers):
    book = _make_book()
    shelf = create_shelf(user.id, "Sci-Fi")
    add_book_to_shelf(user.id, shelf.id, book.id)

    for _ in range(2):
        rv = client.delete(f"/api/shelves/{shelf.id}/books/{book.id}", headers=user_headers)
        assert rv.status_code == 200

    assert ShelfBook.query.count() == 0
    assert db.session.get(Book, book.id) is not None


def test_deleting_another_users_shelf_returns_404(client, user_headers):
    other = _make_user(username="other")
    shelf = create_shelf(other.id, "Theirs")

    rv = client.delete(f"/api/shelves/{shelf.id}", headers=user_headers)

    assert rv.status_code == 404
    assert db.session.get(Shelf, shelf.id) is not None


def test_deleting_shelf_keeps_its_books(client, user, user_headers):
    book = _make_book()
    shelf = create_shelf(user.id, "Temporary")
    add_book_to_shelf(user.id, shelf.id, book.id)

    assert client.delete(f"/api/shelves/{shelf.id}", headers=user_headers).status_code == 200

    assert db.session.get(Book, book.id) is not None
    assert ShelfBook.query.count() == 0


def test_shelf_books_endpoint(client, user, user_headers):
    on_shelf = _make_book(title="On shelf")
    _make_book(title="Elsewhere")
    shelf = create_shelf(user.id, "Picks")
    add_book_to_shelf(user.id, shelf.id, on_shelf.id)

    books = client.get(f"/api/shelves/{shelf.id}/books", headers=user_headers).get_json()

    assert [b["title"] for b in books] == ["On shelf"]
    assert books[0]["shelf_ids"] == [shelf.id]
