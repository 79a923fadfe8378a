"""Loan tracking and its projection onto the book record."""

from datetime import date

import pytest

from bookboss.errors import ConflictError, NotFoundError
from bookboss.lending.service import create_loan, return_loan
from bookboss.models import AuditLog, Book, Loan, db
from tests.conftest import _auth_headers, _make_book, _make_user


def test_create_then_return_restores_book_fields(user):
    book = _make_book()

    loan = create_loan(user.id, book.id, "Alice", due_date=date(2030, 1, 15))
    book = db.session.get(Book, book.id)
    assert book.is_loaned is True
    assert book.borrower_name == "Alice"
    assert book.due_date == date(2030, 1, 15)
    assert book.loan_date is not None

    return_loan(user.id, loan.id)

    book = db.session.get(Book, book.id)
    assert book.is_loaned is False
    assert book.borrower_name is None
    assert book.due_date is None
    assert book.loan_date is None
    assert db.session.get(Loan, loan.id).return_date is not None


def test_create_loan_endpoint(client, user_headers):
    book = _make_book(title="Hyperion")

    rv = client.post(
        "/api/loans",
        json={"book_id": book.id, "borrower_name": "Bob", "due_date": "2030-02-01T18:30:00.000Z", "notes": "hardback"},
        headers=user_headers,
    )

    assert rv.status_code == 201
    data = rv.get_json()
    assert data["book_title"] == "Hyperion"
    assert data["due_date"] == "2030-02-01"
    assert data["return_date"] is None
    assert data["loan_date"] is not None
    assert AuditLog.query.filter_by(action="loan_created").count() == 1


def test_create_loan_validation(client, user_headers):
    book = _make_book()

    rv = client.post("/api/loans", json={"book_id": book.id}, headers=user_headers)
    assert rv.status_code == 400
    rv = client.post("/api/loans", json={"borrower_name": "Bob"}, headers=user_headers)
    assert rv.status_code == 400
    rv = client.post(
        "/api/loans", json={"book_id": book.id, "borrower_name": "Bob", "due_date": "next week"}, headers=user_headers
    )
    assert rv.status_code == 400
    assert Loan.query.count() == 0
    assert db.session.get(Book, book.id).is_loaned is False


def test_create_loan_for_missing_book_returns_404(client, user_headers):
    rv = client.post("/api/loans", json={"book_id": 404, "borrower_name": "Bob"}, headers=user_headers)
    assert rv.status_code == 404


def test_book_cannot_be_lent_twice(user):
    book = _make_book()
    create_loan(user.id, book.id, "Alice")

    with pytest.raises(ConflictError):
        create_loan(user.id, book.id, "Bob")

    assert Loan.query.count() == 1
    assert db.session.get(Book, book.id).borrower_name == "Alice"


def test_returned_book_can_be_lent_again(user):
    book = _make_book()
    first = create_loan(user.id, book.id, "Alice")
    return_loan(user.id, first.id)

    second = create_loan(user.id, book.id, "Bob")

    assert second.id != first.id
    assert db.session.get(Book, book.id).borrower_name == "Bob"


def test_return_twice_conflicts(client, user, user_headers):
    book = _make_book()
    loan = create_loan(user.id, book.id, "Alice")

    assert client.put(f"/api/loans/{loan.id}/return", headers=user_headers).status_code == 200
    assert client.put(f"/api/loans/{loan.id}/return", headers=user_headers).status_code == 409


def test_loans_are_scoped_to_their_owner(client, user, user_headers):
    other = _make_user(username="other")
    book = _make_book()
    loan = create_loan(other.id, book.id, "Carol")

    assert client.get("/api/loans", headers=user_headers).get_json() == []
    assert client.put(f"/api/loans/{loan.id}/return", headers=user_headers).status_code == 404
    with pytest.raises(NotFoundError):
        return_loan(user.id, loan.id)

    loans = client.get("/api/loans", headers=_auth_headers(other)).get_json()
    assert [entry["id"] for entry in loans] == [loan.id]
    assert db.session.get(Book, book.id).is_loaned is True


def test_active_filter(client, user, user_headers):
    returned = create_loan(user.id, _make_book(title="Done").id, "Alice")
    return_loan(user.id, returned.id)
    active = create_loan(user.id, _make_book(title="Out").id, "Bob")

    all_loans = client.get("/api/loans", headers=user_headers).get_json()
    active_loans = client.get("/api/loans?active=true", headers=user_headers).get_json()

    assert {entry["id"] for entry in all_loans} == {returned.id, active.id}
    assert [entry["id"] for entry in active_loans] == [active.id]


def test_loan_for_out_of_range_book_id_is_rejected(client, user_headers):
    rv = client.post("/api/loans", json={"book_id": 10**20, "borrower_name": "Bob"}, headers=user_headers)
    assert rv.status_code == 400
