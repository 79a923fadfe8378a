import threading
from datetime import UTC, datetime

from flask import current_app

from ..audit import log_event
from ..books.service import get_book_or_404
from ..errors import ConflictError, NotFoundError
from ..models import Loan, db

# Serializes the "is this book already lent out?" check with the insert that follows it
_loan_lock = threading.Lock()


def _today():
    return datetime.now(UTC).date()


def list_loans(user_id, active_only=False):
    query = Loan.query.filter_by(user_id=user_id)
    if active_only:
        query = query.filter(Loan.return_date.is_(None))
    return query.order_by(Loan.loan_date.desc(), Loan.id.desc()).all()


def create_loan(user_id, book_id, borrower_name, due_date=None, notes=None):
    """Record a loan and mirror it onto the book's loan fields in one commit."""
    with _loan_lock:
        book = get_book_or_404(book_id)
        active = Loan.query.filter(Loan.book_id == book.id, Loan.return_date.is_(None)).first()
        if active is not None:
            raise ConflictError(f"This book is already on loan to {active.borrower_name}")

        today = _today()
        loan = Loan(
            user_id=user_id,
            book_id=book.id,
            borrower_name=borrower_name,
            loan_date=today,
            due_date=due_date,
            notes=notes or None,
        )
        db.session.add(loan)

        book.is_loaned = True
        book.borrower_name = borrower_name
        book.loan_date = today
        book.due_date = due_date

        db.session.flush()
        log_event(
            "loan_created",
            "loan",
            loan.id,
            detail=f"'{book.title}' lent to {borrower_name}",
            user_id=user_id,
            commit=False,
        )
        db.session.commit()

    current_app.logger.info("Loan %s created for book %s", loan.id, book.id)
    return loan


def return_loan(user_id, loan_id):
    """Close the loan and clear the book's loan fields in one commit."""
    loan = Loan.query.filter_by(id=loan_id, user_id=user_id).first()
    if loan is None:
        raise NotFoundError("Loan not found")
    if loan.return_date is not None:
        raise ConflictError("This loan has already been returned")

    loan.return_date = _today()
    book = loan.book
    if book is not None:
        book.is_loaned = False
        book.borrower_name = None
        book.loan_date = None
        book.due_date = None

    log_event("loan_returned", "loan", loan.id, detail=f"book={loan.book_id}", user_id=user_id, commit=False)
    db.session.commit()
    return loan
