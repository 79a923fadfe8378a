import csv
import io
import json
from datetime import UTC, datetime

from flask import Response, jsonify, request, stream_with_context
from flask_login import login_required
from sqlalchemy import case, extract, func

from ..errors import ValidationError
from ..forms import parse_int
from ..models import Book, db
from . import books_bp

CSV_COLUMNS = [
    ("Title", "title"),
    ("Author", "author"),
    ("ISBN", "isbn"),
    ("Publisher", "publisher"),
    ("Publication Date", "publication_date"),
    ("Page Count", "page_count"),
    ("Description", "description"),
    ("Status", "status"),
    ("Rating", "rating"),
    ("Notes", "notes"),
    ("Format", "physical_format"),
    ("Condition", "book_condition"),
    ("Signed", "is_signed"),
    ("Edition", "edition_type"),
]


def _sanitize_csv_value(val):
    """Prevent CSV formula injection."""
    if val and isinstance(val, str) and val[0] in ("=", "+", "-", "@", "\t", "\r"):
        return "'" + val
    return val


def _csv_cell(value):
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    return _sanitize_csv_value(value)


def find_duplicates(method="title-author"):
    """Group books sharing an ISBN, or sharing title and author."""
    if method not in ("isbn", "title-author"):
        raise ValidationError("method must be 'isbn' or 'title-author'")

    groups = {}
    for book in Book.query.order_by(Book.id):
        if method == "isbn":
            if not book.isbn:
                continue
            key = book.isbn
        else:
            key = f"{book.title} - {book.author}"
        groups.setdefault(key, []).append(book)

    return [
        {
            "key": key,
            "book_ids": [book.id for book in books],
            "titles": [book.title for book in books],
            "count": len(books),
        }
        for key, books in groups.items()
        if len(books) > 1
    ]


def _count_where(condition):
    return func.count(case((condition, 1)))


def book_statistics():
    row = db.session.query(
        func.count(Book.id),
        _count_where(Book.status == "Completed"),
        _count_where(Book.status == "In Progress"),
        _count_where(Book.status == "Not Started"),
        _count_where(Book.format == "Ebook"),
        _count_where(Book.format == "Physical"),
        _count_where(Book.format == "Audiobook"),
        func.avg(Book.rating),
        func.sum(Book.page_count),
    ).one()
    average = row[7]
    return {
        "total_books": row[0],
        "completed_books": row[1],
        "in_progress_books": row[2],
        "not_started_books": row[3],
        "ebooks": row[4],
        "physical_books": row[5],
        "audiobooks": row[6],
        "average_rating": round(float(average), 2) if average is not None else None,
        "total_pages": int(row[8] or 0),
    }


def reading_by_month(year=None):
    """Books added and completed per month of *year*, months without books omitted."""
    year = parse_int(year, "year", minimum=1, maximum=9999, nullable=True) or datetime.now(UTC).year
    month = extract("month", Book.added_at)
    rows = (
        db.session.query(month, func.count(Book.id), _count_where(Book.status == "Completed"))
        .filter(extract("year", Book.added_at) == year)
        .group_by(month)
        .order_by(month)
        .all()
    )
    return [{"month": int(m), "books_added": added, "books_completed": completed} for m, added, completed in rows]


def author_statistics(limit=20):
    count = func.count(Book.id)
    rows = (
        db.session.query(Book.author, count, func.avg(Book.rating), _count_where(Book.status == "Completed"))
        .filter(Book.author != "")
        .group_by(Book.author)
        .order_by(count.desc(), Book.author)
        .limit(limit)
        .all()
    )
    return [
        {
            "author": author,
            "book_count": book_count,
            "average_rating": round(float(average), 2) if average is not None else None,
            "completed_count": completed,
        }
        for author, book_count, average, completed in rows
    ]


@books_bp.route("/books/duplicates", methods=["GET"])
@login_required
def duplicates():
    return jsonify(find_duplicates(request.args.get("method", "title-author")))


@books_bp.route("/statistics/books", methods=["GET"])
@login_required
def statistics():
    return jsonify(book_statistics())


@books_bp.route("/statistics/reading-by-month", methods=["GET"])
@login_required
def statistics_by_month():
    return jsonify(reading_by_month(request.args.get("year")))


@books_bp.route("/statistics/authors", methods=["GET"])
@login_required
def statistics_authors():
    return jsonify(author_statistics())


@books_bp.route("/export/json", methods=["GET"])
@login_required
def export_json():
    books = [book.to_dict() for book in Book.query.order_by(Book.title.asc())]
    for entry in books:
        # Caller-scoped annotations make no sense in a catalog dump
        for key in ("shelf_ids", "user_status", "user_progress", "user_rating"):
            entry.pop(key, None)
    return Response(
        json.dumps(books, indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": "attachment; filename=library_export.json"},
    )


@books_bp.route("/export/csv", methods=["GET"])
@login_required
def export_csv():
    def generate():
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow([header for header, _ in CSV_COLUMNS])
        yield buf.getvalue()

        for book in Book.query.order_by(Book.title.asc()).yield_per(500):
            buf = io.StringIO()
            writer = csv.writer(buf)
            writer.writerow([_csv_cell(getattr(book, column)) for _, column in CSV_COLUMNS])
            yield buf.getvalue()

    return Response(
        stream_with_context(generate()),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=library_export.csv"},
    )
