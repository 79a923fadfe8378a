from flask import jsonify, request
from flask_login import current_user, login_required

from ..forms import json_body, request_payload
from . import books_bp
from .service import bulk_delete, bulk_update, create_book, delete_book, get_book, list_books, update_book


@books_bp.route("/books", methods=["GET"])
@login_required
def index():
    return jsonify(list_books(current_user.id))


@books_bp.route("/books/<int:book_id>", methods=["GET"])
@login_required
def detail(book_id):
    return jsonify(get_book(book_id, current_user.id))


@books_bp.route("/books", methods=["POST"])
@login_required
def create():
    book = create_book(request_payload(), cover_file=request.files.get("coverFile"))
    return jsonify({"id": book.id, "message": "Book added successfully"}), 201


@books_bp.route("/books/<int:book_id>", methods=["PUT"])
@login_required
def update(book_id):
    update_book(book_id, request_payload(), cover_file=request.files.get("coverFile"))
    return jsonify({"message": "Book updated successfully", "book": get_book(book_id, current_user.id)})


@books_bp.route("/books/<int:book_id>", methods=["DELETE"])
@login_required
def delete(book_id):
    delete_book(book_id)
    return jsonify({"message": "Book deleted successfully"})


@books_bp.route("/books/bulk", methods=["DELETE"])
@books_bp.route("/books/bulk-delete", methods=["POST"])
@login_required
def delete_many():
    count = bulk_delete(json_body().get("ids"))
    return jsonify({"message": f"{count} book(s) deleted", "count": count})


@books_bp.route("/books/bulk", methods=["PATCH"])
@login_required
def update_many():
    payload = json_body()
    count = bulk_update(payload.get("ids"), payload.get("updates"))
    return jsonify({"message": f"{count} book(s) updated", "count": count})
