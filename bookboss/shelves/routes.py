from flask import jsonify
from flask_login import current_user, login_required

from ..books.service import serialize_books
from ..forms import json_body, validate_form
from . import shelves_bp
from .forms import ShelfForm
from .service import add_book_to_shelf, create_shelf, delete_shelf, list_shelves, remove_book_from_shelf, shelf_books


@shelves_bp.route("/shelves", methods=["GET"])
@login_required
def index():
    return jsonify(list_shelves(current_user.id))


@shelves_bp.route("/shelves", methods=["POST"])
@login_required
def create():
    form = validate_form(ShelfForm, json_body())
    shelf = create_shelf(current_user.id, form.name.data)
    return jsonify(shelf.to_dict(book_count=0)), 201


@shelves_bp.route("/shelves/<int:shelf_id>", methods=["DELETE"])
@login_required
def delete(shelf_id):
    delete_shelf(current_user.id, shelf_id)
    return jsonify({"message": "Shelf deleted successfully"})


@shelves_bp.route("/shelves/<int:shelf_id>/books", methods=["GET"])
@login_required
def books(shelf_id):
    return jsonify(serialize_books(shelf_books(current_user.id, shelf_id), current_user.id))


@shelves_bp.route("/shelves/<int:shelf_id>/books", methods=["POST"])
@login_required
def add_book(shelf_id):
    payload = json_body()
    book_id = payload.get("bookId", payload.get("book_id"))
    created = add_book_to_shelf(current_user.id, shelf_id, book_id)
    message = "Book added to shelf" if created else "Book already on shelf"
    return jsonify({"message": message}), 201 if created else 200


@shelves_bp.route("/shelves/<int:shelf_id>/books/<int:book_id>", methods=["DELETE"])
@login_required
def remove_book(shelf_id, book_id):
    remove_book_from_shelf(current_user.id, shelf_id, book_id)
    return jsonify({"message": "Book removed from shelf"})
