from flask import jsonify
from flask_login import current_user, login_required

from ..books.service import serialize_books
from ..forms import json_body, validate_form
from . import reading_lists_bp
from .forms import ReadingListEntryForm, ReadingListForm
from .service import (
    add_book_to_reading_list,
    create_reading_list,
    delete_reading_list,
    list_reading_lists,
    reading_list_entries,
    remove_book_from_reading_list,
    update_reading_list,
)


@reading_lists_bp.route("/reading-lists", methods=["GET"])
@login_required
def index():
    return jsonify(list_reading_lists(current_user.id))


@reading_lists_bp.route("/reading-lists", methods=["POST"])
@login_required
def create():
    form = validate_form(ReadingListForm, json_body())
    reading_list = create_reading_list(current_user.id, form.name.data, form.description.data, form.is_public.data)
    return jsonify({"id": reading_list.id, "message": "Reading list created successfully"}), 201


@reading_lists_bp.route("/reading-lists/<int:list_id>", methods=["PUT"])
@login_required
def update(list_id):
    reading_list = update_reading_list(current_user.id, list_id, json_body())
    return jsonify({"message": "Reading list updated", "reading_list": reading_list.to_dict()})


@reading_lists_bp.route("/reading-lists/<int:list_id>", methods=["DELETE"])
@login_required
def delete(list_id):
    delete_reading_list(current_user.id, list_id)
    return jsonify({"message": "Reading list deleted"})


@reading_lists_bp.route("/reading-lists/<int:list_id>/books", methods=["GET"])
@login_required
def books(list_id):
    rows = reading_list_entries(current_user.id, list_id)
    data = serialize_books([book for book, _ in rows], current_user.id)
    for entry, (_, membership) in zip(data, rows):
        entry["list_added_at"] = membership.added_at.isoformat()
        entry["list_notes"] = membership.notes
    return jsonify(data)


@reading_lists_bp.route("/reading-lists/<int:list_id>/books", methods=["POST"])
@login_required
def add_book(list_id):
    form = validate_form(ReadingListEntryForm, json_body())
    add_book_to_reading_list(current_user.id, list_id, form.book_id.data, form.notes.data)
    return jsonify({"message": "Book added to reading list"}), 201


@reading_lists_bp.route("/reading-lists/<int:list_id>/books/<int:book_id>", methods=["DELETE"])
@login_required
def remove_book(list_id, book_id):
    remove_book_from_reading_list(current_user.id, list_id, book_id)
    return jsonify({"message": "Book removed from reading list"})
