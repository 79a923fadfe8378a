from flask import jsonify
from flask_login import current_user, login_required

from ..forms import json_body, validate_form
from . import reading_sessions_bp
from .forms import EndSessionForm, StartSessionForm
from .service import end_session, sessions_for_book, start_session


@reading_sessions_bp.route("/reading-sessions", methods=["POST"])
@login_required
def start():
    form = validate_form(StartSessionForm, json_body())
    reading_session = start_session(current_user.id, form.book_id.data)
    return jsonify({"session_id": reading_session.id, "message": "Reading session started"}), 201


@reading_sessions_bp.route("/reading-sessions/<int:session_id>/end", methods=["PUT"])
@login_required
def end(session_id):
    form = validate_form(EndSessionForm, json_body(required=False))
    reading_session = end_session(current_user.id, session_id, form.pages_read.data)
    return jsonify({"message": "Reading session ended", "duration_minutes": reading_session.duration_minutes})


@reading_sessions_bp.route("/books/<int:book_id>/reading-sessions", methods=["GET"])
@login_required
def for_book(book_id):
    return jsonify([row.to_dict() for row in sessions_for_book(current_user.id, book_id)])
