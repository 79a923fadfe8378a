from flask import jsonify
from flask_login import current_user, login_required

from ..forms import json_body, validate_form
from . import progress_bp
from .forms import ReadingProgressForm
from .service import list_progress, upsert_progress


@progress_bp.route("/user/books", methods=["GET"])
@login_required
def index():
    return jsonify([row.to_dict() for row in list_progress(current_user.id)])


@progress_bp.route("/user/books/<int:book_id>", methods=["POST"])
@login_required
def upsert(book_id):
    form = validate_form(ReadingProgressForm, json_body(required=False))
    row = upsert_progress(
        current_user.id,
        book_id,
        status=form.status.data or "plan_to_read",
        progress=form.progress.data,
        rating=form.rating.data,
    )
    return jsonify(row.to_dict())
