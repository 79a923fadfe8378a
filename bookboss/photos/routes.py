from flask import jsonify
from flask_login import login_required

from ..books.service import get_book_or_404
from ..forms import json_body, validate_form
from . import photos_bp
from .forms import PhotoUploadForm
from .service import delete_photo, list_photos, update_photo, upload_photo


@photos_bp.route("/books/<int:book_id>/photos", methods=["GET"])
@login_required
def index(book_id):
    return jsonify([photo.to_dict() for photo in list_photos(book_id)])


@photos_bp.route("/books/<int:book_id>/photos", methods=["POST"])
@login_required
def upload(book_id):
    get_book_or_404(book_id)
    form = validate_form(PhotoUploadForm)
    photo = upload_photo(
        book_id,
        form.photo.data,
        photo_type=form.photo_type.data,
        description=form.description.data,
        tags=form.tags.data,
    )
    return jsonify(photo.to_dict()), 201


@photos_bp.route("/photos/<int:photo_id>", methods=["PUT"])
@login_required
def update(photo_id):
    return jsonify(update_photo(photo_id, json_body()).to_dict())


@photos_bp.route("/photos/<int:photo_id>", methods=["DELETE"])
@login_required
def delete(photo_id):
    delete_photo(photo_id)
    return jsonify({"message": "Photo deleted successfully"})
