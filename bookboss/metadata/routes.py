from flask import current_app, jsonify
from flask_login import login_required

from .. import limiter
from ..errors import PersistenceError
from . import metadata_bp
from .jobs import start_refresh


@metadata_bp.route("/books/refresh-metadata", methods=["POST"])
@login_required
@limiter.limit("5 per hour")
def start():
    app = current_app._get_current_object()
    status, ran_inline = start_refresh(app)
    if not ran_inline:
        return jsonify(status), 202
    if status["state"] == "failed":
        raise PersistenceError("Metadata refresh failed")
    return jsonify(
        {
            "message": "Metadata refresh completed",
            **{key: status[key] for key in ("processed", "downloaded", "skipped", "failed", "total")},
        }
    )


@metadata_bp.route("/books/refresh-metadata", methods=["GET"])
@login_required
def status():
    return jsonify(current_app.metadata_refresh.snapshot())


@metadata_bp.route("/books/refresh-metadata", methods=["DELETE"])
@login_required
def cancel():
    current_app.metadata_refresh.request_cancel()
    return jsonify({"message": "Cancellation requested"})
