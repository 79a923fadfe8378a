from flask import jsonify
from flask_login import login_required

from ..auth.decorators import admin_required
from ..forms import json_body
from . import settings_bp
from .service import get_settings, update_settings


@settings_bp.route("/settings", methods=["GET"])
@login_required
def list_settings():
    return jsonify(get_settings())


@settings_bp.route("/settings", methods=["POST"])
@admin_required
def save_settings():
    return jsonify(update_settings(json_body()))
