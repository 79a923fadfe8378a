from flask import jsonify
from flask_login import current_user, login_required

from ..auth.decorators import admin_required
from ..forms import json_body, validate_form
from . import users_bp
from .forms import UserForm
from .service import create_user, delete_user, list_users, update_privacy, update_user


@users_bp.route("/users", methods=["GET"])
@admin_required
def index():
    return jsonify([user.to_dict() for user in list_users()])


@users_bp.route("/users", methods=["POST"])
@admin_required
def create():
    form = validate_form(UserForm, json_body())
    user = create_user(form.username.data, form.password.data, is_admin=form.isAdmin.data)
    return jsonify({"message": "User created successfully", "id": user.id}), 201


@users_bp.route("/users/<int:user_id>", methods=["PUT"])
@admin_required
def update(user_id):
    update_user(user_id, json_body())
    return jsonify({"message": "User updated successfully"})


@users_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete(user_id):
    delete_user(user_id)
    return jsonify({"message": "User deleted successfully"})


@users_bp.route("/users/profile", methods=["GET"])
@login_required
def profile():
    return jsonify(current_user.to_dict(include_privacy=True))


@users_bp.route("/users/profile", methods=["PUT"])
@login_required
def update_profile():
    payload = json_body()
    update_privacy(current_user, payload.get("privacy_settings"))
    return jsonify(current_user.to_dict(include_privacy=True))
