from flask import jsonify, request
from flask_login import current_user, login_required

from ..forms import json_body, parse_bool, parse_date, validate_form
from . import lending_bp
from .forms import LoanForm
from .service import create_loan, list_loans, return_loan


@lending_bp.route("/loans", methods=["GET"])
@login_required
def index():
    active_only = parse_bool(request.args.get("active", "false"), "active")
    return jsonify([loan.to_dict() for loan in list_loans(current_user.id, active_only=active_only)])


@lending_bp.route("/loans", methods=["POST"])
@login_required
def create():
    form = validate_form(LoanForm, json_body())
    loan = create_loan(
        current_user.id,
        form.book_id.data,
        form.borrower_name.data,
        due_date=parse_date(form.due_date.data, "due_date"),
        notes=form.notes.data,
    )
    return jsonify(loan.to_dict()), 201


@lending_bp.route("/loans/<int:loan_id>/return", methods=["PUT"])
@login_required
def return_book(loan_id):
    loan = return_loan(current_user.id, loan_id)
    return jsonify({"message": "Book returned", "loan": loan.to_dict()})
