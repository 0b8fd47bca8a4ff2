"""
EXPENSE ROUTES
==============

Group expenses live under /groups/<group_id>/expenses, unscoped
peer-to-peer expenses under /instant-expenses.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from splitvault.services.expense_service import (
    add_expense, add_instant_expense, settle_expense, settle_instant_expense,
    get_expense, get_instant_expense, get_user_instant_expenses
)
from splitvault.services.authorization_service import (
    can_add_expense, can_mutate, can_view_group, can_view_instant_expense,
    require_authorization
)

expenses_bp = Blueprint('expenses', __name__)


def _payload():
    data = request.get_json(silent=True) or {}
    return (
        data.get('amount'),
        data.get('description', ''),
        data.get('members'),
        data.get('amounts'),
    )


# ============== GROUP EXPENSES ==============
@expenses_bp.route('/groups/<int:group_id>/expenses', methods=['POST'])
@login_required
def create_group_expense(group_id):
    require_authorization(can_add_expense, current_user.address, group_id)
    amount, description, members, amounts = _payload()

    expense = add_expense(current_user.address, group_id, amount, description, members, amounts)
    return jsonify(expense.to_dict()), 201


@expenses_bp.route('/groups/<int:group_id>/expenses/<int:expense_id>')
@login_required
def view_group_expense(group_id, expense_id):
    require_authorization(can_view_group, current_user.address, group_id)
    return jsonify(get_expense(group_id, expense_id).to_dict())


@expenses_bp.route('/groups/<int:group_id>/expenses/<int:expense_id>/settle', methods=['POST'])
@login_required
def settle_group_expense(group_id, expense_id):
    require_authorization(can_mutate, current_user.address)

    # policy is SETTLEMENT_MODE, never chosen by the caller
    expense = settle_expense(current_user.address, group_id, expense_id)
    return jsonify(expense.to_dict())


# ============== INSTANT EXPENSES ==============
@expenses_bp.route('/instant-expenses', methods=['POST'])
@login_required
def create_instant_expense():
    require_authorization(can_mutate, current_user.address)
    amount, description, members, amounts = _payload()

    expense = add_instant_expense(current_user.address, amount, description, members, amounts)
    return jsonify(expense.to_dict()), 201


@expenses_bp.route('/instant-expenses/mine')
@login_required
def my_instant_expenses():
    expenses = get_user_instant_expenses(current_user.address)
    return jsonify([e.to_dict() for e in expenses])


@expenses_bp.route('/instant-expenses/<int:expense_id>')
@login_required
def view_instant_expense(expense_id):
    require_authorization(can_view_instant_expense, current_user.address, expense_id)
    return jsonify(get_instant_expense(expense_id).to_dict())


@expenses_bp.route('/instant-expenses/<int:expense_id>/settle', methods=['POST'])
@login_required
def settle_instant(expense_id):
    require_authorization(can_mutate, current_user.address)

    expense = settle_instant_expense(current_user.address, expense_id)
    return jsonify(expense.to_dict())
