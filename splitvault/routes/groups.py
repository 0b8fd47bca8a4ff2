"""
GROUP ROUTES
============
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from splitvault.services.group_service import create_group, get_group, get_user_groups
from splitvault.services.authorization_service import (
    can_mutate, can_view_group, require_authorization
)

groups_bp = Blueprint('groups', __name__)


# ============== CREATE NEW GROUP ==============
@groups_bp.route('/groups', methods=['POST'])
@login_required
def create():
    require_authorization(can_mutate, current_user.address)
    data = request.get_json(silent=True) or {}

    group = create_group(
        admin=current_user.address,
        name=data.get('name'),
        members=data.get('members') or []
    )
    return jsonify(group.to_dict()), 201


# ============== LIST MY GROUPS ==============
@groups_bp.route('/groups/mine')
@login_required
def my_groups():
    groups = get_user_groups(current_user.address)
    return jsonify([g.to_dict() for g in groups])


# ============== VIEW SINGLE GROUP ==============
@groups_bp.route('/groups/<int:group_id>')
@login_required
def view_group(group_id):
    require_authorization(can_view_group, current_user.address, group_id)
    return jsonify(get_group(group_id).to_dict())
