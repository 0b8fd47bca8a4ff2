"""
AUTHENTICATION ROUTES
=====================
"""

from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from splitvault.extensions import db
from splitvault.models import User

auth_bp = Blueprint('auth', __name__)


def _user_dict(user):
    return {'id': user.id, 'address': user.address, 'name': user.name}


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    address = (data.get('address') or '').strip()
    name = (data.get('name') or '').strip()
    password = data.get('password') or ''

    # Validation
    if not address or not name or not password:
        return jsonify({'error': 'InvalidInput', 'message': 'All fields are required!'}), 400

    if len(password) < 6:
        return jsonify({'error': 'InvalidInput',
                        'message': 'Password must be at least 6 characters!'}), 400

    if User.query.filter_by(address=address).first():
        return jsonify({'error': 'InvalidInput', 'message': 'Address already registered!'}), 409

    new_user = User(address=address, name=name)
    new_user.set_password(password)

    db.session.add(new_user)
    db.session.commit()

    return jsonify(_user_dict(new_user)), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(address=data.get('address')).first()

    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=bool(data.get('remember', False)))
        return jsonify(_user_dict(user))

    return jsonify({'error': 'Unauthorized', 'message': 'Invalid address or password!'}), 401


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'status': 'logged out'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(_user_dict(current_user))
