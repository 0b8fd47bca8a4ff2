"""
ADMIN ROUTES
============

Protocol owner actions:
- Pause / unpause
- Event log for indexers
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from splitvault.services.authorization_service import set_paused, is_protocol_paused
from splitvault.services.event_service import get_events

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/admin/pause', methods=['POST'])
@login_required
def pause():
    set_paused(current_user.address, True)
    return jsonify({'paused': True})


@admin_bp.route('/admin/unpause', methods=['POST'])
@login_required
def unpause():
    set_paused(current_user.address, False)
    return jsonify({'paused': False})


@admin_bp.route('/admin/status')
def status():
    return jsonify({'paused': is_protocol_paused()})


@admin_bp.route('/admin/events')
def events():
    limit = request.args.get('limit', 100, type=int)
    event_type = request.args.get('type')
    return jsonify([e.to_dict() for e in get_events(event_type, limit)])
