"""
WALLET ROUTES
=============

Uses balance_service for all financial operations.
All operations are atomic.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
from splitvault.extensions import db
from splitvault.services.balance_service import deposit_funds, withdraw_funds, get_balance
from splitvault.services.pool_service import get_user_batches, get_user_principal, get_user_yield
from splitvault.services.asset_service import call_port, get_asset_port
from splitvault.services.authorization_service import (
    AuthorizationError, can_mutate, require_authorization
)
from splitvault.services.validation import require_units

wallet_bp = Blueprint('wallet', __name__)


def _amount():
    return (request.get_json(silent=True) or {}).get('amount')


# ============== VIEW WALLET ==============
@wallet_bp.route('/wallet')
@login_required
def view_wallet():
    address = current_user.address
    return jsonify({
        'address': address,
        'available': get_balance(address),
        'escrowed_principal': get_user_principal(address),
        'accruable_yield': get_user_yield(address),
        'batches': [b.to_dict() for b in get_user_batches(address)],
    })


# ============== DEPOSIT ==============
@wallet_bp.route('/wallet/deposit', methods=['POST'])
@login_required
def deposit():
    require_authorization(can_mutate, current_user.address)
    available = deposit_funds(current_user.address, _amount())
    return jsonify({'available': available})


# ============== WITHDRAW ==============
@wallet_bp.route('/wallet/withdraw', methods=['POST'])
@login_required
def withdraw():
    require_authorization(can_mutate, current_user.address)
    paid_out = withdraw_funds(current_user.address, _amount())
    return jsonify({'paid_out': paid_out, 'available': get_balance(current_user.address)})


# ============== ASSET ==============
@wallet_bp.route('/asset/balance')
@login_required
def asset_balance():
    return jsonify({'balance': get_asset_port().balance_of(current_user.address)})


@wallet_bp.route('/asset/approve', methods=['POST'])
@login_required
def approve():
    """Allow the ledger custody account to pull funds for deposits and direct settlements"""
    amount = require_units(_amount(), allow_zero=True)
    call_port('approve', current_user.address, current_app.config['LEDGER_CUSTODY_ADDRESS'], amount)
    db.session.commit()
    return jsonify({'approved': amount})


@wallet_bp.route('/asset/faucet', methods=['POST'])
@login_required
def faucet():
    if not current_app.config.get('ASSET_FAUCET_ENABLED'):
        raise AuthorizationError("Faucet is disabled")
    amount = require_units(_amount())
    call_port('mint', current_user.address, amount)
    db.session.commit()
    return jsonify({'balance': get_asset_port().balance_of(current_user.address)})
