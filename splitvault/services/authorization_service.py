"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

Capability checks the HTTP layer performs before calling the core
ledger. The ledger services themselves do not consult these.

Each can_* check returns (allowed, reason).
"""

from datetime import datetime

from flask import current_app

from splitvault.extensions import db
from splitvault.models import (
    Expense, Group, GroupMember, InstantExpenseIndex, ProtocolState, INSTANT_SCOPE
)
from splitvault.services.errors import AuthorizationError


# ============================================================
# PAUSE SWITCH
# ============================================================

def get_protocol_state():
    state = db.session.get(ProtocolState, 1)
    if not state:
        state = ProtocolState(id=1, paused=False)
        db.session.add(state)
        db.session.flush()
    return state


def is_protocol_paused():
    state = db.session.get(ProtocolState, 1)
    return bool(state and state.paused)


def set_paused(address, paused):
    """Flip the pause switch; only the protocol owner may do this"""
    require_authorization(can_pause, address)
    state = get_protocol_state()
    state.paused = paused
    state.updated_by = address
    state.updated_at = datetime.utcnow()
    db.session.commit()
    return state


def can_pause(address):
    owner = current_app.config.get('PROTOCOL_OWNER_ADDRESS')
    if not owner or address != owner:
        return False, "Only the protocol owner can pause or unpause"
    return True, None


def can_mutate(address):
    """Any state-changing call requires the protocol to be running"""
    if is_protocol_paused():
        return False, "Protocol is paused"
    return True, None


# ============================================================
# GROUP CHECKS
# ============================================================

def is_group_member(address, group_id):
    membership = GroupMember.query.filter_by(
        group_id=group_id,
        address=address
    ).first()
    return membership is not None


def can_view_group(address, group_id):
    if not db.session.get(Group, group_id):
        # let the ledger report NotFound
        return True, None
    if not is_group_member(address, group_id):
        return False, "You are not a member of this group"
    return True, None


def can_view_instant_expense(address, expense_id):
    """Only the payer and split members can see a peer-to-peer expense"""
    expense = Expense.query.filter_by(scope_id=INSTANT_SCOPE, number=expense_id).first()
    if not expense:
        # let the ledger report NotFound
        return True, None
    indexed = InstantExpenseIndex.query.filter_by(
        address=address,
        expense_id=expense.id
    ).first()
    if not indexed:
        return False, "You are not part of this expense"
    return True, None


def can_add_expense(address, group_id):
    """
    Requirements:
    - Protocol not paused
    - Payer must be a member of the group
    """
    allowed, reason = can_mutate(address)
    if not allowed:
        return allowed, reason
    return can_view_group(address, group_id)


# ============================================================
# HELPER FUNCTION: REQUIRE AUTHORIZATION
# ============================================================

def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Wrapper to raise exception if authorization fails.

    Usage:
        require_authorization(can_add_expense, address, group_id)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
    return True
