"""
BALANCE LEDGER - ATOMIC FINANCIAL OPERATIONS
============================================

CRITICAL BUSINESS RULES:
1. available only changes via deposit, withdraw and escrowed settlement
2. All operations are ATOMIC (db transactions)
3. Deposited funds are always escrowed in the yield pool
4. Yield is never added to available; it is paid out on withdrawal
"""

import logging

from flask import current_app

from splitvault.extensions import db
from splitvault.models import BalanceEntry
from splitvault.services import pool_service
from splitvault.services.asset_service import call_port
from splitvault.services.errors import LedgerError, InsufficientBalanceError
from splitvault.services.event_service import emit_event, FUNDS_DEPOSITED, FUNDS_WITHDRAWN
from splitvault.services.guard import ledger_guard
from splitvault.services.validation import require_units

logger = logging.getLogger(__name__)


def custody_address():
    return current_app.config['LEDGER_CUSTODY_ADDRESS']


# ============================================================
# GET OR CREATE BALANCE ENTRY
# ============================================================

def get_or_create_entry(address):
    """Get existing balance entry or create an empty one"""
    entry = db.session.get(BalanceEntry, address)
    if not entry:
        entry = BalanceEntry(address=address, available=0)
        db.session.add(entry)
        db.session.flush()
    return entry


def get_balance(address):
    entry = db.session.get(BalanceEntry, address)
    return entry.available if entry else 0


def _escrow_into_pool(amount, on_behalf_of):
    custody = custody_address()
    call_port('approve', custody, pool_service.pool_address(), amount)
    pool_service.supply(amount, on_behalf_of=on_behalf_of, source=custody)


# ============================================================
# DEPOSIT (ATOMIC)
# ============================================================

@ledger_guard
def deposit_funds(user, amount):
    """
    Pull `amount` from the user, escrow it in the pool under the
    user's name and credit their available balance.

    The user must have approved the ledger custody account.

    Returns: new available balance
    """
    try:
        amount = require_units(amount)
        custody = custody_address()

        call_port('transfer_from', custody, user, custody, amount)
        _escrow_into_pool(amount, on_behalf_of=user)

        entry = get_or_create_entry(user)
        entry.available += amount

        emit_event(FUNDS_DEPOSITED, user=user, amount=amount)

        db.session.commit()
        return entry.available

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Deposit failed")
        raise LedgerError(f"Deposit failed: {str(e)}")


# ============================================================
# WITHDRAW (ATOMIC)
# ============================================================

@ledger_guard
def withdraw_funds(user, amount):
    """
    Withdraw `amount` of principal from the pool and pay it, plus the
    yield it realized, to the user.

    available drops by `amount` only; the yield is a bonus.

    Returns: total paid to the user
    """
    try:
        amount = require_units(amount)
        entry = get_or_create_entry(user)

        if entry.available < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance. Required: {amount}, Available: {entry.available}"
            )

        custody = custody_address()
        total = pool_service.withdraw(amount, owner=user, to=custody)

        entry.available -= amount
        call_port('transfer', custody, user, total)

        emit_event(FUNDS_WITHDRAWN, user=user, amount=amount, paid_out=total)

        db.session.commit()
        return total

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Withdrawal failed")
        raise LedgerError(f"Withdrawal failed: {str(e)}")


# ============================================================
# ESCROWED SETTLEMENT TRANSFER
# ============================================================

def escrow_transfer(debtor, creditor, amount):
    """
    Move `amount` of escrowed balance from debtor to creditor.

    The debtor's principal leaves the pool (their realized yield is
    paid to them), the creditor's available balance grows by `amount`
    and the same principal goes back into the pool under the
    creditor's name.

    Does NOT commit: called from inside a settlement, which owns the
    transaction.
    """
    debtor_entry = get_or_create_entry(debtor)
    if debtor_entry.available < amount:
        raise InsufficientBalanceError(
            f"Insufficient balance. Required: {amount}, Available: {debtor_entry.available}"
        )

    custody = custody_address()
    total = pool_service.withdraw(amount, owner=debtor, to=custody)

    realized_yield = total - amount
    if realized_yield > 0:
        call_port('transfer', custody, debtor, realized_yield)

    debtor_entry.available -= amount
    creditor_entry = get_or_create_entry(creditor)
    creditor_entry.available += amount

    _escrow_into_pool(amount, on_behalf_of=creditor)
    return realized_yield
