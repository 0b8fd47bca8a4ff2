"""
YIELD POOL SERVICE
==================

Escrows principal per depositor across many batches. Each batch earns
simple interest on its own, from its own deposit time:

    yield = principal * APY * elapsed_seconds // (100 * SECONDS_PER_YEAR)

CRITICAL RULES:
1. Integer arithmetic only, floored once per batch slice
2. No compounding: unpaid yield never earns yield
3. A partial withdrawal keeps the batch's original deposit time
4. Batch order is NOT stable: a drained batch is replaced by the last one
5. supply/withdraw only flush; the calling service commits or rolls back
"""

import logging

from flask import current_app

from splitvault.extensions import db
from splitvault.models import DepositBatch
from splitvault.services.asset_service import call_port
from splitvault.services.errors import InsufficientBalanceError
from splitvault.services.event_service import emit_event, POOL_SUPPLIED, POOL_WITHDRAWN
from splitvault.services.guard import pool_guard
from splitvault.services.validation import require_units

logger = logging.getLogger(__name__)


# ============================================================
# HELPERS
# ============================================================

def current_timestamp():
    """Current time in unix seconds, from the configured clock"""
    return int(current_app.config['CLOCK']())


def pool_address():
    return current_app.config['POOL_ADDRESS']


def accrued_yield(principal, deposited_at, at=None):
    """Simple interest earned by `principal` since `deposited_at`"""
    if at is None:
        at = current_timestamp()
    elapsed = max(0, at - deposited_at)
    apy = current_app.config['POOL_APY']
    seconds_per_year = current_app.config['SECONDS_PER_YEAR']
    return principal * apy * elapsed // (100 * seconds_per_year)


def _batches_of(user):
    return DepositBatch.query.filter_by(depositor=user).order_by(DepositBatch.slot).all()


# ============================================================
# SUPPLY
# ============================================================

@pool_guard
def supply(amount, on_behalf_of, source):
    """
    Pull `amount` from `source` into pool custody and record a new
    batch for `on_behalf_of`.

    `source` must have approved the pool for at least `amount`.

    Returns: DepositBatch
    """
    amount = require_units(amount)
    pool = pool_address()

    call_port('transfer_from', pool, source, pool, amount)

    slot = DepositBatch.query.filter_by(depositor=on_behalf_of).count()
    batch = DepositBatch(
        depositor=on_behalf_of,
        slot=slot,
        amount=amount,
        principal=amount,
        deposited_at=current_timestamp()
    )
    db.session.add(batch)
    db.session.flush()

    emit_event(POOL_SUPPLIED, user=on_behalf_of, amount=amount)
    return batch


# ============================================================
# WITHDRAW
# ============================================================

@pool_guard
def withdraw(amount, owner, to):
    """
    Withdraw `amount` of `owner`'s principal and pay principal plus
    realized yield to `to`.

    Batches are scanned in slot order; each gives up
    min(remaining, batch.amount) and realizes yield on that slice
    from the batch's original deposit time. Drained batches are
    removed by moving the last batch into their slot.

    The shortfall check happens before any asset moves, so a failed
    withdrawal transfers nothing.

    Returns: total paid out (principal + yield)
    """
    amount = require_units(amount)
    now = current_timestamp()
    batches = _batches_of(owner)

    remaining = amount
    principal_out = 0
    yield_out = 0
    i = 0

    while i < len(batches) and remaining > 0:
        batch = batches[i]
        if batch.amount == 0:
            i += 1
            continue

        take = min(remaining, batch.amount)
        yield_out += accrued_yield(take, batch.deposited_at, now)
        batch.amount -= take
        remaining -= take
        principal_out += take

        if batch.amount == 0:
            # swap-and-pop; re-examine slot i, which now holds the old last batch
            last = batches.pop()
            if last is not batch:
                last.slot = batch.slot
                batches[i] = last
            db.session.delete(batch)
            continue

        i += 1

    if remaining > 0:
        raise InsufficientBalanceError(
            f"Insufficient pool balance. Required: {amount}, Escrowed: {principal_out}"
        )

    pool = pool_address()
    if yield_out > 0:
        call_port('mint', pool, yield_out)

    total = principal_out + yield_out
    call_port('transfer', pool, to, total)
    db.session.flush()

    emit_event(POOL_WITHDRAWN, user=owner, principal=principal_out, yield_amount=yield_out)
    return total


# ============================================================
# READ-ONLY VIEWS
# ============================================================

def get_user_yield(user):
    """Yield currently accruable across all of a user's batches"""
    now = current_timestamp()
    return sum(
        accrued_yield(b.amount, b.deposited_at, now)
        for b in _batches_of(user) if b.amount > 0
    )


def get_user_principal(user):
    return sum(b.amount for b in _batches_of(user))


def get_user_batches(user):
    return _batches_of(user)
