"""
EXPENSE LEDGER
==============

Handles:
- Recording group expenses and instant (unscoped) expenses
- Per-member split obligations
- Member-by-member settlement, escrowed or direct

Lifecycle of an expense (monotonic, never reversed):
    OPEN -> PARTIALLY_SETTLED -> FULLY_SETTLED

CRITICAL RULES:
- Split amounts must add up to the expense amount exactly
- The payer's own share is settled at creation, never through settlement
- settled_amount grows by exactly one member's outstanding per settlement
- fully_settled is set exactly when settled_amount reaches amount
"""

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from splitvault.extensions import db
from splitvault.models import (
    Expense, ExpenseSplit, InstantExpenseIndex, SettlementMode, INSTANT_SCOPE
)
from splitvault.services import balance_service
from splitvault.services.asset_service import call_port
from splitvault.services.errors import (
    LedgerError, NotFoundError, InvalidInputError, InvalidSplitError,
    SplitMismatchError, AlreadySettledError, NothingOwedError
)
from splitvault.services.event_service import (
    emit_event, EXPENSE_ADDED, EXPENSE_SPLIT, EXPENSE_SETTLED
)
from splitvault.services.group_service import get_group
from splitvault.services.guard import ledger_guard
from splitvault.services.pool_service import current_timestamp
from splitvault.services.validation import require_units

logger = logging.getLogger(__name__)


# ============================================================
# SPLIT VALIDATION
# ============================================================

def validate_splits(amount, split_members, split_amounts):
    """
    Check a proposed split and return (amount, members, amounts) with
    amounts normalized to ints.

    Raises InvalidSplitError for length mismatch or a repeated member,
    SplitMismatchError when the amounts do not add up to `amount`.
    """
    amount = require_units(amount)

    if not isinstance(split_members, (list, tuple)) or not isinstance(split_amounts, (list, tuple)):
        raise InvalidSplitError("Split members and amounts must be lists")

    if len(split_members) != len(split_amounts):
        raise InvalidSplitError(
            f"Got {len(split_members)} split members but {len(split_amounts)} amounts"
        )

    seen = set()
    for member in split_members:
        if not member or not isinstance(member, str):
            raise InvalidSplitError("Split members must be non-empty addresses")
        if member in seen:
            raise InvalidSplitError(f"Member {member} appears more than once in the split")
        seen.add(member)

    amounts = [require_units(a, allow_zero=True, field='Split amount') for a in split_amounts]

    total = sum(amounts)
    if total != amount:
        raise SplitMismatchError(f"Split total ({total}) must equal expense amount ({amount})")

    return amount, list(split_members), amounts


def _next_number(scope_id):
    current = db.session.query(func.max(Expense.number)).filter(
        Expense.scope_id == scope_id
    ).scalar()
    return (current or 0) + 1


def _record_expense(scope_id, payer, amount, description, members, amounts,
                    group_id=None, timestamp=None):
    """Create the expense and its splits. Does NOT commit."""
    expense = Expense(
        scope_id=scope_id,
        number=_next_number(scope_id),
        group_id=group_id,
        payer=payer,
        amount=amount,
        settled_amount=0,
        description=description or '',
        fully_settled=False,
        timestamp=timestamp
    )
    db.session.add(expense)
    db.session.flush()

    for position, (member, owed) in enumerate(zip(members, amounts)):
        if member == payer:
            # payer's own share counts as paid
            split = ExpenseSplit(
                expense_id=expense.id, member=member, position=position,
                amount=owed, outstanding=0, has_settled=True,
                settled_at=datetime.utcnow()
            )
            expense.settled_amount += owed
        else:
            split = ExpenseSplit(
                expense_id=expense.id, member=member, position=position,
                amount=owed, outstanding=owed, has_settled=False
            )
        db.session.add(split)

    expense.fully_settled = expense.settled_amount == expense.amount
    db.session.flush()

    emit_event(
        EXPENSE_ADDED,
        group_id=scope_id,
        expense_id=expense.number,
        payer=payer,
        amount=amount,
        description=expense.description
    )
    emit_event(
        EXPENSE_SPLIT,
        group_id=scope_id,
        expense_id=expense.number,
        members=members,
        amounts=amounts
    )
    return expense


# ============================================================
# ADD EXPENSE (ATOMIC)
# ============================================================

@ledger_guard
def add_expense(payer, group_id, amount, description, split_members, split_amounts):
    """
    Record an expense paid by `payer` inside a group.

    Returns: Expense
    """
    try:
        group = get_group(group_id)
        amount, members, amounts = validate_splits(amount, split_members, split_amounts)

        expense = _record_expense(
            group.id, payer, amount, description, members, amounts, group_id=group.id
        )

        db.session.commit()
        return expense

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Adding expense failed")
        raise LedgerError(f"Failed to add expense: {str(e)}")


@ledger_guard
def add_instant_expense(payer, amount, description, split_members, split_amounts):
    """
    Record a peer-to-peer expense outside any group.

    The expense is indexed under the payer and every other split member.

    Returns: Expense
    """
    try:
        amount, members, amounts = validate_splits(amount, split_members, split_amounts)

        expense = _record_expense(
            INSTANT_SCOPE, payer, amount, description, members, amounts,
            timestamp=current_timestamp()
        )

        db.session.add(InstantExpenseIndex(address=payer, expense_id=expense.id))
        for member in members:
            if member != payer:
                db.session.add(InstantExpenseIndex(address=member, expense_id=expense.id))

        db.session.commit()
        return expense

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Adding instant expense failed")
        raise LedgerError(f"Failed to add instant expense: {str(e)}")


# ============================================================
# SETTLEMENT (ATOMIC)
# ============================================================

def resolve_mode(mode=None):
    value = mode or current_app.config['SETTLEMENT_MODE']
    if isinstance(value, SettlementMode):
        return value
    try:
        return SettlementMode(value)
    except ValueError:
        raise InvalidInputError(f"Unknown settlement mode: {value}")


def _settle(expense, member, mode):
    split = expense.get_split(member)

    if split and split.has_settled:
        raise AlreadySettledError(f"{member} has already settled this expense")

    owed = split.outstanding if split else 0
    if owed <= 0:
        raise NothingOwedError(f"{member} owes nothing on this expense")

    if expense.fully_settled:
        raise AlreadySettledError("Expense is already fully settled")

    if mode is SettlementMode.ESCROWED:
        balance_service.escrow_transfer(member, expense.payer, owed)
    else:
        call_port('transfer_from', balance_service.custody_address(), member, expense.payer, owed)

    split.outstanding = 0
    split.has_settled = True
    split.settled_at = datetime.utcnow()

    expense.settled_amount += owed
    if expense.settled_amount == expense.amount:
        expense.fully_settled = True

    emit_event(
        EXPENSE_SETTLED,
        group_id=expense.scope_id,
        expense_id=expense.number,
        member=member,
        amount=owed
    )
    return owed


@ledger_guard
def settle_expense(member, group_id, expense_id, mode=None):
    """
    Settle `member`'s share of a group expense.

    mode: 'escrowed' draws on the member's deposited balance,
          'direct' moves the asset from member to payer.
          Defaults to SETTLEMENT_MODE.

    Returns: Expense
    """
    try:
        mode = resolve_mode(mode)
        get_group(group_id)
        expense = get_expense(group_id, expense_id)

        _settle(expense, member, mode)

        db.session.commit()
        return expense

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Settlement failed")
        raise LedgerError(f"Settlement failed: {str(e)}")


@ledger_guard
def settle_instant_expense(member, expense_id, mode=None):
    """Settle `member`'s share of an instant expense. Returns: Expense"""
    try:
        mode = resolve_mode(mode)
        expense = get_expense(INSTANT_SCOPE, expense_id)

        _settle(expense, member, mode)

        db.session.commit()
        return expense

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Instant settlement failed")
        raise LedgerError(f"Settlement failed: {str(e)}")


# ============================================================
# QUERIES
# ============================================================

def get_expense(scope_id, expense_id):
    """Fetch expense `expense_id` of a group (or INSTANT_SCOPE); id 0 is never an expense"""
    expense = None
    if expense_id:
        expense = Expense.query.filter_by(scope_id=scope_id, number=expense_id).first()
    if not expense:
        raise NotFoundError(f"Expense {expense_id} not found in scope {scope_id}")
    return expense


def get_instant_expense(expense_id):
    return get_expense(INSTANT_SCOPE, expense_id)


def get_user_instant_expenses(address):
    """Instant expenses involving `address`, in the order they were indexed"""
    rows = InstantExpenseIndex.query.filter_by(address=address).order_by(InstantExpenseIndex.id).all()
    return [row.expense for row in rows]
