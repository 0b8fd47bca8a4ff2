"""
EVENT LOG
=========

Observable events for external indexers. Events are added to the
current session and therefore commit or roll back together with the
operation that emitted them.
"""

import logging

from splitvault.extensions import db
from splitvault.models import LedgerEvent

logger = logging.getLogger(__name__)

GROUP_CREATED = 'GroupCreated'
EXPENSE_ADDED = 'ExpenseAdded'
EXPENSE_SPLIT = 'ExpenseSplit'
EXPENSE_SETTLED = 'ExpenseSettled'
FUNDS_DEPOSITED = 'FundsDeposited'
FUNDS_WITHDRAWN = 'FundsWithdrawn'
POOL_SUPPLIED = 'PoolSupplied'
POOL_WITHDRAWN = 'PoolWithdrawn'


def emit_event(event_type, **args):
    event = LedgerEvent(event_type=event_type, payload=args)
    db.session.add(event)
    logger.info("%s %s", event_type, args)
    return event


def get_events(event_type=None, limit=100):
    query = LedgerEvent.query
    if event_type:
        query = query.filter_by(event_type=event_type)
    return query.order_by(LedgerEvent.id.asc()).limit(limit).all()
