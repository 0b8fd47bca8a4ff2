"""
ASSET TRANSFER PORT
===================

The ledger moves the fungible asset only through this interface.
A port signals failure by returning False or raising; callers treat
both the same way (see call_port).

TokenLedgerPort keeps token balances and allowances in the ledger's
own database, so asset movements commit and roll back with the
operation that made them.
"""

import logging

from flask import current_app

from splitvault.extensions import db
from splitvault.models import TokenAccount, TokenAllowance
from splitvault.services.errors import LedgerError, TransferFailedError

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'splitvault.asset_port'


class AssetPort:
    """Interface of the external asset."""

    def transfer_from(self, spender, source, to, amount):
        raise NotImplementedError

    def transfer(self, sender, to, amount):
        raise NotImplementedError

    def approve(self, owner, spender, amount):
        raise NotImplementedError

    def balance_of(self, account):
        raise NotImplementedError

    def mint(self, to, amount):
        raise NotImplementedError


class TokenLedgerPort(AssetPort):

    def _account(self, address):
        account = db.session.get(TokenAccount, address)
        if not account:
            account = TokenAccount(address=address, balance=0)
            db.session.add(account)
            db.session.flush()
        return account

    def _allowance(self, owner, spender):
        return TokenAllowance.query.filter_by(owner=owner, spender=spender).first()

    def _move(self, source, to, amount):
        sender = self._account(source)
        if sender.balance < amount:
            logger.warning("Transfer of %s from %s refused: balance %s", amount, source, sender.balance)
            return False
        receiver = self._account(to)
        sender.balance -= amount
        receiver.balance += amount
        return True

    def transfer_from(self, spender, source, to, amount):
        if amount < 0:
            return False
        allowance = self._allowance(source, spender)
        if not allowance or allowance.amount < amount:
            logger.warning("transfer_from by %s on %s refused: allowance too low", spender, source)
            return False
        if not self._move(source, to, amount):
            return False
        allowance.amount -= amount
        return True

    def transfer(self, sender, to, amount):
        if amount < 0:
            return False
        return self._move(sender, to, amount)

    def approve(self, owner, spender, amount):
        if amount < 0:
            return False
        allowance = self._allowance(owner, spender)
        if allowance:
            allowance.amount = amount
        else:
            db.session.add(TokenAllowance(owner=owner, spender=spender, amount=amount))
        db.session.flush()
        return True

    def balance_of(self, account):
        row = db.session.get(TokenAccount, account)
        return row.balance if row else 0

    def mint(self, to, amount):
        if amount < 0:
            return False
        self._account(to).balance += amount
        return True


# ============================================================
# PORT ACCESS
# ============================================================

def init_asset_port(app, port=None):
    app.extensions[EXTENSION_KEY] = port or TokenLedgerPort()


def get_asset_port():
    return current_app.extensions[EXTENSION_KEY]


def call_port(operation, *args):
    """
    Invoke a port method, turning a False return or a raised
    exception into TransferFailedError.
    """
    port = get_asset_port()
    try:
        ok = getattr(port, operation)(*args)
    except LedgerError:
        # e.g. ReentrancyDetectedError from a callback keeps its own type
        raise
    except Exception as e:
        raise TransferFailedError(f"Asset {operation} failed: {str(e)}") from e
    if not ok:
        raise TransferFailedError(f"Asset {operation} was refused")
    return ok
