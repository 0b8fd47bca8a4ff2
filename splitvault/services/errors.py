"""
LEDGER EXCEPTIONS
=================

Every rejected operation raises one of these. Services roll back the
session before re-raising, so a caught LedgerError always means no
state was committed.
"""


class LedgerError(Exception):
    """Base exception for ledger operations"""
    kind = 'LedgerError'
    status_code = 500


class NotFoundError(LedgerError):
    """Group or expense does not exist"""
    kind = 'NotFound'
    status_code = 404


class InvalidInputError(LedgerError):
    """Malformed request"""
    kind = 'InvalidInput'
    status_code = 400


class InvalidSplitError(InvalidInputError):
    """Split member and amount lists differ in length, or repeat a member"""
    kind = 'InvalidSplit'


class SplitMismatchError(InvalidInputError):
    """Split amounts do not add up to the expense amount"""
    kind = 'SplitMismatch'


class InvalidAmountError(InvalidInputError):
    """Amount is not a positive whole number of units"""
    kind = 'InvalidAmount'


class AlreadySettledError(LedgerError):
    """Member or expense is already settled"""
    kind = 'AlreadySettled'
    status_code = 409


class NothingOwedError(LedgerError):
    """Member has no outstanding share on the expense"""
    kind = 'NothingOwed'
    status_code = 409


class InsufficientBalanceError(LedgerError):
    """Available balance or escrowed principal is too low"""
    kind = 'InsufficientBalance'
    status_code = 400


class TransferFailedError(LedgerError):
    """The asset port refused or failed a transfer"""
    kind = 'TransferFailed'
    status_code = 502


class ReentrancyDetectedError(LedgerError):
    """A mutating entry point was re-entered while already in progress"""
    kind = 'ReentrancyDetected'
    status_code = 409


class AuthorizationError(LedgerError):
    """Raised when authorization fails"""
    kind = 'Unauthorized'
    status_code = 403
