"""
Services Package
================

Business logic layer for SplitVault.

All ledger, pool and authorization operations are handled here.
Routes should call these services, not manipulate models directly.
"""

from splitvault.services.errors import (
    LedgerError,
    NotFoundError,
    InvalidInputError,
    InvalidSplitError,
    SplitMismatchError,
    InvalidAmountError,
    AlreadySettledError,
    NothingOwedError,
    InsufficientBalanceError,
    TransferFailedError,
    ReentrancyDetectedError,
    AuthorizationError
)

from splitvault.services.group_service import (
    create_group,
    get_group,
    get_user_groups
)

from splitvault.services.expense_service import (
    add_expense,
    add_instant_expense,
    settle_expense,
    settle_instant_expense,
    get_expense,
    get_user_instant_expenses
)

from splitvault.services.balance_service import (
    deposit_funds,
    withdraw_funds,
    get_balance
)

from splitvault.services.pool_service import (
    supply,
    withdraw,
    get_user_yield
)
