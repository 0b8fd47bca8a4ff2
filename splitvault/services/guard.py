"""
REENTRANCY GUARD
================

A mutating entry point holds its component's guard until it returns.
Any nested attempt to enter the same component from inside that call
(for instance an asset transfer that calls back into the ledger) is
rejected.

The held flag is thread-local: separate requests served by separate
threads are independent top-level calls.
"""

import logging
import threading
from contextlib import contextmanager
from functools import wraps

from splitvault.services.errors import ReentrancyDetectedError

logger = logging.getLogger(__name__)


class ReentrancyGuard:

    def __init__(self, name):
        self.name = name
        self._state = threading.local()

    @property
    def locked(self):
        return getattr(self._state, 'held', False)

    @contextmanager
    def hold(self):
        if self.locked:
            logger.warning("Rejected reentrant call into %s", self.name)
            raise ReentrancyDetectedError(f"Reentrant call into {self.name} rejected")
        self._state.held = True
        try:
            yield
        finally:
            self._state.held = False

    def __call__(self, func):
        """Use the guard as a decorator on an entry point."""
        @wraps(func)
        def wrapper(*args, **kwargs):
            with self.hold():
                return func(*args, **kwargs)
        return wrapper


ledger_guard = ReentrancyGuard('ledger')
pool_guard = ReentrancyGuard('pool')
