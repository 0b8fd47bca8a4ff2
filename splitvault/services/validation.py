import math
import re

from splitvault.services.errors import InvalidAmountError

# Amounts are stored in 64-bit signed integer columns
MAX_AMOUNT = 2 ** 63 - 1

# ASCII digits only; str.isdigit also accepts superscripts int() rejects
INTEGER_RE = re.compile(r"-?[0-9]{1,30}")


def require_units(amount, allow_zero=False, field='Amount'):
    """
    Validate an amount of asset units and return it as an int.

    Amounts are whole numbers of the asset's smallest unit; floats and
    numeric strings are accepted only when they hold an exact integer.
    """
    if isinstance(amount, bool) or amount is None:
        raise InvalidAmountError(f"{field} must be a whole number of units")

    if isinstance(amount, str):
        amount = amount.strip()
        if not INTEGER_RE.fullmatch(amount):
            raise InvalidAmountError(f"{field} must be a whole number of units")
        amount = int(amount)
    elif isinstance(amount, float):
        if not math.isfinite(amount):
            raise InvalidAmountError(f"{field} must be a finite number")
        if not amount.is_integer():
            raise InvalidAmountError(f"{field} must be a whole number (no decimals allowed)")
        amount = int(amount)
    elif not isinstance(amount, int):
        raise InvalidAmountError(f"{field} must be a whole number of units")

    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError(f"{field} must be greater than 0")

    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"{field} exceeds the maximum of {MAX_AMOUNT}")

    return amount
