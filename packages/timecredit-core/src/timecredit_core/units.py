"""Exact conversion between display amounts and minor units (wei)."""
from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .exceptions import InvalidAmountError, TimeCreditValidationError

DISPLAY_DECIMALS = 18
MINOR_PER_UNIT = 10**DISPLAY_DECIMALS

_AMOUNT_RE = re.compile(r"^(?P<whole>\d+)(?:\.(?P<frac>\d+))?$")


def to_minor(amount: Union[str, int, Decimal], *, allow_zero: bool = False) -> int:
    """Parse a display amount into minor units without any rounding.

    Strings must be plain non-negative decimals ("1", "0.25"). Floats are
    rejected outright. More than 18 significant fractional digits, negative
    values and (unless `allow_zero`) zero raise InvalidAmountError.
    """
    if isinstance(amount, bool) or isinstance(amount, float):
        raise InvalidAmountError(
            f"Amount must be a decimal string, got {type(amount).__name__}",
            amount=repr(amount),
        )

    if isinstance(amount, int):
        if amount < 0:
            raise InvalidAmountError("Amount must not be negative", amount=str(amount))
        minor = amount * MINOR_PER_UNIT
    else:
        text = str(amount).strip()
        match = _AMOUNT_RE.match(text)
        if not match:
            raise InvalidAmountError(f"Malformed amount: {text!r}", amount=text)
        frac = (match.group("frac") or "").rstrip("0")
        if len(frac) > DISPLAY_DECIMALS:
            raise InvalidAmountError(
                f"Amount {text} has more than {DISPLAY_DECIMALS} decimal places",
                amount=text,
            )
        minor = int(match.group("whole")) * MINOR_PER_UNIT
        if frac:
            minor += int(frac.ljust(DISPLAY_DECIMALS, "0"))

    if minor == 0 and not allow_zero:
        raise InvalidAmountError("Amount must be greater than zero", amount=str(amount))
    return minor


def to_display(amount_minor: int) -> str:
    """Render minor units as a display string with no trailing zeros."""
    require_minor_amount(amount_minor)
    whole, frac = divmod(amount_minor, MINOR_PER_UNIT)
    if not frac:
        return str(whole)
    return f"{whole}.{str(frac).rjust(DISPLAY_DECIMALS, '0').rstrip('0')}"


def fiat_equivalent(amount_minor: int, rate_per_unit: Decimal, places: int = 2) -> Decimal:
    """Display-currency value of `amount_minor` at `rate_per_unit` per display unit."""
    value = Decimal(amount_minor) * Decimal(rate_per_unit) / Decimal(MINOR_PER_UNIT)
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def require_minor_amount(value: object, field: str = "amount") -> int:
    """Validate that `value` is a non-negative int (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TimeCreditValidationError(
            f"{field} must be an integer number of minor units",
            field=field,
        )
    if value < 0:
        raise TimeCreditValidationError(f"{field} must not be negative", field=field)
    return value
