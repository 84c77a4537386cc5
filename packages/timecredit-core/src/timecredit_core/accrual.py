"""Attendance to credit computation."""
from __future__ import annotations

from dataclasses import dataclass

from .config import DEFAULT_RATE_PER_MINUTE_MINOR
from .exceptions import InvalidTimeRangeError, TimeCreditValidationError

SECONDS_PER_MINUTE = 60


@dataclass(frozen=True, slots=True)
class AccrualComputation:
    minutes_worked: int
    amount_minor: int

    @property
    def creditable(self) -> bool:
        """Zero-minute sessions produce no ledger entry."""
        return self.amount_minor > 0


class AttendanceAccrualComputer:
    """Turns a checkin/checkout pair into whole worked minutes and a credit.

    Partial minutes are floored away. The rate is an integer number of minor
    units per minute so the whole path stays in integer arithmetic.
    """

    def __init__(self, rate_per_minute_minor: int = DEFAULT_RATE_PER_MINUTE_MINOR) -> None:
        if isinstance(rate_per_minute_minor, bool) or not isinstance(rate_per_minute_minor, int):
            raise TimeCreditValidationError("Rate must be an integer", field="rate_per_minute_minor")
        if rate_per_minute_minor < 0:
            raise TimeCreditValidationError("Rate must not be negative", field="rate_per_minute_minor")
        self.rate_per_minute_minor = rate_per_minute_minor

    def compute(self, checkin_epoch_seconds: int, checkout_epoch_seconds: int) -> AccrualComputation:
        checkin = _require_epoch(checkin_epoch_seconds, "checkin_epoch_seconds")
        checkout = _require_epoch(checkout_epoch_seconds, "checkout_epoch_seconds")
        if checkout < checkin:
            raise InvalidTimeRangeError(checkin, checkout)

        minutes = (checkout - checkin) // SECONDS_PER_MINUTE
        return AccrualComputation(
            minutes_worked=minutes,
            amount_minor=minutes * self.rate_per_minute_minor,
        )


def _require_epoch(value: object, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TimeCreditValidationError(f"{field} must be an integer epoch timestamp", field=field)
    return value
