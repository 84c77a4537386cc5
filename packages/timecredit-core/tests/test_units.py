"""Tests for display/minor unit conversion."""
from __future__ import annotations

from decimal import Decimal

import pytest

from timecredit_core.exceptions import InvalidAmountError, TimeCreditValidationError
from timecredit_core.units import (
    MINOR_PER_UNIT,
    fiat_equivalent,
    require_minor_amount,
    to_display,
    to_minor,
)


class TestToMinor:
    """Tests for to_minor."""

    def test_whole_units(self):
        """Should scale whole units by 10^18."""
        assert to_minor("2") == 2 * MINOR_PER_UNIT

    def test_fractional_units(self):
        """Should convert 0.2 exactly."""
        assert to_minor("0.2") == 2 * 10**17

    def test_smallest_unit(self):
        """Should accept exactly 18 decimal places."""
        assert to_minor("0.000000000000000001") == 1

    def test_trailing_zeros_beyond_precision_allowed(self):
        """Should ignore zero digits past 18 places."""
        assert to_minor("1.0000000000000000000000") == MINOR_PER_UNIT

    def test_over_precise_rejected(self):
        """Should reject 19 significant decimal places."""
        with pytest.raises(InvalidAmountError):
            to_minor("0.0000000000000000001")

    @pytest.mark.parametrize("value", ["-1", "abc", "1e18", "", "1.", ".5", "1,5"])
    def test_malformed_rejected(self, value):
        """Should reject malformed or negative strings."""
        with pytest.raises(InvalidAmountError):
            to_minor(value)

    def test_zero_rejected_by_default(self):
        """Should reject zero unless allowed."""
        with pytest.raises(InvalidAmountError):
            to_minor("0")
        assert to_minor("0", allow_zero=True) == 0

    def test_float_rejected(self):
        """Should never accept binary floats."""
        with pytest.raises(InvalidAmountError):
            to_minor(0.1)

    def test_decimal_accepted(self):
        """Should accept Decimal input."""
        assert to_minor(Decimal("3.5")) == 35 * 10**17

    def test_line_item_total_is_exact(self):
        """Should sum 1.0 x 2 + 0.5 x 3 to exactly 3.5 units."""
        total = to_minor("1.0") * 2 + to_minor("0.5") * 3
        assert total == to_minor("3.5")
        assert total == 3_500_000_000_000_000_000


class TestToDisplay:
    """Tests for to_display."""

    def test_whole(self):
        assert to_display(3 * MINOR_PER_UNIT) == "3"

    def test_fraction_trimmed(self):
        assert to_display(35 * 10**17) == "3.5"

    def test_one_wei(self):
        assert to_display(1) == "0.000000000000000001"

    def test_negative_rejected(self):
        """Should reject negative minor amounts."""
        with pytest.raises(TimeCreditValidationError):
            to_display(-1)


class TestFiatEquivalent:
    """Tests for fiat_equivalent."""

    def test_default_rate(self):
        """Should convert 0.2 units at 20000 to 4000.00."""
        assert fiat_equivalent(2 * 10**17, Decimal("20000")) == Decimal("4000.00")

    def test_rounds_half_up(self):
        """Should round to two places."""
        assert fiat_equivalent(5, Decimal("1")) == Decimal("0.00")
        assert fiat_equivalent(5 * 10**15, Decimal("1")) == Decimal("0.01")


class TestRequireMinorAmount:
    """Tests for require_minor_amount."""

    @pytest.mark.parametrize("value", [-1, 1.5, "10", True, None])
    def test_invalid(self, value):
        with pytest.raises(TimeCreditValidationError):
            require_minor_amount(value)

    def test_zero_ok(self):
        assert require_minor_amount(0) == 0
