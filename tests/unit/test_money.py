"""Integer money helpers."""

from decimal import Decimal

import pytest

from src.pm_common.money import (
    fee_from_bps,
    minor_to_display,
    pro_rata,
    to_major_units,
    to_minor_units,
)


class TestConversion:
    @pytest.mark.parametrize(
        ("major", "minor"),
        [(Decimal("100"), 10000), (Decimal("0.5"), 50), (Decimal("12.50"), 1250), (Decimal("0.01"), 1)],
    )
    def test_to_minor(self, major: Decimal, minor: int) -> None:
        assert to_minor_units(major) == minor

    def test_more_than_two_decimals_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_minor_units(Decimal("1.005"))

    def test_to_major_is_two_places(self) -> None:
        assert to_major_units(1250) == Decimal("12.50")
        assert str(to_major_units(5)) == "0.05"

    def test_display(self) -> None:
        assert minor_to_display(650000) == "NGN 6,500.00"
        assert minor_to_display(-1200) == "-NGN 12.00"
        assert minor_to_display(7, "USD") == "USD 0.07"


class TestFee:
    def test_ten_percent(self) -> None:
        assert fee_from_bps(10000, 1000) == 1000

    def test_floors(self) -> None:
        assert fee_from_bps(55, 1000) == 5
        assert fee_from_bps(9, 1000) == 0

    def test_zero_rate_or_amount(self) -> None:
        assert fee_from_bps(10000, 0) == 0
        assert fee_from_bps(0, 1000) == 0


class TestProRata:
    def test_split_by_filled_quantity(self) -> None:
        assert pro_rata(45, 1, 3) == 15
        assert pro_rata(45, 2, 3) == 30

    def test_shares_never_exceed_pool(self) -> None:
        pool, parts = 100, [1, 1, 1]
        shares = [pro_rata(pool, p, sum(parts)) for p in parts]
        assert shares == [33, 33, 33]
        assert pool - sum(shares) == 1

    def test_empty_whole(self) -> None:
        assert pro_rata(100, 0, 0) == 0
