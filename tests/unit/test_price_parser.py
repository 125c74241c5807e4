from decimal import Decimal

import pytest

from src.domain.errors.lifecycle_errors import ValidationError
from src.domain.services.price_parser import parse_price, split_price_text


class TestParsePrice:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("52m", Decimal("52000000")),
            ("31m5", Decimal("31500000")),
            ("52M", Decimal("52000000")),
            ("1.5m", Decimal("1500000")),
            ("1.000.000", Decimal("1000000")),
            ("1,000,000", Decimal("1000000")),
            ("250000", Decimal("250000")),
            (150000, Decimal("150000")),
            (Decimal("99.50"), Decimal("99.50")),
        ],
    )
    def test_accepted_forms(self, raw: object, expected: Decimal) -> None:
        assert parse_price(raw) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize("raw", ["", "   ", "abc", "5k", "m", "0", "-5", 0, -1, True])
    def test_rejected_forms(self, raw: object) -> None:
        with pytest.raises(ValidationError):
            parse_price(raw)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "raw", ["10000000m", Decimal("1e12"), 10**13, Decimal("0.001"), Decimal("52000000.005")]
    )
    def test_unstorable_amounts_are_rejected(self, raw: object) -> None:
        with pytest.raises(ValidationError):
            parse_price(raw)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("999999m", Decimal("999999000000")),
            (Decimal("999999999999.99"), Decimal("999999999999.99")),
            (Decimal("0.01"), Decimal("0.01")),
        ],
    )
    def test_largest_and_smallest_storable_amounts_pass(
        self, raw: object, expected: Decimal
    ) -> None:
        assert parse_price(raw) == expected  # type: ignore[arg-type]

    def test_non_finite_number_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_price(float("inf"))


class TestSplitPriceText:
    def test_dash_separated(self) -> None:
        assert split_price_text("52m - 54m - 50m") == ["52m", "54m", "50m"]

    def test_multiline_and_dashes(self) -> None:
        assert split_price_text("52m\n54m - 50m\n\n31m5") == ["52m", "54m", "50m", "31m5"]

    def test_empty_text(self) -> None:
        assert split_price_text("   ") == []
