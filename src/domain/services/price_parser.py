"""
Price shorthand used by the storefront admins.

``52m`` is 52 million, ``31m5`` is 31.5 million (one digit after the marker
is tenths of a million). Anything without the marker is a plain amount with
thousands separators (``1.000.000`` or ``1,000,000``).
"""
import re
from decimal import Decimal, InvalidOperation

from src.domain.errors.lifecycle_errors import ValidationError

MILLION = Decimal("1000000")
CENT = Decimal("0.01")
MAX_PRICE = Decimal("1e12")

_SHORTHAND = re.compile(r"^(\d+(?:[.,]\d+)?)\s*m(\d)?$")
_PRICE_SEPARATOR = re.compile(r"\s*-\s*")
_THOUSANDS = re.compile(r"[,.\s]")


def split_price_text(price_text: str) -> list[str]:
    """Split ``"52m - 54m - 50m"`` style text (any number of lines) into tokens."""
    prices: list[str] = []
    for line in price_text.strip().splitlines():
        for token in _PRICE_SEPARATOR.split(line):
            if token.strip():
                prices.append(token.strip())
    return prices


def parse_price(raw: str | int | float | Decimal) -> Decimal:
    """Parse one price token into a positive Decimal amount."""
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid price: {raw!r}")
    if isinstance(raw, (int, float, Decimal)):
        amount = Decimal(str(raw))
    else:
        amount = _parse_text(raw)

    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Price must be positive: {raw!r}")
    # listings.price is NUMERIC(14, 2)
    if amount >= MAX_PRICE:
        raise ValidationError(f"Price is too large: {raw!r}")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"Price has more than two decimal places: {raw!r}")
    return amount


def _parse_text(raw: str) -> Decimal:
    text = raw.strip().lower()
    if not text:
        raise ValidationError("Price is empty.")

    if "m" in text:
        match = _SHORTHAND.match(text)
        if match is None:
            raise ValidationError(f"Invalid price shorthand: {raw!r}")
        millions = Decimal(match.group(1).replace(",", "."))
        tenths = Decimal(match.group(2)) / 10 if match.group(2) else Decimal("0")
        return (millions + tenths) * MILLION

    cleaned = _THOUSANDS.sub("", text)
    try:
        return Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid price: {raw!r}") from exc
