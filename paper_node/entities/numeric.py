from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from paper_node.errors import ValidationError

ZERO = Decimal("0")

# finest quantity or price the ledger accepts
MAX_DECIMAL_PLACES = 18


def to_decimal(value, field: str = "value") -> Decimal:
    """Coerce user or feed input to Decimal without going through binary float noise."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValidationError(f"{field} must be numeric, got {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValidationError(f"{field} must be numeric, got {value!r}")

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}")
    return result


def quantize(value: Decimal, places: int) -> Decimal:
    """Round for display only. Ledger values keep full precision."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def check_places(value: Decimal, field: str = "value", places: int = MAX_DECIMAL_PLACES) -> Decimal:
    """Reject inputs finer than ``places`` decimals instead of letting storage round them."""
    if value.normalize().as_tuple().exponent < -places:
        raise ValidationError(f"{field} has more than {places} decimal places: {value}")
    return value
