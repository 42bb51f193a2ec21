"""
Module: viatico_kernel.db.types
Responsibility: The decimal helpers every model and service uses for amounts
    and day counts.
Architecture position: Kernel > DB.  Importable from models/, domain/,
    services/ and selectors/; imports none of them.

Invariants enforced:
    - No floats.  Amounts and day counts are Decimal end to end;
      to_decimal() refuses floats outright.
    - round_money() is the one rounding function for currency amounts
      (ROUND_HALF_UP, two places).
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value, field: str = "value") -> Decimal:
    """
    Coerce ``value`` to Decimal.

    Accepts Decimal, int and numeric strings.  Floats are rejected because
    they cannot represent amounts like 0.1 exactly.

    Raises:
        ValueError: If the value is a float, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{field} must not be a float: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"{field} is not numeric: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field} must be finite: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a currency amount (default: two places, half up)."""
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
