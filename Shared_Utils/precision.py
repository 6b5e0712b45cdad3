"""
Decimal helpers for kilogram quantities and utilization percentages.

Quantities travel through the ledger as Decimal so that conservation checks
(sum of batches == current level) hold exactly.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_DOWN
from typing import Any, Optional

from Config.constants_silo import QUANTITY_DECIMALS, PERCENT_DECIMALS


ZERO = Decimal('0')
HUNDRED = Decimal('100')


def quant_from_places(decimal_places: int) -> Decimal:
    """Return a quantizer Decimal like 1e-3 for decimal_places=3."""
    if not isinstance(decimal_places, int) or decimal_places < 0:
        decimal_places = 3
    return Decimal('1').scaleb(-decimal_places)


def safe_decimal(value: Any, default: str = "0") -> Decimal:
    """Convert to Decimal; floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (TypeError, ValueError, InvalidOperation):
        return Decimal(default)


def parse_quantity(value: Any) -> Optional[Decimal]:
    """
    Strict variant of safe_decimal for user input.

    Returns None when the value is missing, not numeric, or not finite,
    so callers can report it instead of silently treating it as zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = str(value)
    try:
        parsed = Decimal(value)
    except (TypeError, ValueError, InvalidOperation):
        return None
    return parsed if parsed.is_finite() else None


def to_quantity(value: Any, decimal_places: int = QUANTITY_DECIMALS) -> Decimal:
    """Decimal kilograms rounded to the configured resolution (banker's rounding)."""
    return safe_decimal(value).quantize(quant_from_places(decimal_places), rounding=ROUND_HALF_EVEN)


def to_percent(
    numerator: Decimal,
    denominator: Decimal,
    cap: bool = True,
    places: Optional[int] = PERCENT_DECIMALS,
) -> Decimal:
    """
    numerator / denominator * 100, truncated to ``places`` decimals.

    places=None keeps the exact ratio (stored on levels and used for bucket
    classification). Zero or negative denominators yield 0; with cap=True
    the result never exceeds 100.
    """
    if denominator <= ZERO:
        return ZERO if places is None else ZERO.quantize(quant_from_places(places))
    pct = safe_decimal(numerator) / safe_decimal(denominator) * HUNDRED
    if cap:
        pct = min(HUNDRED, pct)
    if places is None:
        return pct
    return pct.quantize(quant_from_places(places), rounding=ROUND_DOWN)


def display_percent(pct: Decimal, places: int = PERCENT_DECIMALS) -> Decimal:
    """Truncate an exact percentage for reports and log lines."""
    return safe_decimal(pct).quantize(quant_from_places(places), rounding=ROUND_DOWN)
