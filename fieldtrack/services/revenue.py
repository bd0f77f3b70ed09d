"""
Revenue calculator.

    revenue = quantity × rate

Everything here is Decimal.  Wire values (JSON numbers, form strings) are
converted through ``str()`` so a float such as 0.1 becomes Decimal("0.1")
rather than its binary expansion.  The product is exact; only the final
revenue is quantized to currency minor units (ROUND_HALF_UP), which makes
``revenue == compute_revenue(quantity, snapshot_rate)`` reproducible from
the stored operands.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from fieldtrack.core.exceptions import ValidationError

MONEY_QUANT = Decimal("0.01")
QUANTITY_QUANT = Decimal("0.001")

# Largest values the Numeric(12,3), Numeric(12,2) and Numeric(16,2) columns hold
MAX_QUANTITY = Decimal("999999999.999")
MAX_RATE = Decimal("9999999999.99")
MAX_REVENUE = Decimal("99999999999999.99")


def to_decimal(value, field: str) -> Decimal:
    """Coerce a wire value to a finite Decimal.

    Raises:
        ValidationError: If the value is missing, boolean, not numeric, or not finite.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: value})
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            raise ValidationError(f"{field} must be a number", details={field: value})
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", details={field: value}) from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", details={field: str(value)})
    return result


def _non_negative(value, field: str, quant: Decimal, maximum: Decimal) -> Decimal:
    result = to_decimal(value, field)
    if result < 0:
        raise ValidationError(f"{field} must be >= 0", details={field: str(value)})
    if result > maximum:
        raise ValidationError(
            f"{field} must be <= {maximum}", details={field: str(value), "max": str(maximum)},
        )
    try:
        rounded = result.quantize(quant, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range", details={field: str(value)}) from None
    if result != rounded:
        raise ValidationError(
            f"{field} supports at most {abs(quant.as_tuple().exponent)} decimal places",
            details={field: str(value)},
        )
    return rounded


def parse_quantity(value) -> Decimal:
    """Parse a work quantity: non-negative, up to three decimal places."""
    return _non_negative(value, "quantity", QUANTITY_QUANT, MAX_QUANTITY)


def parse_rate(value) -> Decimal:
    """Parse a per-unit rate: non-negative currency, up to two decimal places."""
    return _non_negative(value, "rate", MONEY_QUANT, MAX_RATE)


def compute_revenue(quantity, rate) -> Decimal:
    """Return ``quantity * rate`` rounded half-up to minor units.

    Pure function; the only place revenue is ever derived.
    """
    qty = to_decimal(quantity, "quantity")
    unit_rate = to_decimal(rate, "rate")
    if qty < 0 or unit_rate < 0:
        raise ValidationError(
            "quantity and rate must be >= 0",
            details={"quantity": str(qty), "rate": str(unit_rate)},
        )
    product = qty * unit_rate
    if product > MAX_REVENUE:
        raise ValidationError(
            f"revenue must be <= {MAX_REVENUE}",
            details={"quantity": str(qty), "rate": str(unit_rate), "max": str(MAX_REVENUE)},
        )
    return product.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal | None) -> str | None:
    """Serialise a money amount as a fixed two-decimal string."""
    if value is None:
        return None
    return f"{Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP):f}"


def format_quantity(value: Decimal | None) -> str | None:
    """Serialise a quantity without trailing zeros or exponent notation."""
    if value is None:
        return None
    normalized = Decimal(value).normalize()
    return f"{normalized:f}"
