"""Shared utilities for pandas conversion operations."""

from decimal import Decimal

from loyalty_insights.errors import ValidationError


def decimal_to_float(value: Decimal | None) -> float | None:
    """Convert Decimal to float for pandas compatibility."""
    if value is None:
        return None
    return float(value)


def to_decimal(value: object) -> Decimal:
    """Convert a DataFrame cell to Decimal, avoiding float artefacts.

    Floats go through ``str`` so ``19.99`` becomes ``Decimal('19.99')``
    rather than its binary expansion. Floats with more than 15 significant
    digits may still lose precision; pass strings or Decimals when exact
    values matter.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError(
            f"Expected numeric amount, got {type(value).__name__}", {"value": value}
        )
    return Decimal(str(value))
