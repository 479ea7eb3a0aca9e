"""Points and stamps accrual rule."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_FLOOR

from loyalty_insights.errors import ConfigurationError, ValidationError
from loyalty_insights.foundation.records import ProgramType

#: Stamps programs award one stamp per visit regardless of spend.
STAMPS_PER_VISIT = 1


def _as_decimal(amount: Decimal | int | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, bool):
        raise ValidationError("Amount must be numeric", {"amount": amount})
    try:
        return Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError("Amount must be numeric", {"amount": amount}) from exc


def resolve_program_type(program_type: ProgramType | str) -> ProgramType:
    """Return the :class:`ProgramType` for ``program_type``.

    Raises
    ------
    ConfigurationError
        If the value names no known program; no default is assumed.
    """

    if isinstance(program_type, ProgramType):
        return program_type
    try:
        return ProgramType(str(program_type).strip().lower())
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown loyalty program type: {program_type!r}",
            {"program_type": program_type},
        ) from exc


def points_earned(amount: Decimal | int | str, program_type: ProgramType | str) -> int:
    """Loyalty credit for a transaction of ``amount``.

    Points programs award one point per whole currency unit, truncated
    (19.99 earns 19). Stamps programs award one stamp per visit.

    Raises
    ------
    ValidationError
        If ``amount`` is zero or negative, for either program type.
    ConfigurationError
        If ``program_type`` is not a known program.

    Examples
    --------
    >>> points_earned(Decimal("19.99"), ProgramType.POINTS)
    19
    >>> points_earned(Decimal("5.00"), "stamps")
    1
    """

    value = _as_decimal(amount)
    if not value.is_finite() or value <= 0:
        raise ValidationError(
            f"Transaction amount must be positive: {amount}", {"amount": amount}
        )

    program = resolve_program_type(program_type)
    if program is ProgramType.POINTS:
        return int(value.to_integral_value(rounding=ROUND_FLOOR))
    if program is ProgramType.STAMPS:
        return STAMPS_PER_VISIT
    raise ConfigurationError(  # pragma: no cover - enum is exhaustive
        f"No accrual rule for program type {program.value}",
        {"program_type": program.value},
    )


def reward_description(program_type: ProgramType | str) -> str:
    """Movement description used when crediting a transaction reward."""

    program = resolve_program_type(program_type)
    return f"Transaction reward: {'purchase' if program is ProgramType.POINTS else 'visit'}"
