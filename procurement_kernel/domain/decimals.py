"""
Decimal parsing for monetary and quantity scalars.

Every amount and quantity entering the engine passes through ``to_decimal``
so that nothing downstream ever sees a float.  Repeated increments and
decrements of received quantities across many goods receipts must not drift.

Accepted inputs: ``Decimal``, ``int``, ``str`` (surrounding whitespace is
ignored).  Floats are converted through ``str()`` so ``0.1`` becomes
``Decimal("0.1")`` rather than its binary expansion.  NaN and infinities are
rejected with ``InvalidNumberError``.  Columns hold 9 decimal places
(``Numeric(38, 9)``); finer values are refused rather than rounded on write.
"""

from decimal import Decimal, InvalidOperation

from procurement_kernel.exceptions import InvalidNumberError, ValidationError

ZERO = Decimal("0")

MAX_SCALE = 9

RawNumber = Decimal | int | float | str


def to_decimal(raw: RawNumber | None, field: str | None = None) -> Decimal:
    """
    Parse ``raw`` into a finite Decimal.

    Raises:
        InvalidNumberError: empty, non-numeric, boolean or non-finite input.
        ValidationError: more than ``MAX_SCALE`` significant decimal places.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidNumberError(raw, field=field)
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            raise InvalidNumberError(raw, field=field)
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidNumberError(raw, field=field) from None
    if not value.is_finite():
        raise InvalidNumberError(raw, field=field)
    if -value.normalize().as_tuple().exponent > MAX_SCALE:
        raise ValidationError(
            f"{field or 'value'} allows at most {MAX_SCALE} decimal places", field=field
        )
    return value


def to_decimal_or_zero(raw: RawNumber | None, field: str | None = None) -> Decimal:
    """Like ``to_decimal`` but ``None`` and blank strings become zero."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return ZERO
    return to_decimal(raw, field=field)


def to_decimal_or_null(raw: RawNumber | None, field: str | None = None) -> Decimal | None:
    """Like ``to_decimal`` but ``None`` and blank strings stay ``None``."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return to_decimal(raw, field=field)


def to_positive_decimal(raw: RawNumber | None, field: str | None = None) -> Decimal:
    """Parse and require a strictly positive value (quantities, payments)."""
    value = to_decimal(raw, field=field)
    if value <= ZERO:
        raise ValidationError(f"{field or 'value'} must be greater than zero", field=field)
    return value


def to_non_negative_decimal(raw: RawNumber | None, field: str | None = None) -> Decimal:
    """Parse and require a value >= 0 (prices, tax, discounts)."""
    value = to_decimal(raw, field=field)
    if value < ZERO:
        raise ValidationError(f"{field or 'value'} must not be negative", field=field)
    return value
