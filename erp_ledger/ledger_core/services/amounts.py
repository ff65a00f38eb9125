from decimal import Decimal, InvalidOperation

from ..exceptions import JournalValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount a line (or an entry total) may carry. 14 significant digits
# round-trip exactly on every supported backend, SQLite included.
MAX_AMOUNT = Decimal("999999999999.99")


def parse_amount(value, label="amount"):
    """
    Exact money value with at most two decimal places.
    Floats are refused so no binary rounding ever reaches a balance check;
    extra precision is refused rather than rounded.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool) or isinstance(value, float):
        raise JournalValidationError(
            f"{label}: use Decimal, int or str for amounts, not {type(value).__name__}"
        )
    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        raise JournalValidationError(f"{label}: {value!r} is not a number")
    if not amount.is_finite():
        raise JournalValidationError(f"{label}: {value!r} is not a finite number")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise JournalValidationError(f"{label}: {value!r} is out of range")
    if amount != quantized:
        raise JournalValidationError(f"{label}: {value} has more than two decimal places")
    if abs(quantized) > MAX_AMOUNT:
        raise JournalValidationError(f"{label}: {value} exceeds the largest amount {MAX_AMOUNT}")
    return quantized
