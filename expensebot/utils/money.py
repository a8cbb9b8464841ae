from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
# Largest value a Numeric(14, 2) column holds.
MAX_AMOUNT = Decimal("999999999999.99")


class InvalidAmountError(ValueError):
    """Raised when user input is not a positive amount of money."""


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount_token(raw: str) -> Decimal:
    """Parse a positive amount such as ``1,250`` or ``45.67``.

    Thousands separators are ignored and the result is rounded to cents.
    """
    text = (raw or "").strip().replace(",", "").replace(" ", "")
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(f"Invalid amount '{raw}'.") from exc
    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount '{raw}'.")
    try:
        value = quantize_amount(value)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Amount '{raw}' is too large.") from exc
    if value <= 0:
        raise InvalidAmountError("Amount must be greater than zero.")
    if value > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount '{raw}' is too large.")
    return value


def format_amount_for_display(amount: str | Decimal, currency: str) -> str:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return f"{amount} {currency}"
    return f"{quantize_amount(value):,} {currency.upper()}"
