from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")

TRANSACTION_TYPES = ("income", "expense")


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """Parse a user-supplied amount into a positive magnitude.

    The sign of the input is dropped; zero, NaN, infinities and anything
    non-numeric are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError("amount must be a number greater than zero", field=field)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number greater than zero", field=field) from None
    if not amount.is_finite():
        raise ValidationError("amount must be a number greater than zero", field=field)
    amount = abs(amount)
    try:
        cents = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("amount is too large", field=field) from None
    if cents <= ZERO:
        raise ValidationError("amount must be a number greater than zero", field=field)
    return amount


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    return f"{quantize(value):.2f}"


def tx_sign(tx_type: str) -> Decimal:
    if tx_type == "income":
        return Decimal("1")
    if tx_type == "expense":
        return Decimal("-1")
    return ZERO


def signed_amount(tx: Mapping[str, Any]) -> Decimal:
    return Decimal(str(tx["amount"])) * tx_sign(tx.get("type", ""))


def signed_total(transactions: Iterable[Mapping[str, Any]]) -> Decimal:
    return quantize(sum((signed_amount(tx) for tx in transactions), ZERO))
