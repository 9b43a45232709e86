"""Money parsing for cash amounts.

Cash is stored as ``Numeric(12, 2)``; every amount entering the ledger is
normalised to a two-place ``Decimal`` here before it reaches a store. Unit
currencies are whole numbers bounded by their INTEGER columns.
"""

from decimal import Decimal, InvalidOperation

from wallet_ledger.utils.errors import InvalidAmountError

CENT = Decimal("0.01")
MAX_CASH = Decimal("9999999999.99")
# INTEGER columns hold gems, coins and vouchers
MAX_UNITS = 2_147_483_647


def to_money(
    value: Decimal | int | str,
    *,
    allow_zero: bool = True,
    allow_negative: bool = False,
) -> Decimal:
    """Parse ``value`` into a two-place Decimal.

    Floats are refused because they cannot represent most cent values exactly.

    Raises:
        InvalidAmountError: malformed, more than two decimal places, out of range,
            or a sign the caller did not allow
    """
    if isinstance(value, (float, bool)):
        raise InvalidAmountError(
            "Amounts must be given as decimal strings or integers",
            details={"value": str(value)},
        )
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError("Malformed amount", details={"value": str(value)})

    if not amount.is_finite():
        raise InvalidAmountError("Malformed amount", details={"value": str(value)})
    if abs(amount) > MAX_CASH:
        raise InvalidAmountError("Amount out of range", details={"value": str(value)})
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise InvalidAmountError(
            "Amounts carry at most two decimal places",
            details={"value": str(value)},
        )
    amount = quantized
    if amount == 0 and not allow_zero:
        raise InvalidAmountError("Amount must not be zero", details={"value": str(amount)})
    if amount < 0 and not allow_negative:
        raise InvalidAmountError("Amount must not be negative", details={"value": str(amount)})
    return amount


def to_positive_money(value: Decimal | int | str) -> Decimal:
    """Parse a strictly positive cash amount."""
    return to_money(value, allow_zero=False)


def to_units(value: Decimal | int | str, *, allow_negative: bool = False) -> int:
    """Validate a whole-unit amount (gems, coins, vouchers)."""
    if isinstance(value, (float, bool)):
        raise InvalidAmountError(
            "Unit currencies take whole numbers",
            details={"value": str(value)},
        )
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError("Malformed amount", details={"value": str(value)})
    if not amount.is_finite() or amount != amount.to_integral_value():
        raise InvalidAmountError(
            "Unit currencies take whole numbers",
            details={"value": str(value)},
        )
    if abs(amount) > MAX_UNITS:
        raise InvalidAmountError("Amount out of range", details={"value": str(value)})
    units = int(amount)
    if units < 0 and not allow_negative:
        raise InvalidAmountError("Amount must not be negative", details={"value": units})
    return units
