"""
Decimal helpers shared by the registers, the settlement primitive and
the ledger.  Amounts carry two places, rates six, profit four.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from hawala.core.exceptions import ValidationError

CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.000001")
PROFIT_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0")

# Numeric(20, 2) and Numeric(20, 6) column capacity
MAX_AMOUNT = Decimal("999999999999999999.99")
MAX_RATE = Decimal("99999999999999.999999")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce *value* to Decimal without passing through a binary float."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"{field} is not a valid number", field=field) from exc
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


def money(value) -> Decimal:
    """Round a computed home or debt currency value to cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def require_amount(value, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """
    Validate a caller-supplied monetary amount.

    Rejects negatives, zero (unless *allow_zero*), and anything with more
    than two decimal places; sub-cent input is an error, never rounded.
    """
    amount = to_decimal(value, field)
    if amount < 0 or (amount == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ValidationError(f"{field} must be {qualifier}", field=field)
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds {MAX_AMOUNT}", field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} has more than 2 decimal places", field=field)
    return amount.quantize(CENT)


def require_rate(value, field: str = "rate") -> Decimal:
    """Validate an exchange-rate snapshot (strictly positive, at most 6 places)."""
    rate = to_decimal(value, field)
    if rate <= 0:
        raise ValidationError(f"{field} must be positive", field=field)
    if rate > MAX_RATE:
        raise ValidationError(f"{field} exceeds {MAX_RATE}", field=field)
    if rate != rate.quantize(RATE_QUANTUM):
        raise ValidationError(f"{field} has more than 6 decimal places", field=field)
    return rate


def settlement_profit(amount: Decimal, acquisition_rate: Decimal, payout_rate: Decimal) -> Decimal:
    """
    Home-currency profit of netting *amount* debt-currency units.

    Rates are debt-currency units per home-currency unit, so
    ``amount / acquisition_rate`` is what the customer paid for the debt
    and ``amount / payout_rate`` is what the consumed incoming funds are
    worth.
    """
    profit = amount / acquisition_rate - amount / payout_rate
    return profit.quantize(PROFIT_QUANTUM, rounding=ROUND_HALF_UP)


def unit_profit(acquisition_rate: Decimal, payout_rate: Decimal) -> Decimal:
    """Per-unit profitability used by BEST_RATE ordering."""
    return Decimal(1) / acquisition_rate - Decimal(1) / payout_rate
