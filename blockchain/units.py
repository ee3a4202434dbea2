"""
Stake conversion between native currency (ether) and wei.
"""

from decimal import Decimal, DecimalException, InvalidOperation, localcontext
from typing import Union

from web3 import Web3

from errors import ValidationError


WEI_PER_ETHER = 10 ** 18
MAX_UINT256 = 2 ** 256 - 1

Amount = Union[str, int, float, Decimal]


def _parse_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid stake amount: {amount!r}")
    if isinstance(amount, float):
        # str() keeps the shortest repr, not the binary expansion
        amount = str(amount)
    if isinstance(amount, str):
        amount = amount.strip()
        if not amount:
            raise ValidationError("Stake amount is required")
    try:
        return Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Stake amount is not a number: {amount!r}")


def to_ledger_units(amount: Amount) -> int:
    """Convert a human entered stake in ether to wei.

    Rejects non-positive, non-finite and over-precise amounts instead of
    truncating them.
    """
    value = _parse_decimal(amount)
    if not value.is_finite():
        raise ValidationError(f"Stake amount must be finite: {amount!r}")
    if value <= 0:
        raise ValidationError(f"Stake amount must be positive: {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 999
        try:
            scaled = value * WEI_PER_ETHER
        except DecimalException:
            raise ValidationError(f"Stake amount is too large: {amount!r}")
        if scaled != scaled.to_integral_value():
            raise ValidationError(
                f"Stake amount {amount!r} has more precision than 1 wei (18 decimals)"
            )
    if scaled > MAX_UINT256:
        raise ValidationError(f"Stake amount is too large: {amount!r}")

    return Web3.to_wei(value, "ether")


def from_ledger_units(units: int) -> Decimal:
    """Convert wei to ether for display."""
    if isinstance(units, bool) or not isinstance(units, int) or units < 0:
        raise ValidationError(f"Invalid ledger amount: {units!r}")
    return Web3.from_wei(units, "ether")
