"""
Precision constants and helpers for SUI amounts.

All amounts crossing the ledger boundary are integers in MIST, the
smallest indivisible unit:

    1 SUI = 1_000_000_000 MIST

User input is parsed with ``Decimal`` and truncated toward zero, so a
float never touches a ledger amount.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from zkwallet_core.errors import InvalidAmountError

# Number of decimal places of the native coin.
SUI_DECIMALS: int = 9

# Smallest representable unit, 1 MIST = 0.000000001 SUI.
MIST_PER_SUI: int = 10 ** SUI_DECIMALS

# Display precision for balances (history uses full precision).
BALANCE_DISPLAY_PLACES: int = 6

_QUANTUM = Decimal(1).scaleb(-SUI_DECIMALS)


def to_minimal_units(amount: str | int | Decimal) -> int:
    """Convert a decimal SUI amount to MIST, rounding toward zero.

    >>> to_minimal_units("1.5")
    1500000000
    >>> to_minimal_units("0.0000000019")
    1
    """
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    mist = int(value.quantize(_QUANTUM, rounding=ROUND_DOWN) * MIST_PER_SUI)
    if mist <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount!r}")
    return mist


def from_minimal_units(mist: int) -> Decimal:
    """Convert an integer MIST count to a SUI ``Decimal``."""
    return Decimal(int(mist)) / MIST_PER_SUI


def format_amount(mist: int, places: int = BALANCE_DISPLAY_PLACES) -> str:
    """Render a MIST count as a fixed-point SUI string."""
    quantum = Decimal(1).scaleb(-places)
    return format(from_minimal_units(mist).quantize(quantum, rounding=ROUND_DOWN), "f")
