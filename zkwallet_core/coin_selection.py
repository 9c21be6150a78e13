"""
Payment coin selection.

First-fit over the coin snapshot in ledger order: the first coin whose
balance covers the amount pays for it.  A larger coin is split so the
exact amount is transferred and the remainder stays with the sender; an
exact match moves the whole coin.  Several small coins are never merged
into one payment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from zkwallet_core.errors import (
    InsufficientBalanceError,
    InsufficientContiguousFundsError,
    InvalidAmountError,
)
from zkwallet_core.ledger import Coin


@dataclass(frozen=True)
class PaymentPlan:
    coin: Coin
    amount: int

    @property
    def split(self) -> bool:
        return self.coin.balance > self.amount

    @property
    def remainder(self) -> int:
        """What stays with the sender after the payment (0 for a whole-coin move)."""
        return self.coin.balance - self.amount


def total_balance(coins: Iterable[Coin]) -> int:
    return sum(c.balance for c in coins)


def check_balance(amount: int, available: int) -> None:
    """Raise ``InsufficientBalanceError`` if *amount* exceeds *available*."""
    if amount > available:
        raise InsufficientBalanceError(amount, available)


def select_payment_coin(amount: int, coins: Sequence[Coin]) -> PaymentPlan:
    """Pick the first coin that covers *amount* on its own."""
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")
    for coin in coins:
        if coin.balance >= amount:
            return PaymentPlan(coin=coin, amount=amount)
    largest = max((c.balance for c in coins), default=0)
    raise InsufficientContiguousFundsError(amount, largest)


def plan_payment(amount: int, coins: Sequence[Coin]) -> PaymentPlan:
    """Balance precondition first, then first-fit selection."""
    check_balance(amount, total_balance(coins))
    return select_payment_coin(amount, coins)
