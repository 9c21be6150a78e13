"""
Ledger client contract and the read-only ledger view.

The wallet talks to the network exclusively through ``LedgerClient``.
``LedgerView`` wraps a client for the two read paths the wallet needs
(balance and coin snapshot).  Every call is bounded by a timeout; a
balance read that fails is logged and reported as zero instead of
raising, while a coin snapshot (used by the send path) propagates
``TransientNetworkError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol, TypeVar

from zkwallet_core.errors import TransientNetworkError

logger = logging.getLogger("zkwallet.ledger")

SUI_COIN_TYPE = "0x2::sui::SUI"

T = TypeVar("T")


# ─── Data model ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coin:
    """An owned coin object; immutable once observed."""
    object_id: str
    balance: int
    owner: str
    coin_type: str = SUI_COIN_TYPE
    version: str = ""
    digest: str = ""


@dataclass(frozen=True)
class TransferPlan:
    """Inputs for building a single-coin payment transaction."""
    sender: str
    recipient: str
    coin_id: str
    amount: int
    split: bool             # False = transfer the whole coin unmodified
    gas_price: int
    gas_budget: int


@dataclass
class GasCost:
    computation: int = 0
    storage: int = 0
    rebate: int = 0

    @property
    def total(self) -> int:
        return self.computation + self.storage - self.rebate

    @classmethod
    def from_dict(cls, d: dict | None) -> GasCost:
        d = d or {}
        return cls(
            computation=int(d.get("computationCost", 0) or 0),
            storage=int(d.get("storageCost", 0) or 0),
            rebate=int(d.get("storageRebate", 0) or 0),
        )


@dataclass
class ExecutionResult:
    digest: str
    status: str                       # "success" or "failure"
    error: str | None = None
    gas_used: GasCost = field(default_factory=GasCost)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


@dataclass
class TransactionBlock:
    """One transaction as returned by a history query."""
    digest: str
    sender: str
    timestamp_ms: int = 0
    status: str = "success"
    balance_changes: list[dict[str, Any]] = field(default_factory=list)
    object_changes: list[dict[str, Any]] = field(default_factory=list)


class LedgerClient(Protocol):
    async def get_coins(self, address: str, coin_type: str) -> list[Coin]: ...
    async def get_balance(self, address: str, coin_type: str) -> int: ...
    async def get_reference_gas_price(self) -> int: ...
    async def build_transaction(self, plan: TransferPlan) -> bytes: ...
    async def execute(self, tx_bytes: bytes, signature: str) -> ExecutionResult: ...
    async def query_transactions(
        self, filter: dict[str, str], limit: int, descending: bool = True,
    ) -> list[TransactionBlock]: ...
    async def current_epoch(self) -> int: ...


async def bounded(call: Awaitable[T], timeout: float | None, what: str) -> T:
    """Await *call* with a timeout, mapping expiry to ``TransientNetworkError``."""
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError:
        raise TransientNetworkError(f"{what} timed out after {timeout}s") from None


# ─── View ────────────────────────────────────────────────────────────────


class LedgerView:
    """Fresh balance and coin snapshots for an address."""

    def __init__(
        self,
        client: LedgerClient,
        coin_type: str = SUI_COIN_TYPE,
        timeout: float | None = 15.0,
    ):
        self.client = client
        self.coin_type = coin_type
        self.timeout = timeout

    async def coins_of(self, address: str) -> list[Coin]:
        """Coins of the designated type owned by *address*, in ledger order."""
        coins = await bounded(
            self.client.get_coins(address, self.coin_type), self.timeout, "get_coins",
        )
        return [c for c in coins if c.coin_type == self.coin_type]

    async def balance_of(self, address: str) -> int:
        """Sum of all coin balances; 0 when the read fails."""
        try:
            coins = await self.coins_of(address)
        except (TransientNetworkError, ConnectionError, OSError) as exc:
            logger.error(f"Failed to get balance for {address}: {exc}")
            return 0
        total = sum(c.balance for c in coins)
        logger.debug(f"Balance of {address}: {total} from {len(coins)} coins")
        return total
