"""
Shared pytest fixtures for the zkwallet test suite.
"""

from __future__ import annotations

import asyncio

import pytest

from zkwallet_core.config import WalletAppConfig
from zkwallet_core.errors import TransientNetworkError
from zkwallet_core.identity import Identity, Provider
from zkwallet_core.ledger import Coin, ExecutionResult, GasCost, TransactionBlock, TransferPlan
from zkwallet_core.storage import LOCAL_SCOPE, SESSION_SCOPE, MemoryStore

ALICE = "0x" + "a1" * 32
BOB = "0x" + "b2" * 32


def make_coin(object_id: str, balance: int, owner: str = ALICE) -> Coin:
    return Coin(object_id=object_id, balance=balance, owner=owner)


class FakeLedgerClient:
    """In-memory ledger client recording every call the wallet makes."""

    def __init__(self, coins: list[Coin] | None = None, epoch: int = 100):
        self.coins: dict[str, list[Coin]] = {}
        if coins:
            for c in coins:
                self.coins.setdefault(c.owner, []).append(c)
        self.epoch = epoch
        self.gas_price = 1000
        self.history: dict[tuple[str, str], list[TransactionBlock]] = {}
        self.calls: list[str] = []
        self.built: list[TransferPlan] = []
        self.executed: list[tuple[bytes, str]] = []
        self.exec_status = "success"
        self.exec_error: str | None = None
        self.fail_reads = False
        self.fail_queries: set[str] = set()
        self.delay = 0.0
        self.epoch_delay = 0.0

    async def get_coins(self, address: str, coin_type: str) -> list[Coin]:
        self.calls.append("get_coins")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_reads:
            raise TransientNetworkError("get_coins: connection refused")
        return list(self.coins.get(address, []))

    async def get_balance(self, address: str, coin_type: str) -> int:
        self.calls.append("get_balance")
        return sum(c.balance for c in self.coins.get(address, []))

    async def get_reference_gas_price(self) -> int:
        self.calls.append("get_reference_gas_price")
        return self.gas_price

    async def build_transaction(self, plan: TransferPlan) -> bytes:
        self.calls.append("build_transaction")
        self.built.append(plan)
        return f"tx:{plan.coin_id}:{plan.amount}:{plan.recipient}".encode()

    async def execute(self, tx_bytes: bytes, signature: str) -> ExecutionResult:
        self.calls.append("execute")
        self.executed.append((tx_bytes, signature))
        return ExecutionResult(
            digest=f"digest{len(self.executed)}",
            status=self.exec_status,
            error=self.exec_error,
            gas_used=GasCost(computation=1_000_000, storage=2_000_000, rebate=500_000),
        )

    async def query_transactions(
        self, filter: dict[str, str], limit: int, descending: bool = True,
    ) -> list[TransactionBlock]:
        (kind, address), = filter.items()
        self.calls.append(f"query:{kind}")
        if kind in self.fail_queries:
            raise TransientNetworkError(f"query {kind} failed")
        return list(self.history.get((kind, address), []))[:limit]

    async def current_epoch(self) -> int:
        self.calls.append("current_epoch")
        if self.epoch_delay:
            await asyncio.sleep(self.epoch_delay)
        return self.epoch


@pytest.fixture
def fake_ledger():
    """Ledger holding three coins for Alice: 30, 50 and 100 MIST."""
    return FakeLedgerClient([
        make_coin("0xc30", 30),
        make_coin("0xc50", 50),
        make_coin("0xc100", 100),
    ])


@pytest.fixture
def config():
    """Config with both providers configured, pointing at devnet."""
    cfg = WalletAppConfig()
    cfg.providers.github.client_id = "gh-client"
    cfg.providers.google.client_id = "google-client.apps.googleusercontent.com"
    return cfg


@pytest.fixture
def stores():
    return MemoryStore(LOCAL_SCOPE), MemoryStore(SESSION_SCOPE)


@pytest.fixture
def github_identity():
    return Identity(subject="42", email="alice@example.com", provider=Provider.GITHUB, login="alice")


@pytest.fixture
def google_identity():
    return Identity(subject="1098", email="alice@example.com", provider=Provider.GOOGLE, login="alice")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
