"""
JSON-RPC ledger client and faucet client over aiohttp.

``SuiRpcClient`` implements ``LedgerClient`` against a Sui full node.
Transactions are built server-side (``unsafe_pay`` for a split,
``unsafe_transferObject`` for a whole-coin move), so no BCS encoder is
needed locally; the returned bytes are signed by the wallet and sent
back through ``sui_executeTransactionBlock``.

Transport failures, timeouts, JSON-RPC errors and answers missing the
expected fields surface as ``TransientNetworkError``.  An error answer to
an execute request is a ``LedgerExecutionError`` carrying the node's
message verbatim.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
from typing import Any

import aiohttp

from zkwallet_core.errors import (
    FaucetRateLimitError,
    FaucetUnavailableError,
    LedgerExecutionError,
    TransientNetworkError,
)
from zkwallet_core.keys import normalize_address
from zkwallet_core.ledger import (
    SUI_COIN_TYPE,
    Coin,
    ExecutionResult,
    GasCost,
    TransactionBlock,
    TransferPlan,
)

logger = logging.getLogger("zkwallet.rpc")

# suix_getCoins page size (node maximum is 50)
COINS_PAGE_LIMIT = 50


class RpcError(TransientNetworkError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, message: str, code: int | None = None):
        super().__init__(f"{method}: {message}")
        self.method = method
        self.message = message
        self.code = code


@contextlib.contextmanager
def _response_shape(method: str):
    """Turn a node answer that lacks the expected fields into a transient error."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise TransientNetworkError(f"{method}: malformed response: {exc!r}") from exc


class SuiRpcClient:
    """Async JSON-RPC 2.0 client; one aiohttp session per instance."""

    def __init__(self, rpc_url: str, timeout: float = 15.0,
                 session: aiohttp.ClientSession | None = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._rpc_id = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> SuiRpcClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Issue one JSON-RPC request and return its ``result``."""
        session = await self._get_session()
        self._rpc_id += 1
        payload = {"jsonrpc": "2.0", "id": self._rpc_id, "method": method, "params": params or []}
        try:
            async with session.post(self.rpc_url, json=payload) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise TransientNetworkError(f"{method}: HTTP {resp.status} {text[:200]}")
                body = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise TransientNetworkError(f"{method}: timeout") from None
        except aiohttp.ClientError as exc:
            raise TransientNetworkError(f"{method}: {exc}") from exc

        if "error" in body:
            err = body["error"] or {}
            raise RpcError(method, err.get("message", "rpc error"), err.get("code"))
        if "result" not in body:
            raise TransientNetworkError(f"{method}: unknown rpc response")
        return body["result"]

    # ---- reads ----

    async def get_coins(self, address: str, coin_type: str = SUI_COIN_TYPE) -> list[Coin]:
        coins: list[Coin] = []
        cursor = None
        while True:
            page = await self.call(
                "suix_getCoins", [address, coin_type, cursor, COINS_PAGE_LIMIT],
            )
            with _response_shape("suix_getCoins"):
                for c in page.get("data", []):
                    coins.append(Coin(
                        object_id=c["coinObjectId"],
                        balance=int(c["balance"]),
                        owner=address,
                        coin_type=c.get("coinType", coin_type),
                        version=str(c.get("version", "")),
                        digest=c.get("digest", ""),
                    ))
                if not page.get("hasNextPage") or not page.get("nextCursor"):
                    return coins
                cursor = page["nextCursor"]

    async def get_balance(self, address: str, coin_type: str = SUI_COIN_TYPE) -> int:
        result = await self.call("suix_getBalance", [address, coin_type])
        with _response_shape("suix_getBalance"):
            return int(result["totalBalance"])

    async def get_reference_gas_price(self) -> int:
        price = await self.call("suix_getReferenceGasPrice")
        with _response_shape("suix_getReferenceGasPrice"):
            return int(price)

    async def current_epoch(self) -> int:
        state = await self.call("suix_getLatestSuiSystemState")
        with _response_shape("suix_getLatestSuiSystemState"):
            return int(state["epoch"])

    async def query_transactions(
        self, filter: dict[str, str], limit: int, descending: bool = True,
    ) -> list[TransactionBlock]:
        query = {
            "filter": filter,
            "options": {
                "showInput": True,
                "showEffects": True,
                "showObjectChanges": True,
                "showBalanceChanges": True,
            },
        }
        page = await self.call("suix_queryTransactionBlocks", [query, None, limit, descending])
        with _response_shape("suix_queryTransactionBlocks"):
            return [_parse_block(tx) for tx in page.get("data", [])]

    # ---- writes ----

    async def build_transaction(self, plan: TransferPlan) -> bytes:
        # The node applies the reference gas price when it builds.
        if plan.split:
            result = await self.call("unsafe_pay", [
                plan.sender, [plan.coin_id], [plan.recipient], [str(plan.amount)],
                None, str(plan.gas_budget),
            ])
        else:
            result = await self.call("unsafe_transferObject", [
                plan.sender, plan.coin_id, None, str(plan.gas_budget), plan.recipient,
            ])
        with _response_shape("unsafe_pay" if plan.split else "unsafe_transferObject"):
            return base64.b64decode(result["txBytes"], validate=True)

    async def execute(self, tx_bytes: bytes, signature: str) -> ExecutionResult:
        params = [
            base64.b64encode(tx_bytes).decode(),
            [signature],
            {"showEffects": True, "showObjectChanges": True, "showBalanceChanges": True},
            "WaitForLocalExecution",
        ]
        try:
            result = await self.call("sui_executeTransactionBlock", params)
        except RpcError as exc:
            raise LedgerExecutionError(exc.message) from exc
        with _response_shape("sui_executeTransactionBlock"):
            effects = result.get("effects") or {}
            status = effects.get("status") or {}
            return ExecutionResult(
                digest=result.get("digest", ""),
                status=status.get("status", "failure"),
                error=status.get("error"),
                gas_used=GasCost.from_dict(effects.get("gasUsed")),
            )


def _parse_block(tx: dict[str, Any]) -> TransactionBlock:
    data = (tx.get("transaction") or {}).get("data") or {}
    status = ((tx.get("effects") or {}).get("status") or {}).get("status", "failure")
    return TransactionBlock(
        digest=tx["digest"],
        sender=data.get("sender", ""),
        timestamp_ms=int(tx.get("timestampMs") or 0),
        status=status,
        balance_changes=list(tx.get("balanceChanges") or []),
        object_changes=list(tx.get("objectChanges") or []),
    )


class FaucetClient:
    """Requests test coins from a devnet / testnet faucet."""

    def __init__(self, faucet_url: str, timeout: float = 30.0):
        self.faucet_url = faucet_url
        self.timeout = timeout

    async def request(self, address: str) -> dict[str, Any]:
        """Ask for coins for *address*; returns ``{"tx_id", "amount"}``."""
        if not self.faucet_url:
            raise FaucetUnavailableError("Faucet is only available on testnet or devnet")
        recipient = normalize_address(address)
        payload = {"FixedAmountRequest": {"recipient": recipient}}
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as session:
                async with session.post(self.faucet_url, json=payload) as resp:
                    if resp.status == 429:
                        raise FaucetRateLimitError(
                            "Rate limit exceeded. Please wait before requesting again."
                        )
                    if resp.status >= 400:
                        text = await resp.text()
                        raise TransientNetworkError(f"Faucet error: {resp.status} - {text[:200]}")
                    body = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise TransientNetworkError("Faucet request timed out") from None
        except aiohttp.ClientError as exc:
            raise TransientNetworkError(f"Faucet request failed: {exc}") from exc

        if body.get("error"):
            raise TransientNetworkError(f"Faucet error: {body['error']}")
        sent = body.get("coins_sent") or body.get("transferredGasObjects") or []
        first = sent[0] if sent else {}
        logger.info(f"Faucet funded {recipient}")
        return {
            "tx_id": first.get("transferTxDigest") or first.get("id") or body.get("task") or "faucet-success",
            "amount": int(first.get("amount", 0) or 0),
        }
