"""
Transaction history reconciliation.

Two independent queries (transactions sent by the account, transactions
received by it) are merged, deduplicated by digest keeping the first
occurrence, and labelled Sent or Received from the sender field.

Amounts come from the structured balance changes the ledger reports.
When those are missing, coin fields in object changes are tried; when
nothing usable is found the record carries ``amount = 0`` with
``amount_known = False`` rather than failing the whole page.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from zkwallet_core.errors import TransientNetworkError
from zkwallet_core.ledger import SUI_COIN_TYPE, LedgerClient, TransactionBlock, bounded

logger = logging.getLogger("zkwallet.history")

DEFAULT_PAGE_SIZE = 20
PLACEHOLDER_AMOUNT = 0


class Direction(str, Enum):
    SENT = "Sent"
    RECEIVED = "Received"


class TxStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    direction: Direction
    amount: int                      # MIST
    status: TxStatus
    timestamp_ms: int = 0
    counterparty: str | None = None
    amount_known: bool = True

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000, tz=timezone.utc)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "amount": self.amount,
            "status": self.status.value,
            "timestamp_ms": self.timestamp_ms,
            "counterparty": self.counterparty,
            "amount_known": self.amount_known,
        }


def _owner_address(owner: object) -> str | None:
    if isinstance(owner, str):
        return owner
    if isinstance(owner, dict):
        return owner.get("AddressOwner") or owner.get("ObjectOwner")
    return None


def _from_balance_changes(
    tx: TransactionBlock, address: str, direction: Direction, coin_type: str,
) -> tuple[int, str | None] | None:
    changes = [c for c in tx.balance_changes if c.get("coinType", coin_type) == coin_type]
    if not changes:
        return None
    for change in changes:
        amount = _change_amount(change)
        if amount is None or amount <= 0:
            continue
        owner = _owner_address(change.get("owner"))
        if direction is Direction.RECEIVED and owner == address:
            return amount, tx.sender
        if direction is Direction.SENT and owner != address:
            return amount, owner
    return None


def _change_amount(change: dict) -> int | None:
    try:
        return int(change["amount"])
    except (KeyError, TypeError, ValueError):
        logger.debug(f"Unparseable balance change amount: {change.get('amount')!r}")
        return None


def _from_object_changes(tx: TransactionBlock) -> int | None:
    for change in tx.object_changes:
        if change.get("type") not in ("transferred", "created"):
            continue
        if "coin::Coin" not in str(change.get("objectType", "")):
            continue
        fields = change.get("fields") or {}
        for name in ("balance", "value", "amount"):
            if name in fields:
                try:
                    return int(fields[name])
                except (TypeError, ValueError):
                    break
    return None


def classify(
    tx: TransactionBlock, address: str, coin_type: str = SUI_COIN_TYPE,
) -> TransactionRecord:
    direction = Direction.SENT if tx.sender == address else Direction.RECEIVED
    status = TxStatus.SUCCESS if tx.status == "success" else TxStatus.FAILED

    counterparty = tx.sender if direction is Direction.RECEIVED else None
    amount_known = True
    found = _from_balance_changes(tx, address, direction, coin_type)
    if found is not None:
        amount, counterparty = found
    else:
        fallback = _from_object_changes(tx)
        if fallback is None:
            logger.debug(f"No amount data for transaction {tx.digest}")
            amount, amount_known = PLACEHOLDER_AMOUNT, False
        else:
            amount = fallback

    return TransactionRecord(
        id=tx.digest,
        direction=direction,
        amount=amount,
        status=status,
        timestamp_ms=tx.timestamp_ms,
        counterparty=counterparty,
        amount_known=amount_known,
    )


def merge_unique(*pages: Iterable[TransactionBlock]) -> list[TransactionBlock]:
    """Concatenate *pages* and drop repeated digests, keeping the first."""
    seen: set[str] = set()
    out: list[TransactionBlock] = []
    for page in pages:
        for tx in page:
            if tx.digest in seen:
                continue
            seen.add(tx.digest)
            out.append(tx)
    return out


def most_recent_first(records: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    return sorted(records, key=lambda r: r.timestamp_ms, reverse=True)


class HistoryReconciler:
    def __init__(
        self,
        client: LedgerClient,
        coin_type: str = SUI_COIN_TYPE,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = 15.0,
    ):
        self.client = client
        self.coin_type = coin_type
        self.page_size = page_size
        self.timeout = timeout

    async def _query(self, kind: str, address: str) -> list[TransactionBlock]:
        try:
            return await bounded(
                self.client.query_transactions({kind: address}, self.page_size, True),
                self.timeout,
                f"query {kind}",
            )
        except (TransientNetworkError, ConnectionError, OSError) as exc:
            logger.error(f"History query {kind} failed for {address}: {exc}")
            return []

    async def reconcile(self, address: str) -> list[TransactionRecord]:
        """Merged, deduplicated and classified history in query order."""
        sent, received = await asyncio.gather(
            self._query("FromAddress", address),
            self._query("ToAddress", address),
        )
        unique = merge_unique(sent, received)
        return [classify(tx, address, self.coin_type) for tx in unique]
