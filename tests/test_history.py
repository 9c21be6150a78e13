"""
Test suite for zkwallet_core.history — merge, dedup and classification.

Covers:
  - Deduplication by digest (first occurrence wins)
  - Sent / Received from the sender field
  - Amount extraction from balance changes, object changes, placeholder
  - Degraded queries and ordering
"""

import pytest

from conftest import ALICE, BOB, FakeLedgerClient
from zkwallet_core.history import (
    PLACEHOLDER_AMOUNT,
    Direction,
    HistoryReconciler,
    TransactionRecord,
    TxStatus,
    classify,
    merge_unique,
    most_recent_first,
)
from zkwallet_core.ledger import SUI_COIN_TYPE, TransactionBlock


def _bc(owner, amount, coin_type=SUI_COIN_TYPE):
    return {"owner": {"AddressOwner": owner}, "coinType": coin_type, "amount": str(amount)}


def _tx(digest, sender, ts=0, status="success", balance_changes=None, object_changes=None):
    return TransactionBlock(
        digest=digest, sender=sender, timestamp_ms=ts, status=status,
        balance_changes=balance_changes or [], object_changes=object_changes or [],
    )


class TestMergeUnique:
    def test_duplicate_digest_kept_once(self):
        first = _tx("abc", ALICE, ts=1)
        again = _tx("abc", ALICE, ts=2)
        merged = merge_unique([first], [again, _tx("def", BOB)])
        assert [t.digest for t in merged] == ["abc", "def"]
        assert merged[0] is first

    def test_empty_pages(self):
        assert merge_unique([], []) == []


class TestClassify:
    def test_sent_amount_from_recipient_change(self):
        tx = _tx("s1", ALICE, balance_changes=[_bc(ALICE, -1_250_000), _bc(BOB, 1_000_000)])
        rec = classify(tx, ALICE)
        assert rec.direction is Direction.SENT
        assert rec.amount == 1_000_000
        assert rec.counterparty == BOB
        assert rec.amount_known

    def test_received_amount_from_own_change(self):
        tx = _tx("r1", BOB, balance_changes=[_bc(BOB, -2_100_000), _bc(ALICE, 2_000_000)])
        rec = classify(tx, ALICE)
        assert rec.direction is Direction.RECEIVED
        assert rec.amount == 2_000_000
        assert rec.counterparty == BOB

    def test_failed_status(self):
        assert classify(_tx("f", ALICE, status="failure"), ALICE).status is TxStatus.FAILED

    def test_other_coin_types_ignored(self):
        tx = _tx("u", BOB, balance_changes=[_bc(ALICE, 5, coin_type="0x9::usdc::USDC")])
        rec = classify(tx, ALICE)
        assert not rec.amount_known

    def test_object_change_fallback(self):
        tx = _tx("o", BOB, object_changes=[{
            "type": "created",
            "objectType": "0x2::coin::Coin<0x2::sui::SUI>",
            "fields": {"balance": "777"},
        }])
        rec = classify(tx, ALICE)
        assert rec.amount == 777
        assert rec.amount_known

    def test_placeholder_when_no_amount_data(self):
        rec = classify(_tx("p", BOB), ALICE)
        assert rec.amount == PLACEHOLDER_AMOUNT
        assert rec.amount_known is False
        assert rec.direction is Direction.RECEIVED

    def test_unparseable_amount_falls_back_to_placeholder(self):
        change = {"owner": {"AddressOwner": ALICE}, "coinType": SUI_COIN_TYPE, "amount": "n/a"}
        rec = classify(_tx("bad", BOB, balance_changes=[change]), ALICE)
        assert rec.direction is Direction.RECEIVED
        assert rec.amount == PLACEHOLDER_AMOUNT
        assert rec.amount_known is False

    def test_unparseable_change_skipped_for_next(self):
        missing = {"owner": {"AddressOwner": BOB}, "coinType": SUI_COIN_TYPE}
        tx = _tx("s2", ALICE, balance_changes=[missing, _bc(ALICE, -600), _bc(BOB, 500)])
        rec = classify(tx, ALICE)
        assert rec.amount == 500
        assert rec.counterparty == BOB
        assert rec.amount_known

    def test_to_dict(self):
        d = classify(_tx("p", ALICE, ts=1000), ALICE).to_dict()
        assert d["direction"] == "Sent"
        assert d["status"] == "Success"
        assert d["timestamp_ms"] == 1000


class TestOrdering:
    def test_most_recent_first(self):
        recs = [
            TransactionRecord(id=str(ts), direction=Direction.SENT, amount=1,
                              status=TxStatus.SUCCESS, timestamp_ms=ts)
            for ts in (5, 30, 10)
        ]
        assert [r.id for r in most_recent_first(recs)] == ["30", "10", "5"]


class TestReconciler:
    @pytest.mark.asyncio
    async def test_overlap_collapses(self):
        client = FakeLedgerClient()
        shared = _tx("abc", ALICE, ts=10, balance_changes=[_bc(ALICE, 5)])
        client.history[("FromAddress", ALICE)] = [shared]
        client.history[("ToAddress", ALICE)] = [shared, _tx("def", BOB, ts=20)]
        records = await HistoryReconciler(client).reconcile(ALICE)
        assert [r.id for r in records] == ["abc", "def"]
        assert records[0].direction is Direction.SENT
        assert records[1].direction is Direction.RECEIVED

    @pytest.mark.asyncio
    async def test_runs_both_queries(self):
        client = FakeLedgerClient()
        await HistoryReconciler(client).reconcile(ALICE)
        assert sorted(c for c in client.calls if c.startswith("query")) == [
            "query:FromAddress", "query:ToAddress",
        ]

    @pytest.mark.asyncio
    async def test_failed_query_degrades(self, caplog):
        client = FakeLedgerClient()
        client.history[("ToAddress", ALICE)] = [_tx("in", BOB)]
        client.fail_queries.add("FromAddress")
        with caplog.at_level("ERROR", logger="zkwallet.history"):
            records = await HistoryReconciler(client).reconcile(ALICE)
        assert [r.id for r in records] == ["in"]
        assert "FromAddress failed" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_amount_does_not_fail_page(self):
        client = FakeLedgerClient()
        bad = {"owner": {"AddressOwner": ALICE}, "amount": "n/a"}
        client.history[("ToAddress", ALICE)] = [_tx("in", BOB, ts=5, balance_changes=[bad])]
        records = await HistoryReconciler(client).reconcile(ALICE)
        assert len(records) == 1
        assert records[0].amount_known is False

    @pytest.mark.asyncio
    async def test_page_size_forwarded(self):
        client = FakeLedgerClient()
        client.history[("FromAddress", ALICE)] = [_tx(str(i), ALICE) for i in range(30)]
        records = await HistoryReconciler(client, page_size=5).reconcile(ALICE)
        assert len(records) == 5
