"""Tests for the Supabase fee store binding and the dry-run wrapper."""
import asyncio
from datetime import date
from types import SimpleNamespace

from conftest import InMemoryFeeStore
from bidcap.parse.models import FeeAuditEntry, FeeRecord
from bidcap.store.fee_store import DryRunFeeStore, SupabaseFeeStore, record_to_row


class FakeQuery:
    """Records the builder chain and answers execute() from canned rows."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.ops = []

    def __getattr__(self, name):
        def step(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self

        return step

    def execute(self):
        self.db.executed.append((self.table, self.ops))
        rows = self.db.rows.get(self.table, [])
        for name, args, _ in self.ops:
            if name == "eq":
                rows = [r for r in rows if r.get(args[0]) == args[1]]
            if name == "order":
                rows = sorted(rows, key=lambda r: r[args[0]])
        return SimpleNamespace(data=rows)


class FakeSupabase:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


ROWS = {
    "fees": [
        {"house": "WineBid", "buyers_premium": 0.18, "last_verified": None, "source_url": None},
        {"house": "Acker", "buyers_premium": 0.25, "last_verified": "2024-03-01", "source_url": "https://a.example"},
    ]
}


def test_get_and_list_all():
    """Test reads map rows to FeeRecords."""
    store = SupabaseFeeStore(client=FakeSupabase(ROWS))

    acker = asyncio.run(store.get("Acker"))
    assert acker == FeeRecord(
        house="Acker", buyers_premium=0.25, last_verified=date(2024, 3, 1), source_url="https://a.example"
    )
    assert asyncio.run(store.get("Nobody")) is None
    assert [r.house for r in asyncio.run(store.list_all())] == ["Acker", "WineBid"]


def test_upsert_and_audit_rows():
    """Test the rows sent to the fees and audit tables."""
    db = FakeSupabase(ROWS)
    store = SupabaseFeeStore(client=db)
    record = FeeRecord(house="Acker", buyers_premium=0.28, last_verified=date(2024, 6, 1))

    asyncio.run(store.upsert(record))
    asyncio.run(store.append_audit(FeeAuditEntry(house="Acker", old_rate=0.25, new_rate=0.28)))

    (fees_table, fees_ops), (audit_table, audit_ops) = db.executed
    assert fees_table == "fees"
    assert fees_ops[0] == ("upsert", (record_to_row(record),), {"on_conflict": "house"})
    assert record_to_row(record)["last_verified"] == "2024-06-01"
    assert audit_table == "fees_audit"
    assert audit_ops[0][0] == "insert"
    assert audit_ops[0][1][0]["old_rate"] == 0.25


def test_dry_run_store_skips_writes():
    """Test that dry-run reads through and never writes."""
    inner = InMemoryFeeStore([FeeRecord(house="Acker", buyers_premium=0.25)])
    store = DryRunFeeStore(inner)

    assert asyncio.run(store.get("Acker")).buyers_premium == 0.25
    asyncio.run(store.upsert(FeeRecord(house="Acker", buyers_premium=0.3)))
    asyncio.run(store.append_audit(FeeAuditEntry(house="Acker", old_rate=0.25, new_rate=0.3)))

    assert inner.records["Acker"].buyers_premium == 0.25
    assert inner.audits == []
    assert len(store.skipped_writes) == 2


def test_connection_check():
    """Test the connection check against a working and a broken client."""
    assert asyncio.run(SupabaseFeeStore(client=FakeSupabase(ROWS)).test_connection()) is True

    class BrokenSupabase:
        def table(self, name):
            raise ConnectionError("unreachable")

    assert asyncio.run(SupabaseFeeStore(client=BrokenSupabase()).test_connection()) is False
