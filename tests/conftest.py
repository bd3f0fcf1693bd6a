"""Shared fixtures: an in-memory fee store and canned pages."""
from typing import Optional

import pytest

from bidcap.parse.models import FeeAuditEntry, FeeRecord
from bidcap.store.fee_store import FeeStore


class InMemoryFeeStore(FeeStore):
    """Dict-backed FeeStore; houses in fail_reads raise on get, fail_audit breaks audit inserts."""

    def __init__(self, records: Optional[list[FeeRecord]] = None):
        self.records: dict[str, FeeRecord] = {r.house: r for r in records or []}
        self.audits: list[FeeAuditEntry] = []
        self.upserts: list[FeeRecord] = []
        self.fail_reads: set[str] = set()
        self.fail_audit = False

    async def get(self, house: str) -> Optional[FeeRecord]:
        if house in self.fail_reads:
            raise RuntimeError(f"read failed for {house}")
        return self.records.get(house)

    async def upsert(self, record: FeeRecord) -> None:
        self.upserts.append(record)
        self.records[record.house] = record

    async def append_audit(self, entry: FeeAuditEntry) -> None:
        if self.fail_audit:
            raise RuntimeError(f"audit insert failed for {entry.house}")
        self.audits.append(entry)

    async def list_all(self) -> list[FeeRecord]:
        return [self.records[name] for name in sorted(self.records)]


class StubFetcher:
    """Returns canned HTML per URL; URLs mapped to an exception raise it."""

    def __init__(self, pages: dict):
        self.pages = pages
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


def page(body: str) -> str:
    return f"<html><head><title>Terms</title></head><body>{body}</body></html>"


@pytest.fixture
def store() -> InMemoryFeeStore:
    return InMemoryFeeStore(
        [
            FeeRecord(house="Acker", buyers_premium=0.25, source_url="https://www.ackerwines.com/faq/"),
            FeeRecord(house="WineBid", buyers_premium=0.18),
        ]
    )
