"""Fee verification: scrape each house's terms page and reconcile the fee table."""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from bidcap.fetch.houses import HouseConfig
from bidcap.parse.extract import extract
from bidcap.parse.html_text import html_to_text
from bidcap.parse.models import FeeAuditEntry, FeeRecord, rates_differ
from bidcap.parse.plausibility import is_plausible
from bidcap.parse.redact import redact_string
from bidcap.store.fee_store import FeeStore

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class Notifier(Protocol):
    async def notify(self, lines: Sequence[str]) -> bool: ...


class Outcome(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NO_ROW = "no_row"
    PARSE_FAILED = "parse_failed"
    OUT_OF_RANGE = "out_of_range"
    ERROR = "error"

    @property
    def is_failure(self) -> bool:
        return self not in (Outcome.UPDATED, Outcome.UNCHANGED)


@dataclass
class HouseResult:
    """What happened to one house during a run."""

    house: str
    outcome: Outcome
    line: str
    old_rate: Optional[float] = None
    scraped: Optional[float] = None


@dataclass
class RunReport:
    """Per-house results of a run, in processing order."""

    results: list[HouseResult] = field(default_factory=list)

    @property
    def lines(self) -> list[str]:
        return [r.line for r in self.results]

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if r.outcome.is_failure)

    @property
    def failed(self) -> bool:
        return self.failures > 0

    def counts(self) -> dict[str, int]:
        counter = Counter(r.outcome.value for r in self.results)
        return {outcome.value: counter.get(outcome.value, 0) for outcome in Outcome}

    def get_summary(self) -> dict:
        return {
            "houses": len(self.results),
            "failures": self.failures,
            "failed": self.failed,
            **self.counts(),
        }


def _pct(rate: float) -> str:
    return f"{rate * 100:.2f}%"


class FeeReconciler:
    """Verifies every configured house, one at a time."""

    def __init__(
        self,
        store: FeeStore,
        fetcher: Fetcher,
        houses: Sequence[HouseConfig],
        notifier: Optional[Notifier] = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.fetcher = fetcher
        self.houses = list(houses)
        self.notifier = notifier
        self.today = today

    async def run(self) -> RunReport:
        """Process all houses, then send the report."""
        report = RunReport()

        for house in self.houses:
            logger.info(f"=== {house.name} ===")
            try:
                result = await self.reconcile_house(house)
            except Exception as e:
                message = redact_string(str(e)) or type(e).__name__
                logger.error(f"{house.name} error: {message}", exc_info=logger.isEnabledFor(logging.DEBUG))
                result = HouseResult(house.name, Outcome.ERROR, f"🔥 {house.name}: {message}")
            report.results.append(result)

        logger.info("Summary:\n" + "\n".join(report.lines))

        if self.notifier is not None:
            try:
                await self.notifier.notify(report.lines)
            except Exception as e:
                logger.warning(f"Notifier raised, ignoring: {e}")

        return report

    async def reconcile_house(self, house: HouseConfig) -> HouseResult:
        """Fetch, extract, guard and write back a single house."""
        current = await self.store.get(house.name)
        if current is None:
            logger.warning(f"{house.name}: no fee row, skipping")
            return HouseResult(house.name, Outcome.NO_ROW, f"⚠️ {house.name}: no DB row")

        logger.info(
            f"DB -> buyers_premium={current.buyers_premium} last_verified={current.last_verified}"
        )

        html = await self.fetcher.fetch(house.source_url)
        text = html_to_text(html)
        scraped = extract(text, house.rule)

        if scraped is None:
            logger.warning(f"Parse FAIL for {house.name} (first 200 chars: {text[:200]}...)")
            return HouseResult(
                house.name,
                Outcome.PARSE_FAILED,
                f"❌ {house.name}: parse failed",
                old_rate=current.buyers_premium,
            )

        logger.info(f"Scraped -> {_pct(scraped)} from {house.source_url}")

        if not is_plausible(scraped):
            logger.warning(f"Scraped value {scraped} out of plausible range; skipping update")
            return HouseResult(
                house.name,
                Outcome.OUT_OF_RANGE,
                f"🚧 {house.name}: scraped {_pct(scraped)} out-of-range; no update",
                old_rate=current.buyers_premium,
                scraped=scraped,
            )

        today = self.today()
        old_rate = current.buyers_premium

        if rates_differ(old_rate, scraped):
            logger.info(f"Updating {house.name}: {old_rate} -> {scraped}")
            await self.store.upsert_with_audit(
                FeeRecord(
                    house=house.name,
                    buyers_premium=scraped,
                    last_verified=today,
                    source_url=house.source_url,
                ),
                FeeAuditEntry(
                    house=house.name,
                    old_rate=old_rate,
                    new_rate=scraped,
                    source_url=house.source_url,
                ),
                previous=current,
            )
            return HouseResult(
                house.name,
                Outcome.UPDATED,
                f"✏️ {house.name}: {old_rate} → {scraped}",
                old_rate=old_rate,
                scraped=scraped,
            )

        await self.store.upsert(
            current.model_copy(update={"last_verified": today, "source_url": house.source_url})
        )
        logger.info(f"Unchanged. last_verified bumped to {today.isoformat()}")
        return HouseResult(
            house.name,
            Outcome.UNCHANGED,
            f"✅ {house.name}: unchanged at {old_rate}",
            old_rate=old_rate,
            scraped=scraped,
        )
