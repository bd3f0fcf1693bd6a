"""Fee table access: the store interface, its Supabase binding and a dry-run wrapper."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from supabase import create_client, Client
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from bidcap.config import config
from bidcap.parse.models import FeeAuditEntry, FeeRecord

logger = logging.getLogger(__name__)

FEE_COLUMNS = "house,buyers_premium,last_verified,source_url"


class FeeStore(ABC):
    """House -> buyer's premium table plus its append-only audit log."""

    @abstractmethod
    async def get(self, house: str) -> Optional[FeeRecord]:
        """Current record for a house, or None."""

    @abstractmethod
    async def upsert(self, record: FeeRecord) -> None:
        """Insert or replace the record keyed by house."""

    @abstractmethod
    async def append_audit(self, entry: FeeAuditEntry) -> None:
        """Append a rate-change entry."""

    @abstractmethod
    async def list_all(self) -> list[FeeRecord]:
        """All records ordered by house name."""

    async def upsert_with_audit(
        self,
        record: FeeRecord,
        entry: FeeAuditEntry,
        previous: Optional[FeeRecord],
    ) -> None:
        """
        Write a rate change and its audit entry.

        If the audit insert fails, the previous record is written back and the
        error re-raised, so a new rate never stands without its audit entry.
        """
        await self.upsert(record)
        try:
            await self.append_audit(entry)
        except Exception as e:
            if previous is None:
                logger.error(f"Audit insert failed for new house {record.house}: {e}")
                raise
            logger.error(
                f"Audit insert failed for {record.house}: {e}; "
                f"restoring buyers_premium={previous.buyers_premium}"
            )
            await self.upsert(previous)
            raise


def record_to_row(record: FeeRecord) -> dict[str, Any]:
    """Convert FeeRecord to dict for Supabase."""
    return {
        "house": record.house,
        "buyers_premium": record.buyers_premium,
        "last_verified": record.last_verified.isoformat() if record.last_verified else None,
        "source_url": record.source_url,
    }


def audit_to_row(entry: FeeAuditEntry) -> dict[str, Any]:
    """Convert FeeAuditEntry to dict for Supabase."""
    return {
        "house": entry.house,
        "old_rate": entry.old_rate,
        "new_rate": entry.new_rate,
        "source_url": entry.source_url,
        "created_at": entry.created_at.isoformat(),
    }


class SupabaseFeeStore(FeeStore):
    """Fee store backed by Supabase tables (sync client run in a thread pool)."""

    def __init__(self, client: Optional[Client] = None):
        if client is None:
            if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE:
                raise ValueError("Supabase configuration missing")
            # Service role bypasses row-level security
            client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)
        self.client: Client = client
        self.table = config.FEES_TABLE
        self.audit_table = config.FEES_AUDIT_TABLE

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func, *args)

    async def get(self, house: str) -> Optional[FeeRecord]:
        rows = await self._run(self._select_house_sync, house)
        if not rows:
            return None
        return FeeRecord(**rows[0])

    async def upsert(self, record: FeeRecord) -> None:
        try:
            await self._run(self._upsert_sync, record_to_row(record))
        except Exception as e:
            logger.error(f"Supabase upsert error for {record.house}: {e}")
            raise
        logger.debug(f"Upserted fee row for {record.house}")

    async def append_audit(self, entry: FeeAuditEntry) -> None:
        await self._run(self._insert_audit_sync, audit_to_row(entry))
        logger.info(f"Audit: {entry.house} {entry.old_rate} -> {entry.new_rate}")

    async def list_all(self) -> list[FeeRecord]:
        rows = await self._run(self._select_all_sync)
        return [FeeRecord(**row) for row in rows or []]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((Exception,)),
        reraise=True,
    )
    def _select_house_sync(self, house: str) -> list[dict]:
        """Synchronous single-row read (called from thread pool)."""
        response = (
            self.client.table(self.table)
            .select(FEE_COLUMNS)
            .eq("house", house)
            .limit(1)
            .execute()
        )
        return response.data

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((Exception,)),
        reraise=True,
    )
    def _select_all_sync(self) -> list[dict]:
        """Synchronous full read ordered by house (called from thread pool)."""
        response = self.client.table(self.table).select(FEE_COLUMNS).order("house").execute()
        return response.data

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((Exception,)),
        reraise=True,
    )
    def _upsert_sync(self, row: dict) -> None:
        """Synchronous upsert keyed by house; safe to repeat."""
        self.client.table(self.table).upsert(row, on_conflict="house").execute()

    def _insert_audit_sync(self, row: dict) -> None:
        """Synchronous audit insert. Not retried: a repeat would duplicate the entry."""
        self.client.table(self.audit_table).insert(row).execute()

    async def test_connection(self) -> bool:
        """Test Supabase connection."""
        try:
            await self._run(
                lambda: self.client.table(self.table).select("house", count="exact").limit(1).execute()
            )
            logger.info("Supabase connection successful")
            return True
        except Exception as e:
            logger.error(f"Supabase connection test failed: {e}")
            return False


class DryRunFeeStore(FeeStore):
    """Reads from the wrapped store, logs writes instead of performing them."""

    def __init__(self, inner: FeeStore):
        self.inner = inner
        self.skipped_writes: list[Any] = []

    async def get(self, house: str) -> Optional[FeeRecord]:
        return await self.inner.get(house)

    async def upsert(self, record: FeeRecord) -> None:
        logger.info(f"[DRY-RUN] would upsert {record_to_row(record)}")
        self.skipped_writes.append(record)

    async def append_audit(self, entry: FeeAuditEntry) -> None:
        logger.info(f"[DRY-RUN] would audit {entry.house}: {entry.old_rate} -> {entry.new_rate}")
        self.skipped_writes.append(entry)

    async def list_all(self) -> list[FeeRecord]:
        return await self.inner.list_all()
