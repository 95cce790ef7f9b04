"""Supabase (PostgREST) store with insert-if-absent batch upserts."""
import asyncio
import logging
from typing import Any, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from poolsync.config import Config
from poolsync.errors import PersistenceError
from poolsync.parse.models import Contributor, Payment

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000

# Only transport failures are retried; the upserts are idempotent.
_transport_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)


class SupabaseStore:
    """Writes contributors and payments to Supabase tables (see schema.sql)."""

    def __init__(self, config: Config, client: Optional[Client] = None):
        if client is None:
            if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE:
                raise ValueError("Supabase configuration missing")
            client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)
        self.client = client
        self.contributors_table = config.CONTRIBUTORS_TABLE
        self.payments_table = config.PAYMENTS_TABLE

    async def _run(self, batch: str, func, *args) -> Any:
        """Run a sync Supabase call in the thread pool, mapping failures to PersistenceError."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func, *args)
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Supabase {batch} call failed: {e}")
            raise PersistenceError(f"Supabase {batch} call failed: {e}", batch=batch) from e

    async def initialize(self) -> None:
        """Tables are created from schema.sql; here we only check they answer."""
        await self._run("schema", self._ping_sync)
        logger.info("Supabase connection successful")

    def _ping_sync(self) -> None:
        for table in (self.contributors_table, self.payments_table):
            self.client.table(table).select("*", count="exact").limit(1).execute()

    async def current_owner_recorded_sum(self, owner_id: str) -> float:
        """Sum of all stored payment amounts for a contributor (0.0 if none)."""
        return await self._run("payments", self._owner_sum_sync, owner_id)

    @_transport_retry
    def _owner_sum_sync(self, owner_id: str) -> float:
        total = 0.0
        start = 0
        while True:
            response = (
                self.client.table(self.payments_table)
                .select("amount")
                .eq("contributor_id", owner_id)
                .range(start, start + PAGE_SIZE - 1)
                .execute()
            )
            rows = response.data or []
            total += sum(float(row["amount"]) for row in rows)
            if len(rows) < PAGE_SIZE:
                return total
            start += PAGE_SIZE

    @_transport_retry
    def _upsert_sync(self, table: str, key: str, rows: list[dict]) -> int:
        """Synchronous insert-if-absent; PostgREST returns only the rows it inserted."""
        response = (
            self.client.table(table)
            .upsert(rows, on_conflict=key, ignore_duplicates=True)
            .execute()
        )
        return len(response.data or [])

    async def _upsert(self, batch: str, table: str, key: str, rows: list[dict]) -> int:
        if not rows:
            return 0
        inserted = await self._run(batch, self._upsert_sync, table, key, rows)
        skipped = len(rows) - inserted
        if skipped:
            logger.debug(f"{skipped} {batch} rows already present, left unchanged")
        return inserted

    async def upsert_contributors(self, contributors: Sequence[Contributor]) -> int:
        """Insert contributors that are not stored yet. Existing names are kept."""
        rows = [c.to_row() for c in contributors]
        return await self._upsert("contributors", self.contributors_table, "contributor_id", rows)

    async def upsert_payments(self, payments: Sequence[Payment]) -> int:
        """Insert payments whose id is not stored yet."""
        rows = [p.to_row() for p in payments]
        return await self._upsert("payments", self.payments_table, "id", rows)
