"""Job runner: one sequential sync of a pool into the store."""
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

from poolsync.config import Config
from poolsync.errors import PersistenceError
from poolsync.fetch.client import FetchClient
from poolsync.jobs.run_log import RunLogExporter
from poolsync.parse.snapshot import decode_snapshot
from poolsync.parse.store_payload import load_store_json
from poolsync.reconcile.engine import reconcile
from poolsync.store.dev_storage import DevStorage
from poolsync.store.factory import build_store

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome of a single run."""

    run_id: str
    pool_id: str
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    dry_run: bool = False
    title: Optional[str] = None
    owner_recorded_sum: Optional[float] = None
    owner_remainder: Optional[float] = None
    owner_payment_id: Optional[str] = None
    contributors_candidates: int = 0
    payments_candidates: int = 0
    contributors_inserted: Optional[int] = None
    payments_inserted: Optional[int] = None
    unmapped_contributor_ids: list[str] = field(default_factory=list)
    batch_errors: dict[str, str] = field(default_factory=dict)
    fatal_error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.fatal_error is None and not self.batch_errors

    def to_dict(self) -> dict:
        data = asdict(self)
        data["ok"] = self.ok
        return data


class SyncRunner:
    """Fetch, decode, reconcile, then upsert contributors and payments, in that order."""

    def __init__(
        self,
        config: Config,
        store=None,
        fetcher: Optional[FetchClient] = None,
        dry_run: bool = False,
        dev_mode: bool = False,
        store_html: bool = False,
        dev_storage: Optional[DevStorage] = None,
        run_log: Optional[RunLogExporter] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config
        self.store = store if store is not None else build_store(config)
        self.fetcher = fetcher if fetcher is not None else FetchClient(config)
        self.dry_run = dry_run
        self.dev_mode = dev_mode
        self.store_html = store_html
        if dev_storage is None and (dev_mode or dry_run):
            dev_storage = DevStorage()
        self.dev_storage = dev_storage
        self.run_log = run_log if run_log is not None else RunLogExporter()
        self.clock = clock

        self.run_id = str(uuid.uuid4())
        logger.info(f"Run ID: {self.run_id}")

    async def run(self) -> RunReport:
        """Run one sync. Fetch/decode/read errors propagate; write errors are per batch."""
        report = RunReport(run_id=self.run_id, pool_id=self.config.POOL_ID, dry_run=self.dry_run)
        start_time = time.time()
        try:
            await self._run(report)
        except Exception as e:
            report.fatal_error = f"{type(e).__name__}: {e}"
            raise
        finally:
            report.elapsed_seconds = round(time.time() - start_time, 3)
            self._final_report(report)
            try:
                await self.run_log.export(report.to_dict())
            except OSError as e:
                logger.error(f"Could not write run log {self.run_log.path}: {e}")
        return report

    async def _run(self, report: RunReport) -> None:
        # Dry runs only read: no schema creation
        if not self.dry_run:
            await self.store.initialize()

        async with self.fetcher as fetcher:
            raw_json = await fetcher.fetch_snapshot_json(self.config.pool_url)
            html_content = fetcher.last_html

        snapshot = decode_snapshot(load_store_json(raw_json), self.config.POOL_ID)
        report.title = snapshot.title
        logger.info(f"The title of the pool is {snapshot.title!r}")

        # Amount the owner has paid till today
        owner_sum = await self.store.current_owner_recorded_sum(snapshot.owner_id)
        report.owner_recorded_sum = owner_sum

        result = reconcile(snapshot, owner_sum, now=self.clock())
        report.owner_remainder = result.owner_remainder
        report.owner_payment_id = result.owner_payment.id if result.owner_payment else None
        report.contributors_candidates = len(result.contributors)
        report.payments_candidates = len(result.payments)
        report.unmapped_contributor_ids = list(result.unmapped_contributor_ids)

        if self.dev_storage:
            self.dev_storage.save_run(
                snapshot,
                result,
                owner_sum,
                html_content=html_content if self.store_html else None,
            )

        if self.dry_run:
            logger.info("DRY-RUN mode: store writes disabled")
            return

        # Contributors first so payments reference existing rows
        report.contributors_inserted = await self._upsert_batch(
            report, "contributors", self.store.upsert_contributors, result.contributors
        )
        report.payments_inserted = await self._upsert_batch(
            report, "payments", self.store.upsert_payments, result.payments
        )

    async def _upsert_batch(
        self,
        report: RunReport,
        batch: str,
        upsert: Callable[[Sequence], Awaitable[int]],
        rows: Sequence,
    ) -> Optional[int]:
        """Upsert one batch; a failure is recorded and does not stop the other batch."""
        try:
            inserted = await upsert(rows)
        except PersistenceError as e:
            logger.error(f"{batch} batch failed: {e}")
            report.batch_errors[batch] = str(e)
            return None

        if inserted > 0:
            logger.info(f"Added {inserted} new {batch}.")
        else:
            logger.info(f"No new {batch}.")
        return inserted

    def _final_report(self, report: RunReport) -> None:
        logger.info("=" * 60)
        logger.info("FINAL REPORT")
        logger.info(f"Run ID: {report.run_id}")
        logger.info(f"Pool: {report.pool_id} ({report.title})")
        logger.info(f"Elapsed: {report.elapsed_seconds:.2f}s")
        logger.info(f"Owner recorded sum: {report.owner_recorded_sum}")
        logger.info(f"Owner remainder: {report.owner_remainder}")
        logger.info(f"Contributors: {report.contributors_inserted} inserted / {report.contributors_candidates} candidates")
        logger.info(f"Payments: {report.payments_inserted} inserted / {report.payments_candidates} candidates")
        if report.unmapped_contributor_ids:
            logger.info(f"Unmapped contributors: {report.unmapped_contributor_ids}")
        for batch, error in report.batch_errors.items():
            logger.info(f"Failed batch {batch}: {error}")
        if report.fatal_error:
            logger.info(f"Fatal: {report.fatal_error}")
        logger.info("=" * 60)
