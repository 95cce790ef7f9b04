"""End-to-end runs: mocked pool page, real SQLite store."""
import asyncio
import json
import sqlite3
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from poolsync.errors import DecodeError, FetchError, PersistenceError
from poolsync.fetch.client import FetchClient
from poolsync.jobs.run_log import RunLogExporter
from poolsync.jobs.runner import SyncRunner
from poolsync.store.dev_storage import DevStorage
from poolsync.store.sqlite_store import SQLiteStore

RUN_1 = datetime(2024, 6, 1, 10, 0, 0, tzinfo=timezone.utc)
RUN_2 = RUN_1 + timedelta(hours=1)
TXN = {"date": "2024-05-01T12:30:15Z", "amount": 5.0, "contributor_id": "abc", "id": "T1"}


class BrokenContributorStore(SQLiteStore):
    async def upsert_contributors(self, contributors):
        raise PersistenceError("disk I/O error", batch="contributors")


class BrokenPaymentStore(SQLiteStore):
    async def upsert_payments(self, payments):
        raise PersistenceError("disk I/O error", batch="payments")


class CrashingStore(SQLiteStore):
    async def current_owner_recorded_sum(self, owner_id):
        raise RuntimeError("unexpected")


class UnwritableRunLog(RunLogExporter):
    async def export(self, report):
        raise OSError("read-only file system")


def make_runner(config, tmp_path, html, store=None, when=RUN_1, **kwargs):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=html))
    return SyncRunner(
        config,
        store=store or SQLiteStore(config.SQLITE_PATH),
        fetcher=FetchClient(config, transport=transport),
        run_log=RunLogExporter(tmp_path / "runs.jsonl"),
        clock=lambda: when,
        **kwargs,
    )


def rows(config, sql):
    with sqlite3.connect(config.SQLITE_PATH) as conn:
        return conn.execute(sql).fetchall()


def test_first_run_inserts_everything(config, tmp_path, page_factory, payload_factory):
    """Test a fresh store gets the owner remainder, the transactions and the contributors."""
    html = page_factory(payload_factory(pledge=100.0, txns=[TXN], contributors={"abc": "Alice"}))

    report = asyncio.run(make_runner(config, tmp_path, html).run())

    assert report.ok
    assert report.title == "Summer trip"
    assert report.owner_recorded_sum == 0.0
    assert report.contributors_inserted == 2
    assert report.payments_inserted == 2
    assert rows(config, "SELECT contributor_id, full_name FROM contributors ORDER BY contributor_id") == [
        ("OWNER1", "Olivia Owner"),
        ("abc", "Alice"),
    ]
    assert rows(config, "SELECT id, date, amount, contributor_id FROM payments ORDER BY date") == [
        ("1714566615abc", "2024-05-01", 5.0, "abc"),
        (f"{int(RUN_1.timestamp())}OWNER1", "2024-06-01", 100.0, "OWNER1"),
    ]


def test_second_run_with_same_page_inserts_nothing(config, tmp_path, page_factory, payload_factory):
    """Test an unchanged pool is a no-op on the next run."""
    html = page_factory(payload_factory(pledge=100.0, txns=[TXN], contributors={"abc": "Alice"}))
    asyncio.run(make_runner(config, tmp_path, html).run())

    report = asyncio.run(make_runner(config, tmp_path, html, when=RUN_2).run())

    assert report.ok
    assert report.owner_recorded_sum == 100.0
    assert report.owner_payment_id is None
    assert report.contributors_inserted == 0
    assert report.payments_inserted == 0
    assert len(rows(config, "SELECT id FROM payments")) == 2


def test_pledge_increase_adds_one_owner_payment(config, tmp_path, page_factory, payload_factory):
    """Test a higher pledge on the next run stores only the difference."""
    asyncio.run(make_runner(config, tmp_path, page_factory(payload_factory(pledge=100.0, txns=[TXN]))).run())

    html = page_factory(payload_factory(pledge=130.0, txns=[TXN]))
    report = asyncio.run(make_runner(config, tmp_path, html, when=RUN_2).run())

    assert report.payments_inserted == 1
    assert report.owner_remainder == pytest.approx(30.0)
    owner_rows = rows(config, "SELECT amount FROM payments WHERE contributor_id = 'OWNER1' ORDER BY amount")
    assert owner_rows == [(30.0,), (100.0,)]


def test_contributor_batch_failure_does_not_stop_payments(config, tmp_path, page_factory, payload_factory):
    """Test a failing contributors batch is reported while payments still go in."""
    store = BrokenContributorStore(config.SQLITE_PATH)
    html = page_factory(payload_factory(pledge=100.0, txns=[TXN], contributors={"abc": "Alice"}))

    report = asyncio.run(make_runner(config, tmp_path, html, store=store).run())

    assert not report.ok
    assert "contributors" in report.batch_errors
    assert report.contributors_inserted is None
    assert report.payments_inserted == 2


def test_decode_error_aborts_and_is_logged(config, tmp_path, page_factory, payload_factory):
    """Test a malformed snapshot stops the run before any write."""
    payload = payload_factory()
    del payload["campaign"]["pool123"]["owner"]
    runner = make_runner(config, tmp_path, page_factory(payload))

    with pytest.raises(DecodeError):
        asyncio.run(runner.run())

    assert rows(config, "SELECT COUNT(*) FROM payments") == [(0,)]
    line = json.loads((tmp_path / "runs.jsonl").read_text().splitlines()[-1])
    assert line["ok"] is False
    assert line["fatal_error"].startswith("DecodeError")


def test_dry_run_writes_nothing(config, tmp_path, page_factory, payload_factory):
    """Test a dry run plans rows and saves them for inspection only."""
    html = page_factory(payload_factory(pledge=100.0, txns=[TXN], contributors={"abc": "Alice"}))
    dev_storage = DevStorage(tmp_path / "dev")

    report = asyncio.run(
        make_runner(config, tmp_path, html, dry_run=True, dev_storage=dev_storage, store_html=True).run()
    )

    assert report.ok
    assert report.payments_candidates == 2
    assert report.payments_inserted is None
    assert not config.SQLITE_PATH.exists()

    plan = json.loads((tmp_path / "dev" / "pool123" / "plan.json").read_text())
    assert [p["contributor_id"] for p in plan["payments"]] == ["OWNER1", "abc"]
    assert plan["owner_payment"]["amount"] == 100.0
    assert (tmp_path / "dev" / "pool123" / "snapshot.json").exists()
    assert (tmp_path / "dev" / "pool123" / "page.html.gz").exists()


def test_run_log_line(config, tmp_path, page_factory, payload_factory):
    """Test every run appends a JSON summary."""
    html = page_factory(payload_factory(pledge=10.0, txns=[{**TXN, "contributor_id": "ghost"}]))
    runner = make_runner(config, tmp_path, html)

    asyncio.run(runner.run())

    line = json.loads((tmp_path / "runs.jsonl").read_text().splitlines()[-1])
    assert line["run_id"] == runner.run_id
    assert line["pool_id"] == "pool123"
    assert line["ok"] is True
    assert line["payments_inserted"] == 2
    assert line["unmapped_contributor_ids"] == ["ghost"]


def test_payment_batch_failure_keeps_contributors(config, tmp_path, page_factory, payload_factory):
    """Test a failing payments batch is reported while contributors stay committed."""
    store = BrokenPaymentStore(config.SQLITE_PATH)
    html = page_factory(payload_factory(pledge=100.0, txns=[TXN], contributors={"abc": "Alice"}))

    report = asyncio.run(make_runner(config, tmp_path, html, store=store).run())

    assert not report.ok
    assert "payments" in report.batch_errors
    assert report.payments_inserted is None
    assert report.contributors_inserted == 2
    assert rows(config, "SELECT contributor_id FROM contributors ORDER BY contributor_id") == [("OWNER1",), ("abc",)]


def test_unexpected_error_is_logged_as_failed_run(config, tmp_path, page_factory, payload_factory):
    """Test a crash outside the error taxonomy still marks the run as failed."""
    store = CrashingStore(config.SQLITE_PATH)
    runner = make_runner(config, tmp_path, page_factory(payload_factory()), store=store)

    with pytest.raises(RuntimeError, match="unexpected"):
        asyncio.run(runner.run())

    line = json.loads((tmp_path / "runs.jsonl").read_text().splitlines()[-1])
    assert line["ok"] is False
    assert line["fatal_error"] == "RuntimeError: unexpected"


def test_run_log_failure_keeps_original_error(config, tmp_path):
    """Test a run log write error does not mask the fetch error."""
    transport = httpx.MockTransport(lambda request: httpx.Response(404, text="nope"))
    runner = SyncRunner(
        config,
        store=SQLiteStore(config.SQLITE_PATH),
        fetcher=FetchClient(config, transport=transport),
        run_log=UnwritableRunLog(tmp_path / "runs.jsonl"),
    )

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(runner.run())
    assert excinfo.value.status_code == 404
