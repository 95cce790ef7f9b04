"""SQLite store for contributors and payments."""
import logging
import sqlite3
from pathlib import Path
from typing import Sequence

import aiosqlite

from poolsync.errors import PersistenceError
from poolsync.parse.models import Contributor, Payment

logger = logging.getLogger(__name__)


class SQLiteStore:
    """Append-only contributor/payment store backed by a local SQLite file."""

    def __init__(self, db_path: Path, contributors_table: str = "contributors", payments_table: str = "payments"):
        self.db_path = Path(db_path)
        self.contributors_table = contributors_table
        self.payments_table = payments_table

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.payments_table} (
                        id TEXT NOT NULL UNIQUE,
                        date DATE NOT NULL,
                        amount REAL NOT NULL,
                        contributor_id TEXT NOT NULL
                    )
                    """
                )
                await db.execute(
                    f"""
                    CREATE INDEX IF NOT EXISTS idx_{self.payments_table}_contributor
                    ON {self.payments_table}(contributor_id)
                    """
                )
                await db.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.contributors_table} (
                        contributor_id TEXT PRIMARY KEY,
                        full_name TEXT
                    )
                    """
                )
                await db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not create tables: {e}", batch="schema") from e
        logger.info(f"SQLite store initialized at {self.db_path}")

    async def current_owner_recorded_sum(self, owner_id: str) -> float:
        """Sum of all stored payment amounts for a contributor (0.0 if none)."""
        if not self.db_path.exists():
            return 0.0
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    f"SELECT COALESCE(SUM(amount), 0.0) FROM {self.payments_table} WHERE contributor_id = ?",
                    (owner_id,),
                )
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read owner payments: {e}", batch="payments") from e
        return float(row[0]) if row else 0.0

    async def _insert_missing(self, batch: str, sql: str, rows: list[tuple]) -> int:
        inserted = 0
        try:
            async with aiosqlite.connect(self.db_path) as db:
                for params in rows:
                    cursor = await db.execute(sql, params)
                    inserted += cursor.rowcount
                await db.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite insert into {batch} failed: {e}")
            raise PersistenceError(f"Insert into {batch} failed: {e}", batch=batch) from e

        skipped = len(rows) - inserted
        if skipped:
            logger.debug(f"{skipped} {batch} rows already present, left unchanged")
        return inserted

    async def upsert_contributors(self, contributors: Sequence[Contributor]) -> int:
        """Insert contributors that are not stored yet. Existing names are kept."""
        if not contributors:
            return 0
        sql = (
            f"INSERT INTO {self.contributors_table} (contributor_id, full_name) VALUES (?, ?) "
            f"ON CONFLICT(contributor_id) DO NOTHING"
        )
        rows = [(c.contributor_id, c.full_name) for c in contributors]
        return await self._insert_missing("contributors", sql, rows)

    async def upsert_payments(self, payments: Sequence[Payment]) -> int:
        """Insert payments whose id is not stored yet."""
        if not payments:
            return 0
        sql = (
            f"INSERT INTO {self.payments_table} (id, date, amount, contributor_id) VALUES (?, ?, ?, ?) "
            f"ON CONFLICT(id) DO NOTHING"
        )
        rows = [(p.id, p.date.isoformat(), p.amount, p.contributor_id) for p in payments]
        return await self._insert_missing("payments", sql, rows)

