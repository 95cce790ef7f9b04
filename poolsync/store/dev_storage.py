"""DEV / dry-run storage: save snapshot and planned rows to data/dev/ for inspection."""
import gzip
import logging
from pathlib import Path
from typing import Optional

import orjson

from poolsync.config import DATA_DIR
from poolsync.parse.models import CampaignSnapshot
from poolsync.reconcile.engine import ReconcileResult

logger = logging.getLogger(__name__)

DEV_DIR = DATA_DIR / "dev"


class DevStorage:
    """Stores what a run saw and what it would write."""

    def __init__(self, dev_dir: Path = DEV_DIR):
        self.dev_dir = dev_dir
        self.dev_dir.mkdir(parents=True, exist_ok=True)

    def save_run(
        self,
        snapshot: CampaignSnapshot,
        result: ReconcileResult,
        owner_recorded_sum: float,
        html_content: Optional[str] = None,
    ) -> Path:
        """Save snapshot.json, plan.json and optionally page.html.gz for a pool."""
        pool_dir = self.dev_dir / snapshot.pool_id
        pool_dir.mkdir(exist_ok=True)

        snapshot_path = pool_dir / "snapshot.json"
        snapshot_path.write_bytes(
            orjson.dumps(snapshot.model_dump(mode="json"), option=orjson.OPT_INDENT_2)
        )

        plan = {
            "owner_recorded_sum": owner_recorded_sum,
            "owner_remainder": result.owner_remainder,
            "owner_payment": result.owner_payment.to_row() if result.owner_payment else None,
            "contributors": [c.to_row() for c in result.contributors],
            "payments": [p.to_row() for p in result.payments],
            "unmapped_contributor_ids": result.unmapped_contributor_ids,
        }
        plan_path = pool_dir / "plan.json"
        plan_path.write_bytes(orjson.dumps(plan, option=orjson.OPT_INDENT_2))
        logger.info(f"Saved snapshot and plan to {pool_dir}")

        if html_content:
            html_path = pool_dir / "page.html.gz"
            with gzip.open(html_path, "wt", encoding="utf-8") as f:
                f.write(html_content)
            logger.debug(f"Saved HTML to {html_path}")

        return pool_dir
