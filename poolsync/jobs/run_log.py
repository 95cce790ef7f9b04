"""Append one JSON line per run for operators."""
from pathlib import Path

import aiofiles
import orjson

from poolsync.config import RUNS_LOG


class RunLogExporter:
    """Exports run reports to a JSONL file."""

    def __init__(self, path: Path = RUNS_LOG):
        self.path = path

    async def export(self, report: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = orjson.dumps(report).decode() + "\n"
        async with aiofiles.open(self.path, "a") as f:
            await f.write(line)
