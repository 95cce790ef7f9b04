"""Shared fixtures: pool payloads, pages and configuration."""
import json

import pytest

from poolsync.config import Config

POOL_ID = "pool123"
OWNER_ID = "OWNER1"


@pytest.fixture
def payload_factory():
    """Build a store payload shaped like the pool page's embedded JSON."""

    def build(
        pledge=100.0,
        txns=None,
        contributors=None,
        pool_id=POOL_ID,
        owner_id=OWNER_ID,
        owner_name="Olivia Owner",
        title="Summer trip",
    ) -> dict:
        return {
            "campaign": {
                pool_id: {
                    "title": title,
                    "owner": {"id": owner_id, "full_name": owner_name},
                    "pledge": pledge,
                }
            },
            "contributors": {
                "map": {cid: {"full_name": name} for cid, name in (contributors or {}).items()}
            },
            "txns": {"list": list(txns or [])},
        }

    return build


@pytest.fixture
def page_factory():
    """Wrap a payload in an HTML page with the store script tag."""

    def build(payload: dict) -> str:
        return (
            "<html><head><title>Pool</title></head><body>"
            '<div id="app"></div>'
            f'<script type="application/json" id="store">{json.dumps(payload)}</script>'
            "</body></html>"
        )

    return build


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Config pointing at a temporary SQLite file, without retries."""
    monkeypatch.setenv("POOL_ID", POOL_ID)
    monkeypatch.setenv("STORE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "pool.db"))
    monkeypatch.setenv("MAX_RETRIES", "1")
    monkeypatch.setenv("POOL_BASE_URL", "https://pools.test/c/")
    return Config(env_file=tmp_path / "missing.env")
