"""Pick the store backend from configuration."""
from poolsync.config import Config
from poolsync.store.sqlite_store import SQLiteStore


def build_store(config: Config):
    """Return the configured store (SQLiteStore or SupabaseStore)."""
    if config.STORE_BACKEND == "supabase":
        from poolsync.store.supabase_store import SupabaseStore

        return SupabaseStore(config)
    if config.STORE_BACKEND == "sqlite":
        return SQLiteStore(
            config.SQLITE_PATH,
            contributors_table=config.CONTRIBUTORS_TABLE,
            payments_table=config.PAYMENTS_TABLE,
        )
    raise ValueError(f"Unknown store backend: {config.STORE_BACKEND}")
