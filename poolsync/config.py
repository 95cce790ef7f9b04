"""Configuration management from environment variables."""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
RUNS_LOG = DATA_DIR / "runs.jsonl"

STORE_BACKENDS = ("sqlite", "supabase")


class Config:
    """Application configuration.

    Built once per run and handed to the fetcher, the store and the runner.
    """

    def __init__(self, env_file: Optional[Path] = None):
        # Load .env file (or an explicit one)
        load_dotenv(dotenv_path=env_file)

        # Pool
        self.POOL_ID: str | None = os.getenv("POOL_ID")
        self.POOL_BASE_URL: str = os.getenv("POOL_BASE_URL", "https://www.paypal.com/pools/c/")

        # Fetcher
        self.TIMEOUT: int = int(os.getenv("TIMEOUT", "20"))
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))

        # Store
        self.STORE_BACKEND: str = os.getenv("STORE_BACKEND", "sqlite")
        self.SQLITE_PATH: Path = Path(os.getenv("SQLITE_PATH", str(DATA_DIR / "poolsync.db")))
        self.SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
        self.SUPABASE_SERVICE_ROLE: str | None = os.getenv("SUPABASE_SERVICE_ROLE")
        self.CONTRIBUTORS_TABLE: str = os.getenv("CONTRIBUTORS_TABLE", "contributors")
        self.PAYMENTS_TABLE: str = os.getenv("PAYMENTS_TABLE", "payments")

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def pool_url(self) -> str:
        """Public page of the configured pool."""
        return f"{self.POOL_BASE_URL}{self.POOL_ID}"

    def validate(self) -> None:
        """Validate required configuration."""
        errors = []
        if not self.POOL_ID:
            errors.append("POOL_ID is required")
        if self.STORE_BACKEND not in STORE_BACKENDS:
            errors.append(f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}")
        if self.STORE_BACKEND == "supabase":
            if not self.SUPABASE_URL:
                errors.append("SUPABASE_URL is required")
            if not self.SUPABASE_SERVICE_ROLE:
                errors.append("SUPABASE_SERVICE_ROLE is required")
        if self.TIMEOUT <= 0:
            errors.append("TIMEOUT must be positive")
        if self.MAX_RETRIES < 1:
            errors.append("MAX_RETRIES must be at least 1")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")
