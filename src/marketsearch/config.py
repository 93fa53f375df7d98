"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_ES_URL = "http://localhost:9200"
DEFAULT_DB_PATH = Path("data/marketsearch.db")


@dataclass(slots=True)
class AppConfig:
    es_url: str = DEFAULT_ES_URL
    db_path: Path | None = None
    bulk_wait_ms: int = 5000
    page_size: int = 10
    refresh: str = "wait_for"
    request_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = DEFAULT_DB_PATH

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a config from ``MARKETSEARCH_*`` environment variables."""
        config = cls()
        es_url = os.getenv("MARKETSEARCH_ES_URL", "").strip()
        if es_url:
            config.es_url = es_url
        db_path = os.getenv("MARKETSEARCH_DB", "").strip()
        if db_path:
            config.db_path = Path(db_path)
        bulk_wait = os.getenv("MARKETSEARCH_BULK_WAIT_MS", "").strip()
        if bulk_wait:
            config.bulk_wait_ms = int(bulk_wait)
        return config

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = DEFAULT_DB_PATH
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
