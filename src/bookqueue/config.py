"""Configuration management for bookqueue.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Share links
    share_base_url: str

    # Read retries (writes are attempted once)
    read_retry_max: int
    read_retry_delay: float  # seconds, multiplied by attempt number

    # Deferred intents across the sign-up redirect
    deferred_path: Path

    # Logging
    log_level: str

    # Enrichment
    openlibrary_timeout: int  # seconds

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "BOOKQUEUE_DB_PATH",
            str(Path.home() / ".bookqueue" / "bookqueue.db"),
        )
        deferred_path_str = os.environ.get(
            "BOOKQUEUE_DEFERRED_PATH",
            str(Path.home() / ".bookqueue" / "pending_intent.json"),
        )

        return cls(
            db_path=Path(db_path_str).expanduser(),
            share_base_url=os.environ.get(
                "BOOKQUEUE_SHARE_BASE_URL", "http://localhost:5173"
            ).rstrip("/"),
            read_retry_max=int(os.environ.get("BOOKQUEUE_READ_RETRY_MAX", "3")),
            read_retry_delay=float(os.environ.get("BOOKQUEUE_READ_RETRY_DELAY", "0.5")),
            deferred_path=Path(deferred_path_str).expanduser(),
            log_level=os.environ.get("BOOKQUEUE_LOG_LEVEL", "WARNING").upper(),
            openlibrary_timeout=int(os.environ.get("BOOKQUEUE_OPENLIBRARY_TIMEOUT", "10")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.read_retry_max < 1:
            errors.append("BOOKQUEUE_READ_RETRY_MAX must be at least 1")

        if self.read_retry_delay < 0:
            errors.append("BOOKQUEUE_READ_RETRY_DELAY cannot be negative")

        if not self.share_base_url.startswith(("http://", "https://")):
            errors.append(f"Share base URL must be http(s): {self.share_base_url}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
