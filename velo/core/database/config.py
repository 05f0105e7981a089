"""SQLite engine settings, overridable through ``VELO_DB_*`` variables."""

import os
from dataclasses import dataclass, field
from typing import Optional

JOURNAL_MODES = {"WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY"}
SYNCHRONOUS_LEVELS = {"OFF", "NORMAL", "FULL", "EXTRA"}


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


@dataclass
class DatabaseConfig:
    """Settings for the queue database and its transactions."""

    journal_mode: str = field(default_factory=lambda: os.getenv("VELO_DB_JOURNAL_MODE", "WAL"))
    synchronous: str = field(default_factory=lambda: os.getenv("VELO_DB_SYNCHRONOUS", "NORMAL"))
    busy_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("VELO_DB_BUSY_TIMEOUT_MS", "5000"))
    )

    # Seconds
    connect_timeout: float = field(default_factory=lambda: _env_float("VELO_DB_CONNECT_TIMEOUT", "30.0"))
    transaction_timeout: float = field(
        default_factory=lambda: _env_float("VELO_DB_TRANSACTION_TIMEOUT", "60.0")
    )
    slow_transaction_threshold: float = field(
        default_factory=lambda: _env_float("VELO_DB_SLOW_TRANSACTION_THRESHOLD", "1.0")
    )

    echo: bool = field(
        default_factory=lambda: os.getenv("VELO_DB_ECHO", "false").lower() == "true"
    )

    def __post_init__(self):
        self.journal_mode = self.journal_mode.upper()
        self.synchronous = self.synchronous.upper()

        if self.journal_mode not in JOURNAL_MODES:
            raise ValueError(f"journal_mode must be one of {sorted(JOURNAL_MODES)}")
        if self.synchronous not in SYNCHRONOUS_LEVELS:
            raise ValueError(f"synchronous must be one of {sorted(SYNCHRONOUS_LEVELS)}")
        if self.busy_timeout_ms < 0:
            raise ValueError("busy_timeout_ms must be >= 0")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0")
        if self.transaction_timeout <= 0:
            raise ValueError("transaction_timeout must be > 0")

    @property
    def pragmas(self) -> list[str]:
        """PRAGMA statements run on every new connection."""
        return [
            f"PRAGMA journal_mode={self.journal_mode}",
            f"PRAGMA synchronous={self.synchronous}",
            f"PRAGMA busy_timeout={self.busy_timeout_ms}",
        ]


_config: Optional[DatabaseConfig] = None


def get_config() -> DatabaseConfig:
    """Shared settings, read from the environment on first use."""
    global _config
    if _config is None:
        _config = DatabaseConfig()

    return _config
