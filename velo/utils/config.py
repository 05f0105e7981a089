"""Configuration manager for persistent settings stored as JSON."""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import FileSystemError, InvalidConfigError, MissingConfigError
from .logging import get_logger, log_call
from .paths import CONFIG_PATH, DATABASE_PATH

logger = get_logger(__name__)


class _Section(BaseModel):
    model_config = ConfigDict(validate_assignment=True)


class QueueConfig(_Section):
    """Pending-operation queue and drain settings."""

    max_retries: int = 10
    drain_interval_seconds: int = 30
    drain_on_reconnect: bool = True
    backoff_base_seconds: float = 2.0
    backoff_max_seconds: float = 300.0

    @field_validator("max_retries", "drain_interval_seconds")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


class QuickStepConfig(_Section):
    """Quick step settings."""

    seed_defaults: bool = True


class LoggingConfig(_Section):
    """Logging settings."""

    log_level: str = "INFO"


class DatabaseSettings(_Section):
    """Database location settings."""

    database_path: str = str(DATABASE_PATH)


class AppConfig(_Section):
    """Overall application configuration."""

    version: str = "0.1.0"
    queue: QueueConfig = Field(default_factory=QueueConfig)
    quick_steps: QuickStepConfig = Field(default_factory=QuickStepConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)


class ConfigManager:
    """Process-wide settings loaded from ``config.json``.

    The first construction decides the file; later ``ConfigManager()`` calls
    return the same instance. A missing file is written out with defaults.
    """

    _instance = None
    _initialized = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, config_path: Optional[Path] = None):
        if ConfigManager._initialized:
            return

        self.path = Path(config_path or CONFIG_PATH)
        self.config = self._load()
        ConfigManager._initialized = True
        logger.info(f"Configuration loaded from {self.path}")

    @classmethod
    def reset(cls) -> None:
        """Forget the shared instance so the next call reloads from disk."""
        cls._instance = None
        cls._initialized = False

    def _load(self) -> AppConfig:
        if not self.path.exists():
            logger.info(f"Writing default configuration to {self.path}")
            config = AppConfig()
            self._write(config)
            return config

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Cannot read configuration file {self.path}") from e

        try:
            return AppConfig.model_validate(json.loads(raw))
        except json.JSONDecodeError as e:
            logger.error(f"{self.path} is not valid JSON: {e}")
            raise InvalidConfigError(f"Configuration file is not valid JSON: {e}") from e
        except ValidationError as e:
            logger.error(f"{self.path} failed validation: {e}")
            raise InvalidConfigError(
                f"Configuration does not match the expected schema: {e.error_count()} error(s)",
                details={"errors": [err["loc"] for err in e.errors()]},
            ) from e

    def _write(self, config: Optional[AppConfig] = None) -> None:
        config = config or self.config
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Cannot write configuration file {self.path}: {e}") from e

    def _section_for(self, key_path: str) -> tuple[BaseModel, str]:
        """Resolve ``a.b.c`` to the model holding ``c`` and the name ``c``."""
        *parents, leaf = key_path.split(".")
        section: Any = self.config
        for name in parents:
            section = getattr(section, name, None)
            if not isinstance(section, BaseModel):
                raise MissingConfigError(f"Unknown configuration section '{name}' in '{key_path}'")
        if leaf not in type(section).model_fields:
            raise MissingConfigError(f"Unknown configuration key '{key_path}'")
        return section, leaf

    def get_config(self, key_path: str, default: Any = None) -> Any:
        """Read a value by dotted path, e.g. ``queue.max_retries``."""
        try:
            section, leaf = self._section_for(key_path)
        except MissingConfigError:
            return default
        return getattr(section, leaf)

    @log_call
    def set_config(self, key_path: str, value: Any, persist: bool = True) -> None:
        """Set a value by dotted path and optionally write the file.

        Raises:
            MissingConfigError: If the path does not name a setting
        """
        section, leaf = self._section_for(key_path)
        try:
            setattr(section, leaf, value)
        except ValidationError as e:
            raise InvalidConfigError(f"Invalid value for '{key_path}': {e}") from e

        if persist:
            self._write()
        logger.info(f"Config key '{key_path}' updated")

    @log_call
    def reset_to_defaults(self) -> None:
        logger.warning("Resetting configuration to defaults")
        self.config = AppConfig()
        self._write()
