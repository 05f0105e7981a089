"""Centralized path definitions for the Velo application.

Single source of truth for where the engine keeps its database, logs and
configuration on disk.
"""

from pathlib import Path

# Base application directory
VELO_DIR = Path.home() / ".velo"

# Subdirectories
DATA_DIR = VELO_DIR / "data"
LOGS_DIR = VELO_DIR / "logs"

# Specific files
DATABASE_PATH = DATA_DIR / "velo.db"
CONFIG_PATH = VELO_DIR / "config.json"
