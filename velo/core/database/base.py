"""Async SQLite engine construction for the queue database."""

from pathlib import Path
from typing import Optional

from sqlalchemy import MetaData, event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from velo.core.database.config import DatabaseConfig, get_config
from velo.utils.logging import get_logger

logger = get_logger(__name__)

# Constraint names are deterministic so the schema is identical on every install
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "pk": "pk_%(table_name)s",
    }
)


def create_engine(db_path: Path, config: Optional[DatabaseConfig] = None) -> AsyncEngine:
    """Create an aiosqlite-backed engine for ``db_path``.

    The parent directory is created if needed and the configured pragmas
    are applied to each new DBAPI connection.
    """
    config = config or get_config()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=config.echo,
        connect_args={"timeout": config.connect_timeout},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def apply_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        for pragma in config.pragmas:
            cursor.execute(pragma)
        cursor.close()

    logger.debug(
        f"Engine for {db_path} (journal={config.journal_mode}, synchronous={config.synchronous})"
    )
    return engine


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close every pooled connection of ``engine``."""
    await engine.dispose()
    logger.debug("Database engine disposed")
