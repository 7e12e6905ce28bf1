import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from services.indexer.src.indexer.config import settings

logger = logging.getLogger(__name__)


def get_engine(database_url: str | None = None) -> Engine:
    """Engine for the indexer database (settings.database_url by default)."""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, echo=False)
    # Jobs run from cron against a server that may have dropped idle connections
    return create_engine(url, echo=False, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create any missing ledger, checkpoint and stats tables."""
    from services.indexer.src.indexer.db.models import metadata

    metadata.create_all(engine)
    logger.debug(f"Schema ready: {', '.join(sorted(metadata.tables))}")
