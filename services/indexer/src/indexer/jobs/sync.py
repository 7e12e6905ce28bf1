"""
Full sync cycle: events, one snapshot, then a stats refresh.

Meant to be run on a schedule (e.g. cron every few minutes). Each step runs
even if an earlier one failed, so stats still refresh from whatever is stored.

Usage:
    python -m services.indexer.src.indexer.jobs.sync
"""
import argparse
import logging
import sys

from services.indexer.src.indexer.adapters.liquity_v2.config import (
    ProtocolConfig,
    get_default_config,
    require_rpc_url,
)
from services.indexer.src.indexer.adapters.liquity_v2.rpc import RpcClient, Web3RpcClient
from services.indexer.src.indexer.config import settings
from services.indexer.src.indexer.db.checkpoint_repository import CheckpointRepository
from services.indexer.src.indexer.db.engine import get_engine
from services.indexer.src.indexer.jobs.ingest_events import ingest_all_events
from services.indexer.src.indexer.jobs.ingest_snapshots import ingest_snapshots
from services.indexer.src.indexer.jobs.refresh_stats import refresh_stats

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def run_sync(
    database_url: str | None = None,
    rpc: RpcClient | None = None,
    config: ProtocolConfig | None = None,
) -> bool:
    """
    Run one cycle.

    Returns:
        True if every step succeeded
    """
    if rpc is None:
        require_rpc_url()
        rpc = Web3RpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    config = config or get_default_config()
    ok = True

    logger.info("--- EVENTS ---")
    event_results = ingest_all_events(database_url=database_url, rpc=rpc, config=config)
    for event_type, count in event_results.items():
        status = f"{count} events" if count >= 0 else "FAILED"
        logger.info(f"  {event_type}: {status}")
    ok = ok and all(c >= 0 for c in event_results.values())

    logger.info("--- SNAPSHOTS ---")
    try:
        ingest_snapshots(database_url=database_url, rpc=rpc, config=config)
    except Exception as e:
        logger.error(f"Snapshot ingestion failed: {e}", exc_info=True)
        ok = False

    logger.info("--- STATS ---")
    try:
        stats_results = refresh_stats(database_url=database_url, config=config)
        ok = ok and all(c >= 0 for c in stats_results.values())
    except Exception as e:
        logger.error(f"Stats refresh failed: {e}", exc_info=True)
        ok = False

    for checkpoint in CheckpointRepository(get_engine(database_url)).get_all_checkpoints():
        logger.info(f"  {checkpoint.event_type}: up to block {checkpoint.to_block}")

    return ok


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one full indexer sync cycle")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        return 0 if run_sync(database_url=args.database_url) else 1
    except Exception as e:
        logger.error(f"Sync failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
