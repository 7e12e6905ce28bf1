"""
Block timestamp backfill job.

Ledger rows keep a NULL timestamp when the block lookup failed during
ingestion, which leaves them outside every APY window. This job fetches each
affected block once and fills the timestamp in.

Usage:
    python -m services.indexer.src.indexer.jobs.backfill_timestamps
"""
import argparse
import logging
import sys

from services.indexer.src.indexer.adapters.liquity_v2.rpc import RpcClient, Web3RpcClient
from services.indexer.src.indexer.adapters.liquity_v2.config import require_rpc_url
from services.indexer.src.indexer.config import settings
from services.indexer.src.indexer.db.engine import get_engine, init_db
from services.indexer.src.indexer.db.events_repository import LEDGER_TABLES, EventsRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def backfill_table(rpc: RpcClient, repo: EventsRepository, kind: str) -> int:
    """
    Fill missing timestamps in one ledger table.

    Returns:
        Number of rows updated
    """
    blocks = repo.get_blocks_missing_timestamps(kind)
    if not blocks:
        logger.info(f"{kind}: no rows missing timestamps")
        return 0

    logger.info(f"{kind}: {len(blocks)} blocks missing timestamps")
    updated = 0
    failed = 0
    for block_number in blocks:
        try:
            ts = rpc.get_block_timestamp(block_number)
        except Exception as e:
            logger.warning(f"{kind}: failed to get timestamp for block {block_number}: {e}")
            failed += 1
            continue
        updated += repo.set_block_timestamp(kind, block_number, ts)

    logger.info(f"{kind}: updated {updated} rows, {failed} blocks failed")
    return updated


def backfill_timestamps(
    database_url: str | None = None,
    rpc: RpcClient | None = None,
) -> dict[str, int]:
    """
    Returns:
        Dict mapping ledger table kind to rows updated
    """
    if rpc is None:
        require_rpc_url()
        rpc = Web3RpcClient(settings.rpc_url, timeout=settings.rpc_timeout)

    engine = get_engine(database_url)
    init_db(engine)
    repo = EventsRepository(engine)

    return {kind: backfill_table(rpc, repo, kind) for kind in LEDGER_TABLES}


def main() -> int:
    parser = argparse.ArgumentParser(description="Fill missing block timestamps in the ledger")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        results = backfill_timestamps(database_url=args.database_url)
        for kind, count in results.items():
            logger.info(f"  {kind}: {count} rows")
        return 0
    except Exception as e:
        logger.error(f"Timestamp backfill failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
