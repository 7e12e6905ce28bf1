"""
Stability pool snapshot job.

Reads getTotalBoldDeposits() and getCollBalance() of every branch's
StabilityPool at one block and stores the result in sp_deposit_snapshots.
Uses a single JSON-RPC batch when the endpoint supports it and falls back to
sequential eth_calls otherwise.

Usage:
    python -m services.indexer.src.indexer.jobs.ingest_snapshots
    python -m services.indexer.src.indexer.jobs.ingest_snapshots --block 22500000
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
from services.indexer.src.indexer.adapters.liquity_v2.snapshot_sampler import SnapshotSampler
from services.indexer.src.indexer.config import settings
from services.indexer.src.indexer.db.engine import get_engine, init_db
from services.indexer.src.indexer.db.events_repository import EventsRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def ingest_snapshots(
    block_number: int | None = None,
    database_url: str | None = None,
    rpc: RpcClient | None = None,
    config: ProtocolConfig | None = None,
) -> int:
    """
    Sample every branch once and store the snapshots.

    Args:
        block_number: Block to sample at (default: chain head)
        database_url: Optional database URL override
        rpc: Optional RPC client (default: Web3RpcClient on settings.rpc_url)
        config: Optional protocol config (default: settings.contracts_file)

    Returns:
        Number of snapshots inserted (0 if that block was already sampled)
    """
    if rpc is None:
        require_rpc_url()
        rpc = Web3RpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    config = config or get_default_config()

    engine = get_engine(database_url)
    init_db(engine)

    snapshots = SnapshotSampler(rpc, config).sample(block_number)
    for s in snapshots:
        logger.info(
            f"Branch {s.branch_id} at block {s.block_number}: "
            f"deposits={s.total_bold_deposits} coll={s.total_coll_balance}"
        )

    inserted = EventsRepository(engine).insert_snapshots(snapshots)
    logger.info(f"Stored {inserted} of {len(snapshots)} snapshots")
    return inserted


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Sample Liquity v2 stability pool totals"
    )
    parser.add_argument(
        "--block",
        type=int,
        default=None,
        help="Block number to sample at (default: latest)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        ingest_snapshots(block_number=args.block, database_url=args.database_url)
        return 0
    except Exception as e:
        logger.error(f"Snapshot ingestion failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
