"""
Liquity v2 stability pool events ingestion job.

Scans DepositUpdated, BOLD mint (interest reward) and Liquidation logs from
the chain and stores them in the ledger tables. Each event kind resumes from
its checkpoint in event_query_state, so re-running never re-scans ingested
blocks, and re-delivered logs are skipped by the (transaction_hash, log_index)
key.

Usage:
    python -m services.indexer.src.indexer.jobs.ingest_events
    python -m services.indexer.src.indexer.jobs.ingest_events --event-type LIQUIDATION
"""
import argparse
import logging
import sys
from typing import Any, Callable, Sequence

from services.indexer.src.indexer.adapters.liquity_v2.config import (
    EVENT_TYPES,
    LIQUIDATION,
    SP_DEPOSIT_UPDATED,
    TRANSFER,
    ProtocolConfig,
    get_default_config,
    require_rpc_url,
)
from services.indexer.src.indexer.adapters.liquity_v2.log_scanner import LogScanner, start_block
from services.indexer.src.indexer.adapters.liquity_v2.rpc import RpcClient, Web3RpcClient
from services.indexer.src.indexer.config import settings
from services.indexer.src.indexer.db.checkpoint_repository import CheckpointRepository
from services.indexer.src.indexer.db.engine import get_engine, init_db
from services.indexer.src.indexer.db.events_repository import EventsRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _inserter(repo: EventsRepository, event_type: str) -> Callable[[Sequence[Any]], int]:
    inserters = {
        SP_DEPOSIT_UPDATED: repo.insert_deposit_events,
        TRANSFER: repo.insert_interest_rewards,
        LIQUIDATION: repo.insert_liquidations,
    }
    if event_type not in inserters:
        raise ValueError(f"Unknown event type: {event_type}")
    return inserters[event_type]


def ingest_event_type(
    scanner: LogScanner,
    events_repo: EventsRepository,
    checkpoints: CheckpointRepository,
    event_type: str,
    origin_block: int,
) -> int:
    """
    Ingest all new events of one kind, then advance its checkpoint.

    The checkpoint moves only after the batch is written, and also when the
    batch is empty (the range was still scanned). If the insert raises, the
    checkpoint is left where it was and the next run retries the same range.

    Args:
        scanner: LogScanner instance
        events_repo: EventsRepository instance
        checkpoints: CheckpointRepository instance
        event_type: Event kind to ingest
        origin_block: First block to scan when the kind has no checkpoint

    Returns:
        Number of events inserted
    """
    insert = _inserter(events_repo, event_type)
    checkpoint = checkpoints.get_checkpoint(event_type)
    from_block = start_block(checkpoint, origin_block)

    logger.info(f"Ingesting {event_type} events, starting from block {from_block}")

    result = scanner.scan(event_type, from_block)
    if not result.covered:
        return 0

    inserted = insert(result.records)
    logger.info(
        f"{event_type}: fetched {len(result.records)}, inserted {inserted} "
        f"(blocks {result.from_block}-{result.to_block})"
    )

    checkpoints.advance_checkpoint(event_type, result.from_block, result.to_block)
    return inserted


def ingest_all_events(
    event_types: list[str] | None = None,
    database_url: str | None = None,
    rpc: RpcClient | None = None,
    config: ProtocolConfig | None = None,
) -> dict[str, int]:
    """
    Ingest every configured event kind.

    Args:
        event_types: Kinds to ingest (default: all)
        database_url: Optional database URL override
        rpc: Optional RPC client (default: Web3RpcClient on settings.rpc_url)
        config: Optional protocol config (default: settings.contracts_file)

    Returns:
        Dict mapping event_type to count of events inserted (-1 on failure)
    """
    if rpc is None:
        require_rpc_url()
        rpc = Web3RpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    config = config or get_default_config()

    engine = get_engine(database_url)
    init_db(engine)

    scanner = LogScanner(
        rpc,
        config,
        chunk_size=settings.logs_block_chunk,
        timestamp_workers=settings.timestamp_workers,
    )
    events_repo = EventsRepository(engine)
    checkpoints = CheckpointRepository(engine)

    types_to_ingest = event_types if event_types else EVENT_TYPES
    results: dict[str, int] = {}

    for event_type in types_to_ingest:
        try:
            results[event_type] = ingest_event_type(
                scanner, events_repo, checkpoints, event_type, config.origin_block
            )
        except Exception as e:
            logger.error(f"Failed to ingest {event_type}: {e}", exc_info=True)
            results[event_type] = -1  # Indicate failure

    return results


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Ingest Liquity v2 stability pool events from the chain"
    )
    parser.add_argument(
        "--event-type",
        type=str,
        choices=EVENT_TYPES,
        help="Specific event type to ingest (default: all)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    event_types = [args.event_type] if args.event_type else None

    try:
        results = ingest_all_events(
            event_types=event_types,
            database_url=args.database_url,
        )
        logger.info("Ingestion complete:")
        for event_type, count in results.items():
            status = f"{count} events" if count >= 0 else "FAILED"
            logger.info(f"  {event_type}: {status}")
        return 0 if all(c >= 0 for c in results.values()) else 1
    except Exception as e:
        logger.error(f"Ingestion failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
