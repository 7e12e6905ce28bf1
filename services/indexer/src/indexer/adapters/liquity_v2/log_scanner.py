"""Chunked eth_getLogs scanning for Liquity v2 stability pool events."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from services.indexer.src.indexer.adapters.liquity_v2.abis import (
    DEPOSIT_UPDATED_EVENT_ABI,
    LIQUIDATION_EVENT_ABI,
    TRANSFER_EVENT_ABI,
)
from services.indexer.src.indexer.adapters.liquity_v2.config import (
    LIQUIDATION,
    SP_DEPOSIT_UPDATED,
    TRANSFER,
    ZERO_ADDRESS,
    ProtocolConfig,
)
from services.indexer.src.indexer.adapters.liquity_v2.rpc import (
    RawLog,
    RpcClient,
    address_topic,
)
from services.indexer.src.indexer.adapters.liquity_v2.transformer import (
    transform_deposit_updated,
    transform_interest_reward,
    transform_liquidation,
)
from services.indexer.src.indexer.domain.models import EventCheckpoint, ScanResult

logger = logging.getLogger(__name__)

# Node providers cap the block range of a single eth_getLogs call
LOGS_BLOCK_CHUNK = 9000
TIMESTAMP_WORKERS = 8


@dataclass(frozen=True)
class EventSpec:
    """How to query and normalize one event kind."""

    event_abi: dict[str, Any]
    addresses: Callable[[ProtocolConfig], list[str]]
    transform: Callable[[RawLog, ProtocolConfig, int | None], Any]
    topics: Callable[[ProtocolConfig], list[Any]] | None = None
    accept: Callable[[RawLog, ProtocolConfig], bool] | None = None


def _is_pool_mint(log: RawLog, config: ProtocolConfig) -> bool:
    sender = str(log.args.get("from", ""))
    recipient = str(log.args.get("to", ""))
    return (
        sender.lower() == ZERO_ADDRESS
        and config.branch_for_stability_pool(recipient) is not None
    )


EVENT_SPECS: dict[str, EventSpec] = {
    SP_DEPOSIT_UPDATED: EventSpec(
        event_abi=DEPOSIT_UPDATED_EVENT_ABI,
        addresses=lambda c: c.stability_pools(),
        transform=transform_deposit_updated,
    ),
    # BOLD mints into a stability pool are interest distributions
    TRANSFER: EventSpec(
        event_abi=TRANSFER_EVENT_ABI,
        addresses=lambda c: [c.bold_token],
        transform=transform_interest_reward,
        topics=lambda c: [
            address_topic(ZERO_ADDRESS),
            [address_topic(a) for a in c.stability_pools()],
        ],
        accept=_is_pool_mint,
    ),
    LIQUIDATION: EventSpec(
        event_abi=LIQUIDATION_EVENT_ABI,
        addresses=lambda c: c.trove_managers(),
        transform=transform_liquidation,
    ),
}


def chunk_ranges(
    from_block: int, head: int, chunk_size: int = LOGS_BLOCK_CHUNK
) -> Iterator[tuple[int, int]]:
    """
    Yield contiguous inclusive (start, end) ranges covering [from_block, head].

    Each range spans at most chunk_size + 1 blocks and the last one ends at head.
    Nothing is yielded when from_block > head.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    cursor = from_block
    while cursor <= head:
        end = min(cursor + chunk_size, head)
        yield cursor, end
        cursor = end + 1


def start_block(checkpoint: EventCheckpoint | None, origin_block: int) -> int:
    """First block not yet ingested for a kind."""
    if checkpoint is None:
        return origin_block
    return checkpoint.to_block + 1


class LogScanner:
    """Walks [from_block, head] in fixed-size chunks, one event kind at a time."""

    def __init__(
        self,
        rpc: RpcClient,
        config: ProtocolConfig,
        chunk_size: int = LOGS_BLOCK_CHUNK,
        timestamp_workers: int = TIMESTAMP_WORKERS,
    ):
        self.rpc = rpc
        self.config = config
        self.chunk_size = chunk_size
        self.timestamp_workers = timestamp_workers

    def scan(self, event_type: str, from_block: int) -> ScanResult:
        """
        Fetch and normalize every log of one kind from from_block to the head.

        Args:
            event_type: One of SP_DEPOSIT_UPDATED, TRANSFER, LIQUIDATION
            from_block: First block to scan (inclusive)

        Returns:
            ScanResult whose to_block is the head read at the start of the scan,
            or None if from_block was already past the head

        Raises:
            ValueError: If event_type is unknown
            TransformationError: If a log comes from an unconfigured contract
        """
        if event_type not in EVENT_SPECS:
            raise ValueError(f"Unknown event type: {event_type}")
        spec = EVENT_SPECS[event_type]

        head = self.rpc.get_block_number()
        if from_block > head:
            logger.info(f"{event_type}: already at head {head}, nothing to scan")
            return ScanResult(records=[], from_block=from_block, to_block=None)

        addresses = spec.addresses(self.config)
        topics = spec.topics(self.config) if spec.topics else None

        raw_logs: list[RawLog] = []
        for start, end in chunk_ranges(from_block, head, self.chunk_size):
            chunk = self.rpc.get_logs(addresses, spec.event_abi, start, end, topics)
            if spec.accept is not None:
                chunk = [log for log in chunk if spec.accept(log, self.config)]
            logger.debug(f"{event_type}: {len(chunk)} logs in blocks {start}-{end}")
            raw_logs.extend(chunk)

        raw_logs.sort(key=lambda log: (log.block_number, log.log_index))
        timestamps = self.resolve_timestamps({log.block_number for log in raw_logs})

        records = [
            spec.transform(log, self.config, timestamps.get(log.block_number))
            for log in raw_logs
        ]
        logger.info(
            f"{event_type}: scanned blocks {from_block}-{head}, found {len(records)} events"
        )
        return ScanResult(records=records, from_block=from_block, to_block=head)

    def resolve_timestamps(self, block_numbers: set[int]) -> dict[int, int | None]:
        """
        Look up each block's timestamp once, concurrently.

        A failed lookup maps that block to None and does not affect the others.
        """
        if not block_numbers:
            return {}

        blocks = sorted(block_numbers)
        with ThreadPoolExecutor(max_workers=self.timestamp_workers) as executor:
            results = list(executor.map(self._timestamp_or_none, blocks))
        return dict(zip(blocks, results))

    def _timestamp_or_none(self, block_number: int) -> int | None:
        try:
            return self.rpc.get_block_timestamp(block_number)
        except Exception as e:
            logger.warning(f"Failed to get timestamp for block {block_number}: {e}")
            return None
