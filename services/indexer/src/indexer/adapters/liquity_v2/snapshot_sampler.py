"""Point-in-time reads of stability pool totals."""

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from services.indexer.src.indexer.adapters.liquity_v2.abis import (
    GET_COLL_BALANCE,
    GET_TOTAL_BOLD_DEPOSITS,
)
from services.indexer.src.indexer.adapters.liquity_v2.config import ProtocolConfig
from services.indexer.src.indexer.adapters.liquity_v2.rpc import ContractCall, RpcClient
from services.indexer.src.indexer.domain.models import StabilityPoolSnapshot

logger = logging.getLogger(__name__)


class SnapshotReader(ABC):
    """Strategy for issuing a set of view calls pinned to one block."""

    def __init__(self, rpc: RpcClient):
        self.rpc = rpc

    @abstractmethod
    def read(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        ...


class BatchedSnapshotReader(SnapshotReader):
    """All calls in one all-or-nothing JSON-RPC batch."""

    def read(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        return self.rpc.batch_call(calls, block_number)


class SequentialSnapshotReader(SnapshotReader):
    """One eth_call per read, in order."""

    def read(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        return [self.rpc.call(c, block_number) for c in calls]


class FallbackSnapshotReader(SnapshotReader):
    """Try the primary reader; on any failure re-issue the calls with the fallback."""

    def __init__(self, primary: SnapshotReader, fallback: SnapshotReader):
        super().__init__(primary.rpc)
        self.primary = primary
        self.fallback = fallback

    def read(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        try:
            return self.primary.read(calls, block_number)
        except Exception as e:
            logger.warning(
                f"Batched snapshot read failed at block {block_number}, "
                f"falling back to sequential calls: {e}"
            )
            return self.fallback.read(calls, block_number)


def select_snapshot_reader(rpc: RpcClient) -> SnapshotReader:
    if rpc.supports_batch():
        return FallbackSnapshotReader(
            BatchedSnapshotReader(rpc), SequentialSnapshotReader(rpc)
        )
    logger.info("RPC endpoint does not support batching, using sequential reads")
    return SequentialSnapshotReader(rpc)


class SnapshotSampler:
    def __init__(
        self,
        rpc: RpcClient,
        config: ProtocolConfig,
        reader: SnapshotReader | None = None,
    ):
        self.rpc = rpc
        self.config = config
        self.reader = reader or select_snapshot_reader(rpc)

    def build_calls(self) -> list[ContractCall]:
        """Two calls per branch: total deposits, then collateral balance."""
        calls = []
        for branch in self.config.branches:
            calls.append(ContractCall(branch.stability_pool, GET_TOTAL_BOLD_DEPOSITS))
            calls.append(ContractCall(branch.stability_pool, GET_COLL_BALANCE))
        return calls

    def sample(self, block_number: int | None = None) -> list[StabilityPoolSnapshot]:
        """
        Read every branch's pool totals at one block.

        Args:
            block_number: Block to read at; defaults to the current head

        Returns:
            One snapshot per branch, all stamped with the same block
        """
        if block_number is None:
            block_number = self.rpc.get_block_number()

        calls = self.build_calls()
        values = self.reader.read(calls, block_number)
        if len(values) != len(calls):
            raise RuntimeError(
                f"Expected {len(calls)} snapshot values, got {len(values)}"
            )

        block_timestamp = self.rpc.get_block_timestamp(block_number)

        snapshots = []
        for i, branch in enumerate(self.config.branches):
            snapshots.append(
                StabilityPoolSnapshot(
                    branch_id=branch.branch_id,
                    stability_pool=branch.stability_pool,
                    total_bold_deposits=values[2 * i],
                    total_coll_balance=values[2 * i + 1],
                    block_number=block_number,
                    block_timestamp=block_timestamp,
                )
            )
        return snapshots
