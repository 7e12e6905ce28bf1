"""JSON-RPC access to the chain: block data, logs and contract reads."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from web3 import Web3
from web3._utils.events import get_event_data
from web3.providers.base import JSONBaseProvider

from services.indexer.src.indexer.adapters.liquity_v2.abis import event_signature

logger = logging.getLogger(__name__)


@dataclass
class RawLog:
    """A decoded log as returned by eth_getLogs."""

    address: str
    event: str
    args: dict[str, Any]
    block_number: int
    transaction_hash: str
    log_index: int


@dataclass(frozen=True)
class ContractCall:
    """A no-argument uint256 view call."""

    address: str
    function_name: str

    @property
    def selector(self) -> str:
        return Web3.keccak(text=f"{self.function_name}()")[:4].to_0x_hex()


class RpcClient(ABC):
    @abstractmethod
    def get_block_number(self) -> int:
        ...

    @abstractmethod
    def get_block_timestamp(self, block_number: int) -> int:
        ...

    @abstractmethod
    def get_logs(
        self,
        addresses: Sequence[str],
        event_abi: dict[str, Any],
        from_block: int,
        to_block: int,
        topics: list[Any] | None = None,
    ) -> list[RawLog]:
        """
        Fetch and decode logs of one event emitted by any of addresses.

        Args:
            addresses: Emitting contracts
            event_abi: ABI of the event; topic0 is derived from it
            from_block: First block (inclusive)
            to_block: Last block (inclusive)
            topics: Filters for indexed arguments (topics[1:])
        """

    @abstractmethod
    def batch_call(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        """Issue all calls in one JSON-RPC batch. Raises if any call fails."""

    @abstractmethod
    def call(self, call: ContractCall, block_number: int) -> int:
        ...

    @abstractmethod
    def supports_batch(self) -> bool:
        ...


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte topic."""
    return "0x" + "0" * 24 + address.lower().removeprefix("0x")


class Web3RpcClient(RpcClient):
    """RpcClient backed by web3.py, over HTTP unless a provider is passed in."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        provider: JSONBaseProvider | None = None,
    ):
        if provider is None:
            provider = Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        self.w3 = Web3(provider)
        self._batch_supported: bool | None = None

    def get_block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def get_block_timestamp(self, block_number: int) -> int:
        return int(self.w3.eth.get_block(block_number)["timestamp"])

    def get_logs(
        self,
        addresses: Sequence[str],
        event_abi: dict[str, Any],
        from_block: int,
        to_block: int,
        topics: list[Any] | None = None,
    ) -> list[RawLog]:
        topic0 = Web3.keccak(text=event_signature(event_abi)).to_0x_hex()
        flt = {
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": [Web3.to_checksum_address(a) for a in addresses],
            "topics": [topic0, *(topics or [])],
        }
        logs = []
        for log in self.w3.eth.get_logs(flt):
            decoded = get_event_data(self.w3.codec, event_abi, log)
            logs.append(
                RawLog(
                    address=decoded["address"],
                    event=decoded["event"],
                    args=dict(decoded["args"]),
                    block_number=int(decoded["blockNumber"]),
                    transaction_hash=decoded["transactionHash"].to_0x_hex(),
                    log_index=int(decoded["logIndex"]),
                )
            )
        return logs

    def _call_params(self, call: ContractCall) -> dict[str, str]:
        return {"to": Web3.to_checksum_address(call.address), "data": call.selector}

    def _decode_uint(self, data: bytes) -> int:
        return int(self.w3.codec.decode(["uint256"], data)[0])

    def batch_call(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        with self.w3.batch_requests() as batch:
            for c in calls:
                batch.add(self.w3.eth.call(self._call_params(c), block_number))
            responses = batch.execute()

        if len(responses) != len(calls):
            raise RuntimeError(
                f"Batch returned {len(responses)} results for {len(calls)} calls"
            )
        return [self._decode_uint(r) for r in responses]

    def call(self, call: ContractCall, block_number: int) -> int:
        return self._decode_uint(self.w3.eth.call(self._call_params(call), block_number))

    def supports_batch(self) -> bool:
        """Try one single-request batch and cache whether it worked."""
        if self._batch_supported is None:
            try:
                with self.w3.batch_requests() as batch:
                    batch.add(self.w3.eth.get_block("latest"))
                    batch.execute()
                self._batch_supported = True
            except Exception as e:
                logger.warning(f"JSON-RPC batching unavailable: {e}")
                self._batch_supported = False
        return self._batch_supported


@dataclass
class MockRpcClient(RpcClient):
    """Mock client for testing without network calls."""

    head: int = 0
    timestamps: dict[int, int] = field(default_factory=dict)
    logs: dict[str, list[RawLog]] = field(default_factory=dict)
    # (address, function_name) -> value
    call_results: dict[tuple[str, str], int] = field(default_factory=dict)
    batch_enabled: bool = True
    fail_batch: bool = False
    failing_timestamp_blocks: set[int] = field(default_factory=set)
    call_history: list[tuple] = field(default_factory=list)

    def add_log(self, log: RawLog) -> None:
        self.logs.setdefault(log.event, []).append(log)

    def set_call_result(self, address: str, function_name: str, value: int) -> None:
        self.call_results[(address.lower(), function_name)] = value

    def get_block_number(self) -> int:
        self.call_history.append(("get_block_number",))
        return self.head

    def get_block_timestamp(self, block_number: int) -> int:
        self.call_history.append(("get_block_timestamp", block_number))
        if block_number in self.failing_timestamp_blocks:
            raise ConnectionError(f"mock timestamp failure for block {block_number}")
        if block_number in self.timestamps:
            return self.timestamps[block_number]
        # Deterministic 12s blocks
        return 1_700_000_000 + block_number * 12

    def get_logs(
        self,
        addresses: Sequence[str],
        event_abi: dict[str, Any],
        from_block: int,
        to_block: int,
        topics: list[Any] | None = None,
    ) -> list[RawLog]:
        self.call_history.append(("get_logs", event_abi["name"], from_block, to_block))
        wanted = {a.lower() for a in addresses}
        return [
            log
            for log in self.logs.get(event_abi["name"], [])
            if log.address.lower() in wanted and from_block <= log.block_number <= to_block
        ]

    def _result(self, call: ContractCall) -> int:
        return self.call_results.get((call.address.lower(), call.function_name), 0)

    def batch_call(self, calls: Sequence[ContractCall], block_number: int) -> list[int]:
        self.call_history.append(("batch_call", len(calls), block_number))
        if self.fail_batch:
            raise ConnectionError("mock batch failure")
        return [self._result(c) for c in calls]

    def call(self, call: ContractCall, block_number: int) -> int:
        self.call_history.append(("call", call.function_name, block_number))
        return self._result(call)

    def supports_batch(self) -> bool:
        return self.batch_enabled
