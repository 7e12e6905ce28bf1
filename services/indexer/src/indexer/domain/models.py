from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class EventCheckpoint:
    """Last block range fully ingested for one event kind."""

    event_type: str
    from_block: int
    to_block: int
    updated_at: Optional[datetime] = None


@dataclass
class DepositUpdatedRecord:
    """Latest known deposit of a depositor in one branch, as of block_number."""

    depositor: str
    deposit_amount: int
    stashed_coll: int
    block_number: int
    block_timestamp: Optional[int]  # None if the block lookup failed
    transaction_hash: str
    log_index: int
    branch_id: int
    sp_address: str

    @property
    def id(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"


@dataclass
class InterestRewardRecord:
    """Mint of BOLD into a stability pool (interest distribution)."""

    branch_id: int
    stability_pool: str
    amount: int
    block_number: int
    block_timestamp: Optional[int]
    transaction_hash: str
    log_index: int

    @property
    def id(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"


@dataclass
class LiquidationRecord:
    branch_id: int
    trove_manager: str
    debt_offset_by_sp: int
    debt_redistributed: int
    bold_gas_compensation: int
    coll_gas_compensation: int
    coll_sent_to_sp: int
    coll_redistributed: int
    coll_surplus: int
    l_eth: int
    l_bold_debt: int
    price: int  # 1e18-scaled collateral price
    block_number: int
    block_timestamp: Optional[int]
    transaction_hash: str
    log_index: int

    @property
    def id(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"


@dataclass
class StabilityPoolSnapshot:
    branch_id: int
    stability_pool: str
    total_bold_deposits: int
    total_coll_balance: int
    block_number: int
    block_timestamp: int

    @property
    def id(self) -> str:
        return f"{self.branch_id}-{self.block_number}"


@dataclass
class BranchStats:
    branch_id: int
    branch_name: str
    sp_deposits: int = 0
    # Raw APY values, scaled by 1e18
    sp_apy: int = 0
    apy_avg: int = 0
    sp_apy_avg_1d: int = 0
    sp_apy_avg_7d: int = 0
    updated_at: Optional[datetime] = None


@dataclass
class GlobalStats:
    total_bold_supply: int = 0
    total_debt_pending: int = 0
    total_coll_value: int = 0
    total_sp_deposits: int = 0
    total_value_locked: int = 0
    max_sp_apy: int = 0
    created_at: Optional[datetime] = None


@dataclass
class Price:
    symbol: str
    price: Decimal


@dataclass
class DepositorPosition:
    depositor: str
    branch_id: int
    amount: int


@dataclass
class ScanResult(Generic[T]):
    """Records found by one scan and the block range it covered.

    to_block is None when the scan was a no-op (checkpoint already at head).
    """

    records: list[T]
    from_block: int
    to_block: Optional[int]

    @property
    def covered(self) -> bool:
        return self.to_block is not None


@dataclass
class ApyResult:
    branch_id: int
    period_start: int
    period_end: int
    total_interest: int = 0
    total_liquidation_value: int = 0
    avg_deposits: int = 0
    apy_raw: int = 0
    interest_rewards_count: int = 0
    liquidations_count: int = 0
    snapshots_count: int = 0
