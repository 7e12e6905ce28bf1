"""Response models for the read model.

uint256 quantities are string-encoded so no consumer has to round them
through a float. APY figures appear twice: the raw 1e18-scaled integer and
its two-decimal percentage rendering.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class BranchStatsResponse(BaseModel):
    """Current stats of one branch."""

    branch_id: int
    branch_name: str
    sp_deposits: str
    sp_apy: str
    apy_avg: str
    sp_apy_avg_1d: str
    sp_apy_avg_7d: str
    sp_apy_raw: str
    updated_at: datetime | None = None


class StatsResponse(BaseModel):
    """Protocol-wide stats with per-branch and price maps."""

    total_bold_supply: str
    total_debt_pending: str
    total_coll_value: str
    total_sp_deposits: str
    total_value_locked: str
    max_sp_apy: str
    branch: dict[str, BranchStatsResponse]
    prices: dict[str, Decimal]
    created_at: datetime | None = None


class DepositEventResponse(BaseModel):
    kind: Literal["SP_DEPOSIT_UPDATED"] = "SP_DEPOSIT_UPDATED"
    id: str
    depositor: str
    deposit_amount: str
    stashed_coll: str
    branch_id: int
    sp_address: str
    block_number: str
    block_timestamp: str | None = None
    transaction_hash: str
    log_index: int


class InterestRewardResponse(BaseModel):
    kind: Literal["TRANSFER"] = "TRANSFER"
    id: str
    branch_id: int
    stability_pool: str
    amount: str
    block_number: str
    block_timestamp: str | None = None
    transaction_hash: str
    log_index: int


class LiquidationResponse(BaseModel):
    kind: Literal["LIQUIDATION"] = "LIQUIDATION"
    id: str
    branch_id: int
    trove_manager: str
    debt_offset_by_sp: str
    debt_redistributed: str
    bold_gas_compensation: str
    coll_gas_compensation: str
    coll_sent_to_sp: str
    coll_redistributed: str
    coll_surplus: str
    l_eth: str
    l_bold_debt: str
    price: str
    block_number: str
    block_timestamp: str | None = None
    transaction_hash: str
    log_index: int


class EventHistoryResponse(BaseModel):
    """One page of event history, newest first. kind is None for a page mixing every kind."""

    kind: str | None = None
    branch_id: int | None = None
    count: int
    limit: int
    offset: int
    events: list[DepositEventResponse | InterestRewardResponse | LiquidationResponse]


class DepositorPositionResponse(BaseModel):
    depositor: str
    branch_id: int
    amount: str


class ApyDataPoints(BaseModel):
    interest_rewards_count: int
    liquidations_count: int
    snapshots_count: int


class ApyResponse(BaseModel):
    branch_id: int
    period_start: int
    period_end: int
    total_interest: str
    total_liquidation_value: str
    avg_deposits: str
    apy_raw: str
    apy: str
    data_points: ApyDataPoints
