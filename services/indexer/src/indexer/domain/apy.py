"""Fixed-point APY over persisted stability pool history.

All amounts are Python ints in the token's smallest unit; nothing here goes
through float. An APY is a ratio scaled by SCALE (10**18), so 5% is 5 * 10**16.
"""

from typing import Protocol, Sequence

from services.indexer.src.indexer.domain.models import (
    ApyResult,
    InterestRewardRecord,
    LiquidationRecord,
    StabilityPoolSnapshot,
)

SCALE = 10**18

# Branch selector meaning "every branch"
ALL_BRANCHES = -1


def average(values: Sequence[int]) -> int:
    """Integer mean, floored. 0 for an empty sequence."""
    if not values:
        return 0
    return sum(values) // len(values)


def compute_apy_raw(total_interest: int, total_liquidation_value: int, avg_deposits: int) -> int:
    if avg_deposits == 0:
        return 0
    return (total_interest + total_liquidation_value) * SCALE // avg_deposits


def aggregate(
    branch_id: int,
    from_ts: int,
    to_ts: int,
    rewards: Sequence[InterestRewardRecord],
    liquidations: Sequence[LiquidationRecord],
    snapshots: Sequence[StabilityPoolSnapshot],
) -> ApyResult:
    """Build an ApyResult from records already filtered to the window."""
    total_interest = sum(r.amount for r in rewards)
    total_liquidation_value = sum(liq.coll_sent_to_sp * liq.price for liq in liquidations)
    avg_deposits = average([s.total_bold_deposits for s in snapshots])

    return ApyResult(
        branch_id=branch_id,
        period_start=from_ts,
        period_end=to_ts,
        total_interest=total_interest,
        total_liquidation_value=total_liquidation_value,
        avg_deposits=avg_deposits,
        apy_raw=compute_apy_raw(total_interest, total_liquidation_value, avg_deposits),
        interest_rewards_count=len(rewards),
        liquidations_count=len(liquidations),
        snapshots_count=len(snapshots),
    )


def format_apy_percentage(apy_raw: int) -> str:
    """
    Render a raw APY as a percentage with two decimals, truncating.

    Examples:
        525 * 10**14 -> "5.25"
        10**16       -> "1.00"
        19999 * 10**12 -> "1.99"  (not rounded up)
    """
    integer_part = apy_raw * 100 // SCALE
    fraction_part = (apy_raw * 10000 // SCALE) % 100
    return f"{integer_part}.{fraction_part:02d}"


class LedgerReader(Protocol):
    """Window reads the aggregator needs (implemented by EventsRepository)."""

    def get_interest_rewards(
        self, branch_id: int | None, from_ts: int, to_ts: int
    ) -> list[InterestRewardRecord]: ...

    def get_liquidations(
        self, branch_id: int | None, from_ts: int, to_ts: int
    ) -> list[LiquidationRecord]: ...

    def get_snapshots(
        self, branch_id: int | None, from_ts: int, to_ts: int
    ) -> list[StabilityPoolSnapshot]: ...


class YieldAggregator:
    """Read-only APY calculator over persisted ledger history."""

    def __init__(self, ledger: LedgerReader):
        self.ledger = ledger

    def calculate_apy_for_branch(self, branch_id: int, from_ts: int, to_ts: int) -> ApyResult:
        """
        Compute the APY of one branch (or ALL_BRANCHES) over [from_ts, to_ts].

        Rows without a block timestamp are outside every window.

        Raises:
            ValueError: If from_ts > to_ts or branch_id is negative and not ALL_BRANCHES
        """
        if from_ts > to_ts:
            raise ValueError(f"Invalid window: {from_ts} > {to_ts}")
        if branch_id < 0 and branch_id != ALL_BRANCHES:
            raise ValueError(f"Invalid branch id: {branch_id}")

        selector = None if branch_id == ALL_BRANCHES else branch_id
        return aggregate(
            branch_id,
            from_ts,
            to_ts,
            self.ledger.get_interest_rewards(selector, from_ts, to_ts),
            self.ledger.get_liquidations(selector, from_ts, to_ts),
            self.ledger.get_snapshots(selector, from_ts, to_ts),
        )

    def calculate_apy_for_branches(
        self, branch_ids: Sequence[int], from_ts: int, to_ts: int
    ) -> list[ApyResult]:
        return [self.calculate_apy_for_branch(b, from_ts, to_ts) for b in branch_ids]
