"""Read-side queries exposed to an HTTP layer or other consumers."""

from sqlalchemy.engine import Engine

from services.indexer.src.indexer.adapters.liquity_v2.config import (
    LIQUIDATION,
    SP_DEPOSIT_UPDATED,
    TRANSFER,
)
from services.indexer.src.indexer.db.events_repository import EventsRepository
from services.indexer.src.indexer.db.stats_repository import StatsRepository
from services.indexer.src.indexer.domain.apy import YieldAggregator, format_apy_percentage
from services.indexer.src.indexer.domain.deposits import fold_current_deposits
from services.indexer.src.indexer.domain.models import (
    ApyResult,
    BranchStats,
    DepositUpdatedRecord,
    InterestRewardRecord,
    LiquidationRecord,
)
from services.indexer.src.indexer.schemas.responses import (
    ApyDataPoints,
    ApyResponse,
    BranchStatsResponse,
    DepositEventResponse,
    DepositorPositionResponse,
    EventHistoryResponse,
    InterestRewardResponse,
    LiquidationResponse,
    StatsResponse,
)

MAX_PAGE_SIZE = 1000


def _optional_str(value: int | None) -> str | None:
    return str(value) if value is not None else None


def branch_stats_to_response(stats: BranchStats) -> BranchStatsResponse:
    return BranchStatsResponse(
        branch_id=stats.branch_id,
        branch_name=stats.branch_name,
        sp_deposits=str(stats.sp_deposits),
        sp_apy=format_apy_percentage(stats.sp_apy),
        apy_avg=format_apy_percentage(stats.apy_avg),
        sp_apy_avg_1d=format_apy_percentage(stats.sp_apy_avg_1d),
        sp_apy_avg_7d=format_apy_percentage(stats.sp_apy_avg_7d),
        sp_apy_raw=str(stats.sp_apy),
        updated_at=stats.updated_at,
    )


def deposit_to_response(event: DepositUpdatedRecord) -> DepositEventResponse:
    return DepositEventResponse(
        id=event.id,
        depositor=event.depositor,
        deposit_amount=str(event.deposit_amount),
        stashed_coll=str(event.stashed_coll),
        branch_id=event.branch_id,
        sp_address=event.sp_address,
        block_number=str(event.block_number),
        block_timestamp=_optional_str(event.block_timestamp),
        transaction_hash=event.transaction_hash,
        log_index=event.log_index,
    )


def interest_reward_to_response(reward: InterestRewardRecord) -> InterestRewardResponse:
    return InterestRewardResponse(
        id=reward.id,
        branch_id=reward.branch_id,
        stability_pool=reward.stability_pool,
        amount=str(reward.amount),
        block_number=str(reward.block_number),
        block_timestamp=_optional_str(reward.block_timestamp),
        transaction_hash=reward.transaction_hash,
        log_index=reward.log_index,
    )


def liquidation_to_response(liq: LiquidationRecord) -> LiquidationResponse:
    return LiquidationResponse(
        id=liq.id,
        branch_id=liq.branch_id,
        trove_manager=liq.trove_manager,
        debt_offset_by_sp=str(liq.debt_offset_by_sp),
        debt_redistributed=str(liq.debt_redistributed),
        bold_gas_compensation=str(liq.bold_gas_compensation),
        coll_gas_compensation=str(liq.coll_gas_compensation),
        coll_sent_to_sp=str(liq.coll_sent_to_sp),
        coll_redistributed=str(liq.coll_redistributed),
        coll_surplus=str(liq.coll_surplus),
        l_eth=str(liq.l_eth),
        l_bold_debt=str(liq.l_bold_debt),
        price=str(liq.price),
        block_number=str(liq.block_number),
        block_timestamp=_optional_str(liq.block_timestamp),
        transaction_hash=liq.transaction_hash,
        log_index=liq.log_index,
    )


def apy_to_response(result: ApyResult) -> ApyResponse:
    return ApyResponse(
        branch_id=result.branch_id,
        period_start=result.period_start,
        period_end=result.period_end,
        total_interest=str(result.total_interest),
        total_liquidation_value=str(result.total_liquidation_value),
        avg_deposits=str(result.avg_deposits),
        apy_raw=str(result.apy_raw),
        apy=format_apy_percentage(result.apy_raw),
        data_points=ApyDataPoints(
            interest_rewards_count=result.interest_rewards_count,
            liquidations_count=result.liquidations_count,
            snapshots_count=result.snapshots_count,
        ),
    )


def get_latest_branch_stats(engine: Engine) -> list[BranchStatsResponse]:
    return [branch_stats_to_response(s) for s in StatsRepository(engine).get_branch_stats()]


def get_latest_stats(engine: Engine, limit: int = 1) -> list[StatsResponse]:
    """
    Latest global stats rows, newest first, each with the current branch and
    price maps attached.
    """
    repo = StatsRepository(engine)
    branches = {s.branch_name: branch_stats_to_response(s) for s in repo.get_branch_stats()}
    prices = {p.symbol: p.price for p in repo.get_prices()}

    return [
        StatsResponse(
            total_bold_supply=str(g.total_bold_supply),
            total_debt_pending=str(g.total_debt_pending),
            total_coll_value=str(g.total_coll_value),
            total_sp_deposits=str(g.total_sp_deposits),
            total_value_locked=str(g.total_value_locked),
            max_sp_apy=format_apy_percentage(g.max_sp_apy),
            branch=branches,
            prices=prices,
            created_at=g.created_at,
        )
        for g in repo.get_latest_global_stats(limit)
    ]


def _history_page(
    repo: EventsRepository,
    kind: str,
    branch_id: int | None,
    from_ts: int | None,
    to_ts: int | None,
    depositor: str | None,
    limit: int,
    offset: int,
) -> list:
    if kind == SP_DEPOSIT_UPDATED:
        return repo.get_deposit_events(branch_id, depositor, from_ts, to_ts, limit, offset)
    if kind == TRANSFER:
        return repo.get_interest_reward_history(branch_id, from_ts, to_ts, limit, offset)
    if kind == LIQUIDATION:
        return repo.get_liquidation_history(branch_id, from_ts, to_ts, limit, offset)
    raise ValueError(f"Unknown event kind: {kind}")


def _event_to_response(
    event: DepositUpdatedRecord | InterestRewardRecord | LiquidationRecord,
) -> DepositEventResponse | InterestRewardResponse | LiquidationResponse:
    if isinstance(event, DepositUpdatedRecord):
        return deposit_to_response(event)
    if isinstance(event, InterestRewardRecord):
        return interest_reward_to_response(event)
    return liquidation_to_response(event)


def get_event_history(
    engine: Engine,
    kind: str | None = None,
    branch_id: int | None = None,
    from_ts: int | None = None,
    to_ts: int | None = None,
    depositor: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> EventHistoryResponse:
    """
    Get a page of persisted events, newest first.

    With no kind, every ledger is read with the same filters and the page is
    taken from their merge ordered by (block_number, log_index).

    Args:
        kind: SP_DEPOSIT_UPDATED, TRANSFER (interest rewards), LIQUIDATION, or None for all
        branch_id: Restrict to one branch
        from_ts: Minimum block timestamp (inclusive)
        to_ts: Maximum block timestamp (inclusive)
        depositor: Restrict deposits to one depositor (SP_DEPOSIT_UPDATED only)
        limit: Page size, 1..1000
        offset: Rows to skip

    Raises:
        ValueError: For an unknown kind, a depositor filter on other kinds,
            or out-of-range pagination
    """
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
    if offset < 0:
        raise ValueError(f"offset must be non-negative, got {offset}")
    if depositor is not None and kind != SP_DEPOSIT_UPDATED:
        raise ValueError("depositor filter applies to SP_DEPOSIT_UPDATED only")

    repo = EventsRepository(engine)
    if kind is not None:
        records = _history_page(repo, kind, branch_id, from_ts, to_ts, depositor, limit, offset)
    else:
        # Each ledger contributes at most offset + limit rows to the merged page
        merged = [
            record
            for k in (SP_DEPOSIT_UPDATED, TRANSFER, LIQUIDATION)
            for record in _history_page(
                repo, k, branch_id, from_ts, to_ts, None, offset + limit, 0
            )
        ]
        merged.sort(key=lambda r: (r.block_number, r.log_index), reverse=True)
        records = merged[offset:offset + limit]

    events = [_event_to_response(r) for r in records]
    return EventHistoryResponse(
        kind=kind,
        branch_id=branch_id,
        count=len(events),
        limit=limit,
        offset=offset,
        events=events,
    )


def get_stability_pool_deposits(engine: Engine) -> list[DepositorPositionResponse]:
    """Current non-zero deposit of every depositor in every branch."""
    events = EventsRepository(engine).get_deposit_events(limit=None, ascending=True)
    return [
        DepositorPositionResponse(depositor=p.depositor, branch_id=p.branch_id, amount=str(p.amount))
        for p in fold_current_deposits(events)
    ]


def calculate_apy(engine: Engine, branch_id: int, from_ts: int, to_ts: int) -> ApyResponse:
    """APY of a branch (or ALL_BRANCHES) over [from_ts, to_ts]."""
    return apy_to_response(YieldAggregator(EventsRepository(engine)).calculate_apy_for_branch(branch_id, from_ts, to_ts))
