"""
Stats refresh job.

Rebuilds the current view (branch_stats, prices, global_stats) from the
ledger: 1-day, 7-day and 1-year APY per branch, latest pool deposits, and the
latest liquidation price of each collateral.

Usage:
    python -m services.indexer.src.indexer.jobs.refresh_stats
"""
import argparse
import logging
import sys
from decimal import ROUND_DOWN, Decimal

from sqlalchemy.engine import Engine

from services.indexer.src.indexer.adapters.liquity_v2.config import (
    BranchConfig,
    ProtocolConfig,
    get_default_config,
)
from services.indexer.src.indexer.db.engine import get_engine, init_db
from services.indexer.src.indexer.db.events_repository import EventsRepository
from services.indexer.src.indexer.db.stats_repository import StatsRepository
from services.indexer.src.indexer.domain.apy import SCALE, YieldAggregator
from services.indexer.src.indexer.domain.models import GlobalStats, Price
from services.indexer.src.indexer.utils.timestamps import now_timestamp, window

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.00000001")


def liquidation_price_to_decimal(price: int) -> Decimal:
    """1e18-scaled on-chain price to a decimal with 8 places, truncated."""
    return (Decimal(price) / Decimal(SCALE)).quantize(PRICE_QUANTUM, rounding=ROUND_DOWN)


def refresh_branch(
    engine: Engine,
    branch: BranchConfig,
    now_ts: int,
) -> Price | None:
    """
    Recompute and store one branch's stats.

    Returns:
        The branch collateral price from its latest liquidation, if any
    """
    events_repo = EventsRepository(engine)
    aggregator = YieldAggregator(events_repo)

    apy = {}
    for period in ["1d", "7d", "1y"]:
        from_ts, to_ts = window(period, now_ts)
        apy[period] = aggregator.calculate_apy_for_branch(branch.branch_id, from_ts, to_ts).apy_raw

    latest = events_repo.get_latest_snapshot(branch.branch_id)
    sp_deposits = latest.total_bold_deposits if latest else 0

    StatsRepository(engine).upsert_branch_stats(
        branch.branch_id,
        branch.symbol,
        sp_deposits=sp_deposits,
        sp_apy=apy["1y"],
        apy_avg=apy["1y"],
        sp_apy_avg_1d=apy["1d"],
        sp_apy_avg_7d=apy["7d"],
    )
    logger.info(
        f"Updated stats for {branch.symbol}: deposits={sp_deposits} "
        f"apy_1d={apy['1d']} apy_7d={apy['7d']} apy_1y={apy['1y']}"
    )

    liquidation = events_repo.get_latest_liquidation(branch.branch_id)
    if liquidation is None:
        return None
    return Price(symbol=branch.symbol, price=liquidation_price_to_decimal(liquidation.price))


def refresh_stats(
    database_url: str | None = None,
    config: ProtocolConfig | None = None,
    now_ts: int | None = None,
    branch_ids: list[int] | None = None,
) -> dict[str, int]:
    """
    Refresh every branch (or only branch_ids), then prices and one new global_stats row.

    A failing branch is logged and skipped; the others still refresh.

    Returns:
        Dict mapping branch symbol to 1 on success, -1 on failure

    Raises:
        ValueError: If a branch id is not configured
    """
    config = config or get_default_config()
    now_ts = now_ts if now_ts is not None else now_timestamp()

    branches = config.branches
    if branch_ids is not None:
        branches = []
        for branch_id in branch_ids:
            branch = config.get_branch(branch_id)
            if branch is None:
                raise ValueError(f"Unknown branch id: {branch_id}")
            branches.append(branch)

    engine = get_engine(database_url)
    init_db(engine)
    stats_repo = StatsRepository(engine)

    results: dict[str, int] = {}
    prices: list[Price] = []
    for branch in branches:
        try:
            price = refresh_branch(engine, branch, now_ts)
            if price is not None:
                prices.append(price)
            results[branch.symbol] = 1
        except Exception as e:
            logger.error(f"Failed to refresh stats for {branch.symbol}: {e}", exc_info=True)
            results[branch.symbol] = -1

    stats_repo.upsert_prices(prices)

    branch_stats = stats_repo.get_branch_stats()
    stats_repo.insert_global_stats(
        GlobalStats(
            total_sp_deposits=sum(b.sp_deposits for b in branch_stats),
            max_sp_apy=max((b.sp_apy for b in branch_stats), default=0),
        )
    )
    logger.info(f"Updated global stats across {len(branch_stats)} branches")

    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild branch, price and global stats")
    parser.add_argument(
        "--branch-id",
        type=int,
        action="append",
        dest="branch_ids",
        help="Branch to refresh, repeatable (default: all)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        results = refresh_stats(database_url=args.database_url, branch_ids=args.branch_ids)
        return 0 if all(c >= 0 for c in results.values()) else 1
    except Exception as e:
        logger.error(f"Stats refresh failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
