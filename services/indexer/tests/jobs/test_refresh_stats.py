"""Tests for refresh_stats job."""

from decimal import Decimal

import pytest

from services.indexer.src.indexer.adapters.liquity_v2.config import BranchConfig, ProtocolConfig
from services.indexer.src.indexer.db.engine import get_engine, init_db
from services.indexer.src.indexer.db.events_repository import EventsRepository
from services.indexer.src.indexer.db.stats_repository import StatsRepository
from services.indexer.src.indexer.domain.models import (
    InterestRewardRecord,
    LiquidationRecord,
    StabilityPoolSnapshot,
)
from services.indexer.src.indexer.jobs import refresh_stats as refresh_stats_job
from services.indexer.src.indexer.jobs.refresh_stats import (
    liquidation_price_to_decimal,
    refresh_stats,
)

NOW = 1_750_000_000
ONE_DAY = 86_400

CONFIG = ProtocolConfig(
    origin_block=0,
    bold_token="0x5555555555555555555555555555555555555555",
    branches=[
        BranchConfig(branch_id=0, symbol="WETH",
                     stability_pool="0x1111111111111111111111111111111111111111",
                     trove_manager="0x3333333333333333333333333333333333333333"),
        BranchConfig(branch_id=1, symbol="rETH",
                     stability_pool="0x2222222222222222222222222222222222222222",
                     trove_manager="0x4444444444444444444444444444444444444444"),
    ],
)


def reward(ts: int, amount: int, tx: str) -> InterestRewardRecord:
    return InterestRewardRecord(
        branch_id=0,
        stability_pool="0x1111111111111111111111111111111111111111",
        amount=amount,
        block_number=ts // 12,
        block_timestamp=ts,
        transaction_hash=tx,
        log_index=0,
    )


def snapshot(branch_id: int, ts: int, deposits: int) -> StabilityPoolSnapshot:
    return StabilityPoolSnapshot(
        branch_id=branch_id,
        stability_pool="0xsp",
        total_bold_deposits=deposits,
        total_coll_balance=0,
        block_number=ts // 12,
        block_timestamp=ts,
    )


def liquidation(ts: int, price: int) -> LiquidationRecord:
    return LiquidationRecord(
        branch_id=0,
        trove_manager="0x3333333333333333333333333333333333333333",
        debt_offset_by_sp=0,
        debt_redistributed=0,
        bold_gas_compensation=0,
        coll_gas_compensation=0,
        coll_sent_to_sp=0,
        coll_redistributed=0,
        coll_surplus=0,
        l_eth=0,
        l_bold_debt=0,
        price=price,
        block_number=ts // 12,
        block_timestamp=ts,
        transaction_hash=f"0xliq{ts}",
        log_index=0,
    )


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path}/stats.db"


@pytest.fixture
def engine(database_url):
    engine = get_engine(database_url)
    init_db(engine)
    return engine


class TestLiquidationPriceToDecimal:

    def test_truncates_to_eight_places(self):
        assert liquidation_price_to_decimal(2500_123456789 * 10**9) == Decimal("2500.12345678")

    def test_whole_price(self):
        assert liquidation_price_to_decimal(3000 * 10**18) == Decimal("3000.00000000")


class TestRefreshStats:

    def test_writes_branch_stats_for_each_window(self, database_url, engine):
        repo = EventsRepository(engine)
        # 1% inside the last day, another 1% between one and seven days ago
        repo.insert_interest_rewards([
            reward(NOW - 100, 10**16, "0x1"),
            reward(NOW - 3 * ONE_DAY, 10**16, "0x2"),
        ])
        repo.insert_snapshots([snapshot(0, NOW - 200, 10**18)])

        results = refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW)

        stats = {s.branch_id: s for s in StatsRepository(engine).get_branch_stats()}
        assert results == {"WETH": 1, "rETH": 1}
        assert stats[0].sp_deposits == 10**18
        assert stats[0].sp_apy_avg_1d == 10**16
        assert stats[0].sp_apy_avg_7d == 2 * 10**16
        assert stats[0].sp_apy == 2 * 10**16
        assert stats[0].apy_avg == stats[0].sp_apy
        assert stats[1].sp_deposits == 0
        assert stats[1].sp_apy == 0

    def test_prices_from_latest_liquidation(self, database_url, engine):
        EventsRepository(engine).insert_liquidations([
            liquidation(NOW - 500, 2000 * 10**18),
            liquidation(NOW - 100, 2500 * 10**18),
        ])

        refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW)

        prices = {p.symbol: p.price for p in StatsRepository(engine).get_prices()}
        assert prices == {"WETH": Decimal("2500")}

    def test_appends_global_stats(self, database_url, engine):
        EventsRepository(engine).insert_snapshots([
            snapshot(0, NOW - 200, 10**18),
            snapshot(1, NOW - 200, 3 * 10**18),
        ])
        EventsRepository(engine).insert_interest_rewards([reward(NOW - 100, 10**16, "0x1")])

        refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW)
        refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW)

        latest = StatsRepository(engine).get_latest_global_stats(limit=5)
        assert len(latest) == 2
        assert latest[0].total_sp_deposits == 4 * 10**18
        assert latest[0].max_sp_apy == 10**16

    def test_failing_branch_does_not_block_others(self, database_url, engine, monkeypatch):
        real_refresh = refresh_stats_job.refresh_branch

        def flaky(engine, branch, now_ts):
            if branch.symbol == "rETH":
                raise RuntimeError("boom")
            return real_refresh(engine, branch, now_ts)

        monkeypatch.setattr(refresh_stats_job, "refresh_branch", flaky)

        results = refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW)

        assert results == {"WETH": 1, "rETH": -1}
        assert [s.branch_id for s in StatsRepository(engine).get_branch_stats()] == [0]

    def test_only_selected_branches(self, database_url, engine):
        results = refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW, branch_ids=[1])

        assert results == {"rETH": 1}
        assert [s.branch_id for s in StatsRepository(engine).get_branch_stats()] == [1]

    def test_rejects_unknown_branch_id(self, database_url, engine):
        with pytest.raises(ValueError, match="Unknown branch id: 7"):
            refresh_stats(database_url=database_url, config=CONFIG, now_ts=NOW, branch_ids=[0, 7])

        assert StatsRepository(engine).get_branch_stats() == []
