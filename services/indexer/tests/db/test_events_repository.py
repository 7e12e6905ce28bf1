"""Tests for EventsRepository."""

import pytest
from sqlalchemy import create_engine

from services.indexer.src.indexer.db.engine import init_db
from services.indexer.src.indexer.db.events_repository import EventsRepository
from services.indexer.src.indexer.domain.models import (
    DepositUpdatedRecord,
    InterestRewardRecord,
    LiquidationRecord,
    StabilityPoolSnapshot,
)

ALICE = "0xAAAAaaaaAAAAaaaaAAAAaaaaAAAAaaaaAAAAaaaa"
BOB = "0xBBBBbbbbBBBBbbbbBBBBbbbbBBBBbbbbBBBBbbbb"


def make_deposit(
    tx: str = "0xt1",
    log_index: int = 0,
    block_number: int = 100,
    block_timestamp: int | None = 1000,
    depositor: str = ALICE,
    branch_id: int = 0,
    amount: int = 10**18,
) -> DepositUpdatedRecord:
    return DepositUpdatedRecord(
        depositor=depositor,
        deposit_amount=amount,
        stashed_coll=0,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_hash=tx,
        log_index=log_index,
        branch_id=branch_id,
        sp_address="0xsp",
    )


def make_reward(
    tx: str = "0xr1",
    log_index: int = 0,
    block_number: int = 100,
    block_timestamp: int | None = 1000,
    branch_id: int = 0,
    amount: int = 100,
) -> InterestRewardRecord:
    return InterestRewardRecord(
        branch_id=branch_id,
        stability_pool="0xsp",
        amount=amount,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_hash=tx,
        log_index=log_index,
    )


def make_liquidation(
    tx: str = "0xl1",
    log_index: int = 0,
    block_number: int = 100,
    block_timestamp: int | None = 1000,
    branch_id: int = 0,
    coll_sent_to_sp: int = 5,
    price: int = 2000 * 10**18,
) -> LiquidationRecord:
    return LiquidationRecord(
        branch_id=branch_id,
        trove_manager="0xtm",
        debt_offset_by_sp=1,
        debt_redistributed=0,
        bold_gas_compensation=0,
        coll_gas_compensation=0,
        coll_sent_to_sp=coll_sent_to_sp,
        coll_redistributed=0,
        coll_surplus=0,
        l_eth=0,
        l_bold_debt=0,
        price=price,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_hash=tx,
        log_index=log_index,
    )


def make_snapshot(
    branch_id: int = 0, block_number: int = 100, block_timestamp: int = 1000, deposits: int = 10**24
) -> StabilityPoolSnapshot:
    return StabilityPoolSnapshot(
        branch_id=branch_id,
        stability_pool="0xsp",
        total_bold_deposits=deposits,
        total_coll_balance=0,
        block_number=block_number,
        block_timestamp=block_timestamp,
    )


@pytest.fixture
def repository():
    engine = create_engine("sqlite:///:memory:")
    init_db(engine)
    return EventsRepository(engine)


class TestInsertDepositEvents:

    def test_inserts_multiple_events(self, repository):
        count = repository.insert_deposit_events([
            make_deposit(tx="0x1"),
            make_deposit(tx="0x2"),
            make_deposit(tx="0x2", log_index=1),
        ])

        assert count == 3

    def test_returns_zero_for_empty_list(self, repository):
        assert repository.insert_deposit_events([]) == 0

    def test_ignores_redelivered_logs(self, repository):
        repository.insert_deposit_events([make_deposit(tx="0x1", amount=5)])

        count = repository.insert_deposit_events([
            make_deposit(tx="0x1", amount=999),
            make_deposit(tx="0x2"),
        ])

        assert count == 1
        events = repository.get_deposit_events(ascending=True)
        assert [e.deposit_amount for e in events] == [5, 10**18]

    def test_round_trips_full_uint256(self, repository):
        big = 2**256 - 1
        repository.insert_deposit_events([make_deposit(amount=big)])

        [event] = repository.get_deposit_events()

        assert event.deposit_amount == big

    def test_inserts_more_rows_than_one_batch(self, repository):
        records = [make_deposit(tx=f"0x{i}") for i in range(1200)]

        assert repository.insert_deposit_events(records) == 1200
        assert repository.get_event_counts()["deposits"] == 1200


class TestIdempotentInserts:

    def test_interest_rewards(self, repository):
        repository.insert_interest_rewards([make_reward()])

        assert repository.insert_interest_rewards([make_reward()]) == 0

    def test_liquidations(self, repository):
        repository.insert_liquidations([make_liquidation()])

        assert repository.insert_liquidations([make_liquidation()]) == 0

    def test_snapshots_keyed_by_branch_and_block(self, repository):
        repository.insert_snapshots([make_snapshot(branch_id=0), make_snapshot(branch_id=1)])

        count = repository.insert_snapshots([
            make_snapshot(branch_id=0),
            make_snapshot(branch_id=0, block_number=101),
        ])

        assert count == 1


class TestWindowReads:

    def test_window_is_inclusive(self, repository):
        repository.insert_interest_rewards([
            make_reward(tx="0x1", block_timestamp=999),
            make_reward(tx="0x2", block_timestamp=1000),
            make_reward(tx="0x3", block_timestamp=2000),
            make_reward(tx="0x4", block_timestamp=2001),
        ])

        rewards = repository.get_interest_rewards(0, 1000, 2000)

        assert [r.transaction_hash for r in rewards] == ["0x2", "0x3"]

    def test_null_timestamps_are_outside_every_window(self, repository):
        repository.insert_liquidations([
            make_liquidation(tx="0x1", block_timestamp=None),
            make_liquidation(tx="0x2", block_timestamp=1500),
        ])

        liquidations = repository.get_liquidations(None, 0, 10**12)

        assert [liq.transaction_hash for liq in liquidations] == ["0x2"]

    def test_filters_by_branch(self, repository):
        repository.insert_snapshots([
            make_snapshot(branch_id=0, deposits=1),
            make_snapshot(branch_id=1, deposits=2),
        ])

        assert [s.total_bold_deposits for s in repository.get_snapshots(1, 0, 5000)] == [2]
        assert len(repository.get_snapshots(None, 0, 5000)) == 2

    def test_liquidation_amounts_round_trip(self, repository):
        repository.insert_liquidations([make_liquidation(coll_sent_to_sp=3 * 10**30)])

        [liq] = repository.get_liquidations(0, 0, 5000)

        assert liq.coll_sent_to_sp == 3 * 10**30
        assert liq.price == 2000 * 10**18


class TestLatestReads:

    def test_latest_snapshot(self, repository):
        repository.insert_snapshots([
            make_snapshot(block_number=100, deposits=1),
            make_snapshot(block_number=300, deposits=3),
            make_snapshot(block_number=200, deposits=2),
        ])

        assert repository.get_latest_snapshot(0).total_bold_deposits == 3
        assert repository.get_latest_snapshot(1) is None

    def test_latest_liquidation(self, repository):
        repository.insert_liquidations([
            make_liquidation(tx="0x1", block_number=100, price=1),
            make_liquidation(tx="0x2", block_number=100, log_index=5, price=2),
            make_liquidation(tx="0x3", block_number=50, price=3),
        ])

        assert repository.get_latest_liquidation(0).price == 2
        assert repository.get_latest_liquidation(9) is None


class TestHistoryReads:

    def test_newest_first_with_pagination(self, repository):
        repository.insert_deposit_events([
            make_deposit(tx=f"0x{i}", block_number=100 + i) for i in range(5)
        ])

        page = repository.get_deposit_events(limit=2, offset=1)

        assert [e.block_number for e in page] == [103, 102]

    def test_filters_by_depositor_case_insensitively(self, repository):
        repository.insert_deposit_events([
            make_deposit(tx="0x1", depositor=ALICE),
            make_deposit(tx="0x2", depositor=BOB),
        ])

        events = repository.get_deposit_events(depositor=ALICE.lower())

        assert [e.depositor for e in events] == [ALICE]

    def test_filters_by_timestamp_range(self, repository):
        repository.insert_interest_rewards([
            make_reward(tx="0x1", block_timestamp=10),
            make_reward(tx="0x2", block_timestamp=20),
        ])

        rewards = repository.get_interest_reward_history(from_ts=15)

        assert [r.transaction_hash for r in rewards] == ["0x2"]


class TestTimestampRepair:

    def test_lists_distinct_blocks_missing_timestamps(self, repository):
        repository.insert_deposit_events([
            make_deposit(tx="0x1", block_number=7, block_timestamp=None),
            make_deposit(tx="0x2", block_number=7, block_timestamp=None),
            make_deposit(tx="0x3", block_number=3, block_timestamp=0),
            make_deposit(tx="0x4", block_number=9, block_timestamp=1000),
        ])

        assert repository.get_blocks_missing_timestamps("deposits") == [3, 7]

    def test_sets_timestamp_for_block(self, repository):
        repository.insert_interest_rewards([
            make_reward(tx="0x1", block_number=7, block_timestamp=None),
            make_reward(tx="0x2", block_number=7, block_timestamp=None),
        ])

        updated = repository.set_block_timestamp("interest_rewards", 7, 4242)

        assert updated == 2
        assert repository.get_blocks_missing_timestamps("interest_rewards") == []
        assert len(repository.get_interest_rewards(0, 4242, 4242)) == 2
