"""Repository for the append-only stability pool ledger."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import Table, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from services.indexer.src.indexer.db.models import (
    interest_rewards,
    liquidation_logs,
    sp_deposit_events,
    sp_deposit_snapshots,
)
from services.indexer.src.indexer.domain.models import (
    DepositUpdatedRecord,
    InterestRewardRecord,
    LiquidationRecord,
    StabilityPoolSnapshot,
)

# Keeps multi-row INSERTs below SQLite's bound parameter limit
INSERT_BATCH_SIZE = 500

LIQUIDATION_AMOUNT_FIELDS = [
    "debt_offset_by_sp",
    "debt_redistributed",
    "bold_gas_compensation",
    "coll_gas_compensation",
    "coll_sent_to_sp",
    "coll_redistributed",
    "coll_surplus",
    "l_eth",
    "l_bold_debt",
    "price",
]

LEDGER_TABLES: dict[str, Table] = {
    "deposits": sp_deposit_events,
    "interest_rewards": interest_rewards,
    "liquidations": liquidation_logs,
}


class EventsRepository:
    """Repository for ledger events and pool snapshots.

    All inserts are idempotent: rows are keyed by "{transaction_hash}-{log_index}"
    (snapshots by "{branch_id}-{block_number}") and conflicting rows are skipped.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def _amount(self, value: int) -> str | Decimal:
        return str(value) if self._is_sqlite else Decimal(value)

    # Writes

    def insert_deposit_events(self, records: Sequence[DepositUpdatedRecord]) -> int:
        """
        Insert DepositUpdated records, skipping ones already stored.

        Returns:
            Number of rows inserted (may be less than len(records) on re-delivery)
        """
        now = datetime.now(timezone.utc)
        rows = [
            {
                "id": r.id,
                "depositor": r.depositor,
                "deposit_amount": self._amount(r.deposit_amount),
                "stashed_coll": self._amount(r.stashed_coll),
                "block_number": r.block_number,
                "block_timestamp": r.block_timestamp,
                "transaction_hash": r.transaction_hash,
                "log_index": r.log_index,
                "branch_id": r.branch_id,
                "sp_address": r.sp_address,
                "created_at": now,
            }
            for r in records
        ]
        return self._insert_rows(sp_deposit_events, rows)

    def insert_interest_rewards(self, records: Sequence[InterestRewardRecord]) -> int:
        now = datetime.now(timezone.utc)
        rows = [
            {
                "id": r.id,
                "branch_id": r.branch_id,
                "stability_pool": r.stability_pool,
                "amount": self._amount(r.amount),
                "block_number": r.block_number,
                "block_timestamp": r.block_timestamp,
                "transaction_hash": r.transaction_hash,
                "log_index": r.log_index,
                "created_at": now,
            }
            for r in records
        ]
        return self._insert_rows(interest_rewards, rows)

    def insert_liquidations(self, records: Sequence[LiquidationRecord]) -> int:
        now = datetime.now(timezone.utc)
        rows = []
        for r in records:
            row: dict[str, Any] = {
                "id": r.id,
                "branch_id": r.branch_id,
                "trove_manager": r.trove_manager,
                "block_number": r.block_number,
                "block_timestamp": r.block_timestamp,
                "transaction_hash": r.transaction_hash,
                "log_index": r.log_index,
                "created_at": now,
            }
            for name in LIQUIDATION_AMOUNT_FIELDS:
                row[name] = self._amount(getattr(r, name))
            rows.append(row)
        return self._insert_rows(liquidation_logs, rows)

    def insert_snapshots(self, snapshots: Sequence[StabilityPoolSnapshot]) -> int:
        now = datetime.now(timezone.utc)
        rows = [
            {
                "id": s.id,
                "branch_id": s.branch_id,
                "stability_pool": s.stability_pool,
                "total_bold_deposits": self._amount(s.total_bold_deposits),
                "total_coll_balance": self._amount(s.total_coll_balance),
                "block_number": s.block_number,
                "block_timestamp": s.block_timestamp,
                "created_at": now,
            }
            for s in snapshots
        ]
        return self._insert_rows(sp_deposit_snapshots, rows)

    def _insert_rows(self, table: Table, rows: list[dict]) -> int:
        """Insert rows atomically using INSERT ... ON CONFLICT DO NOTHING."""
        if not rows:
            return 0

        inserted = 0
        with self.engine.begin() as conn:
            for start in range(0, len(rows), INSERT_BATCH_SIZE):
                batch = rows[start:start + INSERT_BATCH_SIZE]
                if self._is_sqlite:
                    inserted += self._insert_sqlite(conn, table, batch)
                else:
                    inserted += self._insert_postgres(conn, table, batch)
        return inserted

    def _insert_postgres(self, conn: Connection, table: Table, rows: list[dict]) -> int:
        stmt = pg_insert(table).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
        result = conn.execute(stmt)
        return result.rowcount

    def _insert_sqlite(self, conn: Connection, table: Table, rows: list[dict]) -> int:
        stmt = sqlite_insert(table).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
        result = conn.execute(stmt)
        return result.rowcount

    # Range reads used by the yield aggregator

    def get_interest_rewards(
        self, branch_id: int | None, from_ts: int, to_ts: int
    ) -> list[InterestRewardRecord]:
        """
        Get interest rewards with from_ts <= block_timestamp <= to_ts.

        Args:
            branch_id: Branch to filter by, or None for all branches
            from_ts: Window start (unix seconds, inclusive)
            to_ts: Window end (unix seconds, inclusive)
        """
        stmt = self._window(interest_rewards, branch_id, from_ts, to_ts)
        with self.engine.connect() as conn:
            return [_row_to_interest_reward(row) for row in conn.execute(stmt)]

    def get_liquidations(
        self, branch_id: int | None, from_ts: int, to_ts: int
    ) -> list[LiquidationRecord]:
        stmt = self._window(liquidation_logs, branch_id, from_ts, to_ts)
        with self.engine.connect() as conn:
            return [_row_to_liquidation(row) for row in conn.execute(stmt)]

    def get_snapshots(
        self, branch_id: int | None, from_ts: int, to_ts: int
    ) -> list[StabilityPoolSnapshot]:
        stmt = self._window(sp_deposit_snapshots, branch_id, from_ts, to_ts)
        with self.engine.connect() as conn:
            return [_row_to_snapshot(row) for row in conn.execute(stmt)]

    def _window(self, table: Table, branch_id: int | None, from_ts: int, to_ts: int):
        stmt = (
            select(table)
            .where(table.c.block_timestamp >= from_ts)
            .where(table.c.block_timestamp <= to_ts)
        )
        if branch_id is not None:
            stmt = stmt.where(table.c.branch_id == branch_id)
        return stmt.order_by(table.c.block_number)

    # Latest-value reads used by the stats materializer

    def get_latest_snapshot(self, branch_id: int) -> StabilityPoolSnapshot | None:
        stmt = (
            select(sp_deposit_snapshots)
            .where(sp_deposit_snapshots.c.branch_id == branch_id)
            .order_by(sp_deposit_snapshots.c.block_number.desc())
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            return _row_to_snapshot(row) if row is not None else None

    def get_latest_liquidation(self, branch_id: int) -> LiquidationRecord | None:
        stmt = (
            select(liquidation_logs)
            .where(liquidation_logs.c.branch_id == branch_id)
            .order_by(
                liquidation_logs.c.block_number.desc(),
                liquidation_logs.c.log_index.desc(),
            )
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            return _row_to_liquidation(row) if row is not None else None

    # History reads used by the read model

    def get_deposit_events(
        self,
        branch_id: int | None = None,
        depositor: str | None = None,
        from_ts: int | None = None,
        to_ts: int | None = None,
        limit: int | None = 100,
        offset: int = 0,
        ascending: bool = False,
    ) -> list[DepositUpdatedRecord]:
        stmt = self._history(
            sp_deposit_events, branch_id, from_ts, to_ts, limit, offset, ascending
        )
        if depositor:
            stmt = stmt.where(
                func.lower(sp_deposit_events.c.depositor) == depositor.lower()
            )
        with self.engine.connect() as conn:
            return [_row_to_deposit(row) for row in conn.execute(stmt)]

    def get_interest_reward_history(
        self,
        branch_id: int | None = None,
        from_ts: int | None = None,
        to_ts: int | None = None,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[InterestRewardRecord]:
        stmt = self._history(interest_rewards, branch_id, from_ts, to_ts, limit, offset)
        with self.engine.connect() as conn:
            return [_row_to_interest_reward(row) for row in conn.execute(stmt)]

    def get_liquidation_history(
        self,
        branch_id: int | None = None,
        from_ts: int | None = None,
        to_ts: int | None = None,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[LiquidationRecord]:
        stmt = self._history(liquidation_logs, branch_id, from_ts, to_ts, limit, offset)
        with self.engine.connect() as conn:
            return [_row_to_liquidation(row) for row in conn.execute(stmt)]

    def _history(
        self,
        table: Table,
        branch_id: int | None,
        from_ts: int | None,
        to_ts: int | None,
        limit: int | None,
        offset: int,
        ascending: bool = False,
    ):
        stmt = select(table)
        if branch_id is not None:
            stmt = stmt.where(table.c.branch_id == branch_id)
        if from_ts is not None:
            stmt = stmt.where(table.c.block_timestamp >= from_ts)
        if to_ts is not None:
            stmt = stmt.where(table.c.block_timestamp <= to_ts)
        if ascending:
            stmt = stmt.order_by(table.c.block_number, table.c.log_index)
        else:
            stmt = stmt.order_by(table.c.block_number.desc(), table.c.log_index.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return stmt.offset(offset)

    # Verification and repair

    def get_event_counts(self) -> dict[str, int]:
        """Get row count per ledger table (useful for verification)."""
        counts = {}
        with self.engine.connect() as conn:
            for kind, table in LEDGER_TABLES.items():
                counts[kind] = conn.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()
        return counts

    def get_blocks_missing_timestamps(self, kind: str) -> list[int]:
        """Distinct block numbers of rows whose timestamp is NULL or 0."""
        table = LEDGER_TABLES[kind]
        stmt = (
            select(table.c.block_number)
            .where(or_(table.c.block_timestamp.is_(None), table.c.block_timestamp == 0))
            .distinct()
            .order_by(table.c.block_number)
        )
        with self.engine.connect() as conn:
            return [int(row.block_number) for row in conn.execute(stmt)]

    def set_block_timestamp(self, kind: str, block_number: int, block_timestamp: int) -> int:
        """Fill in the timestamp of every row of a block that lacks one."""
        table = LEDGER_TABLES[kind]
        stmt = (
            update(table)
            .where(table.c.block_number == block_number)
            .where(or_(table.c.block_timestamp.is_(None), table.c.block_timestamp == 0))
            .values(block_timestamp=block_timestamp)
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def _row_to_deposit(row: Any) -> DepositUpdatedRecord:
    return DepositUpdatedRecord(
        depositor=row.depositor,
        deposit_amount=int(row.deposit_amount),
        stashed_coll=int(row.stashed_coll),
        block_number=int(row.block_number),
        block_timestamp=_optional_int(row.block_timestamp),
        transaction_hash=row.transaction_hash,
        log_index=row.log_index,
        branch_id=row.branch_id,
        sp_address=row.sp_address,
    )


def _row_to_interest_reward(row: Any) -> InterestRewardRecord:
    return InterestRewardRecord(
        branch_id=row.branch_id,
        stability_pool=row.stability_pool,
        amount=int(row.amount),
        block_number=int(row.block_number),
        block_timestamp=_optional_int(row.block_timestamp),
        transaction_hash=row.transaction_hash,
        log_index=row.log_index,
    )


def _row_to_liquidation(row: Any) -> LiquidationRecord:
    amounts = {name: int(getattr(row, name)) for name in LIQUIDATION_AMOUNT_FIELDS}
    return LiquidationRecord(
        branch_id=row.branch_id,
        trove_manager=row.trove_manager,
        block_number=int(row.block_number),
        block_timestamp=_optional_int(row.block_timestamp),
        transaction_hash=row.transaction_hash,
        log_index=row.log_index,
        **amounts,
    )


def _row_to_snapshot(row: Any) -> StabilityPoolSnapshot:
    return StabilityPoolSnapshot(
        branch_id=row.branch_id,
        stability_pool=row.stability_pool,
        total_bold_deposits=int(row.total_bold_deposits),
        total_coll_balance=int(row.total_coll_balance),
        block_number=int(row.block_number),
        block_timestamp=int(row.block_timestamp),
    )
