import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from services.indexer.src.indexer.db.models import branch_stats, global_stats, prices
from services.indexer.src.indexer.domain.models import BranchStats, GlobalStats, Price

BRANCH_STATS_FIELDS = [
    "sp_deposits",
    "sp_apy",
    "apy_avg",
    "sp_apy_avg_1d",
    "sp_apy_avg_7d",
]

GLOBAL_STATS_FIELDS = [
    "total_bold_supply",
    "total_debt_pending",
    "total_coll_value",
    "total_sp_deposits",
    "total_value_locked",
    "max_sp_apy",
]


class StatsRepository:
    """Current-state tables derived from the ledger.

    branch_stats and prices are overwritten in place; global_stats is an
    append-only time series.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def _amount(self, value: int) -> str | Decimal:
        return str(value) if self._is_sqlite else Decimal(value)

    def upsert_branch_stats(self, branch_id: int, branch_name: str, **values: int) -> None:
        """
        Create or update the stats row of a branch.

        On insert, numeric fields not given default to 0. On update only the
        given fields change.

        Raises:
            ValueError: If an unknown field is given
        """
        unknown = set(values) - set(BRANCH_STATS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown branch stats fields: {sorted(unknown)}")

        now = datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(branch_stats.c.branch_id).where(
                    branch_stats.c.branch_id == branch_id
                )
            ).fetchone()

            if existing is None:
                row: dict[str, Any] = {
                    "branch_id": branch_id,
                    "branch_name": branch_name,
                    "updated_at": now,
                    "created_at": now,
                }
                for name in BRANCH_STATS_FIELDS:
                    row[name] = self._amount(values.get(name, 0))
                conn.execute(branch_stats.insert().values(row))
            else:
                changes: dict[str, Any] = {"branch_name": branch_name, "updated_at": now}
                for name, value in values.items():
                    changes[name] = self._amount(value)
                conn.execute(
                    update(branch_stats)
                    .where(branch_stats.c.branch_id == branch_id)
                    .values(changes)
                )

    def get_branch_stats(self) -> list[BranchStats]:
        stmt = select(branch_stats).order_by(branch_stats.c.branch_id)
        with self.engine.connect() as conn:
            return [
                BranchStats(
                    branch_id=row.branch_id,
                    branch_name=row.branch_name,
                    updated_at=row.updated_at,
                    **{name: int(getattr(row, name)) for name in BRANCH_STATS_FIELDS},
                )
                for row in conn.execute(stmt)
            ]

    def upsert_prices(self, items: Sequence[Price]) -> int:
        if not items:
            return 0

        now = datetime.now(timezone.utc)
        rows = [
            {
                "symbol": p.symbol,
                "price": str(p.price) if self._is_sqlite else p.price,
                "updated_at": now,
                "created_at": now,
            }
            for p in items
        ]

        with self.engine.begin() as conn:
            if self._is_sqlite:
                return self._upsert_prices_sqlite(conn, rows)
            else:
                return self._upsert_prices_postgres(conn, rows)

    def _upsert_prices_postgres(self, conn: Connection, rows: list[dict]) -> int:
        stmt = pg_insert(prices).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol"],
            set_={"price": stmt.excluded.price, "updated_at": stmt.excluded.updated_at},
        )
        result = conn.execute(stmt)
        return result.rowcount

    def _upsert_prices_sqlite(self, conn: Connection, rows: list[dict]) -> int:
        stmt = sqlite_insert(prices).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol"],
            set_={"price": stmt.excluded.price, "updated_at": stmt.excluded.updated_at},
        )
        result = conn.execute(stmt)
        return result.rowcount

    def get_prices(self) -> list[Price]:
        stmt = select(prices).order_by(prices.c.symbol)
        with self.engine.connect() as conn:
            return [
                Price(symbol=row.symbol, price=Decimal(str(row.price)))
                for row in conn.execute(stmt)
            ]

    def insert_global_stats(self, stats: GlobalStats) -> GlobalStats:
        created_at = stats.created_at or datetime.now(timezone.utc)
        row: dict[str, Any] = {"id": str(uuid.uuid4()), "created_at": created_at}
        for name in GLOBAL_STATS_FIELDS:
            row[name] = self._amount(getattr(stats, name))

        with self.engine.begin() as conn:
            conn.execute(global_stats.insert().values(row))

        return GlobalStats(
            created_at=created_at,
            **{name: getattr(stats, name) for name in GLOBAL_STATS_FIELDS},
        )

    def get_latest_global_stats(self, limit: int = 1) -> list[GlobalStats]:
        """Newest rows first."""
        stmt = (
            select(global_stats)
            .order_by(global_stats.c.created_at.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [
                GlobalStats(
                    created_at=row.created_at,
                    **{name: int(getattr(row, name)) for name in GLOBAL_STATS_FIELDS},
                )
                for row in conn.execute(stmt)
            ]
