from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
)

metadata = MetaData()

# uint256 token amounts. SQLite has no exact decimal type, so amounts are
# stored as text there and parsed back to int by the repositories.
TokenAmount = Numeric(78, 0).with_variant(String(80), "sqlite")
PriceValue = Numeric(50, 8).with_variant(String(64), "sqlite")

event_query_state = Table(
    "event_query_state",
    metadata,
    Column("event_type", String(100), primary_key=True),
    Column("last_queried_from_block", BigInteger, nullable=False),
    Column("last_queried_to_block", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

# Append-only ledger tables. The id is "{transaction_hash}-{log_index}" so
# re-delivery of the same log after a crash is a no-op insert.
sp_deposit_events = Table(
    "sp_deposit_events",
    metadata,
    Column("id", String(200), primary_key=True),
    Column("depositor", String(42), nullable=False),
    Column("deposit_amount", TokenAmount, nullable=False),
    Column("stashed_coll", TokenAmount, nullable=False),
    Column("block_number", BigInteger, nullable=False),
    # NULL when the block lookup failed at ingestion time
    Column("block_timestamp", BigInteger, nullable=True),
    Column("transaction_hash", String(66), nullable=False),
    Column("log_index", Integer, nullable=False),
    Column("branch_id", Integer, nullable=False),
    Column("sp_address", String(42), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("transaction_hash", "log_index", name="uq_sp_deposit_events_log"),
    Index("ix_sp_deposit_events_branch", "branch_id", "block_number"),
    Index("ix_sp_deposit_events_depositor", "depositor", "branch_id"),
    Index("ix_sp_deposit_events_timestamp", "block_timestamp"),
)

interest_rewards = Table(
    "interest_rewards",
    metadata,
    Column("id", String(200), primary_key=True),
    Column("branch_id", Integer, nullable=False),
    Column("stability_pool", String(42), nullable=False),
    Column("amount", TokenAmount, nullable=False),
    Column("block_number", BigInteger, nullable=False),
    Column("block_timestamp", BigInteger, nullable=True),
    Column("transaction_hash", String(66), nullable=False),
    Column("log_index", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("transaction_hash", "log_index", name="uq_interest_rewards_log"),
    Index("ix_interest_rewards_branch_ts", "branch_id", "block_timestamp"),
)

liquidation_logs = Table(
    "liquidation_logs",
    metadata,
    Column("id", String(200), primary_key=True),
    Column("branch_id", Integer, nullable=False),
    Column("trove_manager", String(42), nullable=False),
    Column("debt_offset_by_sp", TokenAmount, nullable=False),
    Column("debt_redistributed", TokenAmount, nullable=False),
    Column("bold_gas_compensation", TokenAmount, nullable=False),
    Column("coll_gas_compensation", TokenAmount, nullable=False),
    Column("coll_sent_to_sp", TokenAmount, nullable=False),
    Column("coll_redistributed", TokenAmount, nullable=False),
    Column("coll_surplus", TokenAmount, nullable=False),
    Column("l_eth", TokenAmount, nullable=False),
    Column("l_bold_debt", TokenAmount, nullable=False),
    Column("price", TokenAmount, nullable=False),
    Column("block_number", BigInteger, nullable=False),
    Column("block_timestamp", BigInteger, nullable=True),
    Column("transaction_hash", String(66), nullable=False),
    Column("log_index", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("transaction_hash", "log_index", name="uq_liquidation_logs_log"),
    Index("ix_liquidation_logs_branch_ts", "branch_id", "block_timestamp"),
)

sp_deposit_snapshots = Table(
    "sp_deposit_snapshots",
    metadata,
    # "{branch_id}-{block_number}"
    Column("id", String(100), primary_key=True),
    Column("branch_id", Integer, nullable=False),
    Column("stability_pool", String(42), nullable=False),
    Column("total_bold_deposits", TokenAmount, nullable=False),
    Column("total_coll_balance", TokenAmount, nullable=False),
    Column("block_number", BigInteger, nullable=False),
    Column("block_timestamp", BigInteger, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("branch_id", "block_number", name="uq_sp_snapshot_key"),
    Index("ix_sp_snapshots_branch_ts", "branch_id", "block_timestamp"),
)

# Materialized current view, rebuilt from the ledger by jobs/refresh_stats.py.
# APY columns hold the raw 1e18-scaled integer.
branch_stats = Table(
    "branch_stats",
    metadata,
    Column("branch_id", Integer, primary_key=True),
    Column("branch_name", String(50), nullable=False, unique=True),
    Column("sp_deposits", TokenAmount, nullable=False),
    Column("sp_apy", TokenAmount, nullable=False),
    Column("apy_avg", TokenAmount, nullable=False),
    Column("sp_apy_avg_1d", TokenAmount, nullable=False),
    Column("sp_apy_avg_7d", TokenAmount, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

prices = Table(
    "prices",
    metadata,
    Column("symbol", String(50), primary_key=True),
    Column("price", PriceValue, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

global_stats = Table(
    "global_stats",
    metadata,
    Column("id", String, primary_key=True),
    Column("total_bold_supply", TokenAmount, nullable=False),
    Column("total_debt_pending", TokenAmount, nullable=False),
    Column("total_coll_value", TokenAmount, nullable=False),
    Column("total_sp_deposits", TokenAmount, nullable=False),
    Column("total_value_locked", TokenAmount, nullable=False),
    Column("max_sp_apy", TokenAmount, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_global_stats_created", "created_at"),
)
