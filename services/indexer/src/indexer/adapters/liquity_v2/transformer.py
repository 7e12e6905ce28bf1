from typing import Any

from services.indexer.src.indexer.adapters.liquity_v2.config import ProtocolConfig
from services.indexer.src.indexer.adapters.liquity_v2.rpc import RawLog
from services.indexer.src.indexer.domain.models import (
    DepositUpdatedRecord,
    InterestRewardRecord,
    LiquidationRecord,
)

# Liquidation event argument -> LiquidationRecord field
LIQUIDATION_ARGS = {
    "_debtOffsetBySP": "debt_offset_by_sp",
    "_debtRedistributed": "debt_redistributed",
    "_boldGasCompensation": "bold_gas_compensation",
    "_collGasCompensation": "coll_gas_compensation",
    "_collSentToSP": "coll_sent_to_sp",
    "_collRedistributed": "coll_redistributed",
    "_collSurplus": "coll_surplus",
    "_L_ETH": "l_eth",
    "_L_boldDebt": "l_bold_debt",
    "_price": "price",
}


class TransformationError(Exception):
    """Raised when a log is missing a field or comes from an unknown contract."""

    def __init__(self, field: str, detail: str | None = None):
        self.field = field
        message = f"Missing required field: {field}" if detail is None else f"{field}: {detail}"
        super().__init__(message)


def _get_arg(log: RawLog, key: str) -> Any:
    if key not in log.args or log.args[key] is None:
        raise TransformationError(key)
    return log.args[key]


def _get_uint(log: RawLog, key: str) -> int:
    value = int(_get_arg(log, key))
    if value < 0:
        raise TransformationError(key, f"negative uint256 {value}")
    return value


def transform_deposit_updated(
    log: RawLog, config: ProtocolConfig, block_timestamp: int | None
) -> DepositUpdatedRecord:
    """Transform a StabilityPool DepositUpdated log.

    Raises:
        TransformationError: If an argument is missing or the emitting pool
            is not configured.
    """
    branch = config.branch_for_stability_pool(log.address)
    if branch is None:
        raise TransformationError("address", f"unknown stability pool {log.address}")

    return DepositUpdatedRecord(
        depositor=str(_get_arg(log, "_depositor")),
        deposit_amount=_get_uint(log, "_newDeposit"),
        stashed_coll=_get_uint(log, "_stashedColl"),
        block_number=log.block_number,
        block_timestamp=block_timestamp,
        transaction_hash=log.transaction_hash,
        log_index=log.log_index,
        branch_id=branch.branch_id,
        sp_address=branch.stability_pool,
    )


def transform_interest_reward(
    log: RawLog, config: ProtocolConfig, block_timestamp: int | None
) -> InterestRewardRecord:
    """Transform a BOLD Transfer (mint into a stability pool).

    The branch is resolved from the recipient, not the emitter.
    """
    recipient = str(_get_arg(log, "to"))
    branch = config.branch_for_stability_pool(recipient)
    if branch is None:
        raise TransformationError("to", f"unknown stability pool {recipient}")

    return InterestRewardRecord(
        branch_id=branch.branch_id,
        stability_pool=branch.stability_pool,
        amount=_get_uint(log, "value"),
        block_number=log.block_number,
        block_timestamp=block_timestamp,
        transaction_hash=log.transaction_hash,
        log_index=log.log_index,
    )


def transform_liquidation(
    log: RawLog, config: ProtocolConfig, block_timestamp: int | None
) -> LiquidationRecord:
    branch = config.branch_for_trove_manager(log.address)
    if branch is None:
        raise TransformationError("address", f"unknown trove manager {log.address}")

    amounts = {field: _get_uint(log, arg) for arg, field in LIQUIDATION_ARGS.items()}
    return LiquidationRecord(
        branch_id=branch.branch_id,
        trove_manager=branch.trove_manager,
        block_number=log.block_number,
        block_timestamp=block_timestamp,
        transaction_hash=log.transaction_hash,
        log_index=log.log_index,
        **amounts,
    )
