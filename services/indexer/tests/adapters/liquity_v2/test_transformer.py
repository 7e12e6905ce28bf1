"""Tests for log -> record transformation."""

import pytest

from services.indexer.src.indexer.adapters.liquity_v2.config import (
    ZERO_ADDRESS,
    BranchConfig,
    ProtocolConfig,
)
from services.indexer.src.indexer.adapters.liquity_v2.rpc import RawLog
from services.indexer.src.indexer.adapters.liquity_v2.transformer import (
    TransformationError,
    transform_deposit_updated,
    transform_interest_reward,
    transform_liquidation,
)

SP_0 = "0xAbCdEf0000000000000000000000000000000001"
TM_0 = "0xAbCdEf0000000000000000000000000000000002"
UNKNOWN = "0x9999999999999999999999999999999999999999"
DEPOSITOR = "0x00000000000000000000000000000000000000d1"
TX = "0x" + "ab" * 32

CONFIG = ProtocolConfig(
    origin_block=0,
    bold_token="0x00000000000000000000000000000000000000b0",
    branches=[BranchConfig(branch_id=2, symbol="rETH", stability_pool=SP_0, trove_manager=TM_0)],
)


def make_log(address: str, event: str, args: dict) -> RawLog:
    return RawLog(
        address=address,
        event=event,
        args=args,
        block_number=1234,
        transaction_hash=TX,
        log_index=7,
    )


def liquidation_args(**overrides) -> dict:
    args = {
        "_debtOffsetBySP": 1,
        "_debtRedistributed": 2,
        "_boldGasCompensation": 3,
        "_collGasCompensation": 4,
        "_collSentToSP": 5,
        "_collRedistributed": 6,
        "_collSurplus": 7,
        "_L_ETH": 8,
        "_L_boldDebt": 9,
        "_price": 2500 * 10**18,
    }
    args.update(overrides)
    return args


class TestTransformDepositUpdated:

    def test_maps_fields(self):
        log = make_log(SP_0, "DepositUpdated", {
            "_depositor": DEPOSITOR, "_newDeposit": 10**24, "_stashedColl": 3,
        })

        record = transform_deposit_updated(log, CONFIG, 1_700_000_000)

        assert record.depositor == DEPOSITOR
        assert record.deposit_amount == 10**24
        assert record.stashed_coll == 3
        assert record.branch_id == 2
        assert record.sp_address == SP_0
        assert record.block_number == 1234
        assert record.block_timestamp == 1_700_000_000
        assert record.id == f"{TX}-7"

    def test_matches_pool_address_case_insensitively(self):
        log = make_log(SP_0.lower(), "DepositUpdated", {
            "_depositor": DEPOSITOR, "_newDeposit": 1, "_stashedColl": 0,
        })

        record = transform_deposit_updated(log, CONFIG, None)

        assert record.branch_id == 2
        assert record.block_timestamp is None

    def test_unknown_pool_raises(self):
        log = make_log(UNKNOWN, "DepositUpdated", {
            "_depositor": DEPOSITOR, "_newDeposit": 1, "_stashedColl": 0,
        })

        with pytest.raises(TransformationError) as exc_info:
            transform_deposit_updated(log, CONFIG, None)

        assert exc_info.value.field == "address"

    def test_missing_argument_raises(self):
        log = make_log(SP_0, "DepositUpdated", {"_depositor": DEPOSITOR, "_stashedColl": 0})

        with pytest.raises(TransformationError) as exc_info:
            transform_deposit_updated(log, CONFIG, None)

        assert exc_info.value.field == "_newDeposit"


class TestTransformInterestReward:

    def test_resolves_branch_from_recipient(self):
        log = make_log(CONFIG.bold_token, "Transfer", {
            "from": ZERO_ADDRESS, "to": SP_0.lower(), "value": 42 * 10**18,
        })

        record = transform_interest_reward(log, CONFIG, 99)

        assert record.branch_id == 2
        assert record.stability_pool == SP_0
        assert record.amount == 42 * 10**18
        assert record.block_timestamp == 99

    def test_unknown_recipient_raises(self):
        log = make_log(CONFIG.bold_token, "Transfer", {
            "from": ZERO_ADDRESS, "to": UNKNOWN, "value": 1,
        })

        with pytest.raises(TransformationError) as exc_info:
            transform_interest_reward(log, CONFIG, None)

        assert exc_info.value.field == "to"


class TestTransformLiquidation:

    def test_maps_all_amounts(self):
        log = make_log(TM_0, "Liquidation", liquidation_args())

        record = transform_liquidation(log, CONFIG, 5)

        assert record.branch_id == 2
        assert record.trove_manager == TM_0
        assert record.debt_offset_by_sp == 1
        assert record.debt_redistributed == 2
        assert record.bold_gas_compensation == 3
        assert record.coll_gas_compensation == 4
        assert record.coll_sent_to_sp == 5
        assert record.coll_redistributed == 6
        assert record.coll_surplus == 7
        assert record.l_eth == 8
        assert record.l_bold_debt == 9
        assert record.price == 2500 * 10**18

    def test_keeps_full_uint256_precision(self):
        big = 2**256 - 1
        log = make_log(TM_0, "Liquidation", liquidation_args(_collSentToSP=big))

        record = transform_liquidation(log, CONFIG, None)

        assert record.coll_sent_to_sp == big

    def test_unknown_trove_manager_raises(self):
        log = make_log(UNKNOWN, "Liquidation", liquidation_args())

        with pytest.raises(TransformationError):
            transform_liquidation(log, CONFIG, None)
