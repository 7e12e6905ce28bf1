from services.indexer.src.indexer.domain.deposits import fold_current_deposits
from services.indexer.src.indexer.domain.models import DepositUpdatedRecord

ALICE = "0xAAAAaaaaAAAAaaaaAAAAaaaaAAAAaaaaAAAAaaaa"
BOB = "0xBBBBbbbbBBBBbbbbBBBBbbbbBBBBbbbbBBBBbbbb"


def deposit(depositor: str, branch_id: int, amount: int, block: int, log_index: int = 0):
    return DepositUpdatedRecord(
        depositor=depositor,
        deposit_amount=amount,
        stashed_coll=0,
        block_number=block,
        block_timestamp=block * 12,
        transaction_hash=f"0x{block}",
        log_index=log_index,
        branch_id=branch_id,
        sp_address="0xsp",
    )


class TestFoldCurrentDeposits:

    def test_latest_event_wins(self):
        positions = fold_current_deposits([
            deposit(ALICE, 0, 300, block=30),
            deposit(ALICE, 0, 100, block=10),
            deposit(ALICE, 0, 200, block=20),
        ])

        assert [(p.depositor, p.amount) for p in positions] == [(ALICE, 300)]

    def test_log_index_breaks_ties_within_a_block(self):
        positions = fold_current_deposits([
            deposit(ALICE, 0, 2, block=10, log_index=4),
            deposit(ALICE, 0, 1, block=10, log_index=2),
        ])

        assert positions[0].amount == 2

    def test_branches_are_separate(self):
        positions = fold_current_deposits([
            deposit(ALICE, 0, 1, block=10),
            deposit(ALICE, 1, 2, block=11),
        ])

        assert [(p.branch_id, p.amount) for p in positions] == [(0, 1), (1, 2)]

    def test_drops_withdrawn_positions(self):
        positions = fold_current_deposits([
            deposit(ALICE, 0, 100, block=10),
            deposit(ALICE, 0, 0, block=20),
            deposit(BOB, 0, 5, block=15),
        ])

        assert [p.depositor for p in positions] == [BOB]

    def test_matches_depositor_case_insensitively(self):
        positions = fold_current_deposits([
            deposit(ALICE, 0, 100, block=10),
            deposit(ALICE.lower(), 0, 50, block=20),
        ])

        assert len(positions) == 1
        assert positions[0].amount == 50

    def test_empty(self):
        assert fold_current_deposits([]) == []
