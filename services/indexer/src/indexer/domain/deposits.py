from typing import Iterable

from services.indexer.src.indexer.domain.models import DepositorPosition, DepositUpdatedRecord


def fold_current_deposits(events: Iterable[DepositUpdatedRecord]) -> list[DepositorPosition]:
    """
    Reduce the DepositUpdated ledger to each depositor's current balance per branch.

    The latest event by (block_number, log_index) wins. Depositors are matched
    case-insensitively; zero balances are dropped.
    """
    latest: dict[tuple[str, int], DepositUpdatedRecord] = {}
    for event in sorted(events, key=lambda e: (e.block_number, e.log_index)):
        latest[(event.depositor.lower(), event.branch_id)] = event

    positions = [
        DepositorPosition(depositor=e.depositor, branch_id=e.branch_id, amount=e.deposit_amount)
        for e in latest.values()
        if e.deposit_amount > 0
    ]
    positions.sort(key=lambda p: (p.depositor.lower(), p.branch_id))
    return positions
