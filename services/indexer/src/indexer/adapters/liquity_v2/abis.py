"""Event and view-function ABIs of the Liquity v2 contracts we read."""

from typing import Any

DEPOSIT_UPDATED_EVENT_ABI: dict[str, Any] = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "_depositor", "type": "address"},
        {"indexed": False, "name": "_newDeposit", "type": "uint256"},
        {"indexed": False, "name": "_stashedColl", "type": "uint256"},
    ],
    "name": "DepositUpdated",
    "type": "event",
}

TRANSFER_EVENT_ABI: dict[str, Any] = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "from", "type": "address"},
        {"indexed": True, "name": "to", "type": "address"},
        {"indexed": False, "name": "value", "type": "uint256"},
    ],
    "name": "Transfer",
    "type": "event",
}

LIQUIDATION_EVENT_ABI: dict[str, Any] = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": name, "type": "uint256"}
        for name in [
            "_debtOffsetBySP",
            "_debtRedistributed",
            "_boldGasCompensation",
            "_collGasCompensation",
            "_collSentToSP",
            "_collRedistributed",
            "_collSurplus",
            "_L_ETH",
            "_L_boldDebt",
            "_price",
        ]
    ],
    "name": "Liquidation",
    "type": "event",
}

# Stability pool views sampled by the snapshot job
GET_TOTAL_BOLD_DEPOSITS = "getTotalBoldDeposits"
GET_COLL_BALANCE = "getCollBalance"


def event_signature(event_abi: dict[str, Any]) -> str:
    """e.g. 'Transfer(address,address,uint256)'"""
    types = ",".join(i["type"] for i in event_abi["inputs"])
    return f"{event_abi['name']}({types})"
