import json
from pathlib import Path

from pydantic import BaseModel, Field

from services.indexer.src.indexer.config import settings

# Event kind keys, also used as checkpoint keys in event_query_state
SP_DEPOSIT_UPDATED = "SP_DEPOSIT_UPDATED"
TRANSFER = "TRANSFER"
LIQUIDATION = "LIQUIDATION"

EVENT_TYPES = [SP_DEPOSIT_UPDATED, TRANSFER, LIQUIDATION]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def require_rpc_url() -> None:
    """Validate RPC_URL is set. Call at job startup."""
    if not settings.rpc_url:
        raise RuntimeError(
            "RPC_URL environment variable is required. "
            "Point it at a JSON-RPC endpoint of the chain the protocol runs on."
        )


class BranchConfig(BaseModel):
    branch_id: int = Field(..., ge=0)
    symbol: str
    stability_pool: str
    trove_manager: str


class ProtocolConfig(BaseModel):
    origin_block: int = Field(0, ge=0, description="First block scanned when no checkpoint exists")
    bold_token: str
    branches: list[BranchConfig]

    def get_branch(self, branch_id: int) -> BranchConfig | None:
        for branch in self.branches:
            if branch.branch_id == branch_id:
                return branch
        return None

    def branch_for_stability_pool(self, address: str) -> BranchConfig | None:
        for branch in self.branches:
            if branch.stability_pool.lower() == address.lower():
                return branch
        return None

    def branch_for_trove_manager(self, address: str) -> BranchConfig | None:
        for branch in self.branches:
            if branch.trove_manager.lower() == address.lower():
                return branch
        return None

    def stability_pools(self) -> list[str]:
        return [b.stability_pool for b in self.branches]

    def trove_managers(self) -> list[str]:
        return [b.trove_manager for b in self.branches]


def load_config(path: str | Path) -> ProtocolConfig:
    """Load protocol addresses from a JSON file.

    Expected layout:
        {"origin_block": 22000000,
         "bold_token": "0x...",
         "branches": [{"branch_id": 0, "symbol": "WETH",
                       "stability_pool": "0x...", "trove_manager": "0x..."}]}
    """
    with open(path, encoding="utf-8") as f:
        return ProtocolConfig.model_validate(json.load(f))


def get_default_config() -> ProtocolConfig:
    """Configuration from the contracts file named in settings."""
    path = Path(settings.contracts_file)
    if not path.exists():
        raise RuntimeError(
            f"Contracts file not found: {path}. "
            "Set CONTRACTS_FILE to a JSON file describing the deployment."
        )
    return load_config(path)
