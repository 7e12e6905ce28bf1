import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str | None:
    """Find .env file, preferring .env.local for local development."""
    for env_file in [".env.local", ".env"]:
        for base in [".", os.environ.get("REPO_ROOT", "")]:
            if base:
                path = Path(base) / env_file
                if path.exists():
                    return str(path)
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # DATABASE_URL from environment (production/CI)
    # Falls back to SQLite for local development if not set
    database_url: str = "sqlite:///./local.db"

    # JSON-RPC endpoint of the chain the protocol is deployed on
    rpc_url: str = ""
    rpc_timeout: float = 30.0

    # Protocol contract addresses (see adapters/liquity_v2/config.py)
    contracts_file: str = "contracts.json"

    # Node providers cap eth_getLogs block ranges
    logs_block_chunk: int = 9000
    timestamp_workers: int = 8


settings = Settings()
