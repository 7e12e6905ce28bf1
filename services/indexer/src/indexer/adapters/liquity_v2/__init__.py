from services.indexer.src.indexer.adapters.liquity_v2.config import (
    ProtocolConfig,
    get_default_config,
)
from services.indexer.src.indexer.adapters.liquity_v2.rpc import (
    MockRpcClient,
    RpcClient,
    Web3RpcClient,
)
from services.indexer.src.indexer.adapters.liquity_v2.transformer import TransformationError

__all__ = [
    "MockRpcClient",
    "ProtocolConfig",
    "RpcClient",
    "TransformationError",
    "Web3RpcClient",
    "get_default_config",
]
