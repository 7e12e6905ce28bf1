from services.indexer.src.indexer.schemas.responses import (
    ApyDataPoints,
    ApyResponse,
    BranchStatsResponse,
    DepositEventResponse,
    DepositorPositionResponse,
    EventHistoryResponse,
    InterestRewardResponse,
    LiquidationResponse,
    StatsResponse,
)

__all__ = [
    "ApyDataPoints",
    "ApyResponse",
    "BranchStatsResponse",
    "DepositEventResponse",
    "DepositorPositionResponse",
    "EventHistoryResponse",
    "InterestRewardResponse",
    "LiquidationResponse",
    "StatsResponse",
]
