from .requests import (
    AssetRef,
    CallRequest,
    CallRequestV3,
    EvmCall,
    PrepareCallRequest,
    PrepareCallRequestV3,
    QuoteDestination,
    QuoteRequestV1,
    QuoteRequestV3,
    QuoteSourceV1,
    QuoteSourceV3,
    StateOverride,
    SwapParams,
    TokenAllowanceRequirement,
    TokenRequirement,
)
from .responses import (
    AggregatedAsset,
    AggregatedAssetBalance,
    AggregatedBalanceResponse,
    BundleResponse,
    ExecutionStatusResponse,
    HistoryResponse,
    HistoryTransaction,
    OperationDetails,
    PredictAddressResponse,
    SupportedChain,
)

__all__ = [
    "AssetRef",
    "CallRequest",
    "CallRequestV3",
    "EvmCall",
    "PrepareCallRequest",
    "PrepareCallRequestV3",
    "QuoteDestination",
    "QuoteRequestV1",
    "QuoteRequestV3",
    "QuoteSourceV1",
    "QuoteSourceV3",
    "StateOverride",
    "SwapParams",
    "TokenAllowanceRequirement",
    "TokenRequirement",
    "AggregatedAsset",
    "AggregatedAssetBalance",
    "AggregatedBalanceResponse",
    "BundleResponse",
    "ExecutionStatusResponse",
    "HistoryResponse",
    "HistoryTransaction",
    "OperationDetails",
    "PredictAddressResponse",
    "SupportedChain",
]
