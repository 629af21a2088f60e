from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from ..core.operations import OperationStatus
from .requests import WireModel


class PredictAddressResponse(WireModel):
    predicted_address: str


class OperationDetails(WireModel):
    hash: Optional[str] = None
    chain_id: Optional[int] = None
    chain: Optional[str] = None
    explorer_url: Optional[str] = None


class ExecutionStatusResponse(WireModel):
    quote_id: Optional[str] = None
    # Unrecognized status strings are kept as-is
    status: Union[OperationStatus, str] = Field(union_mode="left_to_right")
    user: Optional[str] = None
    recipient_account_id: Optional[str] = None
    fail_reason: Optional[str] = Field(default=None, description="Set when the status is FAILED or REFUNDED")
    origin_chain_operations: List[OperationDetails] = Field(default_factory=list)
    destination_chain_operations: List[OperationDetails] = Field(default_factory=list)

    @property
    def operation_status(self) -> Optional[OperationStatus]:
        return self.status if isinstance(self.status, OperationStatus) else None


class HistoryTransaction(ExecutionStatusResponse):
    type: Optional[str] = Field(default=None, description="SWAP, TRANSFER or CALL")
    timestamp: Optional[str] = None


class HistoryResponse(WireModel):
    transactions: List[HistoryTransaction] = Field(default_factory=list)
    continuation: Optional[str] = None


class OpGuarantees(WireModel):
    non_equivocation: bool = Field(alias="non_equivocation")
    reorg_protection: bool = Field(alias="reorg_protection")
    valid_until: Optional[int] = Field(default=None, alias="valid_until")
    valid_after: Optional[int] = Field(default=None, alias="valid_after")


class BundleResponse(WireModel):
    success: bool
    guarantees: Optional[Dict[str, OpGuarantees]] = None
    error: Optional[str] = None


class IndividualAssetBalance(WireModel):
    asset_type: str
    balance: str
    fiat_value: Optional[float] = None


class AggregatedAssetBalance(WireModel):
    aggregated_asset_id: str
    balance: str
    individual_asset_balances: List[IndividualAssetBalance] = Field(default_factory=list)
    fiat_value: Optional[float] = None


class TotalBalance(WireModel):
    fiat_value: float


class AggregatedBalanceResponse(WireModel):
    accounts: Optional[Dict[str, str]] = Field(default=None, description="V3 only: evm / solana accounts queried")
    balance_by_aggregated_asset: List[AggregatedAssetBalance] = Field(default_factory=list)
    balance_by_specific_asset: List[IndividualAssetBalance] = Field(default_factory=list)
    total_balance: Optional[TotalBalance] = None

    def aggregated(self, aggregated_asset_id: str) -> Optional[AggregatedAssetBalance]:
        for entry in self.balance_by_aggregated_asset:
            if entry.aggregated_asset_id == aggregated_asset_id:
                return entry
        return None


class AggregatedAsset(WireModel):
    aggregated_asset_id: str
    symbol: str
    name: str
    decimals: int
    logo_url: Optional[str] = None
    aggregated_entities: List[Dict[str, Any]] = Field(default_factory=list)


class ChainEntity(WireModel):
    chain: str = Field(description="CAIP-2 chain identifier")
    namespace: str
    reference: str


class SupportedChain(WireModel):
    chain: ChainEntity
    is_testnet: bool = False
