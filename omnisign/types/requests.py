import copy
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Model serialized with the camelCase field names used on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AssetRef(WireModel):
    asset_id: str = Field(description="Aggregated (ob:usdc) or CAIP-19 asset identifier")


class SwapParams(WireModel):
    from_asset_id: str = Field(description="Asset to spend")
    to_asset_id: str = Field(description="Asset to receive")
    amount: str = Field(description="Amount in the source asset's smallest unit")
    decimals: Optional[int] = Field(default=None, description="Decimals of the source asset")
    slippage_tolerance: Optional[float] = Field(default=None, description="Slippage tolerance in percent")
    recipient_account: Optional[str] = Field(default=None, description="CAIP-10 recipient account")


class QuoteSourceV1(WireModel):
    account: Dict[str, Any] = Field(description="Wire form of the spending account")
    asset: AssetRef
    amount: str


class QuoteSourceV3(WireModel):
    accounts: List[Dict[str, Any]] = Field(description="Wire form of every spending account")
    asset: AssetRef
    amount: str


class QuoteDestination(WireModel):
    asset: AssetRef
    account: Optional[str] = Field(default=None, description="CAIP-10 recipient account")


class QuoteRequestV1(WireModel):
    from_: QuoteSourceV1 = Field(alias="from")
    to: QuoteDestination
    slippage_tolerance: Optional[float] = None


class QuoteRequestV3(WireModel):
    from_: QuoteSourceV3 = Field(alias="from")
    to: QuoteDestination
    slippage_tolerance: Optional[float] = None


class EvmCall(WireModel):
    to: str
    data: Optional[str] = None
    value: Optional[str] = None


class TokenRequirement(WireModel):
    asset_type: str
    amount: str


class TokenAllowanceRequirement(TokenRequirement):
    spender: str


class StateOverride(WireModel):
    address: str
    balance: Optional[str] = None
    code: Optional[str] = None
    state_diff: Optional[Dict[str, str]] = None


class PrepareCallRequest(WireModel):
    account: Dict[str, Any]
    target_chain: str = Field(description="CAIP-2 chain the calls execute on")
    calls: List[EvmCall]
    tokens_required: List[TokenRequirement] = Field(default_factory=list)
    allowance_requirements: Optional[List[TokenAllowanceRequirement]] = None
    overrides: Optional[List[StateOverride]] = None
    valid_after: Optional[str] = None
    valid_until: Optional[str] = None


class PrepareCallRequestV3(WireModel):
    accounts: List[Dict[str, Any]]
    target_chain: str = Field(description="CAIP-2 chain the calls execute on")
    calls: List[EvmCall]
    tokens_required: Optional[List[TokenRequirement]] = None
    allowance_requirements: Optional[List[TokenAllowanceRequirement]] = None
    overrides: Optional[List[StateOverride]] = None
    valid_after: Optional[str] = None
    valid_until: Optional[str] = None
    from_asset_id: Optional[str] = None
    slippage_tolerance: Optional[float] = None


class CallRequest(WireModel):
    """Signed prepared call quote sent back for an executable quote."""
    account: Dict[str, Any]
    chain_operation: Dict[str, Any]
    tamper_proof_signature: str
    from_aggregated_asset_id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        # The chain operation is covered by the tamper-proof signature; send it verbatim
        data = super().to_wire()
        data["chainOperation"] = copy.deepcopy(self.chain_operation)
        return data


class CallRequestV3(CallRequest):
    account: Optional[Dict[str, Any]] = None
    accounts: List[Dict[str, Any]]
    from_asset_id: Optional[str] = None
    slippage_tolerance: Optional[float] = None
