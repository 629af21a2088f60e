"""
Quote and call request building, and validation of V3 quote requests.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Union

from ..types.requests import (
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
from .accounts import Account, ContractAccountType
from .operations import TargetCallQuote


AccountLike = Union[Account, Dict[str, Any]]


class QuoteRequestError(ValueError):
    """A quote request is missing data or has out-of-range values."""


def _account_wire(account: AccountLike) -> Dict[str, Any]:
    if isinstance(account, dict):
        return dict(account)
    return account.to_wire()


def _account_type(account: AccountLike) -> Optional[str]:
    if isinstance(account, dict):
        return account.get("type")
    return account.type.value


def build_quote_request(
    swap_params: SwapParams,
    accounts: Sequence[AccountLike],
    slippage_tolerance: Optional[float] = None,
    recipient_account: Optional[str] = None,
) -> QuoteRequestV3:
    """
    Build a V3 quote request spending from ``accounts``.

    ``slippage_tolerance`` and ``recipient_account`` fall back to the values
    carried by ``swap_params``.
    """
    if slippage_tolerance is None:
        slippage_tolerance = swap_params.slippage_tolerance
    if recipient_account is None:
        recipient_account = swap_params.recipient_account

    return QuoteRequestV3(
        from_=QuoteSourceV3(
            accounts=[_account_wire(account) for account in accounts],
            asset=AssetRef(asset_id=swap_params.from_asset_id),
            amount=swap_params.amount,
        ),
        to=QuoteDestination(
            asset=AssetRef(asset_id=swap_params.to_asset_id),
            account=recipient_account,
        ),
        slippage_tolerance=slippage_tolerance,
    )


def build_transfer_request(
    asset_id: str,
    amount: str,
    accounts: Sequence[AccountLike],
    recipient_account: str,
    slippage_tolerance: Optional[float] = None,
) -> QuoteRequestV3:
    """Transfer: same asset on both sides, sent to ``recipient_account``."""
    return build_quote_request(
        SwapParams(from_asset_id=asset_id, to_asset_id=asset_id, amount=amount),
        accounts,
        slippage_tolerance=slippage_tolerance,
        recipient_account=recipient_account,
    )


def build_cross_chain_quote_request(
    swap_params: SwapParams,
    accounts: Sequence[AccountLike],
    slippage_tolerance: Optional[float] = None,
    recipient_account: Optional[str] = None,
) -> QuoteRequestV3:
    """
    Build a quote request for operations spanning EVM and Solana.

    Raises:
        QuoteRequestError: no kernel v3.1 EVM account and no Solana account
    """
    types = {_account_type(account) for account in accounts}
    has_evm = ContractAccountType.KERNEL_V31.value in types
    has_solana = ContractAccountType.SOLANA.value in types
    if not has_evm and not has_solana:
        raise QuoteRequestError("At least one EVM or Solana account required for cross-chain operations")
    return build_quote_request(
        swap_params,
        accounts,
        slippage_tolerance=slippage_tolerance,
        recipient_account=recipient_account,
    )


def _is_positive_amount(amount: str) -> bool:
    if not amount:
        return False
    try:
        return int(amount) > 0
    except ValueError:
        return amount != "0"


def validate_quote_request(request: QuoteRequestV3) -> None:
    """
    Check a quote request before sending it.

    Raises:
        QuoteRequestError: the first problem found
    """
    if not request.from_.accounts:
        raise QuoteRequestError("At least one account is required")
    if not request.from_.asset.asset_id:
        raise QuoteRequestError("Source asset ID is required")
    if not request.to.asset.asset_id:
        raise QuoteRequestError("Destination asset ID is required")
    if not _is_positive_amount(request.from_.amount):
        raise QuoteRequestError("Amount must be greater than 0")
    if request.slippage_tolerance is not None and not 0 <= request.slippage_tolerance <= 100:
        raise QuoteRequestError("Slippage tolerance must be between 0 and 100")


def build_quote_request_v1(
    swap_params: SwapParams,
    account: AccountLike,
    slippage_tolerance: Optional[float] = None,
    recipient_account: Optional[str] = None,
) -> QuoteRequestV1:
    """Single-account V1 quote request (EVM accounts only)."""
    if _account_type(account) == ContractAccountType.SOLANA.value:
        raise QuoteRequestError("V1 quotes do not support Solana accounts; use a V3 quote request")
    request = build_quote_request(swap_params, [account], slippage_tolerance, recipient_account)
    return QuoteRequestV1(
        from_=QuoteSourceV1(
            account=_account_wire(account),
            asset=request.from_.asset,
            amount=request.from_.amount,
        ),
        to=request.to,
        slippage_tolerance=request.slippage_tolerance,
    )


CallLike = Union[EvmCall, Dict[str, Any]]


def build_prepare_call_request(
    account: AccountLike,
    target_chain: str,
    calls: Sequence[CallLike],
    tokens_required: Sequence[Union[TokenRequirement, Dict[str, Any]]] = (),
    allowance_requirements: Optional[Sequence[Union[TokenAllowanceRequirement, Dict[str, Any]]]] = None,
    overrides: Optional[Sequence[Union[StateOverride, Dict[str, Any]]]] = None,
    valid_after: Optional[str] = None,
    valid_until: Optional[str] = None,
) -> PrepareCallRequest:
    """
    Request a call quote executing ``calls`` on ``target_chain`` (CAIP-2) from
    a single EVM account.
    """
    if not calls:
        raise QuoteRequestError("At least one call is required")
    return PrepareCallRequest(
        account=_account_wire(account),
        target_chain=target_chain,
        calls=list(calls),
        tokens_required=list(tokens_required),
        allowance_requirements=list(allowance_requirements) if allowance_requirements is not None else None,
        overrides=list(overrides) if overrides is not None else None,
        valid_after=valid_after,
        valid_until=valid_until,
    )


def build_prepare_call_request_v3(
    accounts: Sequence[AccountLike],
    target_chain: str,
    calls: Sequence[CallLike],
    tokens_required: Optional[Sequence[Union[TokenRequirement, Dict[str, Any]]]] = None,
    allowance_requirements: Optional[Sequence[Union[TokenAllowanceRequirement, Dict[str, Any]]]] = None,
    overrides: Optional[Sequence[Union[StateOverride, Dict[str, Any]]]] = None,
    from_asset_id: Optional[str] = None,
    slippage_tolerance: Optional[float] = None,
) -> PrepareCallRequestV3:
    """Multi-account variant; Solana accounts may fund the call."""
    if not accounts:
        raise QuoteRequestError("At least one account is required")
    if not calls:
        raise QuoteRequestError("At least one call is required")
    return PrepareCallRequestV3(
        accounts=[_account_wire(account) for account in accounts],
        target_chain=target_chain,
        calls=list(calls),
        tokens_required=list(tokens_required) if tokens_required is not None else None,
        allowance_requirements=list(allowance_requirements) if allowance_requirements is not None else None,
        overrides=list(overrides) if overrides is not None else None,
        from_asset_id=from_asset_id,
        slippage_tolerance=slippage_tolerance,
    )


def build_call_request(
    target: TargetCallQuote,
    from_aggregated_asset_id: Optional[str] = None,
) -> CallRequest:
    """Turn a signed prepared call quote into the request for an executable quote."""
    wire = target.to_wire()
    if "account" not in wire:
        raise QuoteRequestError("Prepared call quote has no account")
    return CallRequest(
        account=wire["account"],
        chain_operation=wire["chainOperation"],
        tamper_proof_signature=target.tamper_proof_signature or "",
        from_aggregated_asset_id=from_aggregated_asset_id,
    )


def build_call_request_v3(
    target: TargetCallQuote,
    accounts: Sequence[AccountLike],
    from_aggregated_asset_id: Optional[str] = None,
    from_asset_id: Optional[str] = None,
    slippage_tolerance: Optional[float] = None,
) -> CallRequestV3:
    if not accounts:
        raise QuoteRequestError("At least one account is required")
    wire = target.to_wire()
    return CallRequestV3(
        accounts=[_account_wire(account) for account in accounts],
        chain_operation=wire["chainOperation"],
        tamper_proof_signature=target.tamper_proof_signature or "",
        from_aggregated_asset_id=from_aggregated_asset_id,
        from_asset_id=from_asset_id,
        slippage_tolerance=slippage_tolerance,
    )
