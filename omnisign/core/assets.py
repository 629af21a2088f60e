"""
Chain and asset identifiers.

Chains are CAIP-2 strings (``namespace:reference``, e.g. ``eip155:42161`` or
``solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp``). Chain-specific assets append an
asset namespace and reference (``eip155:42161/erc20:0xaf88...``,
``solana:5eykt4.../token:EPjF...``, ``eip155:1/slip44:60``). Aggregated
assets use a bare ``ob:`` or ``ds:`` identifier (``ob:usdc``, ``ds:sol``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

SOLANA_NAMESPACE = "solana"
EVM_NAMESPACE = "eip155"
SOLANA_MAINNET_REFERENCE = "5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"
SOLANA_MAINNET_CHAIN = f"{SOLANA_NAMESPACE}:{SOLANA_MAINNET_REFERENCE}"

NATIVE_SOL_ASSET_ID = "ds:sol"

_EVM_CHAIN_RE = re.compile(r"eip155:(\d+)")


@dataclass(frozen=True)
class AssetId:
    """A parsed asset identifier."""
    namespace: str
    reference: Optional[str] = None
    asset_namespace: Optional[str] = None
    asset_reference: Optional[str] = None

    @property
    def chain(self) -> Optional[str]:
        if self.reference is None:
            return None
        return f"{self.namespace}:{self.reference}"

    @property
    def is_aggregated(self) -> bool:
        return self.asset_namespace is None and self.namespace in ("ob", "ds")

    def __str__(self) -> str:
        base = f"{self.namespace}:{self.reference}" if self.reference is not None else self.namespace
        if self.asset_namespace is None:
            return base
        return f"{base}/{self.asset_namespace}:{self.asset_reference}"


def parse_asset_id(asset_id: str) -> AssetId:
    """
    Split an asset identifier into its CAIP parts.

    Raises:
        ValueError: the identifier is empty or malformed
    """
    if not asset_id or ":" not in asset_id:
        raise ValueError(f"Invalid asset id: {asset_id!r}")

    chain_part, _, asset_part = asset_id.partition("/")
    namespace, _, reference = chain_part.partition(":")
    if not namespace or not reference:
        raise ValueError(f"Invalid asset id: {asset_id!r}")

    if not asset_part:
        return AssetId(namespace=namespace, reference=reference)

    asset_namespace, sep, asset_reference = asset_part.partition(":")
    if not sep or not asset_namespace or not asset_reference:
        raise ValueError(f"Invalid asset id: {asset_id!r}")
    return AssetId(
        namespace=namespace,
        reference=reference,
        asset_namespace=asset_namespace,
        asset_reference=asset_reference,
    )


def evm_chain_id(chain_or_asset_id: str) -> int:
    """Numeric EVM chain id of an ``eip155`` chain or asset identifier."""
    parsed = parse_asset_id(chain_or_asset_id)
    if parsed.namespace != EVM_NAMESPACE:
        raise ValueError(f"Not an EVM identifier: {chain_or_asset_id!r}")
    try:
        return int(parsed.reference)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid EVM chain reference in {chain_or_asset_id!r}") from None


def is_solana_asset(asset_id: str) -> bool:
    """Check if the asset lives on Solana (chain-specific or native SOL)."""
    return asset_id.startswith(f"{SOLANA_NAMESPACE}:") or asset_id == NATIVE_SOL_ASSET_ID


def is_solana_involved(from_asset_id: str, to_asset_id: str) -> bool:
    """Check if either side of a swap touches Solana."""
    return is_solana_asset(from_asset_id) or is_solana_asset(to_asset_id)


def extract_solana_token_address(asset_id: str) -> Optional[str]:
    """
    Token mint address of a Solana token asset, or None.

    >>> extract_solana_token_address("solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp/token:EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")
    'EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v'
    """
    if not asset_id.startswith(f"{SOLANA_NAMESPACE}:"):
        return None
    parts = asset_id.split("/token:")
    if len(parts) != 2 or not parts[1]:
        return None
    return parts[1]


def caip10_account(chain: str, address: str) -> str:
    """CAIP-10 account identifier (``chain:address``)."""
    return f"{chain}:{address}"


def get_chain_identifier(asset_type: str) -> str:
    """
    Short chain label for an asset type: the EVM chain id, ``solana`` or
    ``unknown``.

    >>> get_chain_identifier("eip155:8453/erc20:0x833589fcd6edb6e08f4c7c32d4f71b54bda02913")
    '8453'
    """
    match = _EVM_CHAIN_RE.search(asset_type)
    if match:
        return match.group(1)
    if asset_type.startswith(f"{SOLANA_NAMESPACE}:"):
        return SOLANA_NAMESPACE
    return "unknown"
