"""
Chain operation and quote models.

Operations wrap the exact wire dictionaries returned by the quote service.
The quote's tamper-proof signature is computed over those dictionaries, so
signing never edits them in place: every ``with_*`` method deep-copies the
wire data and adds or replaces signature fields only. Key order and the
encoding of every other value are preserved.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .accounts import Account, parse_account
from .errors import MissingSigningContextError
from .userop import UserOperation, parse_quantity


class OperationStatus(str, Enum):
    """Execution status reported by the status service."""
    PENDING = "PENDING"          # Submitted, processing not started
    IN_PROGRESS = "IN_PROGRESS"  # Executing steps
    EXECUTED = "EXECUTED"        # Destination executed, origin legs may be pending
    COMPLETED = "COMPLETED"      # All legs completed
    REFUNDED = "REFUNDED"        # A step failed and the operation was refunded
    FAILED = "FAILED"            # All steps failed

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED, OperationStatus.REFUNDED)

    @property
    def is_success(self) -> bool:
        return self is OperationStatus.COMPLETED

    @property
    def is_failure(self) -> bool:
        return self in (OperationStatus.FAILED, OperationStatus.REFUNDED)


class DelegationSignatureType(str, Enum):
    SIGNED = "Signed"
    UNSIGNED = "Unsigned"


@dataclass(frozen=True)
class DelegationSignature:
    """Signed EIP-7702 authorization tuple."""
    chain_id: int
    contract_address: str
    nonce: int
    r: str
    s: str
    v: str
    y_parity: int
    type: DelegationSignatureType = DelegationSignatureType.SIGNED

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "DelegationSignature":
        return cls(
            chain_id=int(data["chainId"]),
            contract_address=data["contractAddress"],
            nonce=int(data["nonce"]),
            r=data["r"],
            s=data["s"],
            v=data["v"],
            y_parity=int(data["yParity"]),
            type=DelegationSignatureType(data.get("type", DelegationSignatureType.SIGNED.value)),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "contractAddress": self.contract_address,
            "nonce": self.nonce,
            "r": self.r,
            "s": self.s,
            "v": self.v,
            "yParity": self.y_parity,
            "type": self.type.value,
        }


@dataclass(frozen=True)
class Delegation:
    """EIP-7702 delegation request attached to an EVM chain operation."""
    contract_address: str
    nonce: int
    signature: Optional[DelegationSignature] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Delegation":
        raw_signature = data.get("signature")
        signature = None
        if raw_signature and raw_signature.get("type") == DelegationSignatureType.SIGNED.value:
            signature = DelegationSignature.from_wire(raw_signature)
        if not data.get("contractAddress"):
            raise MissingSigningContextError(
                "Delegation contract address is required", missing_field="delegation.contractAddress"
            )
        try:
            nonce = parse_quantity(data.get("nonce"), "delegation.nonce")
        except ValueError as exc:
            raise MissingSigningContextError(str(exc), missing_field="delegation.nonce") from exc
        return cls(contract_address=data["contractAddress"], nonce=nonce, signature=signature)

    @property
    def is_signed(self) -> bool:
        return self.signature is not None


class _WireOperation:
    """Immutable view over an operation's wire dictionary."""

    kind: str = "unknown"

    def __init__(self, data: Dict[str, Any]):
        self._data = copy.deepcopy(data)

    def to_wire(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def _copy_data(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    @property
    def asset_type(self) -> Optional[str]:
        return self._data.get("assetType")

    @property
    def amount(self) -> Optional[int]:
        raw = self._data.get("amount")
        return parse_quantity(raw, "amount") if raw is not None else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _WireOperation):
            return NotImplemented
        return type(self) is type(other) and self._data == other._data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(asset_type={self.asset_type!r}, amount={self._data.get('amount')!r})"


class EvmChainOperation(_WireOperation):
    """One EVM chain's leg: a serialized UserOperation plus its typed data."""

    kind = "evm"

    @property
    def user_op(self) -> Optional[Dict[str, Any]]:
        user_op = self._data.get("userOp")
        return copy.deepcopy(user_op) if user_op is not None else None

    @property
    def typed_data(self) -> Optional[Dict[str, Any]]:
        typed_data = self._data.get("typedDataToSign")
        return copy.deepcopy(typed_data) if typed_data is not None else None

    @property
    def chain_id(self) -> Optional[int]:
        domain = (self._data.get("typedDataToSign") or {}).get("domain") or {}
        chain_id = domain.get("chainId")
        if chain_id is None or chain_id == "":
            return None
        try:
            return parse_quantity(chain_id, "chainId")
        except ValueError as exc:
            raise MissingSigningContextError(str(exc), missing_field="typedDataToSign.domain.chainId") from exc

    @property
    def delegation(self) -> Optional[Delegation]:
        raw = self._data.get("delegation")
        return Delegation.from_wire(raw) if raw else None

    @property
    def needs_delegation_signature(self) -> bool:
        delegation = self.delegation
        return delegation is not None and not delegation.is_signed

    @property
    def user_op_signature(self) -> Optional[str]:
        return (self._data.get("userOp") or {}).get("signature")

    def deserialize_user_op(self) -> UserOperation:
        user_op = self._data.get("userOp")
        if user_op is None:
            raise ValueError("Operation has no userOp")
        return UserOperation.from_serialized(user_op)

    def with_user_op_signature(self, signature: str) -> "EvmChainOperation":
        data = self._copy_data()
        data["userOp"]["signature"] = signature
        return EvmChainOperation(data)

    def with_delegation_signature(self, signature: DelegationSignature) -> "EvmChainOperation":
        data = self._copy_data()
        data["delegation"]["signature"] = signature.to_wire()
        return EvmChainOperation(data)


class SolanaOperation(_WireOperation):
    """Solana leg: instructions plus the base64 versioned message to sign."""

    kind = "solana"

    @property
    def instructions(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._data.get("instructions") or [])

    @property
    def recent_block_hash(self) -> Optional[str]:
        return self._data.get("recentBlockHash")

    @property
    def fee_payer(self) -> Optional[str]:
        return self._data.get("feePayer")

    @property
    def data_to_sign(self) -> Optional[str]:
        return self._data.get("dataToSign")

    @property
    def address_lookup_table_addresses(self) -> List[str]:
        return list(self._data.get("addressLookupTableAddresses") or [])

    @property
    def signature(self) -> Optional[str]:
        return self._data.get("signature")

    def with_signature(self, signature: str) -> "SolanaOperation":
        data = self._copy_data()
        data["signature"] = signature
        return SolanaOperation(data)


class UnknownOperation(_WireOperation):
    """An operation shape we do not recognize; carried through untouched."""


ChainOperation = Union[EvmChainOperation, SolanaOperation, UnknownOperation]


def parse_chain_operation(data: Dict[str, Any]) -> ChainOperation:
    """Discriminate a wire operation into its typed variant."""
    if data.get("type") == "solana":
        return SolanaOperation(data)
    if "userOp" in data and "typedDataToSign" in data:
        return EvmChainOperation(data)
    return UnknownOperation(data)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    text = str(value).strip()
    if text.isdigit():
        seconds = int(text)
        # Millisecond timestamps
        if seconds > 10**11:
            seconds //= 1000
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Quote:
    """
    Executable quote: the unit of signing and execution.

    Accepts both the single-account (``account``) and the multi-account
    (``accounts``) response shapes.
    """

    def __init__(
        self,
        data: Dict[str, Any],
        origin_operations: Optional[Sequence[ChainOperation]] = None,
    ):
        self._data = copy.deepcopy(data)
        if origin_operations is None:
            origin_operations = [
                parse_chain_operation(op) for op in self._data.get("originChainsOperations") or []
            ]
        self._origin_operations: List[ChainOperation] = list(origin_operations)

        destination = self._data.get("destinationChainOperation")
        self._destination_operation = parse_chain_operation(destination) if destination else None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Quote":
        if "id" not in data:
            raise ValueError("Quote is missing id")
        return cls(data)

    @property
    def id(self) -> str:
        return self._data["id"]

    @property
    def accounts(self) -> List[Account]:
        if "accounts" in self._data:
            return [parse_account(item) for item in self._data["accounts"] or []]
        if "account" in self._data:
            return [parse_account(self._data["account"])]
        return []

    @property
    def origin_operations(self) -> List[ChainOperation]:
        return list(self._origin_operations)

    @property
    def destination_operation(self) -> Optional[ChainOperation]:
        return self._destination_operation

    @property
    def origin_token(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data.get("originToken"))

    @property
    def destination_token(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data.get("destinationToken"))

    @property
    def tamper_proof_signature(self) -> Optional[str]:
        return self._data.get("tamperProofSignature")

    @property
    def expiration_timestamp(self) -> Optional[datetime]:
        return _parse_timestamp(self._data.get("expirationTimestamp"))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires_at = self.expiration_timestamp
        if expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= expires_at

    def with_origin_operations(self, operations: Sequence[ChainOperation]) -> "Quote":
        if len(operations) != len(self._origin_operations):
            raise ValueError(
                f"Expected {len(self._origin_operations)} origin operations, got {len(operations)}"
            )
        return Quote(self._data, origin_operations=operations)

    def replace_origin_operation(self, index: int, operation: ChainOperation) -> "Quote":
        operations = list(self._origin_operations)
        operations[index] = operation
        return Quote(self._data, origin_operations=operations)

    def to_wire(self) -> Dict[str, Any]:
        data = copy.deepcopy(self._data)
        if "originChainsOperations" in data:
            data["originChainsOperations"] = [op.to_wire() for op in self._origin_operations]
        return data


class TargetCallQuote:
    """
    Prepared call quote: a single chain operation to sign before requesting
    the executable quote.
    """

    def __init__(self, data: Dict[str, Any], chain_operation: Optional[EvmChainOperation] = None):
        self._data = copy.deepcopy(data)
        if chain_operation is None:
            raw = self._data.get("chainOperation")
            if raw is None:
                raise ValueError("Prepared call quote is missing chainOperation")
            chain_operation = EvmChainOperation(raw)
        self._chain_operation = chain_operation

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "TargetCallQuote":
        return cls(data)

    @property
    def chain_operation(self) -> EvmChainOperation:
        return self._chain_operation

    @property
    def tamper_proof_signature(self) -> Optional[str]:
        return self._data.get("tamperProofSignature")

    @property
    def accounts(self) -> List[Account]:
        if "accounts" in self._data:
            return [parse_account(item) for item in self._data["accounts"] or []]
        if "account" in self._data:
            return [parse_account(self._data["account"])]
        return []

    def with_chain_operation(self, operation: EvmChainOperation) -> "TargetCallQuote":
        return TargetCallQuote(self._data, chain_operation=operation)

    def to_wire(self) -> Dict[str, Any]:
        data = copy.deepcopy(self._data)
        data["chainOperation"] = self._chain_operation.to_wire()
        return data
