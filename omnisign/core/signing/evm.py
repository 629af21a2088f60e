"""
EVM chain operation signing.

Two modes:

- UserOperation-hash mode (Kernel v3.1 / v3.3 ECDSA validators): the v0.7
  UserOperation hash is signed as a raw personal message. An unsigned EIP-7702
  delegation on the operation is signed first.
- Typed-data mode (role-based accounts): the operation's EIP-712 typed data
  is signed directly with the session key.

Signers may be local ``eth_account`` accounts or any object with the same
``sign_message`` / ``sign_typed_data`` / ``sign_authorization`` methods;
methods returning awaitables (remote key managers) are awaited.
"""

from __future__ import annotations

import copy
import inspect
import logging
import re
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address, to_hex

from ..errors import MissingSigningContextError, MissingTypedDataError, MissingYParityError, SigningError
from ..operations import DelegationSignature, DelegationSignatureType, EvmChainOperation
from ..userop import get_user_operation_hash


logger = logging.getLogger(__name__)

EvmKey = Union[str, bytes, LocalAccount, Any]

_INT_TYPE_RE = re.compile(r"^u?int(\d*)$")
_ARRAY_SUFFIX_RE = re.compile(r"\[\d*\]$")


def resolve_evm_signer(key: EvmKey) -> Any:
    """Turn a private key (hex or bytes) into a LocalAccount; pass accounts through."""
    if isinstance(key, (str, bytes)):
        return Account.from_key(key)
    return key


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _field(obj: Any, *names: str) -> Any:
    """Read the first present attribute or mapping key among ``names``."""
    for name in names:
        if isinstance(obj, dict):
            if obj.get(name) is not None:
                return obj[name]
        else:
            value = getattr(obj, name, None)
            if value is not None:
                return value
    return None


def _to_hex32(value: Any) -> str:
    if isinstance(value, int):
        return "0x" + value.to_bytes(32, "big").hex()
    return to_hex(value) if not isinstance(value, str) else value


def _signature_hex(signed: Any) -> str:
    signature = _field(signed, "signature")
    if signature is None:
        signature = signed
    return signature if isinstance(signature, str) else to_hex(signature)


# =============================================================================
# Typed data
# =============================================================================

def _coerce_value(type_name: str, value: Any, types: Dict[str, Any]) -> Any:
    if _ARRAY_SUFFIX_RE.search(type_name):
        inner = _ARRAY_SUFFIX_RE.sub("", type_name)
        return [_coerce_value(inner, item, types) for item in value]
    if type_name in types:
        return _coerce_struct(type_name, value, types)
    if _INT_TYPE_RE.match(type_name) and isinstance(value, str):
        text = value.strip()
        return int(text, 16) if text.lower().startswith("0x") else int(text, 10)
    return value


def _coerce_struct(type_name: str, value: Dict[str, Any], types: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(value)
    for field_def in types.get(type_name, []):
        name = field_def["name"]
        if name in coerced and coerced[name] is not None:
            coerced[name] = _coerce_value(field_def["type"], coerced[name], types)
    return coerced


def prepare_typed_data(typed_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the EIP-712 payload handed to the signer.

    Integer fields encoded as decimal strings are parsed into ints in a copy;
    the operation's own typed data is left untouched.
    """
    missing = [key for key in ("domain", "types", "primaryType", "message") if key not in typed_data]
    if missing:
        raise MissingTypedDataError(f"Typed data is missing {', '.join(missing)}")

    payload = copy.deepcopy(typed_data)
    types = payload["types"]
    domain = dict(payload["domain"] or {})
    if isinstance(domain.get("chainId"), str):
        domain["chainId"] = _coerce_value("uint256", domain["chainId"], types)
    payload["domain"] = domain
    payload["message"] = _coerce_struct(payload["primaryType"], payload["message"], types)
    return payload


def recover_typed_data_signer(operation: EvmChainOperation) -> str:
    """Recover the address that produced a typed-data mode signature."""
    typed_data = operation.typed_data
    if typed_data is None:
        raise MissingTypedDataError()
    signable = encode_typed_data(full_message=prepare_typed_data(typed_data))
    return Account.recover_message(signable, signature=operation.user_op_signature)


# =============================================================================
# UserOperation hash
# =============================================================================

def compute_user_operation_hash(
    operation: EvmChainOperation,
    entry_point: Optional[str] = None,
    entry_point_version: Optional[str] = None,
) -> bytes:
    """Hash an operation's UserOperation for the chain named in its typed-data domain."""
    if operation.user_op is None:
        raise MissingSigningContextError(
            "UserOperation is required for Kernel signing", missing_field="userOp"
        )
    chain_id = operation.chain_id
    if chain_id is None:
        raise MissingSigningContextError(
            "Chain ID is required for Kernel signing", missing_field="typedDataToSign.domain.chainId"
        )
    try:
        user_op = operation.deserialize_user_op()
    except ValueError as exc:
        raise MissingSigningContextError(str(exc), missing_field="userOp") from exc
    return get_user_operation_hash(
        user_op,
        chain_id,
        entry_point=entry_point,
        entry_point_version=entry_point_version,
    )


def recover_user_operation_signer(
    operation: EvmChainOperation,
    entry_point: Optional[str] = None,
    entry_point_version: Optional[str] = None,
) -> str:
    """Recover the address that signed an operation's UserOperation hash."""
    user_op_hash = compute_user_operation_hash(operation, entry_point, entry_point_version)
    return Account.recover_message(
        encode_defunct(primitive=user_op_hash),
        signature=operation.user_op_signature,
    )


class EvmOperationSigner:
    """
    Signs EVM chain operations with a single key.

    Every method returns a new operation; the input is never modified.
    """

    def __init__(
        self,
        key: EvmKey,
        *,
        entry_point: Optional[str] = None,
        entry_point_version: Optional[str] = None,
    ) -> None:
        self._account = resolve_evm_signer(key)
        self.entry_point = entry_point
        self.entry_point_version = entry_point_version

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_delegation(self, operation: EvmChainOperation) -> EvmChainOperation:
        """Sign the operation's EIP-7702 authorization tuple, if one is pending."""
        delegation = operation.delegation
        if delegation is None or delegation.is_signed:
            return operation

        chain_id = operation.chain_id
        if chain_id is None:
            raise MissingSigningContextError(
                "Chain ID is required to sign a delegation",
                missing_field="typedDataToSign.domain.chainId",
            )

        logger.debug(
            "Signing EIP-7702 authorization chain_id=%s contract=%s nonce=%s",
            chain_id,
            delegation.contract_address,
            delegation.nonce,
        )
        signed = await _maybe_await(
            self._account.sign_authorization(
                {
                    "chainId": chain_id,
                    "address": to_checksum_address(delegation.contract_address),
                    "nonce": delegation.nonce,
                }
            )
        )

        y_parity = _field(signed, "y_parity", "yParity")
        if y_parity is None:
            raise MissingYParityError()

        signed_address = _field(signed, "address", "contractAddress")
        if signed_address is not None:
            signed_address = signed_address if isinstance(signed_address, str) else to_hex(signed_address)
            if signed_address.lower() != delegation.contract_address.lower():
                raise SigningError(
                    f"Authorization signed for {signed_address}, expected {delegation.contract_address}"
                )

        v_hex = f"0x{27 + int(y_parity):02x}"

        signature = DelegationSignature(
            chain_id=chain_id,
            contract_address=delegation.contract_address,
            nonce=delegation.nonce,
            r=_to_hex32(_field(signed, "r")),
            s=_to_hex32(_field(signed, "s")),
            v=v_hex,
            y_parity=int(y_parity),
            type=DelegationSignatureType.SIGNED,
        )
        return operation.with_delegation_signature(signature)

    async def sign_user_operation_hash(self, operation: EvmChainOperation) -> EvmChainOperation:
        """UserOperation-hash mode: delegation first, then the raw hash signature."""
        # Validate inputs before producing any signature
        user_op_hash = compute_user_operation_hash(
            operation,
            entry_point=self.entry_point,
            entry_point_version=self.entry_point_version,
        )

        signed_operation = await self.sign_delegation(operation)

        signed = await _maybe_await(
            self._account.sign_message(encode_defunct(primitive=user_op_hash))
        )
        logger.debug(
            "Signed UserOperation hash=%s sender=%s",
            to_hex(user_op_hash),
            (operation.user_op or {}).get("sender"),
        )
        return signed_operation.with_user_op_signature(_signature_hex(signed))

    async def sign_typed_data(self, operation: EvmChainOperation) -> EvmChainOperation:
        """Typed-data mode: EIP-712 signature over typedDataToSign."""
        typed_data = operation.typed_data
        if typed_data is None:
            raise MissingTypedDataError()
        if operation.user_op is None:
            raise MissingSigningContextError(
                "UserOperation is required to hold the signature", missing_field="userOp"
            )

        signed = await _maybe_await(
            self._account.sign_typed_data(full_message=prepare_typed_data(typed_data))
        )
        logger.debug("Signed typed data primary_type=%s", typed_data.get("primaryType"))
        return operation.with_user_op_signature(_signature_hex(signed))
