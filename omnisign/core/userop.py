"""
ERC-4337 v0.7 UserOperation model and canonical hashing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from eth_utils import keccak

from ..config import settings


SUPPORTED_ENTRY_POINT_VERSION = "0.7"

_UINT128_MAX = 2**128 - 1


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _encode_uint(value: int) -> str:
    if value < 0:
        raise ValueError("Value must be non-negative")
    return hex(value)[2:].rjust(64, "0")


def _encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


def _encode_uint128(value: int) -> str:
    if not 0 <= value <= _UINT128_MAX:
        raise ValueError(f"Value does not fit in uint128: {value}")
    return hex(value)[2:].rjust(32, "0")


def _keccak_hex(data: str) -> str:
    return keccak(hexstr=data or "0x").hex()


def parse_quantity(value: Union[str, int, None], field_name: str) -> int:
    """
    Parse a wire quantity into an int.

    Quantities are decimal strings on the wire; 0x-prefixed hex is accepted
    as well. Floats are rejected.
    """
    if value is None:
        raise ValueError(f"{field_name} is required")
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    if isinstance(value, int):
        parsed = value
    else:
        text = value.strip()
        try:
            parsed = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise ValueError(f"{field_name} is not a decimal or hex quantity: {value!r}") from None
    if parsed < 0:
        raise ValueError(f"{field_name} must be non-negative")
    return parsed


def _optional_quantity(value: Union[str, int, None], field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return parse_quantity(value, field_name)


@dataclass
class UserOperation:
    """
    ERC-4337 v0.7 UserOperation with native integer fields.

    Built from the serialized (string-encoded) form the quote service returns.
    """
    sender: str
    nonce: int
    call_data: str
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    factory: Optional[str] = None
    factory_data: Optional[str] = None
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None
    paymaster_data: Optional[str] = None
    signature: str = "0x"

    @classmethod
    def from_serialized(cls, data: Dict[str, Any]) -> "UserOperation":
        try:
            sender = data["sender"]
            call_data = data["callData"]
        except KeyError as exc:
            raise ValueError(f"UserOperation is missing {exc.args[0]}") from None

        return cls(
            sender=sender,
            nonce=parse_quantity(data.get("nonce"), "nonce"),
            call_data=call_data,
            call_gas_limit=parse_quantity(data.get("callGasLimit"), "callGasLimit"),
            verification_gas_limit=parse_quantity(
                data.get("verificationGasLimit"), "verificationGasLimit"
            ),
            pre_verification_gas=parse_quantity(
                data.get("preVerificationGas"), "preVerificationGas"
            ),
            max_fee_per_gas=parse_quantity(data.get("maxFeePerGas"), "maxFeePerGas"),
            max_priority_fee_per_gas=parse_quantity(
                data.get("maxPriorityFeePerGas"), "maxPriorityFeePerGas"
            ),
            factory=data.get("factory") or None,
            factory_data=data.get("factoryData") or None,
            paymaster=data.get("paymaster") or None,
            paymaster_verification_gas_limit=_optional_quantity(
                data.get("paymasterVerificationGasLimit"), "paymasterVerificationGasLimit"
            ),
            paymaster_post_op_gas_limit=_optional_quantity(
                data.get("paymasterPostOpGasLimit"), "paymasterPostOpGasLimit"
            ),
            paymaster_data=data.get("paymasterData") or None,
            signature=data.get("signature") or "0x",
        )

    @property
    def init_code(self) -> str:
        if not self.factory:
            return "0x"
        return "0x" + _strip_0x(self.factory) + _strip_0x(self.factory_data or "0x")

    @property
    def paymaster_and_data(self) -> str:
        if not self.paymaster:
            return "0x"
        return (
            "0x"
            + _strip_0x(self.paymaster)
            + _encode_uint128(self.paymaster_verification_gas_limit or 0)
            + _encode_uint128(self.paymaster_post_op_gas_limit or 0)
            + _strip_0x(self.paymaster_data or "0x")
        )

    @property
    def account_gas_limits(self) -> int:
        return (self.verification_gas_limit << 128) | self.call_gas_limit

    @property
    def gas_fees(self) -> int:
        return (self.max_priority_fee_per_gas << 128) | self.max_fee_per_gas

    def pack(self) -> str:
        """ABI-encode the packed UserOperation (signature excluded)."""
        return (
            _encode_address(self.sender)
            + _encode_uint(self.nonce)
            + _keccak_hex(self.init_code)
            + _keccak_hex(self.call_data)
            + _encode_uint(self.account_gas_limits)
            + _encode_uint(self.pre_verification_gas)
            + _encode_uint(self.gas_fees)
            + _keccak_hex(self.paymaster_and_data)
        )


def get_user_operation_hash(
    user_op: UserOperation,
    chain_id: int,
    entry_point: Optional[str] = None,
    entry_point_version: Optional[str] = None,
) -> bytes:
    """
    Compute the v0.7 UserOperation hash.

    keccak256(abi.encode(keccak256(pack(userOp)), entryPoint, chainId))
    """
    version = entry_point_version or settings.entry_point_version
    if version != SUPPORTED_ENTRY_POINT_VERSION:
        raise ValueError(f"Unsupported EntryPoint version: {version}")
    entry_point = entry_point or settings.entry_point_address

    packed_hash = _keccak_hex("0x" + user_op.pack())
    encoded = packed_hash + _encode_address(entry_point) + _encode_uint(chain_id)
    return keccak(hexstr="0x" + encoded)
