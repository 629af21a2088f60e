"""
Signature scheme dispatch.

Chooses the signing algorithm for an operation from its variant and the
account type it is signed for.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..accounts import ContractAccountType
from ..errors import MissingSignerError, MissingSigningContextError, UnsupportedAccountTypeError
from ..operations import ChainOperation, EvmChainOperation, SolanaOperation, UnknownOperation
from .evm import EvmKey, EvmOperationSigner
from .solana import SolanaOperationSigner


@dataclass
class SigningKeys:
    """Key material supplied by the caller for one signing pass."""
    evm: Optional[EvmOperationSigner] = None
    solana: Optional[SolanaOperationSigner] = None

    @classmethod
    def from_keys(
        cls,
        evm_key: Optional[EvmKey] = None,
        solana_account: Optional[str] = None,
        solana_key=None,
    ) -> "SigningKeys":
        evm = EvmOperationSigner(evm_key) if evm_key is not None else None
        solana = None
        if solana_account is not None and solana_key is not None:
            solana = SolanaOperationSigner(solana_account, solana_key)
        return cls(evm=evm, solana=solana)


def coerce_account_type(account_type: Union[ContractAccountType, str]) -> ContractAccountType:
    try:
        return ContractAccountType(account_type)
    except ValueError:
        raise UnsupportedAccountTypeError(f"Unsupported account type: {account_type!r}") from None


async def sign_operation(
    operation: ChainOperation,
    account_type: Union[ContractAccountType, str],
    keys: SigningKeys,
) -> ChainOperation:
    """
    Sign ``operation`` with the scheme its variant and ``account_type`` call for.

    - Solana operations use the Solana signer.
    - Kernel v3.1 / v3.3 accounts sign the UserOperation hash (and any pending
      EIP-7702 delegation).
    - Role-based accounts sign the EIP-712 typed data.

    Returns a new operation; the input is never modified, including on failure.
    """
    if isinstance(operation, SolanaOperation):
        if keys.solana is None:
            raise MissingSignerError("A Solana keypair and account are required to sign this operation")
        return keys.solana.sign(operation)

    if isinstance(operation, UnknownOperation):
        raise MissingSigningContextError(
            "Operation is neither an EVM nor a Solana operation", missing_field="userOp"
        )

    if not isinstance(operation, EvmChainOperation):
        raise UnsupportedAccountTypeError(f"Unsupported operation type: {type(operation).__name__}")

    if keys.evm is None:
        raise MissingSignerError("An EVM signing key is required to sign this operation")

    scheme = coerce_account_type(account_type)
    if scheme.uses_user_operation_hash:
        return await keys.evm.sign_user_operation_hash(operation)
    if scheme is ContractAccountType.ROLE_BASED:
        return await keys.evm.sign_typed_data(operation)
    if scheme is ContractAccountType.SOLANA:
        raise UnsupportedAccountTypeError("EVM operations cannot be signed with a Solana account type")
    raise UnsupportedAccountTypeError(f"Unsupported account type: {scheme.value}")
