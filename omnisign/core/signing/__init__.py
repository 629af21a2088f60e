"""
Signing Layer

Produces the signatures a quote needs before execution:
- EvmOperationSigner: UserOperation-hash, EIP-7702 authorization and EIP-712 signing
- sign_solana_operation: ed25519 signing of versioned Solana messages
- sign_operation: picks the scheme for an operation and account type
- QuoteSigner / sign_all_operations: signs every origin operation of a quote

Usage:
    from omnisign.core.signing import sign_all_operations

    signed_quote = await sign_all_operations(
        quote,
        evm_key=private_key,
        solana_keypair=keypair,
        solana_account=solana_address,
    )
"""

from .dispatcher import SigningKeys, sign_operation
from .evm import (
    EvmOperationSigner,
    compute_user_operation_hash,
    prepare_typed_data,
    recover_typed_data_signer,
    recover_user_operation_signer,
)
from .orchestrator import MissingSignerPolicy, QuoteSigner, sign_all_operations
from .solana import SolanaOperationSigner, load_keypair, sign_solana_operation, verify_solana_signature

__all__ = [
    # Dispatcher
    "SigningKeys",
    "sign_operation",
    # EVM
    "EvmOperationSigner",
    "compute_user_operation_hash",
    "prepare_typed_data",
    "recover_typed_data_signer",
    "recover_user_operation_signer",
    # Solana
    "SolanaOperationSigner",
    "load_keypair",
    "sign_solana_operation",
    "verify_solana_signature",
    # Orchestrator
    "MissingSignerPolicy",
    "QuoteSigner",
    "sign_all_operations",
]
