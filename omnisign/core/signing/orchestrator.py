"""
Quote signing orchestration.

Walks a quote's origin chain operations in order and routes each one to the
signer its variant requires. Operations are signed strictly sequentially and
the operation list keeps its length and order, which the execution service
checks against the quote's tamper-proof signature.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ...logging_config import quote_context
from ..accounts import ContractAccountType, SolanaAccount
from ..errors import MissingSignerError, OperationSigningError, SigningError
from ..operations import ChainOperation, EvmChainOperation, Quote, SolanaOperation, TargetCallQuote
from .dispatcher import SigningKeys, coerce_account_type, sign_operation
from .evm import EvmKey
from .solana import SolanaKey


logger = logging.getLogger(__name__)


class MissingSignerPolicy(str, Enum):
    """What to do with an operation whose signer was not supplied."""
    PASS_THROUGH = "pass_through"  # leave it unsigned
    RAISE = "raise"                # abort the signing pass


class QuoteSigner:
    """
    Signs every eligible origin operation of a quote.

    Usage:
        signer = QuoteSigner(SigningKeys.from_keys(evm_key=private_key))
        signed_quote = await signer.sign_all(quote)
    """

    def __init__(
        self,
        keys: SigningKeys,
        account_type: Union[ContractAccountType, str] = ContractAccountType.KERNEL_V31,
        missing_signer_policy: MissingSignerPolicy = MissingSignerPolicy.PASS_THROUGH,
    ) -> None:
        self.keys = keys
        self.account_type = coerce_account_type(account_type)
        self.missing_signer_policy = MissingSignerPolicy(missing_signer_policy)

    def _has_signer_for(self, operation: ChainOperation) -> bool:
        if isinstance(operation, SolanaOperation):
            return self.keys.solana is not None
        if isinstance(operation, EvmChainOperation):
            return self.keys.evm is not None
        return False

    async def sign_all(self, quote: Quote) -> Quote:
        """
        Return a copy of ``quote`` with every eligible origin operation signed.

        Raises:
            OperationSigningError: any operation failed to sign; no partially
                signed quote is returned.
        """
        signed: List[ChainOperation] = []
        operations = quote.origin_operations

        with quote_context(quote.id):
            logger.info("Signing %d origin operation(s) for quote %s", len(operations), quote.id)
            for index, operation in enumerate(operations):
                with quote_context(operation_index=index):
                    signed.append(await self._sign_one(index, operation, quote.id))
            logger.info("All operations signed for quote %s", quote.id)

        return quote.with_origin_operations(signed)

    async def _sign_one(self, index: int, operation: ChainOperation, quote_id: str) -> ChainOperation:
        if not isinstance(operation, (EvmChainOperation, SolanaOperation)):
            logger.warning("Passing through unrecognized operation %d of quote %s", index, quote_id)
            return operation

        if not self._has_signer_for(operation):
            if self.missing_signer_policy is MissingSignerPolicy.RAISE:
                raise OperationSigningError(
                    index,
                    MissingSignerError(f"No signer supplied for {operation.kind} operation"),
                )
            logger.warning(
                "No signer for %s operation %d of quote %s; leaving it unsigned",
                operation.kind,
                index,
                quote_id,
            )
            return operation

        try:
            return await sign_operation(operation, self.account_type, self.keys)
        except SigningError as exc:
            logger.error("Signing failed for operation %d of quote %s: %s", index, quote_id, exc)
            raise OperationSigningError(index, exc) from exc

    async def sign_chain_operation(self, target: TargetCallQuote) -> TargetCallQuote:
        """
        Sign a prepared call quote's chain operation.

        Any pending EIP-7702 delegation is signed alongside the UserOperation.
        """
        try:
            operation = await sign_operation(target.chain_operation, self.account_type, self.keys)
        except SigningError as exc:
            raise OperationSigningError(0, exc) from exc
        return target.with_chain_operation(operation)


async def sign_all_operations(
    quote: Union[Quote, Dict[str, Any]],
    evm_key: Optional[EvmKey],
    solana_keypair: Optional[SolanaKey] = None,
    solana_account: Optional[Union[SolanaAccount, str]] = None,
    account_type: Union[ContractAccountType, str] = ContractAccountType.KERNEL_V31,
    missing_signer_policy: MissingSignerPolicy = MissingSignerPolicy.PASS_THROUGH,
) -> Quote:
    """
    Sign all origin operations of ``quote`` (EVM and Solana).

    The Solana operations are only signed when both ``solana_keypair`` and
    ``solana_account`` are given; otherwise ``missing_signer_policy`` decides.
    """
    if isinstance(quote, dict):
        quote = Quote.from_wire(quote)
    if isinstance(solana_account, SolanaAccount):
        solana_account = solana_account.account_address

    keys = SigningKeys.from_keys(
        evm_key=evm_key,
        solana_account=solana_account,
        solana_key=solana_keypair,
    )
    signer = QuoteSigner(keys, account_type=account_type, missing_signer_policy=missing_signer_policy)
    return await signer.sign_all(quote)
