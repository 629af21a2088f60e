"""
Solana operation signing.

The quote service provides the base64 serialized versioned message to sign
(``dataToSign``). The message is deserialized, wrapped in a
VersionedTransaction with the signer's ed25519 signature, and the base58
signature is attached to the operation. The message itself is never
re-serialized into the operation.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Union

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey
from solders.keypair import Keypair
from solders.message import from_bytes_versioned, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from ..errors import MissingSigningPayloadError, SignerMismatchError, SigningError
from ..operations import SolanaOperation


logger = logging.getLogger(__name__)

SolanaKey = Union[Keypair, bytes, str]


def load_keypair(private_key: SolanaKey) -> Keypair:
    """
    Accept a solders Keypair, raw key bytes (64-byte secret key or 32-byte
    seed) or a base58-encoded secret key.
    """
    if isinstance(private_key, Keypair):
        return private_key
    if isinstance(private_key, str):
        try:
            private_key = base58.b58decode(private_key)
        except ValueError as exc:
            raise SigningError(f"Invalid base58 Solana private key: {exc}") from exc
    raw = bytes(private_key)
    if len(raw) == 64:
        return Keypair.from_bytes(raw)
    if len(raw) == 32:
        return Keypair.from_seed(raw)
    raise SigningError(f"Solana private key must be 32 or 64 bytes, got {len(raw)}")


def sign_solana_operation(
    account_address: str,
    private_key: SolanaKey,
    operation: SolanaOperation,
) -> SolanaOperation:
    """
    Sign a Solana operation.

    Args:
        account_address: Base58 public key of the signing account
        private_key: Secret key material for ``account_address``
        operation: The operation to sign

    Returns:
        A new SolanaOperation with ``signature`` set

    Raises:
        MissingSigningPayloadError: ``dataToSign`` is absent
        SignerMismatchError: the key does not belong to ``account_address``
            or the account is not a required signer of the message
    """
    if not operation.data_to_sign:
        raise MissingSigningPayloadError()

    try:
        message_bytes = base64.b64decode(operation.data_to_sign, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SigningError(f"dataToSign is not valid base64: {exc}") from exc

    try:
        message = from_bytes_versioned(message_bytes)
    except Exception as exc:
        raise SigningError(f"dataToSign is not a valid versioned message: {exc}") from exc

    keypair = load_keypair(private_key)
    try:
        signer = Pubkey.from_string(account_address)
    except ValueError as exc:
        raise SignerMismatchError(f"Invalid Solana account address {account_address!r}: {exc}") from exc
    if keypair.pubkey() != signer:
        raise SignerMismatchError(
            f"Private key belongs to {keypair.pubkey()}, not {account_address}"
        )

    num_signers = message.header.num_required_signatures
    required_signers: List[Pubkey] = list(message.account_keys[:num_signers])
    if signer not in required_signers:
        raise SignerMismatchError(f"{account_address} is not a required signer of the message")
    signer_index = required_signers.index(signer)

    signatures = [Signature.default()] * num_signers
    signatures[signer_index] = keypair.sign_message(to_bytes_versioned(message))
    transaction = VersionedTransaction.populate(message, signatures)

    # The account being added is conventionally the last required signer;
    # read its own slot so co-signed payloads are handled too.
    produced = transaction.signatures[signer_index]
    if signer_index != num_signers - 1:
        logger.debug(
            "Solana signer %s occupies slot %d of %d",
            account_address,
            signer_index,
            num_signers,
        )

    encoded = base58.b58encode(bytes(produced)).decode("utf-8")
    return operation.with_signature(encoded)


class SolanaOperationSigner:
    """Binds a Solana account and its keypair for repeated signing."""

    def __init__(self, account_address: str, private_key: SolanaKey) -> None:
        self.account_address = account_address
        self._keypair = load_keypair(private_key)

    def sign(self, operation: SolanaOperation) -> SolanaOperation:
        return sign_solana_operation(self.account_address, self._keypair, operation)


def verify_solana_signature(operation: SolanaOperation, account_address: str) -> None:
    """
    Verify a signed Solana operation against its ``dataToSign`` message.
    Raises SigningError if verification fails.
    """
    if not operation.signature:
        raise SigningError("Solana operation is not signed")
    if not operation.data_to_sign:
        raise MissingSigningPayloadError()

    try:
        public_key = base58.b58decode(account_address)
    except ValueError as exc:
        raise SigningError(f"Invalid Solana account address {account_address!r}") from exc
    if len(public_key) != 32:
        raise SigningError("Invalid Solana public key length")

    message_bytes = base64.b64decode(operation.data_to_sign)
    verify_key = VerifyKey(public_key)
    try:
        verify_key.verify(message_bytes, base58.b58decode(operation.signature))
    except (BadSignatureError, ValueError) as exc:
        raise SigningError("Invalid Solana signature") from exc
