"""
Tests for Solana operation signing.
"""

import base64

import base58
import pytest
from nacl.signing import VerifyKey
from solders.keypair import Keypair
from solders.message import Message, MessageV0, from_bytes_versioned

from omnisign.core.errors import MissingSigningPayloadError, SignerMismatchError, SigningError
from omnisign.core.operations import SolanaOperation
from omnisign.core.signing.solana import (
    SolanaOperationSigner,
    load_keypair,
    sign_solana_operation,
    verify_solana_signature,
)

from factories import SOLANA_RECIPIENT, build_lookup_table, build_solana_operation


def _verify(keypair: Keypair, operation: SolanaOperation) -> None:
    message = base64.b64decode(operation.data_to_sign)
    VerifyKey(bytes(keypair.pubkey())).verify(message, base58.b58decode(operation.signature))


class TestLoadKeypair:
    def test_accepts_keypair_bytes_and_base58(self, solana_keypair):
        secret = bytes(solana_keypair)
        assert load_keypair(solana_keypair) is solana_keypair
        assert load_keypair(secret).pubkey() == solana_keypair.pubkey()
        assert load_keypair(secret[:32]).pubkey() == solana_keypair.pubkey()
        assert load_keypair(base58.b58encode(secret).decode()).pubkey() == solana_keypair.pubkey()

    def test_rejects_bad_length(self):
        with pytest.raises(SigningError):
            load_keypair(b"\x01" * 10)


class TestSignSolanaOperation:
    def test_signature_verifies(self, solana_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair))

        signed = sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, operation)

        _verify(solana_keypair, signed)
        verify_solana_signature(signed, str(solana_keypair.pubkey()))
        assert len(base58.b58decode(signed.signature)) == 64

    def test_other_fields_unchanged(self, solana_keypair):
        wire = build_solana_operation(solana_keypair)

        signed = sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, SolanaOperation(wire)).to_wire()

        assert signed.pop("signature")
        assert signed == wire

    def test_co_signed_message_uses_signer_slot(self, solana_keypair, fee_payer_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair, fee_payer=fee_payer_keypair))

        signed = sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, operation)

        _verify(solana_keypair, signed)

    def test_missing_data_to_sign(self, solana_keypair):
        wire = build_solana_operation(solana_keypair)
        del wire["dataToSign"]

        with pytest.raises(MissingSigningPayloadError):
            sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, SolanaOperation(wire))

    def test_invalid_base64(self, solana_keypair):
        wire = build_solana_operation(solana_keypair)
        wire["dataToSign"] = "not base64!"

        with pytest.raises(SigningError):
            sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, SolanaOperation(wire))

    def test_key_for_other_account(self, solana_keypair, fee_payer_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair))

        with pytest.raises(SignerMismatchError):
            sign_solana_operation(str(solana_keypair.pubkey()), fee_payer_keypair, operation)

    def test_account_not_a_required_signer(self, solana_keypair):
        outsider = Keypair.from_seed(bytes([5] * 32))
        operation = SolanaOperation(build_solana_operation(solana_keypair))

        with pytest.raises(SignerMismatchError):
            sign_solana_operation(str(outsider.pubkey()), outsider, operation)


class TestMessageFormats:
    def test_v0_message_with_lookup_table(self, solana_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair, lookup_table=build_lookup_table()))
        message = from_bytes_versioned(base64.b64decode(operation.data_to_sign))
        assert isinstance(message, MessageV0)
        assert len(message.address_table_lookups) == 1
        assert SOLANA_RECIPIENT not in message.account_keys

        signed = sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, operation)

        _verify(solana_keypair, signed)
        verify_solana_signature(signed, str(solana_keypair.pubkey()))
        assert signed.data_to_sign == operation.data_to_sign

    def test_legacy_message(self, solana_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair, legacy=True))
        assert isinstance(from_bytes_versioned(base64.b64decode(operation.data_to_sign)), Message)

        signed = sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, operation)

        _verify(solana_keypair, signed)
        verify_solana_signature(signed, str(solana_keypair.pubkey()))

    def test_legacy_co_signed_message(self, solana_keypair, fee_payer_keypair):
        operation = SolanaOperation(
            build_solana_operation(solana_keypair, fee_payer=fee_payer_keypair, legacy=True)
        )

        signed = sign_solana_operation(str(solana_keypair.pubkey()), solana_keypair, operation)

        _verify(solana_keypair, signed)

    def test_invalid_account_address(self, solana_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair))

        with pytest.raises(SignerMismatchError):
            sign_solana_operation("not-a-pubkey", solana_keypair, operation)


class TestVerifySolanaSignature:
    def test_rejects_signature_from_other_key(self, solana_keypair, fee_payer_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair))
        signed = SolanaOperationSigner(str(solana_keypair.pubkey()), solana_keypair).sign(operation)

        with pytest.raises(SigningError):
            verify_solana_signature(signed, str(fee_payer_keypair.pubkey()))

    def test_unsigned(self, solana_keypair):
        with pytest.raises(SigningError):
            verify_solana_signature(SolanaOperation(build_solana_operation(solana_keypair)), str(solana_keypair.pubkey()))
