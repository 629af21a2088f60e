"""
Tests for EVM operation signing (UserOperation hash, EIP-7702, EIP-712).
"""

import copy
from types import SimpleNamespace

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from omnisign.core.errors import MissingSigningContextError, MissingTypedDataError, MissingYParityError
from omnisign.core.operations import EvmChainOperation
from omnisign.core.signing.evm import (
    EvmOperationSigner,
    compute_user_operation_hash,
    prepare_typed_data,
    recover_typed_data_signer,
    recover_user_operation_signer,
)

from factories import ARBITRUM_CHAIN_ID, EVM_PRIVATE_KEY, KERNEL_CONTRACT, build_evm_operation, build_typed_data


class AsyncRemoteSigner:
    """Signer whose methods return coroutines, like a remote key manager."""

    def __init__(self, key: str):
        self._account = Account.from_key(key)
        self.address = self._account.address
        self.calls = []

    async def sign_message(self, signable):
        self.calls.append("sign_message")
        return self._account.sign_message(signable)

    async def sign_typed_data(self, **kwargs):
        self.calls.append("sign_typed_data")
        return self._account.sign_typed_data(**kwargs)


class NoParitySigner:
    address = "0x0000000000000000000000000000000000000001"

    def sign_authorization(self, authorization):
        return SimpleNamespace(r=1, s=2, y_parity=None, address=authorization["address"])

    def sign_message(self, signable):
        raise AssertionError("hash must not be signed after a failed delegation")


@pytest.fixture
def signer() -> EvmOperationSigner:
    return EvmOperationSigner(EVM_PRIVATE_KEY)


class TestPrepareTypedData:
    def test_coerces_decimal_strings_in_copy(self):
        typed_data = build_typed_data("0x" + "22" * 20)
        prepared = prepare_typed_data(typed_data)

        assert prepared["domain"]["chainId"] == ARBITRUM_CHAIN_ID
        assert prepared["message"]["value"] == 1000000
        assert typed_data["message"]["value"] == "1000000"
        assert typed_data["domain"]["chainId"] == str(ARBITRUM_CHAIN_ID)

    def test_missing_keys(self):
        typed_data = build_typed_data("0x" + "22" * 20)
        del typed_data["primaryType"]
        with pytest.raises(MissingTypedDataError):
            prepare_typed_data(typed_data)


class TestUserOperationHashSigning:
    @pytest.mark.asyncio
    async def test_signature_recovers_to_signer(self, signer, evm_account):
        operation = EvmChainOperation(build_evm_operation(evm_account.address))

        signed = await signer.sign_user_operation_hash(operation)

        assert recover_user_operation_signer(signed) == evm_account.address
        assert operation.user_op_signature == "0x"

    @pytest.mark.asyncio
    async def test_signs_raw_hash_as_personal_message(self, signer, evm_account):
        operation = EvmChainOperation(build_evm_operation(evm_account.address))
        user_op_hash = compute_user_operation_hash(operation)

        signed = await signer.sign_user_operation_hash(operation)

        expected = evm_account.sign_message(encode_defunct(primitive=user_op_hash)).signature
        assert signed.user_op_signature == "0x" + bytes(expected).hex()

    @pytest.mark.asyncio
    async def test_only_signature_changes(self, signer, evm_account):
        wire = build_evm_operation(evm_account.address)
        signed = (await signer.sign_user_operation_hash(EvmChainOperation(wire))).to_wire()

        signed["userOp"]["signature"] = "0x"
        assert signed == wire

    @pytest.mark.asyncio
    async def test_missing_chain_id(self, signer, evm_account):
        wire = build_evm_operation(evm_account.address)
        del wire["typedDataToSign"]["domain"]["chainId"]

        with pytest.raises(MissingSigningContextError) as exc_info:
            await signer.sign_user_operation_hash(EvmChainOperation(wire))
        assert exc_info.value.missing_field == "typedDataToSign.domain.chainId"

    @pytest.mark.asyncio
    async def test_async_remote_signer(self, evm_account):
        remote = AsyncRemoteSigner(EVM_PRIVATE_KEY)
        operation = EvmChainOperation(build_evm_operation(evm_account.address))

        signed = await EvmOperationSigner(remote).sign_user_operation_hash(operation)

        assert remote.calls == ["sign_message"]
        assert recover_user_operation_signer(signed) == evm_account.address


class TestDelegationSigning:
    """EIP-7702 delegated EOA: authorization first, then the UserOperation hash."""

    @pytest.fixture
    def delegated_wire(self, evm_account):
        return build_evm_operation(
            evm_account.address,
            delegation={"contractAddress": KERNEL_CONTRACT, "nonce": 0},
        )

    @pytest.mark.asyncio
    async def test_delegation_and_user_op_signed(self, signer, evm_account, delegated_wire):
        signed = await signer.sign_user_operation_hash(EvmChainOperation(delegated_wire))

        delegation_signature = signed.delegation.signature
        assert delegation_signature is not None
        assert delegation_signature.chain_id == ARBITRUM_CHAIN_ID
        assert delegation_signature.contract_address == KERNEL_CONTRACT
        assert delegation_signature.nonce == 0
        assert delegation_signature.y_parity in (0, 1)
        assert delegation_signature.v == ("0x1b" if delegation_signature.y_parity == 0 else "0x1c")
        assert recover_user_operation_signer(signed) == evm_account.address

    @pytest.mark.asyncio
    async def test_authorization_matches_direct_signature(self, signer, evm_account, delegated_wire):
        signed = await signer.sign_delegation(EvmChainOperation(delegated_wire))

        expected = evm_account.sign_authorization(
            {"chainId": ARBITRUM_CHAIN_ID, "address": KERNEL_CONTRACT, "nonce": 0}
        )
        delegation_signature = signed.delegation.signature
        assert int(delegation_signature.r, 16) == expected.r
        assert int(delegation_signature.s, 16) == expected.s
        assert delegation_signature.y_parity == expected.y_parity

    @pytest.mark.asyncio
    async def test_already_signed_delegation_untouched(self, signer, delegated_wire):
        delegated_wire["delegation"]["signature"] = {
            "chainId": ARBITRUM_CHAIN_ID,
            "contractAddress": KERNEL_CONTRACT,
            "nonce": 0,
            "r": "0x01",
            "s": "0x02",
            "v": "0x1b",
            "yParity": 0,
            "type": "Signed",
        }
        operation = EvmChainOperation(delegated_wire)
        assert await signer.sign_delegation(operation) == operation

    @pytest.mark.asyncio
    async def test_missing_y_parity(self, delegated_wire):
        operation = EvmChainOperation(delegated_wire)
        original = copy.deepcopy(delegated_wire)

        with pytest.raises(MissingYParityError):
            await EvmOperationSigner(NoParitySigner()).sign_user_operation_hash(operation)
        assert operation.to_wire() == original


class TestTypedDataSigning:
    """Role-based accounts: the session key signs typedDataToSign."""

    @pytest.mark.asyncio
    async def test_signature_recovers_to_session_key(self, signer, evm_account):
        wire = build_evm_operation("0x" + "99" * 20)

        signed = await signer.sign_typed_data(EvmChainOperation(wire))

        assert recover_typed_data_signer(signed) == evm_account.address
        assert signed.typed_data == wire["typedDataToSign"]

    @pytest.mark.asyncio
    async def test_missing_typed_data(self, signer):
        wire = build_evm_operation("0x" + "99" * 20)
        del wire["typedDataToSign"]

        with pytest.raises(MissingTypedDataError):
            await signer.sign_typed_data(EvmChainOperation(wire))

    @pytest.mark.asyncio
    async def test_async_remote_signer(self, evm_account):
        remote = AsyncRemoteSigner(EVM_PRIVATE_KEY)
        signed = await EvmOperationSigner(remote).sign_typed_data(
            EvmChainOperation(build_evm_operation("0x" + "99" * 20))
        )
        assert remote.calls == ["sign_typed_data"]
        assert recover_typed_data_signer(signed) == evm_account.address
