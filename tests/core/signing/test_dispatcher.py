import pytest

from omnisign.core.accounts import ContractAccountType
from omnisign.core.errors import MissingSignerError, MissingSigningContextError, UnsupportedAccountTypeError
from omnisign.core.operations import EvmChainOperation, SolanaOperation, UnknownOperation
from omnisign.core.signing import (
    SigningKeys,
    recover_typed_data_signer,
    recover_user_operation_signer,
    sign_operation,
)

from factories import EVM_PRIVATE_KEY, build_evm_operation, build_solana_operation


@pytest.fixture
def keys(solana_keypair) -> SigningKeys:
    return SigningKeys.from_keys(
        evm_key=EVM_PRIVATE_KEY,
        solana_account=str(solana_keypair.pubkey()),
        solana_key=solana_keypair,
    )


@pytest.fixture
def evm_operation(evm_account) -> EvmChainOperation:
    return EvmChainOperation(build_evm_operation(evm_account.address))


class TestSignOperation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("account_type", ["kernel-v3.1-ecdsa", ContractAccountType.KERNEL_V33])
    async def test_kernel_accounts_sign_user_operation_hash(self, keys, evm_operation, evm_account, account_type):
        signed = await sign_operation(evm_operation, account_type, keys)
        assert recover_user_operation_signer(signed) == evm_account.address

    @pytest.mark.asyncio
    async def test_role_based_signs_typed_data(self, keys, evm_operation, evm_account):
        signed = await sign_operation(evm_operation, ContractAccountType.ROLE_BASED, keys)
        assert recover_typed_data_signer(signed) == evm_account.address

    @pytest.mark.asyncio
    async def test_solana_operation_ignores_account_type(self, keys, solana_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair))
        signed = await sign_operation(operation, ContractAccountType.ROLE_BASED, keys)
        assert signed.signature

    @pytest.mark.asyncio
    async def test_solana_operation_without_solana_signer(self, solana_keypair):
        operation = SolanaOperation(build_solana_operation(solana_keypair))
        with pytest.raises(MissingSignerError):
            await sign_operation(operation, ContractAccountType.KERNEL_V31, SigningKeys.from_keys(EVM_PRIVATE_KEY))

    @pytest.mark.asyncio
    async def test_evm_operation_with_solana_account_type(self, keys, evm_operation):
        with pytest.raises(UnsupportedAccountTypeError):
            await sign_operation(evm_operation, ContractAccountType.SOLANA, keys)

    @pytest.mark.asyncio
    async def test_unknown_account_type(self, keys, evm_operation):
        with pytest.raises(UnsupportedAccountTypeError):
            await sign_operation(evm_operation, "safe-v1", keys)

    @pytest.mark.asyncio
    async def test_unknown_operation(self, keys):
        with pytest.raises(MissingSigningContextError):
            await sign_operation(UnknownOperation({"assetType": "x"}), ContractAccountType.KERNEL_V31, keys)

    @pytest.mark.asyncio
    async def test_evm_operation_without_evm_signer(self, evm_operation):
        with pytest.raises(MissingSignerError):
            await sign_operation(evm_operation, ContractAccountType.KERNEL_V31, SigningKeys())


def test_from_keys_requires_account_and_key_for_solana(solana_keypair):
    keys = SigningKeys.from_keys(evm_key=None, solana_key=solana_keypair)
    assert keys.evm is None
    assert keys.solana is None
