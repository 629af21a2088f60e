"""
Shared fixtures: deterministic EVM and Solana keys.
"""

import pytest
from eth_account import Account
from solders.keypair import Keypair

from factories import EVM_PRIVATE_KEY


@pytest.fixture
def evm_account():
    return Account.from_key(EVM_PRIVATE_KEY)


@pytest.fixture
def solana_keypair() -> Keypair:
    return Keypair.from_seed(bytes([7] * 32))


@pytest.fixture
def fee_payer_keypair() -> Keypair:
    return Keypair.from_seed(bytes([8] * 32))
