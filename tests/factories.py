"""
Wire-format builders for quotes, chain operations and Solana messages.
"""

import base64
import copy
from typing import Any, Dict, Optional

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.system_program import TransferParams, transfer


EVM_PRIVATE_KEY = "0x" + "11" * 32
OTHER_EVM_PRIVATE_KEY = "0x" + "22" * 32
KERNEL_CONTRACT = "0xd6CEDDe84be40893d153Be9d467CD6aD37875b28"
PAYMASTER = "0x" + "33" * 20
ARBITRUM_CHAIN_ID = 42161


def build_user_op(sender: str, /, **overrides: Any) -> Dict[str, Any]:
    user_op = {
        "sender": sender,
        "nonce": "7",
        "callData": "0xb61d27f6",
        "callGasLimit": "100000",
        "verificationGasLimit": "200000",
        "preVerificationGas": "50000",
        "maxFeePerGas": "1000000000",
        "maxPriorityFeePerGas": "100000000",
        "paymaster": PAYMASTER,
        "paymasterVerificationGasLimit": "30000",
        "paymasterPostOpGasLimit": "10000",
        "paymasterData": "0xabcd",
        "signature": "0x",
    }
    user_op.update(overrides)
    return user_op


def build_typed_data(verifying_contract: str, chain_id: Any = str(ARBITRUM_CHAIN_ID)) -> Dict[str, Any]:
    return {
        "domain": {
            "name": "OneBalance",
            "version": "1",
            "chainId": chain_id,
            "verifyingContract": verifying_contract,
        },
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Call": [
                {"name": "target", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
            ],
        },
        "primaryType": "Call",
        "message": {
            "target": "0x" + "44" * 20,
            "value": "1000000",
            "data": "0x1234",
        },
    }


def build_evm_operation(
    sender: str,
    *,
    chain_id: Any = str(ARBITRUM_CHAIN_ID),
    delegation: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    operation = {
        "userOp": build_user_op(sender),
        "typedDataToSign": build_typed_data(sender, chain_id=chain_id),
        "assetType": "eip155:42161/erc20:0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "amount": "1000000",
    }
    if delegation is not None:
        operation["delegation"] = delegation
    return operation


SOLANA_RECIPIENT = Keypair.from_seed(bytes([9] * 32)).pubkey()
LOOKUP_TABLE_KEY = Keypair.from_seed(bytes([8] * 32)).pubkey()


def build_lookup_table() -> AddressLookupTableAccount:
    """Address lookup table holding the transfer recipient."""
    return AddressLookupTableAccount(key=LOOKUP_TABLE_KEY, addresses=[SOLANA_RECIPIENT])


def build_solana_message(
    signer: Keypair,
    fee_payer: Optional[Keypair] = None,
    lookup_table: Optional[AddressLookupTableAccount] = None,
    legacy: bool = False,
) -> str:
    """Base64 message transferring one lamport from ``signer``.

    A v0 message by default, resolving the recipient through ``lookup_table``
    when one is given; a legacy message with ``legacy=True``.
    """
    payer = fee_payer or signer
    instruction = transfer(
        TransferParams(
            from_pubkey=signer.pubkey(),
            to_pubkey=SOLANA_RECIPIENT,
            lamports=1,
        )
    )
    if legacy:
        message = Message.new_with_blockhash([instruction], payer.pubkey(), Hash.default())
    else:
        tables = [lookup_table] if lookup_table is not None else []
        message = MessageV0.try_compile(payer.pubkey(), [instruction], tables, Hash.default())
    return base64.b64encode(to_bytes_versioned(message)).decode("utf-8")


def build_solana_operation(
    signer: Keypair,
    fee_payer: Optional[Keypair] = None,
    lookup_table: Optional[AddressLookupTableAccount] = None,
    legacy: bool = False,
) -> Dict[str, Any]:
    payer = fee_payer or signer
    return {
        "type": "solana",
        "instructions": [{"programId": "11111111111111111111111111111111", "keys": [], "data": "02000000"}],
        "recentBlockHash": str(Hash.default()),
        "feePayer": str(payer.pubkey()),
        "dataToSign": build_solana_message(signer, fee_payer, lookup_table, legacy),
        "assetType": "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp/slip44:501",
        "amount": "1",
    }


def build_quote(origin_operations, **extra: Any) -> Dict[str, Any]:
    quote = {
        "id": "0xquote",
        "accounts": [],
        "originChainsOperations": copy.deepcopy(origin_operations),
        "expirationTimestamp": "1700000000",
        "tamperProofSignature": "0xtamperproof",
    }
    quote.update(extra)
    return quote
