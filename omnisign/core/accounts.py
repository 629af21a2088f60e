"""
Account models.

An account identifies who authorizes funds movement for a quote. Four kinds
are supported, discriminated on the wire by their ``type`` field:

- role-based: session key signs day-to-day, admin key is a recovery path
- kernel-v3.1-ecdsa: an EOA controls a deployed smart account (ERC-4337)
- kernel-v3.3-ecdsa: an EOA delegated to smart-account code (EIP-7702)
- solana: a base58 public key
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Union

from .assets import EVM_NAMESPACE, SOLANA_MAINNET_CHAIN, caip10_account, is_solana_asset, is_solana_involved

if TYPE_CHECKING:
    from ..types.requests import SwapParams


logger = logging.getLogger(__name__)


class ContractAccountType(str, Enum):
    """Account type tags as used by the quote service."""
    ROLE_BASED = "role-based"
    KERNEL_V31 = "kernel-v3.1-ecdsa"
    KERNEL_V33 = "kernel-v3.3-ecdsa"
    SOLANA = "solana"

    @property
    def uses_user_operation_hash(self) -> bool:
        """Kernel accounts share the same ECDSA validator and sign the UserOp hash."""
        return self in (ContractAccountType.KERNEL_V31, ContractAccountType.KERNEL_V33)


class DeploymentType(str, Enum):
    ERC4337 = "ERC4337"
    EIP7702 = "EIP7702"


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


@dataclass(frozen=True)
class RoleBasedAccount:
    session_address: str
    admin_address: str
    account_address: str

    type = ContractAccountType.ROLE_BASED

    @property
    def signer_address(self) -> str:
        return self.session_address

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "sessionAddress": self.session_address,
            "adminAddress": self.admin_address,
            "accountAddress": self.account_address,
        }


@dataclass(frozen=True)
class StandardAccount:
    signer_address: str
    account_address: str

    type = ContractAccountType.KERNEL_V31
    deployment_type = DeploymentType.ERC4337

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "deploymentType": self.deployment_type.value,
            "signerAddress": self.signer_address,
            "accountAddress": self.account_address,
        }


@dataclass(frozen=True)
class DelegatedAccount:
    """EIP-7702 account: the EOA itself is the smart account."""
    signer_address: str
    account_address: str

    type = ContractAccountType.KERNEL_V33
    deployment_type = DeploymentType.EIP7702

    def __post_init__(self) -> None:
        if not _same_address(self.signer_address, self.account_address):
            raise ValueError(
                "EIP-7702 account address must equal its signer address: "
                f"{self.account_address} != {self.signer_address}"
            )

    @classmethod
    def from_signer(cls, signer_address: str) -> "DelegatedAccount":
        return cls(signer_address=signer_address, account_address=signer_address)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "deploymentType": self.deployment_type.value,
            "accountAddress": self.account_address,
            "signerAddress": self.signer_address,
        }


@dataclass(frozen=True)
class SolanaAccount:
    account_address: str

    type = ContractAccountType.SOLANA

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type.value, "accountAddress": self.account_address}


EvmAccount = Union[RoleBasedAccount, StandardAccount, DelegatedAccount]
Account = Union[RoleBasedAccount, StandardAccount, DelegatedAccount, SolanaAccount]


def parse_account(data: Dict[str, Any]) -> Account:
    """Build an Account from its wire representation."""
    raw_type = data.get("type")
    try:
        account_type = ContractAccountType(raw_type)
    except ValueError:
        raise ValueError(f"Unknown account type: {raw_type!r}") from None

    if account_type is ContractAccountType.ROLE_BASED:
        return RoleBasedAccount(
            session_address=data["sessionAddress"],
            admin_address=data["adminAddress"],
            account_address=data["accountAddress"],
        )
    if account_type is ContractAccountType.KERNEL_V31:
        return StandardAccount(
            signer_address=data["signerAddress"],
            account_address=data["accountAddress"],
        )
    if account_type is ContractAccountType.KERNEL_V33:
        return DelegatedAccount(
            signer_address=data["signerAddress"],
            account_address=data["accountAddress"],
        )
    return SolanaAccount(account_address=data["accountAddress"])


def is_evm_account(account: Account) -> bool:
    return not isinstance(account, SolanaAccount)


# =============================================================================
# Account assembly
# =============================================================================

class EvmAccountKind(str, Enum):
    STANDARD = "standard"  # kernel v3.1 smart account at a predicted address
    EIP7702 = "eip7702"    # the EOA itself, delegated to kernel v3.3


class AddressPredictor(Protocol):
    async def predict_standard_address(self, account_type: str, signer_address: str) -> str:
        ...


@dataclass
class LoadedAccounts:
    """Accounts assembled for a quote, in the order the quote service expects."""
    accounts: List[Account] = field(default_factory=list)
    evm_account: Optional[Union[StandardAccount, DelegatedAccount]] = None
    solana_account: Optional[SolanaAccount] = None

    @property
    def account_type(self) -> ContractAccountType:
        """Account type to sign EVM operations with."""
        if self.evm_account is None:
            return ContractAccountType.SOLANA
        return self.evm_account.type


def _default_predictor() -> AddressPredictor:
    from ..providers.onebalance import get_onebalance_client  # avoid circular import

    return get_onebalance_client()


async def build_evm_account(
    signer_address: str,
    kind: EvmAccountKind = EvmAccountKind.STANDARD,
    predictor: Optional[AddressPredictor] = None,
) -> Union[StandardAccount, DelegatedAccount]:
    """
    EVM account controlled by ``signer_address``.

    Standard accounts live at the kernel v3.1 address predicted by the quote
    service; EIP-7702 accounts are the signer EOA itself.
    """
    if EvmAccountKind(kind) is EvmAccountKind.EIP7702:
        account = DelegatedAccount.from_signer(signer_address)
        logger.info("EIP-7702 account: %s", account.account_address)
        return account

    predictor = predictor or _default_predictor()
    account_address = await predictor.predict_standard_address(
        ContractAccountType.KERNEL_V31.value, signer_address
    )
    logger.info("Standard account: %s (signer %s)", account_address, signer_address)
    return StandardAccount(signer_address=signer_address, account_address=account_address)


def _assemble(
    evm_account: Optional[Union[StandardAccount, DelegatedAccount]],
    solana_address: Optional[str],
) -> LoadedAccounts:
    solana_account = SolanaAccount(solana_address) if solana_address else None
    accounts: List[Account] = [a for a in (evm_account, solana_account) if a is not None]
    labels = []
    if evm_account is not None:
        labels.append("EIP-7702" if isinstance(evm_account, DelegatedAccount) else "Standard")
    if solana_account is not None:
        labels.append("Solana")
    logger.info("Loaded %d account(s): %s", len(accounts), " + ".join(labels))
    return LoadedAccounts(accounts=accounts, evm_account=evm_account, solana_account=solana_account)


async def load_accounts(
    swap_params: "SwapParams",
    signer_address: str,
    solana_address: Optional[str] = None,
    kind: EvmAccountKind = EvmAccountKind.STANDARD,
    predictor: Optional[AddressPredictor] = None,
) -> LoadedAccounts:
    """
    Accounts needed to quote ``swap_params``: the EVM account, plus the Solana
    account when either asset lives on Solana.

    Raises:
        ValueError: the swap touches Solana and no ``solana_address`` was given
    """
    needs_solana = is_solana_involved(swap_params.from_asset_id, swap_params.to_asset_id)
    if needs_solana and not solana_address:
        raise ValueError("A Solana account is required for swaps involving Solana assets")

    evm_account = await build_evm_account(signer_address, kind, predictor)
    return _assemble(evm_account, solana_address if needs_solana else None)


async def load_multi_chain_accounts(
    signer_address: Optional[str] = None,
    solana_address: Optional[str] = None,
    kind: EvmAccountKind = EvmAccountKind.STANDARD,
    predictor: Optional[AddressPredictor] = None,
) -> LoadedAccounts:
    """Accounts for every signer given; at least one is required."""
    if not signer_address and not solana_address:
        raise ValueError("At least one account is required")
    evm_account = None
    if signer_address:
        evm_account = await build_evm_account(signer_address, kind, predictor)
    return _assemble(evm_account, solana_address)


def balance_check_address(
    asset_id: str,
    evm_account: Union[StandardAccount, DelegatedAccount],
    solana_account: Optional[SolanaAccount] = None,
) -> str:
    """Address holding ``asset_id``: the Solana account for Solana assets, else the EVM account."""
    if solana_account is not None and (is_solana_asset(asset_id) or asset_id == "ob:sol"):
        return solana_account.account_address
    return evm_account.account_address


def build_account_param(
    evm_account: Optional[EvmAccount] = None,
    solana_account: Optional[SolanaAccount] = None,
) -> str:
    """Comma-separated CAIP-10 accounts for the V3 aggregated balance endpoint."""
    account_ids = []
    if evm_account is not None:
        account_ids.append(caip10_account(f"{EVM_NAMESPACE}:1", evm_account.account_address))
    if solana_account is not None:
        account_ids.append(caip10_account(SOLANA_MAINNET_CHAIN, solana_account.account_address))
    if not account_ids:
        raise ValueError("At least one account is required")
    return ",".join(account_ids)
