"""Chain access for nova-deployments library."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_account import Account
from eth_utils import to_checksum_address
from web3 import Web3

from .artifacts import ArtifactResolver
from .constants import ADMIN_SLOT, BEACON_SLOT, IMPLEMENTATION_SLOT, PROXY_ARTIFACTS
from .exceptions import ChainSubmissionError, MissingWalletKeyError, ProxyNotFoundError
from .types import Artifact, BeaconProxy, ProxyKind, TransparentProxy, UupsProxy

logger = logging.getLogger(__name__)

# Minimal ABIs for the proxy plumbing this module calls directly
UUPS_UPGRADE_ABI = [
    {
        "type": "function",
        "name": "upgradeToAndCall",
        "stateMutability": "payable",
        "inputs": [
            {"name": "newImplementation", "type": "address"},
            {"name": "data", "type": "bytes"},
        ],
        "outputs": [],
    }
]
PROXY_ADMIN_ABI = [
    {
        "type": "function",
        "name": "upgradeAndCall",
        "stateMutability": "payable",
        "inputs": [
            {"name": "proxy", "type": "address"},
            {"name": "implementation", "type": "address"},
            {"name": "data", "type": "bytes"},
        ],
        "outputs": [],
    }
]
BEACON_ABI = [
    {
        "type": "function",
        "name": "implementation",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "upgradeTo",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "newImplementation", "type": "address"}],
        "outputs": [],
    },
]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def slot_to_address(raw: bytes) -> Optional[str]:
    """
    Interpret a 32-byte storage word as an address.

    Returns:
        Checksummed address, or None if the word is zero
    """
    if not any(raw):
        return None
    return to_checksum_address(bytes(raw)[-20:])


class ChainGateway(ABC):
    """
    Capability to read from and submit transactions to one network.

    Every submitting method blocks until the transaction is mined.
    """

    @abstractmethod
    def account_address(self, signer_key: Optional[str] = None) -> str:
        """Address transactions are sent from."""

    @abstractmethod
    def estimate_fee(
        self, artifact: Artifact, constructor_args: Sequence[Any], signer_key: Optional[str] = None
    ) -> int:
        """Estimated cost of deploying ``artifact``, in wei."""

    @abstractmethod
    def get_balance(self, address: str) -> int:
        """Native balance of ``address``, in wei."""

    @abstractmethod
    def deploy(
        self, artifact: Artifact, constructor_args: Sequence[Any], signer_key: Optional[str] = None
    ) -> str:
        """Deploy ``artifact`` and return the new contract address."""

    @abstractmethod
    def deploy_proxy(
        self,
        artifact: Artifact,
        initializer_args: Sequence[Any],
        proxy: ProxyKind,
        constructor_args: Sequence[Any] = (),
        signer_key: Optional[str] = None,
    ) -> str:
        """Deploy an implementation behind a new proxy and return the proxy address."""

    @abstractmethod
    def upgrade_proxy(
        self,
        proxy_address: str,
        artifact: Artifact,
        proxy: ProxyKind,
        constructor_args: Sequence[Any] = (),
        signer_key: Optional[str] = None,
    ) -> None:
        """
        Deploy a new implementation and point ``proxy_address`` at it.

        Nothing is submitted unless ``proxy_address`` is a proxy that can be upgraded.
        """

    @abstractmethod
    def resolve_implementation(self, proxy_address: str) -> str:
        """
        Current implementation behind a proxy.

        Raises:
            ProxyNotFoundError: If ``proxy_address`` is not an EIP-1967 proxy
        """

    @abstractmethod
    def encode_constructor_args(self, artifact: Artifact, constructor_args: Sequence[Any]) -> str:
        """ABI-encoded constructor arguments as 0x-prefixed hex."""

    @abstractmethod
    def call(self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any]) -> Any:
        """Read-only contract call."""

    @abstractmethod
    def send_and_wait(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        method: str,
        args: Sequence[Any],
        signer_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Submit a contract transaction and return its mined receipt."""


@dataclass
class ContractHandle:
    """A deployed contract bound to a gateway."""

    address: str
    abi: List[Dict[str, Any]]
    gateway: ChainGateway
    signer_key: Optional[str] = None

    def call(self, method: str, *args: Any) -> Any:
        return self.gateway.call(self.address, self.abi, method, args)

    def send_and_wait(self, method: str, *args: Any) -> Dict[str, Any]:
        return self.gateway.send_and_wait(self.address, self.abi, method, args, self.signer_key)


class Web3ChainGateway(ChainGateway):
    """
    ChainGateway over a JSON-RPC node using web3 and eth_account.

    Proxies are assembled from the OpenZeppelin proxy artifacts, which must be
    present in the same artifacts tree as the project's contracts.
    """

    def __init__(
        self,
        web3: Web3,
        resolver: ArtifactResolver,
        default_signer_key: Optional[str] = None,
        receipt_timeout: float = 120,
    ):
        self._w3 = web3
        self._resolver = resolver
        self._default_signer_key = default_signer_key
        self._receipt_timeout = receipt_timeout

    @classmethod
    def from_rpc_url(
        cls,
        rpc_url: str,
        resolver: ArtifactResolver,
        default_signer_key: Optional[str] = None,
        receipt_timeout: float = 120,
    ) -> "Web3ChainGateway":
        return cls(
            Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 30})),
            resolver,
            default_signer_key,
            receipt_timeout,
        )

    @property
    def web3(self) -> Web3:
        return self._w3

    def _account(self, signer_key: Optional[str]):
        key = signer_key or self._default_signer_key
        if not key:
            raise MissingWalletKeyError(
                "Wallet private key not found: set WALLET_PRIVATE_KEY or pass a signer key"
            )
        return Account.from_key(key)

    def account_address(self, signer_key: Optional[str] = None) -> str:
        return self._account(signer_key).address

    def _contract_factory(self, artifact: Artifact):
        return self._w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)

    def _transact(self, tx_builder, signer_key: Optional[str]) -> Dict[str, Any]:
        """Build, sign and send a transaction, then block until it is mined."""
        account = self._account(signer_key)
        tx = tx_builder.build_transaction(
            {
                "from": account.address,
                "nonce": self._w3.eth.get_transaction_count(account.address, "pending"),
            }
        )
        signed = account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug("Submitted transaction %s", tx_hash.hex())

        receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        if receipt["status"] != 1:
            raise ChainSubmissionError(f"Transaction reverted: {tx_hash.hex()}")
        return dict(receipt)

    def estimate_fee(
        self, artifact: Artifact, constructor_args: Sequence[Any], signer_key: Optional[str] = None
    ) -> int:
        constructor = self._contract_factory(artifact).constructor(*constructor_args)
        gas = constructor.estimate_gas({"from": self.account_address(signer_key)})
        return gas * self._w3.eth.gas_price

    def get_balance(self, address: str) -> int:
        return self._w3.eth.get_balance(to_checksum_address(address))

    def deploy(
        self, artifact: Artifact, constructor_args: Sequence[Any], signer_key: Optional[str] = None
    ) -> str:
        receipt = self._transact(
            self._contract_factory(artifact).constructor(*constructor_args), signer_key
        )
        address = to_checksum_address(receipt["contractAddress"])
        logger.debug("Deployed %s at %s", artifact.contract_name, address)
        return address

    def _initializer_data(
        self, artifact: Artifact, proxy: ProxyKind, initializer_args: Sequence[Any]
    ) -> bytes:
        has_initializer = any(
            item.get("type") == "function" and item.get("name") == proxy.initializer
            for item in artifact.abi
        )
        if not has_initializer:
            if initializer_args:
                raise ValueError(
                    f"Contract {artifact.contract_name} has no initializer '{proxy.initializer}'"
                )
            return b""

        contract = self._w3.eth.contract(abi=artifact.abi)
        return bytes.fromhex(
            contract.encode_abi(proxy.initializer, args=list(initializer_args))[2:]
        )

    def _proxy_artifacts(self, proxy: ProxyKind) -> Dict[str, Artifact]:
        """Resolve the proxy contracts ``proxy`` needs, keyed by PROXY_ARTIFACTS role."""
        match proxy:
            case UupsProxy():
                roles = ["uups"]
            case TransparentProxy():
                roles = ["transparent"]
            case BeaconProxy():
                roles = ["beacon_factory", "beacon"]
            case _:
                raise TypeError(f"Unsupported proxy kind: {proxy!r}")
        return {role: self._resolver.resolve(PROXY_ARTIFACTS[role]) for role in roles}

    def deploy_proxy(
        self,
        artifact: Artifact,
        initializer_args: Sequence[Any],
        proxy: ProxyKind,
        constructor_args: Sequence[Any] = (),
        signer_key: Optional[str] = None,
    ) -> str:
        # Everything that can reject the request happens before the first submission
        proxy_artifacts = self._proxy_artifacts(proxy)
        init_data = self._initializer_data(artifact, proxy, initializer_args)
        owner = self.account_address(signer_key)

        if proxy.unsafe_allow:
            logger.debug(
                "Unsafe upgrade allowances for %s: %s",
                artifact.contract_name,
                ", ".join(u.value for u in proxy.unsafe_allow),
            )

        implementation = self.deploy(artifact, constructor_args, signer_key)

        # The initializer runs once, inside the proxy constructor
        if isinstance(proxy, BeaconProxy):
            beacon = self.deploy(
                proxy_artifacts["beacon_factory"],
                [implementation, proxy.beacon_owner or owner],
                signer_key,
            )
            return self.deploy(proxy_artifacts["beacon"], [beacon, init_data], signer_key)
        if isinstance(proxy, TransparentProxy):
            return self.deploy(
                proxy_artifacts["transparent"],
                [implementation, proxy.admin_owner or owner, init_data],
                signer_key,
            )
        return self.deploy(proxy_artifacts["uups"], [implementation, init_data], signer_key)

    def detect_proxy_kind(self, proxy_address: str) -> Tuple[str, str]:
        """
        Work out a proxy's kind from its EIP-1967 slots.

        Returns:
            Tuple of (kind, upgrade target): the beacon for beacon proxies, the
            ProxyAdmin for transparent proxies, the proxy itself for UUPS

        Raises:
            ProxyNotFoundError: If no EIP-1967 slot is set
        """
        beacon = self._read_slot(proxy_address, BEACON_SLOT)
        if beacon is not None:
            return BeaconProxy.kind, beacon

        admin = self._read_slot(proxy_address, ADMIN_SLOT)
        if admin is not None:
            return TransparentProxy.kind, admin

        if self._read_slot(proxy_address, IMPLEMENTATION_SLOT) is not None:
            return UupsProxy.kind, to_checksum_address(proxy_address)

        raise ProxyNotFoundError(
            f"Proxy not found: {proxy_address} has no EIP-1967 implementation, "
            "admin or beacon slot set"
        )

    def upgrade_proxy(
        self,
        proxy_address: str,
        artifact: Artifact,
        proxy: ProxyKind,
        constructor_args: Sequence[Any] = (),
        signer_key: Optional[str] = None,
    ) -> None:
        proxy_address = to_checksum_address(proxy_address)
        kind, target = self.detect_proxy_kind(proxy_address)
        if kind != proxy.kind:
            logger.warning(
                "%s is a %s proxy on-chain, not %s; upgrading it as %s",
                proxy_address,
                kind,
                proxy.kind,
                kind,
            )

        implementation = self.deploy(artifact, constructor_args, signer_key)

        if kind == BeaconProxy.kind:
            contract = self._w3.eth.contract(address=target, abi=BEACON_ABI)
            call = contract.functions.upgradeTo(implementation)
        elif kind == TransparentProxy.kind:
            contract = self._w3.eth.contract(address=target, abi=PROXY_ADMIN_ABI)
            call = contract.functions.upgradeAndCall(proxy_address, implementation, b"")
        else:
            contract = self._w3.eth.contract(address=target, abi=UUPS_UPGRADE_ABI)
            call = contract.functions.upgradeToAndCall(implementation, b"")
        self._transact(call, signer_key)

    def _read_slot(self, address: str, slot: str) -> Optional[str]:
        raw = self._w3.eth.get_storage_at(to_checksum_address(address), int(slot, 16))
        return slot_to_address(raw)

    def resolve_implementation(self, proxy_address: str) -> str:
        implementation = self._read_slot(proxy_address, IMPLEMENTATION_SLOT)
        if implementation is not None:
            return implementation

        beacon = self._read_slot(proxy_address, BEACON_SLOT)
        if beacon is not None:
            beacon_contract = self._w3.eth.contract(address=beacon, abi=BEACON_ABI)
            return to_checksum_address(beacon_contract.functions.implementation().call())

        raise ProxyNotFoundError(
            f"Proxy not found: {proxy_address} has no EIP-1967 implementation or beacon slot set"
        )

    def encode_constructor_args(self, artifact: Artifact, constructor_args: Sequence[Any]) -> str:
        data = self._contract_factory(artifact).constructor(*constructor_args).data_in_transaction
        # data is 0x + creation bytecode + encoded args
        return "0x" + data[len(artifact.bytecode):]

    def _bound_function(self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any]):
        contract = self._w3.eth.contract(address=to_checksum_address(address), abi=abi)
        if "(" in method:
            # Explicit signature, e.g. "safeMint(address,string,bytes)"
            return contract.get_function_by_signature(method)(*args)
        return getattr(contract.functions, method)(*args)

    def call(self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any]) -> Any:
        return self._bound_function(address, abi, method, args).call()

    def send_and_wait(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        method: str,
        args: Sequence[Any],
        signer_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._transact(self._bound_function(address, abi, method, args), signer_key)
