"""Shared pytest fixtures for nova-deployments tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
from eth_account import Account
from eth_utils import to_checksum_address

from nova_deployments.artifacts import HardhatArtifactResolver
from nova_deployments.constants import LOCAL_RICH_WALLETS
from nova_deployments.deployments import DeploymentOrchestrator
from nova_deployments.exceptions import ProxyNotFoundError, VerificationError
from nova_deployments.gateway import ChainGateway
from nova_deployments.ledger import InMemoryLedgerStore, JsonFileLedgerStore
from nova_deployments.types import Artifact, ProxyKind, VerificationRequest
from nova_deployments.verification import VerificationRequester

ERC721_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "initialize",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "name_", "type": "string"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

SAMPLE_ARTIFACTS = {
    "contracts/Token.sol/Token.json": {
        "contractName": "Token",
        "sourceName": "contracts/Token.sol",
        "abi": ERC721_ABI,
        "bytecode": "0x6080604052",
    },
    "contracts/NovaNFT.sol/NovaNFT.json": {
        "contractName": "NovaNFT",
        "sourceName": "contracts/NovaNFT.sol",
        "abi": ERC721_ABI,
        "bytecode": "0x6080604053",
    },
    "contracts/Greeter.sol/Greeter.json": {
        "contractName": "Greeter",
        "sourceName": "contracts/Greeter.sol",
        "abi": [],
        "bytecode": "6080604054",
    },
}


def _constructor(*inputs: str) -> List[Dict[str, Any]]:
    return [
        {
            "type": "constructor",
            "stateMutability": "payable",
            "inputs": [{"name": f"arg{i}", "type": t} for i, t in enumerate(inputs)],
        }
    ]


PROXY_SAMPLE_ARTIFACTS = {
    "@openzeppelin/contracts/proxy/ERC1967/ERC1967Proxy.sol/ERC1967Proxy.json": {
        "contractName": "ERC1967Proxy",
        "sourceName": "@openzeppelin/contracts/proxy/ERC1967/ERC1967Proxy.sol",
        "abi": _constructor("address", "bytes"),
        "bytecode": "0x60806040aa",
    },
    "@openzeppelin/contracts/proxy/transparent/TransparentUpgradeableProxy.sol/TransparentUpgradeableProxy.json": {
        "contractName": "TransparentUpgradeableProxy",
        "sourceName": "@openzeppelin/contracts/proxy/transparent/TransparentUpgradeableProxy.sol",
        "abi": _constructor("address", "address", "bytes"),
        "bytecode": "0x60806040bb",
    },
    "@openzeppelin/contracts/proxy/beacon/UpgradeableBeacon.sol/UpgradeableBeacon.json": {
        "contractName": "UpgradeableBeacon",
        "sourceName": "@openzeppelin/contracts/proxy/beacon/UpgradeableBeacon.sol",
        "abi": _constructor("address", "address"),
        "bytecode": "0x60806040cc",
    },
    "@openzeppelin/contracts/proxy/beacon/BeaconProxy.sol/BeaconProxy.json": {
        "contractName": "BeaconProxy",
        "sourceName": "@openzeppelin/contracts/proxy/beacon/BeaconProxy.sol",
        "abi": _constructor("address", "bytes"),
        "bytecode": "0x60806040dd",
    },
}


class FakeChainGateway(ChainGateway):
    """In-memory chain: sequential addresses, configurable fee and balance."""

    def __init__(self, fee: int = 10**15, balance: int = 10**18):
        self.fee = fee
        self.balance = balance
        self.submissions: List[tuple] = []
        self.implementations: Dict[str, str] = {}
        self.token_balances: Dict[str, Dict[str, int]] = {}
        self.fail_with: Optional[Exception] = None
        self._next = 0x1000

    def _new_address(self) -> str:
        self._next += 1
        return to_checksum_address(f"0x{self._next:040x}")

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def account_address(self, signer_key: Optional[str] = None) -> str:
        return Account.from_key(signer_key or LOCAL_RICH_WALLETS[0]["private_key"]).address

    def estimate_fee(self, artifact, constructor_args, signer_key=None) -> int:
        return self.fee

    def get_balance(self, address: str) -> int:
        return self.balance

    def deploy(self, artifact: Artifact, constructor_args: Sequence[Any], signer_key=None) -> str:
        self._maybe_fail()
        address = self._new_address()
        self.submissions.append(("deploy", artifact.contract_name, address))
        return address

    def deploy_proxy(
        self, artifact, initializer_args, proxy: ProxyKind, constructor_args=(), signer_key=None
    ) -> str:
        self._maybe_fail()
        implementation = self._new_address()
        address = self._new_address()
        self.implementations[address] = implementation
        self.submissions.append(
            ("deploy_proxy", artifact.contract_name, address, proxy, list(initializer_args))
        )
        return address

    def upgrade_proxy(self, proxy_address, artifact, proxy, constructor_args=(), signer_key=None):
        self._maybe_fail()
        self.implementations[proxy_address] = self._new_address()
        self.submissions.append(("upgrade_proxy", artifact.contract_name, proxy_address, proxy))

    def resolve_implementation(self, proxy_address: str) -> str:
        if proxy_address not in self.implementations:
            raise ProxyNotFoundError(f"Proxy not found: {proxy_address}")
        return self.implementations[proxy_address]

    def encode_constructor_args(self, artifact, constructor_args) -> str:
        return "0x" + "".join(f"{len(str(a)):064x}" for a in constructor_args)

    def call(self, address, abi, method, args) -> Any:
        if method == "balanceOf":
            return self.token_balances.get(address, {}).get(args[0], 0)
        raise NotImplementedError(method)

    def send_and_wait(self, address, abi, method, args, signer_key=None) -> Dict[str, Any]:
        self._maybe_fail()
        recipient = args[0]
        balances = self.token_balances.setdefault(address, {})
        balances[recipient] = balances.get(recipient, 0) + 1
        self.submissions.append(("send", address, method, list(args)))
        return {"status": 1, "transactionHash": bytes([len(self.submissions)]) * 32}


class RecordingVerifier(VerificationRequester):
    """Verifier that records requests and optionally fails."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: List[VerificationRequest] = []

    def request_verification(self, request: VerificationRequest) -> Any:
        self.requests.append(request)
        if self.fail:
            raise VerificationError("explorer unavailable")
        return len(self.requests)


def write_artifacts(root: Path, artifacts: Dict[str, Dict[str, Any]]) -> Path:
    for relative, data in artifacts.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data))
    return root


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """Hardhat-style artifacts tree with a few sample contracts."""
    return write_artifacts(tmp_path / "artifacts-zk", SAMPLE_ARTIFACTS)


@pytest.fixture
def resolver(artifacts_dir: Path) -> HardhatArtifactResolver:
    return HardhatArtifactResolver(artifacts_dir)


@pytest.fixture
def proxy_resolver(artifacts_dir: Path) -> HardhatArtifactResolver:
    """Resolver whose artifacts tree also holds the OpenZeppelin proxy contracts."""
    return HardhatArtifactResolver(write_artifacts(artifacts_dir, PROXY_SAMPLE_ARTIFACTS))


@pytest.fixture
def gateway() -> FakeChainGateway:
    return FakeChainGateway()


@pytest.fixture
def verifier() -> RecordingVerifier:
    return RecordingVerifier()


@pytest.fixture
def ledger_dir(tmp_path: Path) -> Path:
    """Temporary ledger directory (not created until first save)."""
    return tmp_path / "log"


@pytest.fixture
def file_ledger_store(ledger_dir: Path) -> JsonFileLedgerStore:
    return JsonFileLedgerStore(ledger_dir)


@pytest.fixture
def memory_ledger_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def orchestrator(
    gateway: FakeChainGateway,
    resolver: HardhatArtifactResolver,
    file_ledger_store: JsonFileLedgerStore,
    verifier: RecordingVerifier,
) -> DeploymentOrchestrator:
    """Orchestrator on 'testnet' with a file ledger and no settling delay."""
    return DeploymentOrchestrator(
        "testnet",
        gateway,
        resolver,
        ledger_store=file_ledger_store,
        verifier=verifier,
        settle_delay=0,
        sleep=lambda _: None,
    )


@pytest.fixture
def witness_key() -> str:
    return LOCAL_RICH_WALLETS[1]["private_key"]


@pytest.fixture
def witness_address() -> str:
    return Account.from_key(LOCAL_RICH_WALLETS[1]["private_key"]).address


@pytest.fixture
def recipient() -> str:
    return to_checksum_address("0xe269b18099a71599994312757fef8debe7518c31")


@pytest.fixture
def make_gateway():
    """Factory for gateways with a custom fee and balance."""
    return FakeChainGateway


@pytest.fixture
def make_verifier():
    """Factory for recording verifiers, optionally failing."""
    return RecordingVerifier
