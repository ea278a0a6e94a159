"""
nova-deployments: deploy and upgrade smart contracts with a per-network ledger,
and sign witness authorizations for gated mints
"""

from importlib.metadata import PackageNotFoundError, version

from .artifacts import ArtifactResolver, HardhatArtifactResolver
from .config import Settings, load_settings
from .deployments import DeploymentOrchestrator
from .exceptions import (
    ArtifactNotFoundError,
    ChainSubmissionError,
    ConfigurationError,
    DeploymentError,
    InsufficientBalanceError,
    LedgerCorruptedError,
    MissingSignerKeyError,
    MissingWalletKeyError,
    ProxyNotFoundError,
    UpgradeRequiresUpgradableFlagError,
    VerificationError,
)
from .gateway import ChainGateway, ContractHandle, Web3ChainGateway
from .ledger import InMemoryLedgerStore, JsonFileLedgerStore, Ledger, LedgerStore
from .types import (
    Artifact,
    BeaconProxy,
    DeploymentResult,
    DeployOptions,
    TransparentProxy,
    UnsafeAllow,
    UupsProxy,
    VerificationFailed,
    VerificationSkipped,
    Verified,
)
from .verification import ExplorerVerifier, VerificationRequester

try:
    __version__ = version("nova-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "DeploymentOrchestrator",
    "Settings",
    "load_settings",
    "ArtifactResolver",
    "HardhatArtifactResolver",
    "ChainGateway",
    "ContractHandle",
    "Web3ChainGateway",
    "Ledger",
    "LedgerStore",
    "JsonFileLedgerStore",
    "InMemoryLedgerStore",
    "VerificationRequester",
    "ExplorerVerifier",
    "Artifact",
    "DeployOptions",
    "DeploymentResult",
    "UupsProxy",
    "TransparentProxy",
    "BeaconProxy",
    "UnsafeAllow",
    "Verified",
    "VerificationSkipped",
    "VerificationFailed",
    "DeploymentError",
    "ArtifactNotFoundError",
    "InsufficientBalanceError",
    "UpgradeRequiresUpgradableFlagError",
    "ProxyNotFoundError",
    "ChainSubmissionError",
    "VerificationError",
    "MissingSignerKeyError",
    "MissingWalletKeyError",
    "ConfigurationError",
    "LedgerCorruptedError",
]
