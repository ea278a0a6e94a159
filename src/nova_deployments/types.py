"""Data types and dataclasses for nova-deployments library."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

if TYPE_CHECKING:
    from .gateway import ContractHandle


@dataclass(frozen=True)
class Artifact:
    """Compiled contract as produced by the compiler toolchain."""

    contract_name: str  # e.g., "NovaNFT"
    source_name: str  # e.g., "contracts/NovaNFT.sol"
    abi: List[Dict[str, Any]]
    bytecode: str  # 0x-prefixed creation bytecode

    @property
    def full_source(self) -> str:
        """Fully qualified source reference, e.g. ``contracts/NovaNFT.sol:NovaNFT``."""
        return f"{self.source_name}:{self.contract_name}"


class UnsafeAllow(Enum):
    """
    Upgrade-safety checks a caller explicitly opts out of.

    Value strings match the OpenZeppelin upgrades plugin names.
    """

    CONSTRUCTOR = "constructor"
    DELEGATECALL = "delegatecall"
    SELFDESTRUCT = "selfdestruct"
    STATE_VARIABLE_ASSIGNMENT = "state-variable-assignment"
    STATE_VARIABLE_IMMUTABLE = "state-variable-immutable"
    EXTERNAL_LIBRARY_LINKING = "external-library-linking"
    STRUCT_DEFINITION = "struct-definition"
    ENUM_DEFINITION = "enum-definition"
    MISSING_PUBLIC_UPGRADETO = "missing-public-upgradeto"


def _normalize_unsafe_allow(values: Any) -> Tuple[UnsafeAllow, ...]:
    return tuple(UnsafeAllow(v) if not isinstance(v, UnsafeAllow) else v for v in values)


@dataclass(frozen=True)
class UupsProxy:
    """ERC-1967 proxy whose upgrade logic lives in the implementation."""

    initializer: str = "initialize"
    unsafe_allow: Tuple[UnsafeAllow, ...] = ()

    kind = "uups"

    def __post_init__(self) -> None:
        object.__setattr__(self, "unsafe_allow", _normalize_unsafe_allow(self.unsafe_allow))


@dataclass(frozen=True)
class TransparentProxy:
    """Transparent proxy administered through a ProxyAdmin contract."""

    initializer: str = "initialize"
    unsafe_allow: Tuple[UnsafeAllow, ...] = ()
    admin_owner: Optional[str] = None  # Defaults to the deploying account

    kind = "transparent"

    def __post_init__(self) -> None:
        unsafe_allow = _normalize_unsafe_allow(self.unsafe_allow)
        if UnsafeAllow.MISSING_PUBLIC_UPGRADETO in unsafe_allow:
            raise ValueError("'missing-public-upgradeto' only applies to UUPS proxies")
        object.__setattr__(self, "unsafe_allow", unsafe_allow)


@dataclass(frozen=True)
class BeaconProxy:
    """Proxy that reads its implementation from an UpgradeableBeacon."""

    initializer: str = "initialize"
    unsafe_allow: Tuple[UnsafeAllow, ...] = ()
    beacon_owner: Optional[str] = None  # Defaults to the deploying account

    kind = "beacon"

    def __post_init__(self) -> None:
        unsafe_allow = _normalize_unsafe_allow(self.unsafe_allow)
        if UnsafeAllow.MISSING_PUBLIC_UPGRADETO in unsafe_allow:
            raise ValueError("'missing-public-upgradeto' only applies to UUPS proxies")
        object.__setattr__(self, "unsafe_allow", unsafe_allow)


ProxyKind = Union[UupsProxy, TransparentProxy, BeaconProxy]


@dataclass(frozen=True)
class DeployOptions:
    """Per-call options for deploy and upgrade."""

    silent: bool = False  # Log progress at DEBUG instead of INFO
    no_verify: bool = False  # Skip block explorer verification
    signer_key: Optional[str] = None  # Overrides the gateway's wallet
    proxy: Optional[ProxyKind] = None  # None means a plain deployment

    @property
    def upgradable(self) -> bool:
        return self.proxy is not None


@dataclass(frozen=True)
class VerificationRequest:
    """Payload submitted to a block explorer verification service."""

    address: str
    source_ref: str  # "<sourceName>:<contractName>"
    constructor_args_encoded: str  # 0x-prefixed ABI encoding
    bytecode: str


@dataclass(frozen=True)
class Verified:
    request_id: Any


@dataclass(frozen=True)
class VerificationSkipped:
    reason: str


@dataclass(frozen=True)
class VerificationFailed:
    reason: str


VerificationOutcome = Union[Verified, VerificationSkipped, VerificationFailed]


@dataclass
class DeploymentResult:
    """Outcome of a deploy or upgrade call."""

    contract: "ContractHandle"
    address: str  # Proxy address in proxy mode
    network: str
    source_ref: str
    encoded_constructor_args: str
    verification: VerificationOutcome
    implementation_address: Optional[str] = None
    ledger: Dict[str, str] = field(default_factory=dict)  # Ledger snapshot after save
