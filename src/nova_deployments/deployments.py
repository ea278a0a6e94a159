"""Main API for nova-deployments library."""

import logging
import time
from typing import Any, Callable, Optional, Sequence

from web3 import Web3

from .artifacts import ArtifactResolver
from .config import Settings
from .constants import UPGRADE_SETTLE_SECONDS
from .exceptions import (
    ChainSubmissionError,
    DeploymentError,
    InsufficientBalanceError,
    ProxyNotFoundError,
    UpgradeRequiresUpgradableFlagError,
)
from .gateway import ChainGateway, ContractHandle
from .ledger import JsonFileLedgerStore, Ledger, LedgerStore
from .types import (
    Artifact,
    DeploymentResult,
    DeployOptions,
    VerificationFailed,
    VerificationOutcome,
    VerificationRequest,
    VerificationSkipped,
    Verified,
)
from .verification import ExplorerVerifier, VerificationRequester

logger = logging.getLogger(__name__)


def format_ether(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'ether')} ETH"


class DeploymentOrchestrator:
    """
    Deploys and upgrades contracts on one network and keeps its ledger current.

    Calls are sequential: each submission blocks until mined, and the ledger
    is re-read at the start of every call and written straight after each
    on-chain success. Nothing is written for a call that fails.
    """

    def __init__(
        self,
        network: str,
        gateway: ChainGateway,
        resolver: ArtifactResolver,
        ledger_store: Optional[LedgerStore] = None,
        verifier: Optional[VerificationRequester] = None,
        settle_delay: float = UPGRADE_SETTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        explorer_url: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            network: Network name, scopes the ledger
            gateway: Chain access used for fees, balances and submissions
            resolver: Compiled artifact lookup
            ledger_store: Ledger persistence (defaults to ./log/<network>.log)
            verifier: Explorer verification; None skips verification
            settle_delay: Seconds to wait after an upgrade before reading
                          the implementation slot
            sleep: Sleep function, replaceable in tests
            explorer_url: Block explorer base URL for address links in the log
        """
        self.network = network
        self.gateway = gateway
        self.resolver = resolver
        self.ledger_store = ledger_store if ledger_store is not None else JsonFileLedgerStore()
        self.verifier = verifier
        self.settle_delay = settle_delay
        self._sleep = sleep
        self.explorer_url = explorer_url.rstrip("/") if explorer_url else None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gateway: ChainGateway,
        resolver: ArtifactResolver,
    ) -> "DeploymentOrchestrator":
        """Build an orchestrator with a file ledger and, when configured, an explorer verifier."""
        verifier = ExplorerVerifier(settings.verify_url) if settings.verify_url else None
        logger.debug(
            "Using %s (chain id %s) at %s", settings.chain_name, settings.chain_id, settings.rpc_url
        )
        return cls(
            settings.network,
            gateway,
            resolver,
            ledger_store=JsonFileLedgerStore(settings.ledger_dir),
            verifier=verifier,
            explorer_url=settings.block_explorer_url,
        )

    def ledger(self) -> Ledger:
        """Current ledger for this network."""
        return self.ledger_store.load(self.network)

    def _log_for(self, options: DeployOptions) -> Callable[..., None]:
        level = logging.DEBUG if options.silent else logging.INFO

        def log(message: str, *args: Any) -> None:
            logger.log(level, message, *args)

        return log

    def _ensure_balance(
        self, artifact: Artifact, constructor_args: Sequence[Any], options: DeployOptions
    ) -> int:
        log = self._log_for(options)

        fee = self.gateway.estimate_fee(artifact, constructor_args, options.signer_key)
        log("Estimated deployment cost: %s", format_ether(fee))

        address = self.gateway.account_address(options.signer_key)
        balance = self.gateway.get_balance(address)
        log("Balance of wallet %s: %s", address, format_ether(balance))

        if balance < fee:
            raise InsufficientBalanceError(
                f"Insufficient balance: required {format_ether(fee)}, "
                f"but {address} has {format_ether(balance)}",
                required=fee,
                available=balance,
                address=address,
            )
        return fee

    def _submit(self, description: str, submit: Callable[[], Any]) -> Any:
        """Run a chain submission, surfacing chain failures as ChainSubmissionError."""
        try:
            return submit()
        except DeploymentError:
            raise
        except Exception as e:
            raise ChainSubmissionError(f"Chain rejected {description}: {e}") from e

    def _verify(
        self,
        address: str,
        artifact: Artifact,
        encoded_args: str,
        options: DeployOptions,
    ) -> VerificationOutcome:
        log = self._log_for(options)

        if options.no_verify:
            return VerificationSkipped("verification disabled by caller")
        if self.verifier is None:
            return VerificationSkipped(f"no verification service configured for {self.network}")

        log("Requesting contract verification...")
        request = VerificationRequest(
            address=address,
            source_ref=artifact.full_source,
            constructor_args_encoded=encoded_args,
            bytecode=artifact.bytecode,
        )
        try:
            request_id = self.verifier.request_verification(request)
        except Exception as e:
            # Never fails the deploy or upgrade that preceded it
            logger.warning("Verification of %s at %s failed: %s", artifact.contract_name, address, e)
            return VerificationFailed(str(e))

        log("Verification request id: %s", request_id)
        return Verified(request_id)

    def deploy(
        self,
        contract_name: str,
        constructor_args: Optional[Sequence[Any]] = None,
        options: Optional[DeployOptions] = None,
        initializer_args: Optional[Sequence[Any]] = None,
    ) -> DeploymentResult:
        """
        Deploy a contract, directly or behind a new proxy.

        Args:
            contract_name: Artifact name (bare or fully qualified)
            constructor_args: Constructor arguments, in order
            options: Deploy options; ``options.proxy`` selects proxy mode
            initializer_args: Arguments for the proxy initializer

        Returns:
            DeploymentResult with the contract handle and verification outcome

        Raises:
            ArtifactNotFoundError: If the artifact cannot be resolved
            InsufficientBalanceError: If the wallet cannot cover the fee
            ChainSubmissionError: If the chain rejects the deployment
        """
        options = options or DeployOptions()
        constructor_args = list(constructor_args or [])
        log = self._log_for(options)

        log('Starting deployment process of "%s"...', contract_name)
        artifact = self.resolver.resolve(contract_name)
        name = artifact.contract_name
        log("Artifact found! Constructor arguments: %s", constructor_args)

        self._ensure_balance(artifact, constructor_args, options)

        implementation: Optional[str] = None
        if options.proxy is not None:
            proxy = options.proxy
            log("Deploying %s behind a %s proxy...", name, proxy.kind)
            address = self._submit(
                f"proxy deployment of {name}",
                lambda: self.gateway.deploy_proxy(
                    artifact,
                    list(initializer_args or []),
                    proxy,
                    constructor_args,
                    options.signer_key,
                ),
            )
            implementation = self._submit(
                f"implementation lookup for {name}",
                lambda: self.gateway.resolve_implementation(address),
            )
        else:
            log("Deploying contract...")
            address = self._submit(
                f"deployment of {name}",
                lambda: self.gateway.deploy(artifact, constructor_args, options.signer_key),
            )

        # Re-read so entries written since the call started are kept
        ledger = self.ledger_store.load(self.network)
        ledger.record_deployment(name, address)
        if implementation is not None:
            ledger.record_implementation(name, implementation)
        else:
            ledger.clear_implementation(name)
        self.ledger_store.save(self.network, ledger)

        encoded_args = self.gateway.encode_constructor_args(artifact, constructor_args)
        log('"%s" was successfully deployed:', name)
        log(" - Contract address: %s", address)
        if self.explorer_url:
            log(" - Explorer: %s/address/%s", self.explorer_url, address)
        if implementation is not None:
            log(" - Implementation address: %s", implementation)
        log(" - Contract source: %s", artifact.full_source)
        log(" - Encoded constructor arguments: %s", encoded_args)

        verification = self._verify(address, artifact, encoded_args, options)

        return DeploymentResult(
            contract=ContractHandle(address, artifact.abi, self.gateway, options.signer_key),
            address=address,
            network=self.network,
            source_ref=artifact.full_source,
            encoded_constructor_args=encoded_args,
            verification=verification,
            implementation_address=implementation,
            ledger=ledger.to_dict(),
        )

    def upgrade(
        self,
        contract_name: str,
        constructor_args: Optional[Sequence[Any]] = None,
        options: Optional[DeployOptions] = None,
    ) -> DeploymentResult:
        """
        Upgrade the implementation behind an existing proxy.

        The proxy address recorded in the ledger is kept; only
        ``<name>_Implementation`` changes.

        Raises:
            UpgradeRequiresUpgradableFlagError: If options carry no proxy kind
            ArtifactNotFoundError: If the artifact cannot be resolved
            InsufficientBalanceError: If the wallet cannot cover the fee
            ProxyNotFoundError: If the ledger has no proxy for the contract
            ChainSubmissionError: If the chain rejects the upgrade
        """
        options = options or DeployOptions()
        if options.proxy is None:
            raise UpgradeRequiresUpgradableFlagError(
                "Upgrade requires an upgradable contract: "
                f'pass proxy options to upgrade "{contract_name}"'
            )
        proxy = options.proxy
        constructor_args = list(constructor_args or [])
        log = self._log_for(options)

        log('Starting upgrade process of "%s"...', contract_name)
        artifact = self.resolver.resolve(contract_name)
        name = artifact.contract_name

        self._ensure_balance(artifact, constructor_args, options)

        ledger = self.ledger_store.load(self.network)
        proxy_address = ledger.proxy_address(name)
        if not proxy_address:
            raise ProxyNotFoundError(
                f'Proxy not found: no "{name}" entry on {self.network}. '
                "Please deploy the contract first."
            )
        log("Proxy address: %s", proxy_address)

        log("Deploying new implementation contract...")
        self._submit(
            f"upgrade of {name}",
            lambda: self.gateway.upgrade_proxy(
                proxy_address, artifact, proxy, constructor_args, options.signer_key
            ),
        )

        self._sleep(self.settle_delay)
        implementation = self._submit(
            f"implementation lookup for {name}",
            lambda: self.gateway.resolve_implementation(proxy_address),
        )
        log("New implementation address: %s", implementation)

        ledger = self.ledger_store.load(self.network)
        ledger.record_deployment(name, proxy_address)
        ledger.record_implementation(name, implementation)
        self.ledger_store.save(self.network, ledger)

        encoded_args = self.gateway.encode_constructor_args(artifact, constructor_args)
        log('"%s" was successfully upgraded:', name)
        log(" - Contract address: %s", proxy_address)
        if self.explorer_url:
            log(" - Explorer: %s/address/%s", self.explorer_url, proxy_address)
        log(" - Contract source: %s", artifact.full_source)

        verification = self._verify(proxy_address, artifact, encoded_args, options)

        return DeploymentResult(
            contract=ContractHandle(proxy_address, artifact.abi, self.gateway, options.signer_key),
            address=proxy_address,
            network=self.network,
            source_ref=artifact.full_source,
            encoded_constructor_args=encoded_args,
            verification=verification,
            implementation_address=implementation,
            ledger=ledger.to_dict(),
        )

    def verify_by_name(
        self,
        proxy_address: str,
        contract_name: str,
        constructor_args: Optional[Sequence[Any]] = None,
    ) -> VerificationOutcome:
        """
        Request verification of an already deployed proxy.

        Args:
            proxy_address: Address of the deployed proxy
            contract_name: Artifact name of the implementation
            constructor_args: Constructor arguments used at deployment

        Returns:
            Verification outcome

        Raises:
            ProxyNotFoundError: If proxy_address is empty or not a proxy
            ArtifactNotFoundError: If the artifact cannot be resolved
        """
        if not proxy_address:
            raise ProxyNotFoundError("Proxy not found: please deploy the contract first.")

        artifact = self.resolver.resolve(contract_name)
        implementation = self.gateway.resolve_implementation(proxy_address)
        logger.info("Implementation address: %s", implementation)

        encoded_args = self.gateway.encode_constructor_args(artifact, list(constructor_args or []))
        return self._verify(proxy_address, artifact, encoded_args, DeployOptions())
