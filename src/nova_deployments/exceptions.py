"""Custom exception classes for nova-deployments library."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when a compiled contract artifact cannot be located."""

    pass


class InsufficientBalanceError(DeploymentError, ValueError):
    """Raised when the deploying wallet cannot cover the estimated fee."""

    def __init__(self, message: str, required: int = 0, available: int = 0, address: str = ""):
        super().__init__(message)
        self.required = required
        self.available = available
        self.address = address


class UpgradeRequiresUpgradableFlagError(DeploymentError, ValueError):
    """Raised when an upgrade is requested without proxy options."""

    pass


class ProxyNotFoundError(DeploymentError, LookupError):
    """Raised when an upgrade targets a proxy the ledger does not know."""

    pass


class ChainSubmissionError(DeploymentError, RuntimeError):
    """Raised when a transaction is rejected or reverted by the chain."""

    pass


class VerificationError(DeploymentError, RuntimeError):
    """Raised by verifiers when the explorer rejects a verification request."""

    pass


class MissingSignerKeyError(DeploymentError, ValueError):
    """Raised when no witness signer key is supplied."""

    pass


class MissingWalletKeyError(DeploymentError, ValueError):
    """Raised when no wallet private key is available for transactions."""

    pass


class ConfigurationError(DeploymentError, ValueError):
    """Raised when required network configuration is missing."""

    pass


class LedgerCorruptedError(DeploymentError, ValueError):
    """Raised when a ledger file exists but cannot be read as a ledger."""

    pass
