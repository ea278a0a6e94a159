"""Environment-driven settings for nova-deployments library."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import dotenv_values

from .constants import NETWORK_CONFIG
from .exceptions import ConfigurationError, MissingSignerKeyError, MissingWalletKeyError
from .paths import LEDGER_DIR_ENV, get_default_ledger_dir

WALLET_KEY_ENV = "WALLET_PRIVATE_KEY"
WITNESS_KEY_ENV = "WITNESS_SIGNER_PRIVATE_KEY"
# Misspelled variable name used by older .env files
LEGACY_WITNESS_KEY_ENV = "WITNESS_SINGER_PRIVATE_KEY"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one network."""

    network: str
    chain_id: Optional[int]
    rpc_url: str
    verify_url: Optional[str]
    ledger_dir: Path
    wallet_private_key: Optional[str] = None
    witness_private_key: Optional[str] = None
    contract_address: Optional[str] = None
    trademark_contract_address: Optional[str] = None
    account_address: Optional[str] = None
    chain_name: Optional[str] = None
    block_explorer_url: Optional[str] = None

    def require_wallet_key(self) -> str:
        if not self.wallet_private_key:
            raise MissingWalletKeyError(f"Wallet private key wasn't found: set ${WALLET_KEY_ENV}")
        return self.wallet_private_key

    def require_witness_key(self) -> str:
        if not self.witness_private_key:
            raise MissingSignerKeyError(
                f"Witness signer key wasn't found: set ${WITNESS_KEY_ENV}"
            )
        return self.witness_private_key


def _rpc_env_name(network: str) -> str:
    return f"{network.upper()}_RPC_URL"


def load_settings(
    network: str,
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Union[Path, str]] = None,
) -> Settings:
    """
    Resolve settings for a network.

    Values come from ``env`` (defaults to os.environ) layered over the .env
    file, so real environment variables win. Known networks take their chain
    id and URLs from NETWORK_CONFIG; unknown networks need an RPC URL in
    ``$<NETWORK>_RPC_URL``.

    Args:
        network: Network name, e.g. "zkSyncSepoliaTestnet"
        env: Environment mapping (defaults to os.environ)
        dotenv_path: .env file to read (defaults to ./.env)

    Returns:
        Settings for the network

    Raises:
        ConfigurationError: If no RPC URL can be determined
    """
    if dotenv_path is None:
        dotenv_path = Path.cwd() / ".env"
    values = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
    values.update(os.environ if env is None else env)

    network_config = NETWORK_CONFIG.get(network)
    if network_config is not None:
        rpc_url = values.get(network_config["default_rpc_env"]) or network_config["default_rpc_url"]
        verify_url = values.get("VERIFY_URL") or network_config["verify_url"]
        chain_id = network_config["chain_id"]
        chain_name = network_config["chain_name"]
        block_explorer_url = values.get("BLOCK_EXPLORER_URL") or network_config["block_explorer_url"]
    else:
        rpc_url = values.get(_rpc_env_name(network))
        verify_url = values.get("VERIFY_URL")
        chain_id = None
        chain_name = network
        block_explorer_url = values.get("BLOCK_EXPLORER_URL")

    if not rpc_url:
        raise ConfigurationError(
            f"RPC URL wasn't found for network '{network}': set ${_rpc_env_name(network)}"
        )

    ledger_dir_override = values.get(LEDGER_DIR_ENV)
    ledger_dir = Path(ledger_dir_override).absolute() if ledger_dir_override else get_default_ledger_dir()

    return Settings(
        network=network,
        chain_id=chain_id,
        rpc_url=rpc_url,
        verify_url=verify_url,
        ledger_dir=ledger_dir,
        wallet_private_key=values.get(WALLET_KEY_ENV) or None,
        witness_private_key=(
            values.get(WITNESS_KEY_ENV) or values.get(LEGACY_WITNESS_KEY_ENV) or None
        ),
        contract_address=values.get("CONTRACT_ADDRESS") or None,
        trademark_contract_address=values.get("TRADEMARK_CONTRACT_ADDRESS") or None,
        account_address=values.get("ACCOUNT_ADDRESS") or None,
        chain_name=chain_name,
        block_explorer_url=block_explorer_url or None,
    )
