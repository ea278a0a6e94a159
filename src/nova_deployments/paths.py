"""Path management utilities for nova-deployments library."""

import os
from pathlib import Path
from typing import Optional, Union

LEDGER_DIR_ENV = "NOVA_LEDGER_DIR"


def get_default_ledger_dir() -> Path:
    """
    Get default ledger directory.

    Honors $NOVA_LEDGER_DIR when set.

    Returns:
        Path to ./log
    """
    override = os.environ.get(LEDGER_DIR_ENV)
    if override:
        return Path(override).absolute()
    return Path.cwd() / "log"


def get_ledger_path(network: str, ledger_root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the ledger file path for a network.

    Args:
        network: Network name, e.g. "zkSyncSepoliaTestnet"
        ledger_root: Custom ledger directory (defaults to ./log)

    Returns:
        Path to <ledger_root>/<network>.log

    Raises:
        ValueError: If network is empty or would escape the ledger directory
    """
    if not network or "/" in network or "\\" in network or network in (".", ".."):
        raise ValueError(f"Invalid network name: {network!r}")

    if ledger_root is None:
        ledger_root = get_default_ledger_dir()
    else:
        ledger_root = Path(ledger_root).absolute()

    return ledger_root / f"{network}.log"
