"""Per-network deployment ledger for nova-deployments library."""

import json
from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from .constants import IMPLEMENTATION_SUFFIX
from .exceptions import LedgerCorruptedError
from .paths import get_ledger_path


def implementation_key(name: str) -> str:
    """Ledger key holding the implementation behind proxy ``name``."""
    return f"{name}{IMPLEMENTATION_SUFFIX}"


class Ledger(MutableMapping):
    """
    Mapping of logical contract name to deployed address for one network.

    Upgradable contracts own two keys: ``<name>`` for the proxy and
    ``<name>_Implementation`` for the implementation it currently points to.
    """

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._entries[key] = value

    def __delitem__(self, key: str) -> None:
        del self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Ledger({self._entries!r})"

    def record_deployment(self, name: str, address: str) -> None:
        self._entries[name] = address

    def record_implementation(self, name: str, address: str) -> None:
        """
        Record the implementation behind proxy ``name``.

        Raises:
            KeyError: If ``name`` itself has not been recorded
        """
        if name not in self._entries:
            raise KeyError(f"Cannot record implementation for unknown proxy '{name}'")
        self._entries[implementation_key(name)] = address

    def clear_implementation(self, name: str) -> None:
        """Drop the implementation entry of ``name``, if any, once it is no longer a proxy."""
        self._entries.pop(implementation_key(name), None)

    def proxy_address(self, name: str) -> Optional[str]:
        return self._entries.get(name)

    def implementation_address(self, name: str) -> Optional[str]:
        return self._entries.get(implementation_key(name))

    def to_dict(self) -> Dict[str, str]:
        return dict(self._entries)


class LedgerStore(ABC):
    """
    Durable storage for ledgers, one record per network.

    ``save`` overwrites the whole record. Callers read, modify and save within
    one orchestration call; there is no locking, so two processes writing the
    same network will lose updates.
    """

    @abstractmethod
    def load(self, network: str) -> Ledger:
        """Return the network's ledger, or an empty one if none was saved."""

    @abstractmethod
    def save(self, network: str, ledger: Ledger) -> None:
        """Replace the network's ledger."""


class JsonFileLedgerStore(LedgerStore):
    """Stores each network's ledger as a flat JSON object in ``<root>/<network>.log``."""

    def __init__(self, ledger_root: Optional[Union[Path, str]] = None):
        self._ledger_root = ledger_root

    def path_for(self, network: str) -> Path:
        return get_ledger_path(network, self._ledger_root)

    def load(self, network: str) -> Ledger:
        """
        Load a network's ledger from disk.

        Args:
            network: Network name

        Returns:
            Ledger with the file's entries, empty if the file doesn't exist

        Raises:
            LedgerCorruptedError: If the file is not a JSON object of strings
        """
        ledger_path = self.path_for(network)
        try:
            with open(ledger_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return Ledger()
        except json.JSONDecodeError as e:
            raise LedgerCorruptedError(f"Ledger file {ledger_path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise LedgerCorruptedError(
                f"Ledger file {ledger_path} must contain a flat mapping of names to addresses"
            )

        return Ledger(data)

    def save(self, network: str, ledger: Ledger) -> None:
        """
        Save a network's ledger to disk.

        Creates parent directories if they don't exist.
        """
        ledger_path = self.path_for(network)
        ledger_path.parent.mkdir(parents=True, exist_ok=True)
        with open(ledger_path, "w") as f:
            json.dump(ledger.to_dict(), f, indent=2)


class InMemoryLedgerStore(LedgerStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, str]]] = None):
        self._records: Dict[str, Dict[str, str]] = {
            network: dict(entries) for network, entries in (initial or {}).items()
        }

    def load(self, network: str) -> Ledger:
        return Ledger(self._records.get(network, {}))

    def save(self, network: str, ledger: Ledger) -> None:
        self._records[network] = ledger.to_dict()

    def networks(self) -> List[str]:
        return list(self._records)
