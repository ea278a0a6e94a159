"""Compiled artifact resolution for nova-deployments library."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from .exceptions import ArtifactNotFoundError
from .types import Artifact


class ArtifactResolver(ABC):
    """Looks up compiled contracts by name."""

    @abstractmethod
    def resolve(self, contract_name: str) -> Artifact:
        """
        Return the artifact for ``contract_name``.

        Raises:
            ArtifactNotFoundError: If no compiled artifact matches
        """


def parse_hardhat_artifact(file_path: Path) -> Artifact:
    """
    Parse a hardhat artifact JSON file.

    Args:
        file_path: Path to <artifacts>/<sourceName>/<ContractName>.json

    Returns:
        Artifact with contract name, source name, ABI and creation bytecode

    Raises:
        KeyError: If a required field is missing
    """
    with open(file_path) as f:
        data = json.load(f)

    bytecode = data["bytecode"]
    if bytecode and not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    return Artifact(
        contract_name=data["contractName"],
        source_name=data["sourceName"],
        abi=data["abi"],
        bytecode=bytecode,
    )


class HardhatArtifactResolver(ArtifactResolver):
    """
    Resolves artifacts from a hardhat artifacts tree.

    Accepts bare names ("NovaNFT") and fully qualified names
    ("contracts/NovaNFT.sol:NovaNFT"). zkSync builds write to ``artifacts-zk``,
    which is preferred over ``artifacts`` when both exist.
    """

    def __init__(self, artifacts_root: Optional[Union[Path, str]] = None):
        if artifacts_root is None:
            zk_root = Path.cwd() / "artifacts-zk"
            artifacts_root = zk_root if zk_root.exists() else Path.cwd() / "artifacts"
        self._root = Path(artifacts_root)
        self._cache: Dict[str, Artifact] = {}

    @property
    def root(self) -> Path:
        return self._root

    def _candidates(self, contract_name: str) -> List[Path]:
        if ":" in contract_name:
            source_name, name = contract_name.rsplit(":", 1)
            path = self._root / source_name / f"{name}.json"
            return [path] if path.exists() else []

        return sorted(
            p
            for p in self._root.rglob(f"{contract_name}.json")
            if not p.name.endswith(".dbg.json") and "build-info" not in p.parts
        )

    def resolve(self, contract_name: str) -> Artifact:
        if contract_name in self._cache:
            return self._cache[contract_name]

        candidates = self._candidates(contract_name) if self._root.exists() else []
        if not candidates:
            raise ArtifactNotFoundError(
                f'Artifact not found: no compiled artifact for contract "{contract_name}" '
                f"under {self._root}. Please make sure you have compiled your contracts "
                "or specified the correct contract name!"
            )
        if len(candidates) > 1:
            sources = ", ".join(str(p.parent.relative_to(self._root)) for p in candidates)
            raise ValueError(
                f'Multiple artifacts for contract "{contract_name}" ({sources}); '
                "use a fully qualified name"
            )

        artifact = parse_hardhat_artifact(candidates[0])
        self._cache[contract_name] = artifact
        return artifact
