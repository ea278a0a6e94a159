"""Unit tests for compiled artifact resolution."""

import json
from pathlib import Path

import pytest

from nova_deployments.artifacts import HardhatArtifactResolver, parse_hardhat_artifact
from nova_deployments.exceptions import ArtifactNotFoundError
from nova_deployments.types import Artifact


class TestParseHardhatArtifact:
    """Test the parse_hardhat_artifact function."""

    def test_parses_artifact_fields(self, artifacts_dir: Path):
        """Test that hardhat field names map onto Artifact."""
        artifact = parse_hardhat_artifact(artifacts_dir / "contracts/Token.sol/Token.json")

        assert artifact.contract_name == "Token"
        assert artifact.source_name == "contracts/Token.sol"
        assert artifact.bytecode == "0x6080604052"
        assert any(item["name"] == "balanceOf" for item in artifact.abi)

    def test_adds_hex_prefix_to_bytecode(self, artifacts_dir: Path):
        """Test that bytecode without 0x is normalized."""
        artifact = parse_hardhat_artifact(artifacts_dir / "contracts/Greeter.sol/Greeter.json")

        assert artifact.bytecode == "0x6080604054"

    def test_missing_required_field_raises(self, tmp_path: Path):
        """Test that a file without bytecode is rejected."""
        path = tmp_path / "Broken.json"
        path.write_text(json.dumps({"contractName": "Broken", "sourceName": "x", "abi": []}))

        with pytest.raises(KeyError):
            parse_hardhat_artifact(path)

    def test_full_source(self):
        """Test the fully qualified source reference."""
        artifact = Artifact("NovaNFT", "contracts/NovaNFT.sol", [], "0x")

        assert artifact.full_source == "contracts/NovaNFT.sol:NovaNFT"


class TestHardhatArtifactResolver:
    """Test HardhatArtifactResolver."""

    def test_resolves_bare_name(self, resolver: HardhatArtifactResolver):
        """Test lookup by contract name."""
        assert resolver.resolve("NovaNFT").contract_name == "NovaNFT"

    def test_resolves_fully_qualified_name(self, resolver: HardhatArtifactResolver):
        """Test lookup by source:name."""
        artifact = resolver.resolve("contracts/Token.sol:Token")

        assert artifact.contract_name == "Token"

    def test_unknown_contract(self, resolver: HardhatArtifactResolver):
        """Test that an unknown contract raises ArtifactNotFoundError."""
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            resolver.resolve("Missing")

        assert "Missing" in str(exc_info.value)
        assert "compiled" in str(exc_info.value)

    def test_unknown_fully_qualified_name(self, resolver: HardhatArtifactResolver):
        """Test that a wrong source path raises ArtifactNotFoundError."""
        with pytest.raises(ArtifactNotFoundError):
            resolver.resolve("contracts/Other.sol:Token")

    def test_missing_artifacts_root(self, tmp_path: Path):
        """Test that a missing artifacts directory raises ArtifactNotFoundError."""
        with pytest.raises(ArtifactNotFoundError):
            HardhatArtifactResolver(tmp_path / "nope").resolve("Token")

    def test_ignores_debug_files(self, artifacts_dir: Path):
        """Test that .dbg.json files are not mistaken for artifacts."""
        dbg = artifacts_dir / "contracts/Token.sol/Token.dbg.json"
        dbg.write_text(json.dumps({"buildInfo": "../build-info/abc.json"}))

        assert HardhatArtifactResolver(artifacts_dir).resolve("Token").contract_name == "Token"

    def test_ambiguous_name_is_not_artifact_not_found(self, artifacts_dir: Path):
        """Test that duplicate names raise a different error than a missing artifact."""
        duplicate = artifacts_dir / "contracts/Other.sol/Token.json"
        duplicate.parent.mkdir(parents=True)
        duplicate.write_text(
            json.dumps(
                {"contractName": "Token", "sourceName": "contracts/Other.sol", "abi": [], "bytecode": "0x"}
            )
        )

        with pytest.raises(ValueError) as exc_info:
            HardhatArtifactResolver(artifacts_dir).resolve("Token")
        assert not isinstance(exc_info.value, ArtifactNotFoundError)

    def test_caches_resolved_artifacts(self, artifacts_dir: Path):
        """Test that repeated lookups return the same artifact."""
        resolver = HardhatArtifactResolver(artifacts_dir)

        assert resolver.resolve("Token") is resolver.resolve("Token")

    def test_default_root_prefers_artifacts_zk(self, artifacts_dir: Path, monkeypatch):
        """Test that artifacts-zk is used when present in the working directory."""
        monkeypatch.chdir(artifacts_dir.parent)

        assert HardhatArtifactResolver().root == artifacts_dir.parent / "artifacts-zk"
