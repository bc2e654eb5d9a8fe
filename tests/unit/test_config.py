"""Unit tests for config loading, env interpolation, and validation."""
from __future__ import annotations

from pathlib import Path

import pytest

from monarch_core.config import (
    AppConfig,
    FetcherConfig,
    NetworkConfig,
    _interpolate_env,
    load_config,
)


class TestInterpolateEnv:
    def test_subgraph_url_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAINNET_SUBGRAPH_URL", "https://gateway.example.com/abc")
        assert _interpolate_env("${MAINNET_SUBGRAPH_URL}") == "https://gateway.example.com/abc"

    def test_unset_var_is_blank(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BASE_SUBGRAPH_URL", raising=False)
        assert _interpolate_env("${BASE_SUBGRAPH_URL}") == ""

    def test_recurses_into_networks(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SG", "https://sg.example.com")
        raw = {"networks": [{"chain_id": 1, "subgraph_url": "${SG}/mainnet"}]}
        assert _interpolate_env(raw) == {
            "networks": [{"chain_id": 1, "subgraph_url": "https://sg.example.com/mainnet"}]
        }

    def test_scalars_untouched(self) -> None:
        assert _interpolate_env(1000) == 1000
        assert _interpolate_env(False) is False
        assert _interpolate_env(None) is None


class TestLoadConfig:
    def test_loads_valid_yaml(self, sample_yaml_path: Path) -> None:
        cfg = load_config(sample_yaml_path)
        assert isinstance(cfg, AppConfig)
        assert cfg.fetcher.api_url == "https://api.example.com/graphql"
        assert cfg.fetcher.max_retries == 2
        assert cfg.fetcher.retry_delay_ms == 100
        assert set(cfg.networks) == {1, 8453}
        assert cfg.networks[1].vaults_v2_supported is True
        assert cfg.networks[8453].subgraph_url == ""
        assert cfg.cache.positions_ttl_seconds == 30.0
        assert cfg.prices.ttl_seconds == 15.0

    def test_tokens_parsed(self, sample_yaml_path: Path) -> None:
        cfg = load_config(sample_yaml_path)
        usdc = cfg.tokens[0]
        assert usdc.symbol == "USDC"
        assert usdc.decimals == 6
        assert usdc.peg == "USD"
        assert usdc.addresses == {1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"}
        assert cfg.tokens[1].decimals == 18

    def test_blacklist_and_oracles_lowercased(self, sample_yaml_path: Path) -> None:
        cfg = load_config(sample_yaml_path)
        assert cfg.blacklisted_tokens == ("0xdead000000000000000000000000000000000000",)
        assert cfg.whitelisted_oracles == {1: ("0x1111111111111111111111111111111111111111",)}

    def test_vaults_parsed(self, sample_yaml_path: Path) -> None:
        cfg = load_config(sample_yaml_path)
        assert len(cfg.vaults) == 1
        assert cfg.vaults[0].label == "main-usdc"
        assert cfg.vaults[0].chain_id == 1

    def test_defaults_when_sections_missing(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("networks:\n  1:\n    name: Ethereum\n")
        cfg = load_config(cfg_file)
        assert cfg.fetcher == FetcherConfig()
        assert cfg.cache.subgraph_fetch_limit == 1000
        assert cfg.cache.positions_ttl_seconds == 120.0
        assert cfg.prices.ttl_seconds == 60.0
        assert cfg.tokens == ()

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_env_interpolation_in_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TEST_SUBGRAPH", "https://gateway.example.com/abc")
        yaml_content = """\
networks:
  1:
    name: Ethereum
    subgraph_url: "${TEST_SUBGRAPH}"
"""
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text(yaml_content)
        cfg = load_config(cfg_file)
        assert cfg.networks[1].subgraph_url == "https://gateway.example.com/abc"


class TestValidation:
    def _write(self, tmp_path: Path, content: str) -> Path:
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text(content)
        return cfg_file

    def test_no_networks_raises(self, tmp_path: Path) -> None:
        cfg_file = self._write(tmp_path, "networks: {}\n")
        with pytest.raises(ValueError, match="At least one network"):
            load_config(cfg_file)

    def test_zero_retries_raises(self, tmp_path: Path) -> None:
        cfg_file = self._write(
            tmp_path, "fetcher:\n  max_retries: 0\nnetworks:\n  1:\n    name: Ethereum\n"
        )
        with pytest.raises(ValueError, match="max_retries"):
            load_config(cfg_file)

    def test_network_without_any_source_raises(self, tmp_path: Path) -> None:
        cfg_file = self._write(
            tmp_path, "networks:\n  1:\n    name: Ethereum\n    api_supported: false\n"
        )
        with pytest.raises(ValueError, match="neither API support nor a subgraph"):
            load_config(cfg_file)

    def test_unknown_peg_raises(self, tmp_path: Path) -> None:
        cfg_file = self._write(
            tmp_path,
            "networks:\n  1: {name: Ethereum}\ntokens:\n  - symbol: EURC\n    peg: EUR\n",
        )
        with pytest.raises(ValueError, match="unknown peg"):
            load_config(cfg_file)

    def test_token_without_symbol_raises(self, tmp_path: Path) -> None:
        cfg_file = self._write(
            tmp_path, "networks:\n  1: {name: Ethereum}\ntokens:\n  - decimals: 6\n"
        )
        with pytest.raises(ValueError, match="symbol"):
            load_config(cfg_file)

    def test_vault_on_unknown_network_raises(self, tmp_path: Path) -> None:
        cfg_file = self._write(
            tmp_path,
            "networks:\n  1: {name: Ethereum}\n"
            "vaults:\n  - label: v\n    chain_id: 10\n    address: '0x1'\n",
        )
        with pytest.raises(ValueError, match="unknown network"):
            load_config(cfg_file)


class TestFrozenConfigs:
    def test_fetcher_config_immutable(self) -> None:
        f = FetcherConfig()
        with pytest.raises(AttributeError):
            f.max_retries = 9  # type: ignore[misc]

    def test_network_config_immutable(self) -> None:
        n = NetworkConfig(chain_id=1, name="Ethereum")
        with pytest.raises(AttributeError):
            n.subgraph_url = "x"  # type: ignore[misc]
