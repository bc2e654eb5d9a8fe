"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetcherConfig:
    api_url: str = "https://blue-api.morpho.org/graphql"
    max_retries: int = 3
    retry_delay_ms: int = 500
    request_timeout: int = 30


@dataclass(frozen=True)
class NetworkConfig:
    chain_id: int = 0
    name: str = ""
    subgraph_url: str = ""
    api_supported: bool = True
    vaults_v2_supported: bool = False


@dataclass(frozen=True)
class CacheConfig:
    positions_ttl_seconds: float = 120.0
    subgraph_fetch_limit: int = 1000
    markets_page_size: int = 1000


@dataclass(frozen=True)
class PriceConfig:
    coingecko_url: str = (
        "https://api.coingecko.com/api/v3/simple/price"
        "?ids=bitcoin,ethereum&vs_currencies=usd"
    )
    ttl_seconds: float = 60.0


@dataclass(frozen=True)
class TokenConfig:
    symbol: str = ""
    decimals: int = 18
    name: str = ""
    peg: str = ""
    addresses: dict[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class VaultConfig:
    label: str = ""
    chain_id: int = 0
    address: str = ""
    adapter: str = ""


@dataclass(frozen=True)
class AppConfig:
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    networks: dict[int, NetworkConfig] = field(default_factory=dict)
    cache: CacheConfig = field(default_factory=CacheConfig)
    prices: PriceConfig = field(default_factory=PriceConfig)
    tokens: tuple[TokenConfig, ...] = ()
    blacklisted_tokens: tuple[str, ...] = ()
    whitelisted_oracles: dict[int, tuple[str, ...]] = field(default_factory=dict)
    vaults: tuple[VaultConfig, ...] = ()


# ---------------------------------------------------------------------------
# ${VAR} substitution
# ---------------------------------------------------------------------------

_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}]+)}")


def _substitute(match: re.Match[str]) -> str:
    return os.environ.get(match.group("name"), "")


def _interpolate_env(value: Any) -> Any:
    """Expand ``${NAME}`` placeholders in every string of a parsed YAML tree.

    Unset variables expand to an empty string, so a subgraph URL left out of
    ``.env`` simply disables that network's subgraph source.
    """
    if isinstance(value, dict):
        return {key: _interpolate_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    if isinstance(value, str):
        return _PLACEHOLDER.sub(_substitute, value)
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_fetcher(raw: dict[str, Any]) -> FetcherConfig:
    return FetcherConfig(
        api_url=raw.get("api_url") or FetcherConfig.api_url,
        max_retries=int(raw.get("max_retries", 3)),
        retry_delay_ms=int(raw.get("retry_delay_ms", 500)),
        request_timeout=int(raw.get("request_timeout", 30)),
    )


def _build_networks(raw: dict[Any, Any]) -> dict[int, NetworkConfig]:
    networks: dict[int, NetworkConfig] = {}
    for chain_id, cfg in raw.items():
        cfg = cfg or {}
        networks[int(chain_id)] = NetworkConfig(
            chain_id=int(chain_id),
            name=cfg.get("name", str(chain_id)),
            subgraph_url=cfg.get("subgraph_url") or "",
            api_supported=bool(cfg.get("api_supported", True)),
            vaults_v2_supported=bool(cfg.get("vaults_v2_supported", False)),
        )
    return networks


def _build_cache(raw: dict[str, Any]) -> CacheConfig:
    return CacheConfig(
        positions_ttl_seconds=float(raw.get("positions_ttl_seconds", 120.0)),
        subgraph_fetch_limit=int(raw.get("subgraph_fetch_limit", 1000)),
        markets_page_size=int(raw.get("markets_page_size", 1000)),
    )


def _build_prices(raw: dict[str, Any]) -> PriceConfig:
    return PriceConfig(
        coingecko_url=raw.get("coingecko_url") or PriceConfig.coingecko_url,
        ttl_seconds=float(raw.get("ttl_seconds", 60.0)),
    )


def _build_tokens(raw: list[dict[str, Any]]) -> tuple[TokenConfig, ...]:
    tokens: list[TokenConfig] = []
    for t in raw:
        addresses = t.get("addresses", {}) or {}
        tokens.append(
            TokenConfig(
                symbol=t.get("symbol", ""),
                decimals=int(t.get("decimals", 18)),
                name=t.get("name", ""),
                peg=str(t.get("peg", "") or "").upper(),
                addresses={int(k): str(v) for k, v in addresses.items()},
            )
        )
    return tuple(tokens)


def _build_oracles(raw: dict[Any, Any]) -> dict[int, tuple[str, ...]]:
    return {
        int(chain_id): tuple(addr.lower() for addr in (addrs or []))
        for chain_id, addrs in raw.items()
    }


def _build_vaults(raw: list[dict[str, Any]]) -> tuple[VaultConfig, ...]:
    vaults: list[VaultConfig] = []
    for v in raw:
        vaults.append(
            VaultConfig(
                label=v.get("label", ""),
                chain_id=int(v.get("chain_id", 0)),
                address=v.get("address", ""),
                adapter=v.get("adapter", ""),
            )
        )
    return tuple(vaults)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _default_config_path() -> Path:
    return Path(__file__).resolve().parent.parent / "config.yaml"


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Read ``config.yaml`` (after loading ``.env``) into an :class:`AppConfig`.

    Without an explicit path the file next to the package directory is used.
    Raises ``FileNotFoundError`` when the file is missing and ``ValueError``
    when the result fails validation.
    """
    load_dotenv()

    path = Path(config_path) if config_path is not None else _default_config_path()
    if not path.is_file():
        raise FileNotFoundError(f"No configuration file at {path}")

    raw = _interpolate_env(yaml.safe_load(path.read_text()) or {})

    cfg = AppConfig(
        fetcher=_build_fetcher(raw.get("fetcher", {})),
        networks=_build_networks(raw.get("networks", {})),
        cache=_build_cache(raw.get("cache", {})),
        prices=_build_prices(raw.get("prices", {})),
        tokens=_build_tokens(raw.get("tokens", [])),
        blacklisted_tokens=tuple(
            addr.lower() for addr in raw.get("blacklisted_tokens", [])
        ),
        whitelisted_oracles=_build_oracles(raw.get("whitelisted_oracles", {})),
        vaults=_build_vaults(raw.get("vaults", [])),
    )

    _validate(cfg)
    logger.info("Loaded %d network(s) from %s", len(cfg.networks), path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Reject configurations the services cannot run with."""
    if not cfg.networks:
        raise ValueError("At least one network must be configured")

    if cfg.fetcher.max_retries < 1:
        raise ValueError("fetcher.max_retries must be at least 1")

    for network in cfg.networks.values():
        if not network.api_supported and not network.subgraph_url:
            raise ValueError(
                f"Network '{network.name}' has neither API support nor a subgraph URL"
            )

    for token in cfg.tokens:
        if not token.symbol:
            raise ValueError("Every token must have a symbol")
        if token.peg and token.peg not in ("USD", "BTC", "ETH"):
            raise ValueError(f"Token '{token.symbol}' has unknown peg '{token.peg}'")

    for vault in cfg.vaults:
        if vault.chain_id not in cfg.networks:
            raise ValueError(
                f"Vault '{vault.label}' references unknown network {vault.chain_id}"
            )
