"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SELECTOR_RE = re.compile(r"^0x[0-9a-fA-F]{8}$")
_TOPIC_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    poll_interval: float = 4.0


@dataclass(frozen=True)
class ContractsConfig:
    cdp_manager: str = ""
    sorted_cdps: str = ""
    price_feed: str = ""
    pool_manager: str = ""


@dataclass(frozen=True)
class AbiConfig:
    """4-byte function selectors and event topic hashes, keyed by name.

    Selector keys are ``Contract.method`` (e.g. ``CDPManager.L_ETH``);
    topic keys are event names (e.g. ``CDPUpdated``).
    """

    selectors: dict[str, str] = field(default_factory=dict)
    event_topics: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class HintConfig:
    enabled: bool = True
    trials_multiplier: int = 1
    max_trials: Optional[int] = None


@dataclass(frozen=True)
class WatchConfig:
    debounce_ms: int = 50

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    abi: AbiConfig = field(default_factory=AbiConfig)
    hints: HintConfig = field(default_factory=HintConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    account: str = ""


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=tuple(raw.get("rpc_endpoints", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
        poll_interval=float(raw.get("poll_interval", 4.0)),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    return ContractsConfig(
        cdp_manager=raw.get("cdp_manager", ""),
        sorted_cdps=raw.get("sorted_cdps", ""),
        price_feed=raw.get("price_feed", ""),
        pool_manager=raw.get("pool_manager", ""),
    )


def _build_abi(raw: dict[str, Any]) -> AbiConfig:
    return AbiConfig(
        selectors={k: str(v) for k, v in raw.get("selectors", {}).items()},
        event_topics={k: str(v) for k, v in raw.get("event_topics", {}).items()},
    )


def _build_hints(raw: dict[str, Any]) -> HintConfig:
    max_trials = raw.get("max_trials")
    return HintConfig(
        enabled=bool(raw.get("enabled", True)),
        trials_multiplier=int(raw.get("trials_multiplier", 1)),
        max_trials=int(max_trials) if max_trials is not None else None,
    )


def _build_watch(raw: dict[str, Any]) -> WatchConfig:
    return WatchConfig(debounce_ms=int(raw.get("debounce_ms", 50)))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        chain=_build_chain(raw.get("chain", {})),
        contracts=_build_contracts(raw.get("contracts", {})),
        abi=_build_abi(raw.get("abi", {})),
        hints=_build_hints(raw.get("hints", {})),
        watch=_build_watch(raw.get("watch", {})),
        account=raw.get("account", "") or "",
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    for name in ("cdp_manager", "sorted_cdps", "price_feed", "pool_manager"):
        address = getattr(cfg.contracts, name)
        if not _ADDRESS_RE.match(address):
            raise ValueError(f"Contract '{name}' has an invalid address: '{address}'")

    if cfg.account and not _ADDRESS_RE.match(cfg.account):
        raise ValueError(f"Account has an invalid address: '{cfg.account}'")

    for key, selector in cfg.abi.selectors.items():
        if not _SELECTOR_RE.match(selector):
            raise ValueError(f"Selector '{key}' is not a 4-byte hex value: '{selector}'")

    for key, topic in cfg.abi.event_topics.items():
        if not _TOPIC_RE.match(topic):
            raise ValueError(f"Event topic '{key}' is not a 32-byte hex value: '{topic}'")

    if cfg.hints.trials_multiplier < 1:
        raise ValueError("hints.trials_multiplier must be at least 1")
    if cfg.hints.max_trials is not None and cfg.hints.max_trials < 1:
        raise ValueError("hints.max_trials must be at least 1")

    if cfg.watch.debounce_ms < 0:
        raise ValueError("watch.debounce_ms cannot be negative")
