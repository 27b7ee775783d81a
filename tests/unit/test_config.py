"""Unit tests for config loading, env interpolation, and validation."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from conftest import ALICE, CDP_MANAGER, POOL_MANAGER, PRICE_FEED, SORTED_CDPS
from liquity_mirror.config import (
    AppConfig,
    ChainConfig,
    HintConfig,
    WatchConfig,
    _interpolate_env,
    load_config,
)

CONTRACTS_YAML = textwrap.dedent(f"""\
    contracts:
      cdp_manager: "{CDP_MANAGER}"
      sorted_cdps: "{SORTED_CDPS}"
      price_feed: "{PRICE_FEED}"
      pool_manager: "{POOL_MANAGER}"
""")

CHAIN_YAML = textwrap.dedent("""\
    chain:
      rpc_endpoints: ["https://rpc.test.com"]
""")


def _write(tmp_path: Path, content: str) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(content)
    return cfg_file


class TestInterpolateEnv:
    def test_simple_substitution(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _interpolate_env("${MY_VAR}") == "hello"

    def test_missing_var_becomes_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NONEXISTENT_VAR_XYZ", raising=False)
        assert _interpolate_env("${NONEXISTENT_VAR_XYZ}") == ""

    def test_nested_dict(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOK", "secret")
        result = _interpolate_env({"key": "${TOK}", "plain": "text"})
        assert result == {"key": "secret", "plain": "text"}

    def test_nested_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("A", "x")
        assert _interpolate_env(["${A}", "y"]) == ["x", "y"]

    def test_non_string_passthrough(self) -> None:
        assert _interpolate_env(42) == 42
        assert _interpolate_env(True) is True


class TestLoadConfig:
    def test_loads_valid_yaml(self, sample_yaml_path: Path) -> None:
        cfg = load_config(sample_yaml_path)
        assert isinstance(cfg, AppConfig)
        assert cfg.chain.rpc_endpoints == ("https://rpc.example.com",)
        assert cfg.chain.rpc_timeout == 10
        assert cfg.chain.poll_interval == 2.5
        assert cfg.contracts.cdp_manager == CDP_MANAGER
        assert cfg.abi.selectors["PriceFeed.getPrice"] == "0x98d5fdca"
        assert cfg.hints == HintConfig(enabled=True, trials_multiplier=10, max_trials=500)
        assert cfg.watch.debounce_seconds == 0.075
        assert cfg.account == ALICE

    def test_defaults(self, tmp_path: Path) -> None:
        cfg = load_config(_write(tmp_path, CHAIN_YAML + CONTRACTS_YAML))
        assert cfg.hints == HintConfig()
        assert cfg.watch == WatchConfig(debounce_ms=50)
        assert cfg.account == ""
        assert cfg.abi.selectors == {}

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_env_interpolation_in_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TEST_ACCOUNT", ALICE)
        monkeypatch.setenv("TEST_RPC", "https://secret.rpc.test")
        content = textwrap.dedent("""\
            chain:
              rpc_endpoints: ["${TEST_RPC}"]
            account: "${TEST_ACCOUNT}"
        """) + CONTRACTS_YAML
        cfg = load_config(_write(tmp_path, content))
        assert cfg.account == ALICE
        assert cfg.chain.rpc_endpoints == ("https://secret.rpc.test",)


class TestValidation:
    def test_no_endpoints_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="At least one RPC endpoint"):
            load_config(_write(tmp_path, "chain: {rpc_endpoints: []}\n" + CONTRACTS_YAML))

    def test_bad_contract_address_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML.replace(PRICE_FEED, "0x1234")
        with pytest.raises(ValueError, match="Contract 'price_feed' has an invalid address"):
            load_config(_write(tmp_path, content))

    def test_bad_account_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML + 'account: "0xWALLET"\n'
        with pytest.raises(ValueError, match="Account has an invalid address"):
            load_config(_write(tmp_path, content))

    def test_bad_selector_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML + textwrap.dedent("""\
            abi:
              selectors:
                PriceFeed.getPrice: "getPrice()"
        """)
        with pytest.raises(ValueError, match="not a 4-byte"):
            load_config(_write(tmp_path, content))

    def test_bad_topic_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML + textwrap.dedent("""\
            abi:
              event_topics:
                PriceUpdated: "0x1234"
        """)
        with pytest.raises(ValueError, match="not a 32-byte"):
            load_config(_write(tmp_path, content))

    def test_trials_multiplier_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML + "hints: {trials_multiplier: 0}\n"
        with pytest.raises(ValueError, match="trials_multiplier must be at least 1"):
            load_config(_write(tmp_path, content))

    def test_max_trials_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML + "hints: {max_trials: 0}\n"
        with pytest.raises(ValueError, match="max_trials must be at least 1"):
            load_config(_write(tmp_path, content))

    def test_negative_debounce_raises(self, tmp_path: Path) -> None:
        content = CHAIN_YAML + CONTRACTS_YAML + "watch: {debounce_ms: -1}\n"
        with pytest.raises(ValueError, match="debounce_ms cannot be negative"):
            load_config(_write(tmp_path, content))


class TestFrozenConfigs:
    def test_chain_config_immutable(self) -> None:
        c = ChainConfig(rpc_endpoints=("a",))
        with pytest.raises(AttributeError):
            c.rpc_timeout = 999  # type: ignore[misc]

    def test_hint_config_immutable(self) -> None:
        h = HintConfig()
        with pytest.raises(AttributeError):
            h.enabled = False  # type: ignore[misc]
