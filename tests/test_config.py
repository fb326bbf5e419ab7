"""
Tests for configuration loading and resolution.
"""

import dataclasses

import pytest

from veto.common.config import (
    DEFAULT_BIND_ADDRESS,
    DEFAULT_UPSTREAM_TIMEOUT,
    DEFAULT_UPSTREAM_URL,
    Config,
    ConfigError,
    FileConfig,
    Overrides,
    format_socket_address,
    load_file,
    normalize_method,
    normalize_methods,
    parse_socket_address,
    parse_upstream_url,
    resolve_config,
)
from veto.common.methods import blocked_method_set, default_method_list
from veto.common.presets import AnvilBlocked


# ===================================================================
# Blocklist normalization
# ===================================================================

class TestNormalize:
    def test_trims_and_lowercases(self):
        assert normalize_method(" Eth_SendTransaction ") == "eth_sendtransaction"

    def test_blank_is_discarded(self):
        assert normalize_method("") is None
        assert normalize_method("   \t") is None

    def test_merges_sources_and_dedupes(self):
        result = normalize_methods(
            ["anvil_setBalance", "  ANVIL_SETBALANCE"],
            ["eth_sendTransaction", "", " "],
        )
        assert result == frozenset({"anvil_setbalance", "eth_sendtransaction"})

    def test_result_is_immutable(self):
        assert isinstance(normalize_methods(["a"]), frozenset)

    def test_no_sources(self):
        assert normalize_methods() == frozenset()


# ===================================================================
# Value parsing
# ===================================================================

class TestParseSocketAddress:
    def test_ipv4(self):
        assert parse_socket_address("127.0.0.1:9000") == ("127.0.0.1", 9000)

    def test_default(self):
        assert parse_socket_address(DEFAULT_BIND_ADDRESS) == ("0.0.0.0", 8546)

    def test_bracketed_ipv6(self):
        assert parse_socket_address("[::1]:8546") == ("::1", 8546)

    def test_unbracketed_ipv6_rejected(self):
        with pytest.raises(ConfigError):
            parse_socket_address("::1:8546")

    @pytest.mark.parametrize("value", [
        "not-an-addr",
        "localhost:8546",
        "127.0.0.1",
        "127.0.0.1:",
        "127.0.0.1:http",
        "127.0.0.1:70000",
        ":8546",
    ])
    def test_invalid(self, value):
        with pytest.raises(ConfigError, match="invalid bind address"):
            parse_socket_address(value)

    def test_format_roundtrip(self):
        assert format_socket_address(("127.0.0.1", 80)) == "127.0.0.1:80"
        assert format_socket_address(("::1", 80)) == "[::1]:80"


class TestParseUpstreamUrl:
    def test_http(self):
        url = parse_upstream_url("http://127.0.0.1:9001")
        assert url.startswith("http://127.0.0.1:9001")

    def test_https_with_path(self):
        assert parse_upstream_url("https://rpc.example.org/v1/key") == "https://rpc.example.org/v1/key"

    @pytest.mark.parametrize("value", [
        "ftp://127.0.0.1:8545",
        "127.0.0.1:8545/rpc",
        "http://",
        "not a url",
    ])
    def test_invalid(self, value):
        with pytest.raises(ConfigError, match="invalid upstream url"):
            parse_upstream_url(value)


# ===================================================================
# Resolution
# ===================================================================

class TestResolveConfig:
    def test_defaults_without_inputs(self):
        config = resolve_config(None, Overrides())
        assert config.bind_address == parse_socket_address(DEFAULT_BIND_ADDRESS)
        assert config.upstream_url == parse_upstream_url(DEFAULT_UPSTREAM_URL)
        assert config.upstream_timeout == DEFAULT_UPSTREAM_TIMEOUT
        assert config.blocked_methods == blocked_method_set()

    def test_file_values_are_used(self):
        file = FileConfig(
            bind_address="127.0.0.1:9000",
            upstream_url="http://127.0.0.1:9001",
            blocked_methods=["eth_sendTransaction", " personal_sign "],
            upstream_timeout=3.5,
        )
        config = resolve_config(file, Overrides())
        assert config.bind_address == ("127.0.0.1", 9000)
        assert config.upstream_url == parse_upstream_url("http://127.0.0.1:9001")
        assert config.upstream_timeout == 3.5
        assert "eth_sendtransaction" in config.blocked_methods
        assert "personal_sign" in config.blocked_methods

    def test_cli_overrides_take_precedence(self):
        file = FileConfig(
            bind_address="127.0.0.1:9000",
            upstream_url="http://127.0.0.1:9001",
            blocked_methods=["eth_sendtransaction"],
            upstream_timeout=3.5,
        )
        overrides = Overrides(
            bind_address="127.0.0.1:9100",
            upstream_url="http://127.0.0.1:9101",
            blocked_methods=["eth_getBalance"],
            upstream_timeout=1.0,
        )
        config = resolve_config(file, overrides)
        assert config.bind_address == ("127.0.0.1", 9100)
        assert config.upstream_url == parse_upstream_url("http://127.0.0.1:9101")
        assert config.upstream_timeout == 1.0
        # blocklists are merged, not overridden
        assert "eth_sendtransaction" in config.blocked_methods
        assert "eth_getbalance" in config.blocked_methods

    def test_defaults_always_blocked(self):
        config = resolve_config(FileConfig(blocked_methods=[]), Overrides(blocked_methods=["x"]))
        assert blocked_method_set() <= config.blocked_methods

    def test_invalid_bind_address_names_value(self):
        with pytest.raises(ConfigError, match="not-an-addr"):
            resolve_config(FileConfig(bind_address="not-an-addr"), Overrides())

    def test_invalid_upstream_names_value(self):
        with pytest.raises(ConfigError, match="ftp://x"):
            resolve_config(None, Overrides(upstream_url="ftp://x"))

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigError):
            resolve_config(None, Overrides(upstream_timeout=0))

    def test_empty_entries_discarded(self):
        config = resolve_config(FileConfig(blocked_methods=["  ", "eth_call"]), Overrides())
        assert len(config.blocked_methods) == len(default_method_list()) + 1
        assert "eth_call" in config.blocked_methods

    def test_config_is_frozen(self):
        config = resolve_config(None, Overrides())
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.blocked_methods = frozenset()

    def test_overrides_is_empty(self):
        assert Overrides().is_empty()
        assert not Overrides(blocked_methods=["a"]).is_empty()
        assert not Overrides(upstream_timeout=2.0).is_empty()


# ===================================================================
# File loading
# ===================================================================

class TestLoadFile:
    def test_missing_file_is_none(self, tmp_path):
        assert load_file(tmp_path / "absent.toml") is None

    def test_reads_all_keys(self, tmp_path):
        path = tmp_path / ".veto.toml"
        path.write_text(
            'bind_address = "127.0.0.1:9000"\n'
            'upstream_url = "http://127.0.0.1:9001"\n'
            'blocked_methods = ["eth_sendTransaction", "personal_sign"]\n'
            "upstream_timeout = 7\n"
        )
        file = load_file(path)
        assert file == FileConfig(
            bind_address="127.0.0.1:9000",
            upstream_url="http://127.0.0.1:9001",
            blocked_methods=["eth_sendTransaction", "personal_sign"],
            upstream_timeout=7.0,
        )

    def test_partial_file(self, tmp_path):
        path = tmp_path / ".veto.toml"
        path.write_text('blocked_methods = ["eth_sign"]\n')
        file = load_file(path)
        assert file.bind_address is None
        assert file.upstream_url is None
        assert file.blocked_methods == ["eth_sign"]

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / ".veto.toml"
        path.write_text("bind_address = \n")
        with pytest.raises(ConfigError, match="TOML"):
            load_file(path)

    def test_wrong_types(self, tmp_path):
        path = tmp_path / ".veto.toml"
        path.write_text("blocked_methods = \"eth_sign\"\n")
        with pytest.raises(ConfigError, match="blocked_methods"):
            load_file(path)

    def test_unreadable_path(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to read"):
            load_file(tmp_path)


# ===================================================================
# Presets
# ===================================================================

class TestAnvilBlocked:
    def test_methods_include_anvil_and_evm_helpers(self):
        methods = AnvilBlocked.methods()
        assert "anvil_setBalance" in methods
        assert "evm_increaseTime" in methods
        assert len(methods) == len(AnvilBlocked.anvil_methods()) + len(AnvilBlocked.evm_methods())

    def test_to_config(self):
        config = AnvilBlocked("127.0.0.1:8546", "http://127.0.0.1:8545").to_config()
        assert isinstance(config, Config)
        assert config.bind_address == ("127.0.0.1", 8546)
        assert "anvil_setbalance" in config.blocked_methods
        assert "evm_snapshot" in config.blocked_methods
        assert all(m == m.lower() for m in config.blocked_methods)
