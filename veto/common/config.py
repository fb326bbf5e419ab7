"""
Proxy configuration.

Resolves the effective configuration from three layers, highest priority
first: command-line overrides, the ``.veto.toml`` file, built-in defaults.
Blocked methods are the union of all layers rather than an override.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import httpx
import toml

from veto.common.methods import default_method_list

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_BIND_ADDRESS = "0.0.0.0:8546"
DEFAULT_UPSTREAM_URL = "http://127.0.0.1:8545"
DEFAULT_CONFIG_PATH = ".veto.toml"
DEFAULT_UPSTREAM_TIMEOUT = 30.0


class VetoError(Exception):
    """Base class for startup failures."""


class ConfigError(VetoError):
    """Configuration could not be loaded or resolved."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Config:
    """Fully resolved proxy configuration.

    Shared read-only by every request handler; never mutated after the
    server starts.
    """

    bind_address: tuple[str, int]
    upstream_url: str
    blocked_methods: frozenset[str] = frozenset()
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT

    @property
    def bind_host(self) -> str:
        return self.bind_address[0]

    @property
    def bind_port(self) -> int:
        return self.bind_address[1]

    def display_bind_address(self) -> str:
        return format_socket_address(self.bind_address)


@dataclass
class FileConfig:
    """Representation of the on-disk ``.veto.toml`` file."""

    bind_address: Optional[str] = None
    upstream_url: Optional[str] = None
    blocked_methods: Optional[list[str]] = None
    upstream_timeout: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileConfig:
        for key in ("bind_address", "upstream_url"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"'{key}' must be a string, got {type(value).__name__}")

        methods = data.get("blocked_methods")
        if methods is not None:
            if not isinstance(methods, list) or not all(isinstance(m, str) for m in methods):
                raise ConfigError("'blocked_methods' must be a list of strings")

        timeout = data.get("upstream_timeout")
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise ConfigError("'upstream_timeout' must be a number")
            timeout = float(timeout)

        unknown = sorted(set(data) - {"bind_address", "upstream_url", "blocked_methods", "upstream_timeout"})
        if unknown:
            logger.warning("ignoring unknown config keys: %s", ", ".join(unknown))

        return cls(
            bind_address=data.get("bind_address"),
            upstream_url=data.get("upstream_url"),
            blocked_methods=list(methods) if methods is not None else None,
            upstream_timeout=timeout,
        )


@dataclass
class Overrides:
    """Values supplied on the command line."""

    bind_address: Optional[str] = None
    upstream_url: Optional[str] = None
    blocked_methods: list[str] = field(default_factory=list)
    upstream_timeout: Optional[float] = None

    def is_empty(self) -> bool:
        return (
            self.bind_address is None
            and self.upstream_url is None
            and not self.blocked_methods
            and self.upstream_timeout is None
        )


# ---------------------------------------------------------------------------
# Blocklist normalization
# ---------------------------------------------------------------------------

def normalize_method(value: str) -> Optional[str]:
    """Trim and lowercase a method name; ``None`` when nothing is left."""
    normalized = value.strip().lower()
    return normalized or None


def normalize_methods(*sources: Iterable[str]) -> frozenset[str]:
    """Merge raw method names from several sources into one matching set."""
    methods: set[str] = set()
    for source in sources:
        for value in source:
            normalized = normalize_method(value)
            if normalized is not None:
                methods.add(normalized)
    return frozenset(methods)


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def parse_socket_address(value: str) -> tuple[str, int]:
    """Parse ``host:port`` or ``[ipv6]:port`` where host is an IP literal."""
    host, sep, port_str = value.strip().rpartition(":")
    if not sep or not host or not port_str.isdigit():
        raise ConfigError(f"invalid bind address '{value}': expected HOST:PORT")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        expected_version = 6
    else:
        expected_version = 4

    try:
        ip = ipaddress.ip_address(host)
    except ValueError as exc:
        raise ConfigError(f"invalid bind address '{value}': {exc}") from exc
    if ip.version != expected_version:
        raise ConfigError(f"invalid bind address '{value}': IPv6 hosts must be bracketed")

    port = int(port_str)
    if port > 65535:
        raise ConfigError(f"invalid bind address '{value}': port out of range")
    return str(ip), port


def format_socket_address(address: tuple[str, int]) -> str:
    host, port = address
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_upstream_url(value: str) -> str:
    """Validate an absolute http(s) URL and return it unchanged."""
    try:
        url = httpx.URL(value.strip())
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigError(f"invalid upstream url '{value}': {exc}") from exc
    if url.scheme not in ("http", "https"):
        raise ConfigError(f"invalid upstream url '{value}': scheme must be http or https")
    if not url.host:
        raise ConfigError(f"invalid upstream url '{value}': missing host")
    return str(url)


def parse_timeout(value: float) -> float:
    if value <= 0:
        raise ConfigError(f"invalid upstream timeout '{value}': must be positive")
    return float(value)


# ---------------------------------------------------------------------------
# File loading and resolution
# ---------------------------------------------------------------------------

def load_file(path: Path) -> Optional[FileConfig]:
    """Load ``path`` as TOML, returning ``None`` when the file does not exist."""
    if not path.exists():
        return None

    try:
        with open(path) as f:
            data = toml.load(f)
    except OSError as exc:
        raise ConfigError(f"failed to read config file {str(path)!r}: {exc}") from exc
    except toml.TomlDecodeError as exc:
        raise ConfigError(f"unable to parse config file as TOML: {exc}") from exc

    return FileConfig.from_dict(data)


def resolve_config(file: Optional[FileConfig], overrides: Overrides) -> Config:
    """Merge file values and CLI overrides on top of the defaults."""
    file = file or FileConfig()

    if overrides.bind_address is not None:
        bind_address = parse_socket_address(overrides.bind_address)
    elif file.bind_address is not None:
        bind_address = parse_socket_address(file.bind_address)
    else:
        bind_address = parse_socket_address(DEFAULT_BIND_ADDRESS)

    if overrides.upstream_url is not None:
        upstream_url = parse_upstream_url(overrides.upstream_url)
    elif file.upstream_url is not None:
        upstream_url = parse_upstream_url(file.upstream_url)
    else:
        upstream_url = parse_upstream_url(DEFAULT_UPSTREAM_URL)

    if overrides.upstream_timeout is not None:
        upstream_timeout = parse_timeout(overrides.upstream_timeout)
    elif file.upstream_timeout is not None:
        upstream_timeout = parse_timeout(file.upstream_timeout)
    else:
        upstream_timeout = DEFAULT_UPSTREAM_TIMEOUT

    blocked_methods = normalize_methods(
        default_method_list(),
        file.blocked_methods or [],
        overrides.blocked_methods,
    )

    return Config(
        bind_address=bind_address,
        upstream_url=upstream_url,
        blocked_methods=blocked_methods,
        upstream_timeout=upstream_timeout,
    )
