"""Ready-made configurations for common development nodes."""

from __future__ import annotations

from dataclasses import dataclass

from veto.common.config import (
    DEFAULT_UPSTREAM_TIMEOUT,
    Config,
    parse_socket_address,
    parse_upstream_url,
)
from veto.common.methods import (
    ANVIL_METHODS,
    EVM_METHODS,
    blocked_method_set,
    default_method_list,
)


@dataclass(frozen=True)
class AnvilBlocked:
    """Blocks every Anvil custom method and the Hardhat ``evm_*`` helpers.

    Example::

        config = AnvilBlocked("127.0.0.1:8546", "http://127.0.0.1:8545").to_config()
    """

    bind_address: str
    upstream_url: str
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT

    @staticmethod
    def methods() -> list[str]:
        return default_method_list()

    @staticmethod
    def anvil_methods() -> tuple[str, ...]:
        return ANVIL_METHODS

    @staticmethod
    def evm_methods() -> tuple[str, ...]:
        return EVM_METHODS

    def to_config(self) -> Config:
        return Config(
            bind_address=parse_socket_address(self.bind_address),
            upstream_url=parse_upstream_url(self.upstream_url),
            blocked_methods=blocked_method_set(),
            upstream_timeout=self.upstream_timeout,
        )
