"""
veto — JSON-RPC method gatekeeper for Ethereum development nodes.

Entry point for the proxy:
  1. Parse CLI arguments
  2. Load .veto.toml and merge it with CLI overrides
  3. Bind the listening socket
  4. Serve until SIGINT/SIGTERM, then drain in-flight requests
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import socket
import sys
from pathlib import Path
from typing import Optional

import httpx
import uvicorn

from veto import __version__
from veto.common.config import (
    DEFAULT_CONFIG_PATH,
    Config,
    ConfigError,
    FileConfig,
    Overrides,
    VetoError,
    format_socket_address,
    load_file,
    resolve_config,
)
from veto.rpc.server import ProxyServer


logger = logging.getLogger("veto")

DEFAULT_GRACEFUL_SHUTDOWN_TIMEOUT = 10


class BindError(VetoError):
    """The listening socket could not be bound."""


def bind_socket(address: tuple[str, int]) -> socket.socket:
    host, port = address
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        sock = socket.create_server((host, port), family=family)
    except OSError as exc:
        raise BindError(
            f"failed to bind proxy socket {format_socket_address(address)}: {exc}"
        ) from exc
    sock.set_inheritable(True)
    return sock


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------

class VetoProxy:
    """Owns the listening socket and the uvicorn server for one Config."""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        graceful_shutdown_timeout: int = DEFAULT_GRACEFUL_SHUTDOWN_TIMEOUT,
    ) -> None:
        self.config = config
        self.proxy = ProxyServer(config, transport=transport)
        self.graceful_shutdown_timeout = graceful_shutdown_timeout
        self._socket: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def bound_address(self) -> Optional[tuple[str, int]]:
        if self._socket is None:
            return None
        host, port = self._socket.getsockname()[:2]
        return host, port

    @property
    def serving(self) -> bool:
        return self._server is not None and self._server.started

    async def start(self) -> None:
        """Bind and start serving. Returns once the server accepts connections."""
        self._socket = bind_socket(self.config.bind_address)
        bound = format_socket_address(self.bound_address)
        logger.debug("bound proxy listener on %s", bound)

        config = uvicorn.Config(
            self.proxy.app,
            log_level="warning",
            loop="asyncio",
            lifespan="on",
            server_header=False,
            date_header=False,
            timeout_graceful_shutdown=self.graceful_shutdown_timeout,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._socket]))

        while not self._server.started:
            if self._serve_task.done():
                await self._serve_task
                raise VetoError("proxy server exited during startup")
            await asyncio.sleep(0.05)

        logger.info("veto proxy listening on http://%s", bound)

    async def stop(self) -> None:
        """Stop accepting connections and wait for in-flight requests."""
        if self._server is None or self._serve_task is None:
            return
        logger.info("Shutting down...")
        self._server.should_exit = True
        await self._serve_task
        self._server = None
        self._serve_task = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        logger.info("Proxy stopped")

    def request_stop(self) -> None:
        """Ask ``run_until_stopped`` to shut down."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_until_stopped(self) -> None:
        """Run until a shutdown signal is received or ``request_stop`` is called."""
        self._stop_event = asyncio.Event()

        def _signal_handler():
            logger.info("shutdown signal received")
            self.request_stop()

        loop = asyncio.get_running_loop()
        signals = (signal.SIGINT, signal.SIGTERM)
        for sig in signals:
            loop.add_signal_handler(sig, _signal_handler)

        try:
            await self.start()
            # uvicorn may claim the signals itself; its exit ends the wait too.
            stop_wait = asyncio.create_task(self._stop_event.wait())
            await asyncio.wait({stop_wait, self._serve_task}, return_when=asyncio.FIRST_COMPLETED)
            stop_wait.cancel()
            await self.stop()
        finally:
            for sig in signals:
                loop.remove_signal_handler(sig)
            self._stop_event = None


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="veto",
        description="Ethereum JSON-RPC proxy with method filtering.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"veto {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_PATH),
        metavar="PATH",
        help=f"Path to the TOML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--bind-address",
        default=None,
        metavar="ADDR",
        help="Override the bind address for the proxy (e.g. 0.0.0.0:8546)",
    )
    parser.add_argument(
        "--upstream-url",
        default=None,
        metavar="URL",
        help="Override the upstream node endpoint (e.g. http://127.0.0.1:8545)",
    )
    parser.add_argument(
        "--blocked-methods",
        action="append",
        default=[],
        metavar="METHOD[,METHOD...]",
        help="Comma-separated JSON-RPC method names to block (repeatable)",
    )
    parser.add_argument(
        "--upstream-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Timeout for each upstream call (default: 30)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.environ.get("VETO_LOG_LEVEL", "INFO").upper(),
        help="Logging level (default: INFO, or $VETO_LOG_LEVEL)",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> Overrides:
    blocked: list[str] = []
    for value in args.blocked_methods:
        blocked.extend(value.split(","))
    return Overrides(
        bind_address=args.bind_address,
        upstream_url=args.upstream_url,
        blocked_methods=blocked,
        upstream_timeout=args.upstream_timeout,
    )


def load_file_configuration(path: Path) -> Optional[FileConfig]:
    file_config = load_file(path)
    if file_config is not None:
        logger.debug(
            "loaded configuration file %s (%d blocked methods)",
            path, len(file_config.blocked_methods or []),
        )
    elif path != Path(DEFAULT_CONFIG_PATH):
        logger.warning(
            "configuration file %s not found; continuing with defaults and CLI overrides", path,
        )
    return file_config


def resolve_configuration(args: argparse.Namespace) -> Config:
    """Merge the config file (if present) with CLI overrides."""
    file_config = load_file_configuration(args.config)
    overrides = overrides_from_args(args)
    if overrides.is_empty():
        logger.debug("no CLI overrides supplied")
    else:
        logger.debug("applying CLI overrides: %s", overrides)

    config = resolve_config(file_config, overrides)
    logger.debug(
        "resolved configuration: bind=%s upstream=%s blocked=%d timeout=%.1fs",
        config.display_bind_address(), config.upstream_url,
        len(config.blocked_methods), config.upstream_timeout,
    )
    return config


def log_configuration(config: Config) -> None:
    logger.info(
        "starting proxy on http://%s forwarding to %s",
        config.display_bind_address(), config.upstream_url,
    )
    if not config.blocked_methods:
        logger.info("no blocked methods configured")
    else:
        logger.info("blocking methods: %s", ", ".join(sorted(config.blocked_methods)))


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, args.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = resolve_configuration(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    log_configuration(config)
    proxy = VetoProxy(config)

    try:
        asyncio.run(proxy.run_until_stopped())
    except VetoError as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
