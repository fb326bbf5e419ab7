"""Pytest configuration and shared fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from veto.rpc.server import ProxyServer

from tests.fixtures.upstream import FakeUpstream, make_config


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def config():
    """Config blocking only anvil_setBalance, in front of the fake upstream."""
    return make_config()


@pytest.fixture
def upstream():
    """Fake upstream answering every call with BLOCK_NUMBER_REPLY."""
    return FakeUpstream()


@pytest.fixture
def proxy(config, upstream):
    return ProxyServer(config, transport=upstream.transport)


@pytest.fixture
def client(proxy):
    """TestClient with the proxy lifespan (and its upstream client) running."""
    with TestClient(proxy.app) as test_client:
        yield test_client
