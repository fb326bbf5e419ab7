"""Test fixtures for the veto proxy tests."""

from .upstream import (
    UPSTREAM_URL,
    BLOCK_NUMBER_REPLY,
    FakeUpstream,
    canned_reply,
    raising,
    make_config,
)
from .requests import (
    BLOCKED_SET_BALANCE,
    BLOCK_NUMBER,
    PRECISE_CALL,
    BATCH_OF_ALLOWED,
    BATCH_SMUGGLING_BLOCKED,
    MALFORMED,
)

__all__ = [
    # Upstream
    "UPSTREAM_URL",
    "BLOCK_NUMBER_REPLY",
    "FakeUpstream",
    "canned_reply",
    "raising",
    "make_config",
    # Requests
    "BLOCKED_SET_BALANCE",
    "BLOCK_NUMBER",
    "PRECISE_CALL",
    "BATCH_OF_ALLOWED",
    "BATCH_SMUGGLING_BLOCKED",
    "MALFORMED",
]
