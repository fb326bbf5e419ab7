"""
Built-in catalogue of development-node helper methods.

These are the state-mutating helpers exposed by Anvil (``anvil_*``) and by
Hardhat/Ganache (``evm_*``). They are blocked by default because they let a
caller rewrite balances, code, storage or time on a shared node.
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Anvil custom methods (https://getfoundry.sh/anvil/reference#custom-methods)
# ---------------------------------------------------------------------------

ANVIL_METHODS: tuple[str, ...] = (
    "anvil_autoImpersonateAccount",
    "anvil_dropTransaction",
    "anvil_dumpState",
    "anvil_enableTraces",
    "anvil_getAutomine",
    "anvil_impersonateAccount",
    "anvil_increaseTime",
    "anvil_loadState",
    "anvil_metadata",
    "anvil_mine",
    "anvil_mine_detailed",
    "anvil_nodeInfo",
    "anvil_removeBlockTimestampInterval",
    "anvil_reset",
    "anvil_revert",
    "anvil_setAutomine",
    "anvil_setBalance",
    "anvil_setBlockGasLimit",
    "anvil_setBlockTimestampInterval",
    "anvil_setChainId",
    "anvil_setCode",
    "anvil_setCoinbase",
    "anvil_setIntervalMining",
    "anvil_setLoggingEnabled",
    "anvil_setMinGasPrice",
    "anvil_setNextBlockBaseFeePerGas",
    "anvil_setNextBlockTimestamp",
    "anvil_setNonce",
    "anvil_setRpcUrl",
    "anvil_setStorageAt",
    "anvil_setTime",
    "anvil_snapshot",
    "anvil_stopImpersonatingAccount",
)


# ---------------------------------------------------------------------------
# Hardhat / Ganache helpers
# ---------------------------------------------------------------------------

EVM_METHODS: tuple[str, ...] = (
    "evm_increaseTime",
    "evm_mine",
    "evm_revert",
    "evm_setAutomine",
    "evm_setBlockGasLimit",
    "evm_setIntervalMining",
    "evm_setNextBlockTimestamp",
    "evm_snapshot",
)


def default_method_list() -> list[str]:
    """All built-in blocked methods, Anvil helpers first, original casing."""
    return [*ANVIL_METHODS, *EVM_METHODS]


def blocked_method_set() -> frozenset[str]:
    """Lowercased set of the built-in blocked methods."""
    return frozenset(method.lower() for method in default_method_list())
