"""veto — JSON-RPC method gatekeeper for Ethereum development nodes."""

__version__ = "0.1.0"
