#!/usr/bin/env python3
"""
Call every built-in Anvil helper through a running veto proxy.

Usage:
    python scripts/exercise_methods.py [--proxy-url URL] [--expect blocked|allowed]

Examples:
    # proxy started with the default blocklist: every call should be refused
    veto --upstream-url http://127.0.0.1:8545 &
    python scripts/exercise_methods.py --expect blocked

    # straight at anvil, to confirm the helpers exist upstream
    python scripts/exercise_methods.py --proxy-url http://127.0.0.1:8545 --expect allowed
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from veto.common.methods import ANVIL_METHODS
from veto.rpc.errors import METHOD_NOT_FOUND


def call(client: httpx.Client, url: str, method: str) -> dict:
    payload = {"jsonrpc": "2.0", "id": method, "method": method, "params": []}
    response = client.post(url, json=payload)
    try:
        return response.json()
    except json.JSONDecodeError:
        return {"error": {"code": None, "message": f"non-JSON response (HTTP {response.status_code})"}}


def summarize(reply: dict) -> str:
    if "error" in reply:
        return reply["error"].get("message", "unexpected error shape")
    return json.dumps(reply.get("result"))[:80]


def main():
    parser = argparse.ArgumentParser(description="Exercise Anvil helpers through veto")
    parser.add_argument("--proxy-url", default="http://127.0.0.1:8546", help="Proxy endpoint")
    parser.add_argument(
        "--expect",
        choices=["blocked", "allowed"],
        default="blocked",
        help="Whether the proxy is expected to refuse the helpers",
    )
    args = parser.parse_args()

    mismatches = 0
    with httpx.Client(timeout=10.0) as client:
        for method in ANVIL_METHODS:
            try:
                reply = call(client, args.proxy_url, method)
            except httpx.HTTPError as e:
                print(f"Proxy call for {method} failed: {e}")
                sys.exit(1)

            blocked = reply.get("error", {}).get("code") == METHOD_NOT_FOUND
            if blocked != (args.expect == "blocked"):
                mismatches += 1
                marker = "!!"
            else:
                marker = "ok"
            print(f"[{marker}] {method}: {summarize(reply)}")

    print()
    print(f"{len(ANVIL_METHODS) - mismatches}/{len(ANVIL_METHODS)} methods behaved as expected")
    sys.exit(1 if mismatches else 0)


if __name__ == "__main__":
    main()
