#!/usr/bin/env python3
"""Probe a running ``open-context --transport http`` server."""

from __future__ import annotations

import json
import os
import sys

from urllib.error import URLError
from urllib.request import Request, urlopen


def main() -> int:
    base_url = os.getenv("OPENCONTEXT_API_URL", "http://localhost:9011").rstrip("/")
    initialize = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}).encode("utf-8")
    message = Request(
        f"{base_url}/message",
        data=initialize,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urlopen(f"{base_url}/health", timeout=5) as health:
            print("/health:", health.read().decode("utf-8"))
        with urlopen(message, timeout=5) as reply:
            payload = json.loads(reply.read().decode("utf-8"))
    except (URLError, OSError, ValueError) as exc:
        print(f"HTTP smoke failed: {exc}", file=sys.stderr)
        return 1
    server = payload.get("result", {}).get("serverInfo", {})
    print("/message initialize:", json.dumps(server))
    if server.get("name") != "open-context":
        print("HTTP smoke failed: unexpected initialize result", file=sys.stderr)
        return 1
    print("HTTP smoke passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
