#!/usr/bin/env python3
"""Example: HTTP JSON-RPC server

Starts the server on a free local port, issues an OTP over HTTP and logs in
with it. The requester identity travels in the ``X-Nexus-User`` header.

Usage:
    python examples/02_http_server.py

Requirements:
    pip install login-token
"""
from __future__ import annotations

import json
import threading
import urllib.request

from login_token import InMemoryTokenStore, StaticPermissionDelegate, TokenService
from login_token.server import create_server


def rpc(base_url: str, requester: str, method: str, **params: object) -> dict[str, object]:
    body = json.dumps({"method": method, "params": params, "id": 1}).encode("utf-8")
    request = urllib.request.Request(
        f"{base_url}/rpc",
        data=body,
        headers={"Content-Type": "application/json", "X-Nexus-User": requester},
    )
    with urllib.request.urlopen(request, timeout=5) as response:
        return json.loads(response.read())


def main() -> None:
    service = TokenService(InMemoryTokenStore(), StaticPermissionDelegate())
    server = create_server(service, host="127.0.0.1", port=0)
    base_url = f"http://127.0.0.1:{server.server_address[1]}"
    threading.Thread(target=server.serve_forever, daemon=True).start()

    try:
        otp = rpc(base_url, "acme.alice", "otp")["result"]
        print(f"otp    -> {otp}")
        print(f"login  -> {rpc(base_url, 'acme.alice', 'login', token=otp)}")
        print(f"login  -> {rpc(base_url, 'acme.alice', 'login', token=otp)}")
        print(f"list   -> {rpc(base_url, 'acme.alice', 'list')}")
    finally:
        server.shutdown()
        server.server_close()


if __name__ == "__main__":
    main()
