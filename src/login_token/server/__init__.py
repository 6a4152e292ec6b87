"""HTTP server mode for login-token.

Provides a lightweight stdlib-based JSON-RPC endpoint over the token
lifecycle without requiring any additional web framework dependencies.
"""
from __future__ import annotations

from login_token.server.app import LoginTokenHandler, LoginTokenServer, create_server, run_server

__all__ = ["LoginTokenHandler", "LoginTokenServer", "create_server", "run_server"]
