"""Container healthcheck: verify the HTTP /health endpoint.

Uses stdlib only. Exit code 0 indicates healthy. Honors ``KDBX_MCP_HOST`` and
``KDBX_MCP_PORT`` so it follows the server's own settings.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Final
from urllib.request import Request, urlopen

DEFAULT_HOST: Final[str] = "127.0.0.1"
DEFAULT_PORT: Final[str] = "8000"


def health_url() -> str:
    host = os.getenv("KDBX_MCP_HOST") or DEFAULT_HOST
    if host in {"0.0.0.0", "::"}:  # noqa: S104 - bind-all address, probe loopback
        host = DEFAULT_HOST
    port = os.getenv("KDBX_MCP_PORT") or DEFAULT_PORT
    return f"http://{host}:{port}/health"


def main() -> int:
    try:
        req = Request(health_url(), headers={"User-Agent": "kdbx-mcp/healthcheck"})  # noqa: S310
        with urlopen(req, timeout=4) as resp:  # noqa: S310 - http to the local server
            if resp.status != 200:
                print(f"unexpected status: {resp.status}", file=sys.stderr)
                return 1
            data = json.loads(resp.read().decode("utf-8"))
            if data.get("status") != "healthy":
                print(f"payload not healthy: {data}", file=sys.stderr)
                return 1
            return 0
    except Exception as exc:
        print(f"healthcheck error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - used by Docker
    raise SystemExit(main())
