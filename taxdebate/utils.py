#!/usr/bin/env python3
"""
Shared utilities for the debate server and client.
"""

import logging
import os
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
_log = logging.getLogger("utils")


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # aiohttp.access is chatty at INFO for every streamed request.
    logging.getLogger("aiohttp.access").setLevel(
        logging.DEBUG if verbose else logging.WARNING
    )


def load_env(env_path: Path | None = None) -> None:
    """Load .env file into os.environ. Handles quoted values and spaces."""
    if env_path is None:
        env_path = REPO_ROOT / ".env"

    if not env_path.exists():
        return

    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            val = val.strip().strip('"').strip("'")
            os.environ[key.strip()] = val


# =============================================================================
# Configuration (call load_env() before accessing these)
# =============================================================================


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _log.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def get_server_config() -> dict:
    """Get server configuration from environment."""
    host = (os.getenv("DEBATE_HOST") or "127.0.0.1").strip() or "127.0.0.1"
    port = _int_env("DEBATE_PORT", 8787)
    db_path = Path(os.getenv("DEBATE_DB_PATH", str(REPO_ROOT / "debates.db")))

    url_host = host
    if url_host in {"0.0.0.0", "::", "[::]", ""}:
        url_host = "127.0.0.1"
    server_url = (os.getenv("DEBATE_SERVER_URL") or "").strip().rstrip("/")
    if not server_url:
        server_url = f"http://{url_host}:{port}"

    return {
        "host": host,
        "port": port,
        "db_path": db_path,
        "server_url": server_url,
        "queue_size": max(1, _int_env("DEBATE_STREAM_QUEUE_SIZE", 256)),
        "history_limit": max(1, _int_env("DEBATE_HISTORY_LIMIT", 20)),
    }
