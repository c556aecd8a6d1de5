"""
Configuration - environment variables, optionally seeded from a .env file.

Variables:
    TESSERA_RPC_URL: Ledger JSON-RPC endpoint (default: http://localhost:1337)
    TESSERA_RPC_TIMEOUT: Request timeout in seconds (default: 30)
    TESSERA_KEEP_GOING: Run independent cases after an unexpected failure
    TESSERA_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: WARNING)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_RPC_URL = "http://localhost:1337"
DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_ENV_FILE = Path(".env")

_TRUTHY = {"1", "true", "yes", "on"}


def load_env(env_path: Optional[Path] = None) -> bool:
    """Load variables from a .env file without overriding the environment."""
    env_path = env_path or DEFAULT_ENV_FILE
    if env_path.exists():
        return load_dotenv(env_path, override=False)
    return False


def get_rpc_url() -> str:
    return os.environ.get("TESSERA_RPC_URL", DEFAULT_RPC_URL)


def get_rpc_timeout() -> float:
    return float(os.environ.get("TESSERA_RPC_TIMEOUT", str(DEFAULT_RPC_TIMEOUT)))


def get_keep_going() -> bool:
    return os.environ.get("TESSERA_KEEP_GOING", "").strip().lower() in _TRUTHY


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger from TESSERA_LOG_LEVEL (DEBUG when verbose)."""
    level_name = "DEBUG" if verbose else os.getenv("TESSERA_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("tessera").setLevel(level)
