"""
Configuration — defaults, overridden by ``~/.adls/config.toml``, then by env.

Example config.toml:
    rpc_url = "https://api.mainnet-beta.solana.com"
    commitment = "finalized"
    scan_limit = 250
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from adls import (
    DEFAULT_COMMITMENT,
    DEFAULT_RPC_URL,
    DEFAULT_SCAN_LIMIT,
    MEMO_PROGRAM_ID,
    RPC_TIMEOUT_SECS,
)

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".adls" / "config.toml"

DEFAULT_CONFIG = {
    "rpc_url": DEFAULT_RPC_URL,
    "commitment": DEFAULT_COMMITMENT,
    "memo_program_id": MEMO_PROGRAM_ID,
    "scan_limit": DEFAULT_SCAN_LIMIT,
    "rpc_timeout": RPC_TIMEOUT_SECS,
}


def _import_tomllib():
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib
    return tomllib


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load config from TOML file and environment, falling back to defaults.

    Unknown keys in the file are ignored. ADLS_RPC_URL wins over the file.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if path.is_file():
        tomllib = _import_tomllib()
        try:
            with open(path, "rb") as f:
                file_config = tomllib.load(f)
            config.update({k: v for k, v in file_config.items() if k in DEFAULT_CONFIG})
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Failed to load config from %s: %s", path, e)

    env_url = os.environ.get("ADLS_RPC_URL", "").strip()
    if env_url:
        config["rpc_url"] = env_url

    return config
