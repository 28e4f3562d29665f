"""Defaults and environment lookups for TOTPVault."""

from __future__ import annotations

import os
from pathlib import Path

# Interoperable with Google Authenticator and friends.
DEFAULT_PERIOD: int = 30
DEFAULT_DIGITS: int = 6
DEFAULT_ALGORITHM: str = "SHA1"

TICK_INTERVAL: float = 1.0

STORE_PATH_ENV: str = "TOTPVAULT_STORE"
STORE_DIR_NAME: str = ".totpvault"
STORE_FILE_NAME: str = "accounts.json"


def default_store_path() -> Path:
    """Return the JSON store location, honouring ``TOTPVAULT_STORE`` when set."""

    override = (os.getenv(STORE_PATH_ENV) or "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / STORE_DIR_NAME / STORE_FILE_NAME
