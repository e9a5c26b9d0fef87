"""Deployment settings read from environment variables at import time."""

import os
from pathlib import Path


def string_to_bool(s: str) -> bool:
    return s.strip().lower() in ["true", "yes", "1", "y", "on"]


LOG_ROOT = Path(os.getenv("LOG_ROOT", "/var/log/"))
LOG_DIR = LOG_ROOT / "weblibri"
LOG_FILE = LOG_DIR / "weblibri.log"
ENABLE_LOGGING = string_to_bool(os.getenv("ENABLE_LOGGING", "false"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
