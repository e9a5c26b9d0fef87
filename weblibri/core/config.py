"""Configuration singleton with ENV > config file > default resolution."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from weblibri.core.logger import setup_logger

logger = setup_logger(__name__)

# Setting key -> default value. The default's type decides how ENV strings are coerced.
DEFAULTS: Dict[str, Any] = {
    "METADATA_DB": "",
    "CACHE_DIR": "",
    "DATA_DIR": "",
    "CONVERTER_BIN": "ebook-convert",
    "EXTRACTOR_BIN": "unzip",
    "S3_REGION": "us-east-1",
    "MIRROR_PATH": "/tmp/cached_metadata.db",
    "QUEUE_CAPACITY": 100,
    "APP_PREFIX": "",
}


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in ("true", "yes", "1", "y", "on")
    if isinstance(default, int):
        return int(raw)
    return raw


def _settings_file() -> Path:
    return Path(os.environ.get("CONFIG_DIR", "/config")) / "settings.json"


class Config:
    """
    Configuration singleton that provides live settings access.

    Settings are resolved with priority: ENV var > config file > default.
    Values are cached and can be reloaded with refresh().
    """

    _instance: Optional['Config'] = None
    _lock = Lock()

    def __new__(cls) -> 'Config':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._cache: Dict[str, Any] = {}
        self._env_keys: set = set()
        self._cache_lock = Lock()
        self._loaded = False
        self._initialized = True

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._cache_lock:
            if self._loaded:
                return
            self._load_settings()

    def _load_file(self) -> Dict[str, Any]:
        path = _settings_file()
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning_trace(f"Ignoring unreadable settings file {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {path}: expected a JSON object")
            return {}
        return data

    def _load_settings(self) -> None:
        file_values = self._load_file()
        self._cache.clear()
        self._env_keys.clear()

        for key, default in DEFAULTS.items():
            value = file_values.get(key, default)
            raw = os.environ.get(key)
            if raw is not None and raw != "":
                try:
                    value = _coerce(raw, default)
                    self._env_keys.add(key)
                except ValueError:
                    logger.warning(f"Invalid value for {key} in environment: {raw!r}, using {value!r}")
            self._cache[key] = value

        self._loaded = True

    def refresh(self) -> None:
        """Reload all settings from the environment and the config file."""
        with self._cache_lock:
            self._loaded = False
            self._load_settings()

    def get(self, key: str, default: Any = None) -> Any:
        self._ensure_loaded()
        return self._cache.get(key, default)

    def __getattr__(self, name: str) -> Any:
        """
        Allow attribute-style access to settings.

        Example: config.CACHE_DIR instead of config.get('CACHE_DIR')
        """
        if name.startswith('_'):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        self._ensure_loaded()
        if name in self._cache:
            return self._cache[name]
        raise AttributeError(f"Setting '{name}' not found in config")

    def is_from_env(self, key: str) -> bool:
        """Check if a setting's value comes from an environment variable."""
        self._ensure_loaded()
        return key in self._env_keys

    def get_all(self) -> Dict[str, Any]:
        self._ensure_loaded()
        return dict(self._cache)


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the settings the core is wired from."""

    metadata_db: str
    cache_dir: Path
    data_dir: Optional[Path]
    converter_bin: str = "ebook-convert"
    extractor_bin: str = "unzip"
    s3_region: str = "us-east-1"
    mirror_path: Path = Path("/tmp/cached_metadata.db")
    queue_capacity: int = 100
    app_prefix: str = ""


def load_settings(source: Optional[Config] = None) -> Settings:
    """Build a Settings snapshot, failing early on missing required values."""
    cfg = source or config

    metadata_db = str(cfg.get("METADATA_DB", "") or "").strip()
    if not metadata_db:
        raise ValueError("METADATA_DB must be set to a local path or an s3:// URI")

    cache_dir = str(cfg.get("CACHE_DIR", "") or "").strip()
    if not cache_dir:
        raise ValueError("CACHE_DIR must be set")

    data_dir = str(cfg.get("DATA_DIR", "") or "").strip()

    return Settings(
        metadata_db=metadata_db,
        cache_dir=Path(cache_dir).absolute(),
        data_dir=Path(data_dir).absolute() if data_dir else None,
        converter_bin=cfg.get("CONVERTER_BIN", "ebook-convert"),
        extractor_bin=cfg.get("EXTRACTOR_BIN", "unzip"),
        s3_region=cfg.get("S3_REGION", "us-east-1"),
        mirror_path=Path(cfg.get("MIRROR_PATH", "/tmp/cached_metadata.db")),
        queue_capacity=int(cfg.get("QUEUE_CAPACITY", 100)),
        app_prefix=str(cfg.get("APP_PREFIX", "") or "").rstrip("/"),
    )


# Global singleton instance
config = Config()
