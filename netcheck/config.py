"""
User configuration file support.

Reads/writes ``~/.wifi-strength/config.json``.

Supported keys::

    target_download_url = "https://..."   # "" -> simulated download
    target_upload_url = "https://..."     # "" -> simulated upload
    latency_url = ""                      # "" -> derived from the targets
    duration_seconds = 12.0
    parallel_streams = 8
    passes = 2
    warmup_seconds = 2.0
    bucket_width_ms = 250
    percentile_mode = "p95"               # or "peak"
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from .constants import (
    BUCKET_WIDTH_MS,
    DEFAULT_DOWNLOAD_URL,
    DEFAULT_DURATION,
    DEFAULT_PASSES,
    DEFAULT_STREAMS,
    DEFAULT_UPLOAD_URL,
    WARMUP_SECONDS,
)
from .stats import Reducer

_CONFIG_DIR = os.path.join(Path.home(), ".wifi-strength")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "target_download_url": DEFAULT_DOWNLOAD_URL,
    "target_upload_url": DEFAULT_UPLOAD_URL,
    "latency_url": "",
    "duration_seconds": DEFAULT_DURATION,
    "parallel_streams": DEFAULT_STREAMS,
    "passes": DEFAULT_PASSES,
    "warmup_seconds": WARMUP_SECONDS,
    "bucket_width_ms": BUCKET_WIDTH_MS,
    "percentile_mode": Reducer.P95.value,
}


@dataclass
class TestConfig:
    """Options for one orchestrated run."""

    __test__ = False  # not a test case, despite the name

    target_download_url: str = ""
    target_upload_url: str = ""
    latency_url: str = ""
    duration_seconds: float = DEFAULT_DURATION
    parallel_streams: int = DEFAULT_STREAMS
    passes: int = DEFAULT_PASSES
    warmup_seconds: float = WARMUP_SECONDS
    bucket_width_ms: float = BUCKET_WIDTH_MS
    percentile_mode: Reducer = Reducer.P95

    def __post_init__(self) -> None:
        self.percentile_mode = Reducer.parse(self.percentile_mode)

    @property
    def upload_streams(self) -> int:
        """Upload runs with half the download streams, at least one."""
        return max(1, self.parallel_streams // 2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TestConfig:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["percentile_mode"] = self.percentile_mode.value
        return out


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError):
        pass  # corrupt file; use defaults

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
