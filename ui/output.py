"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from netcheck.config import TestConfig
from netcheck.orchestrator import TestRunResult


def create_result_json(
    result: TestRunResult,
    config: Optional[TestConfig] = None,
) -> Dict[str, Any]:
    """Build the JSON document for one finished run."""
    doc: Dict[str, Any] = {
        "timestamp": result.timestamp,
        "server": {"host": result.server_host},
        "client": {"provider": result.provider, "ip": result.ip},
        "ping_ms": result.ping_ms,
        "download": {
            "speed_mbps": result.download_mbps,
            "measured": result.download_measured,
        },
        "upload": {
            "speed_mbps": result.upload_mbps,
            "measured": result.upload_measured,
        },
        "quality": {
            "label": result.quality,
            "score": result.quality_score,
            "signal_bars": result.signal_bars,
        },
    }

    if result.effective_type is not None or result.downlink_mbps is not None:
        doc["connection_hint"] = {
            "effective_type": result.effective_type,
            "downlink_mbps": result.downlink_mbps,
            "rtt_ms": result.rtt_ms,
        }

    if config is not None:
        doc["settings"] = config.to_dict()

    return doc


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(result: TestRunResult) -> str:
    sep = "=" * 50
    mid = "-" * 50

    def _mark(measured: bool) -> str:
        return "" if measured else " (simulated)"

    return (
        f"{sep}\n"
        f"Network Check Results\n"
        f"{sep}\n"
        f"Server: {result.server_host or 'n/a'}\n"
        f"Provider: {result.provider or 'n/a'}\n"
        f"IP: {result.ip or 'n/a'}\n"
        f"{mid}\n"
        f"Ping: {result.ping_ms} ms\n"
        f"Download: {result.download_mbps} Mbps{_mark(result.download_measured)}\n"
        f"Upload: {result.upload_mbps} Mbps{_mark(result.upload_measured)}\n"
        f"Quality: {result.quality} ({result.quality_score}%)\n"
        f"{sep}"
    )
