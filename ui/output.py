"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict

from client.download import TransferSession
from client.stats import mean_or_zero


def create_result_json(session: TransferSession) -> Dict[str, Any]:
    """Build a JSON-serialisable result dict for one session."""
    data = session.to_dict()
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": data["status"],
        "url": data["url"],
        "download": {
            "speed_mbps": data["display_mbps"],
            "average_mbps": data["average_mbps"],
            "bytes": data["bytes_received"],
            "bytes_expected": data["bytes_expected"],
            "duration_ms": round(session.duration_s * 1000, 2),
            "progress": data["progress"],
            "samples": data["samples"],
            "sample_mean_mbps": round(mean_or_zero(data["samples"]), 2),
        },
    }
    if "error" in data:
        result["error"] = data["error"]
    return result


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


def format_text_result(session: TransferSession) -> str:
    sep = "=" * 50
    lines = [
        sep,
        "Speed Test Results",
        sep,
        f"URL: {session.url}",
        f"Status: {session.status}",
        f"Speed: {session.display_mbps:.2f} Mbps",
        f"Average: {session.average_mbps:.2f} Mbps",
        f"Received: {session.bytes_received} of {session.total_bytes} bytes",
        f"Duration: {session.duration_s:.2f} s",
    ]
    if session.error:
        lines.append(f"Error: {session.error}")
    lines.append(sep)
    return "\n".join(lines)
