"""
Source media probing via ffprobe. Metadata only; no content analysis.
"""
import json
import logging
import subprocess

logger = logging.getLogger(__name__)


def probe_duration_seconds(path: str, ffprobe_binary: str = "ffprobe", timeout: float = 15.0) -> float | None:
    """Container duration in seconds, or None when ffprobe is unavailable or cannot read the file."""
    command = [
        ffprobe_binary,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        path,
    ]
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=timeout, check=True)
        duration = float(json.loads(result.stdout)["format"]["duration"])
    except FileNotFoundError:
        logger.warning("ffprobe_not_installed", extra={"error": ffprobe_binary})
        return None
    except (subprocess.SubprocessError, KeyError, TypeError, ValueError) as e:
        logger.warning("ffprobe_failed", extra={"error": str(e)})
        return None
    return duration if duration > 0 else None
