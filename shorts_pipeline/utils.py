import logging
import json
import math
import os
from typing import Union, Dict, Any

logger = logging.getLogger(__name__)

# Seconds per field, from the rightmost field of an [HH:]MM:SS timestamp
_FIELD_UNITS = (1, 60, 3600)


def timestamp_to_seconds(ts_str: Union[str, float, int]) -> float:
    """
    Normalizes a script timestamp to seconds.

    Accepted forms:
    - a number of seconds (int or float)
    - "SS.ss", "MM:SS.ss" or "HH:MM:SS.ss" (e.g. "01:05:30.5")
    - any of the strings wrapped in square brackets (e.g. "[01:30]")

    Args:
        ts_str (Union[str, float, int]): The timestamp to convert.

    Returns:
        float: Seconds from the start of the source.

    Raises:
        TypeError: If `ts_str` is neither a number nor a string.
        ValueError: If a string does not match one of the accepted forms.
    """
    if isinstance(ts_str, bool):
        raise TypeError("Invalid type for timestamp: bool is not a timestamp")
    if isinstance(ts_str, (int, float)):
        return float(ts_str)
    if not isinstance(ts_str, str):
        raise TypeError(f"Invalid type for timestamp: expected str, float or int, got {type(ts_str)}")

    fields = ts_str.strip().strip('[]').strip().split(':')
    if len(fields) > len(_FIELD_UNITS):
        raise ValueError(f"Invalid timestamp '{ts_str}': expected SS.ss, MM:SS.ss or HH:MM:SS.ss")

    seconds = 0.0
    for unit, field in zip(_FIELD_UNITS, reversed(fields)):
        try:
            # Only the seconds field may carry a fraction
            value = float(field) if unit == 1 else int(field)
        except ValueError as e:
            raise ValueError(f"Invalid timestamp '{ts_str}': {e}") from e
        seconds += value * unit
    return seconds


def format_timestamp(seconds: float, include_hours: bool = False) -> str:
    """
    Formats seconds as "MM:SS", or "HH:MM:SS" when hours are present or requested.

    Negative and NaN inputs format as "00:00".
    """
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return "00:00"

    total = int(seconds)
    h, remainder = divmod(total, 3600)
    m, s = divmod(remainder, 60)

    if include_hours or h > 0:
        return f"{h:02d}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def format_duration(seconds: float) -> str:
    """Human-readable duration, e.g. '45s', '2m 5s', '1h 3m'."""
    if seconds < 60:
        return f"{round(seconds)}s"
    if seconds < 3600:
        mins = int(seconds // 60)
        secs = round(seconds % 60)
        return f"{mins}m {secs}s" if secs > 0 else f"{mins}m"
    hours = int(seconds // 3600)
    mins = int((seconds % 3600) // 60)
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"


def count_words(text: str) -> int:
    return len(text.split())


def estimate_tts_duration(text: str, words_per_second: float = 2.5) -> float:
    """
    Estimates how long `text` takes to speak at a fixed rate.

    Average speaking rate is ~150 words per minute (2.5 words per second);
    the estimate never drops below one second.
    """
    return max(1.0, count_words(text) / words_per_second)


def _json_fallback(value: Any) -> Any:
    return sorted(value) if isinstance(value, set) else str(value)


def log_run_summary(run_output_dir: str, config: Dict[str, Any], job_input: Dict[str, Any]) -> None:
    """
    Writes `run_summary.json` (the effective CONFIG and the submitted job) into the run directory.

    Failing to write the summary never stops the run; the error is logged.
    """
    summary_path = os.path.join(run_output_dir, "run_summary.json")
    try:
        os.makedirs(run_output_dir, exist_ok=True)
        with open(summary_path, 'w', encoding='utf-8') as f:
            json.dump({"run_configuration": config, "job_input": job_input}, f, indent=4, default=_json_fallback)
    except OSError as e:
        logger.error(f"❌ Could not save run summary to {summary_path}: {e}", exc_info=True)
        return
    logger.info(f"📋 Run summary saved to {summary_path}")
