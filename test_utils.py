#!/usr/bin/env python3
"""
Quick test of the timestamp and duration helpers
"""

import json
import logging
import math
import os

import pytest

from shorts_pipeline.LoggerSetup import setup_logging
from shorts_pipeline.utils import (
    timestamp_to_seconds, format_timestamp, format_duration,
    count_words, estimate_tts_duration, log_run_summary
)


def test_timestamp_to_seconds_formats():
    assert timestamp_to_seconds("01:05:30.5") == 3930.5
    assert timestamp_to_seconds("05:30") == 330.0
    assert timestamp_to_seconds("42.25") == 42.25
    assert timestamp_to_seconds("[01:30]") == 90.0
    assert timestamp_to_seconds(12) == 12.0
    assert timestamp_to_seconds(7.5) == 7.5


def test_timestamp_to_seconds_rejects_garbage():
    with pytest.raises(ValueError):
        timestamp_to_seconds("aa:bb")
    with pytest.raises(ValueError):
        timestamp_to_seconds("1:2:3:4")
    with pytest.raises(TypeError):
        timestamp_to_seconds(None)
    with pytest.raises(TypeError):
        timestamp_to_seconds(True)


def test_format_timestamp():
    assert format_timestamp(75) == "01:15"
    assert format_timestamp(75, include_hours=True) == "00:01:15"
    assert format_timestamp(3725) == "01:02:05"
    assert format_timestamp(-3) == "00:00"
    assert format_timestamp(math.nan) == "00:00"


def test_format_duration():
    assert format_duration(45) == "45s"
    assert format_duration(125) == "2m 5s"
    assert format_duration(120) == "2m"
    assert format_duration(3780) == "1h 3m"
    assert format_duration(7200) == "2h"


def test_estimate_tts_duration_has_one_second_floor():
    assert count_words("  one   two ") == 2
    assert estimate_tts_duration("one two") == 1.0
    assert estimate_tts_duration(" ".join(["word"] * 10)) == 4.0
    assert estimate_tts_duration(" ".join(["word"] * 10), words_per_second=5.0) == 2.0


def test_log_run_summary_writes_json(tmp_path):
    run_dir = tmp_path / "run"
    log_run_summary(str(run_dir), {"OUTPUT_WIDTH": 720, "TAGS": {"a"}}, {"voice_id": "en_US-amy-medium"})

    with open(os.path.join(run_dir, "run_summary.json"), encoding="utf-8") as f:
        summary = json.load(f)
    assert summary["run_configuration"]["OUTPUT_WIDTH"] == 720
    assert summary["run_configuration"]["TAGS"] == ["a"]
    assert summary["job_input"]["voice_id"] == "en_US-amy-medium"


def test_setup_logging_is_reentrant(tmp_path):
    logger = logging.getLogger("shorts_pipeline")
    try:
        setup_logging(str(tmp_path))
        setup_logging(str(tmp_path))
        assert len(logger.handlers) == 2
        logger.debug("debug line for the file only")
        for handler in logger.handlers:
            handler.flush()
        with open(tmp_path / "pipeline.log", encoding="utf-8") as f:
            assert "debug line for the file only" in f.read()
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
