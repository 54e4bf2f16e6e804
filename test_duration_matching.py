#!/usr/bin/env python3
"""
Quick test of the speed factor clamp and the time stretch command
"""

import pytest

from shorts_pipeline import DurationMatching
from shorts_pipeline.DurationMatching import compute_speed_factor, match_duration


class FakeStream:
    """Records the ffmpeg-python calls made on a stream."""

    def __init__(self, log):
        self.log = log

    @property
    def video(self):
        return self

    def filter(self, name, *args, **kwargs):
        self.log.append(("filter", name, args, kwargs))
        return self

    def overwrite_output(self):
        return self

    def run(self, **kwargs):
        self.log.append(("run",))


class FakeFfmpeg:
    Error = RuntimeError

    def __init__(self):
        self.log = []

    def input(self, path):
        self.log.append(("input", path))
        return FakeStream(self.log)

    def output(self, stream, path, **kwargs):
        self.log.append(("output", path, kwargs))
        return FakeStream(self.log)


def test_speed_factor_inside_range():
    assert compute_speed_factor(10.0, 5.0) == 2.0
    assert compute_speed_factor(10.0, 8.0) == 1.25
    assert compute_speed_factor(10.0, 20.0) == 0.5


def test_speed_factor_is_clamped():
    assert compute_speed_factor(10.0, 2.0) == 2.0
    assert compute_speed_factor(10.0, 40.0) == 0.5
    assert compute_speed_factor(10.0, 4.0, min_speed=0.8, max_speed=1.5) == 1.5
    for current in (0.1, 1.0, 3.3, 10.0, 60.0):
        for target in (0.05, 1.0, 2.5, 10.0, 120.0):
            assert 0.5 <= compute_speed_factor(current, target) <= 2.0


def test_speed_factor_rejects_non_positive():
    with pytest.raises(ValueError):
        compute_speed_factor(0.0, 5.0)
    with pytest.raises(ValueError):
        compute_speed_factor(10.0, -1.0)


def test_match_duration_builds_setpts_and_caps_length(monkeypatch):
    fake = FakeFfmpeg()
    monkeypatch.setattr(DurationMatching, "ffmpeg", fake)

    result = match_duration("cropped.mp4", 5.0, "matched.mp4", {"OUTPUT_FPS": 30}, current_duration=10.0)

    assert result.speed == 2.0
    assert result.expected_duration == 5.0
    assert result.path == "matched.mp4"
    assert ("filter", "setpts", ("0.5000*PTS",), {}) in fake.log
    output = next(entry for entry in fake.log if entry[0] == "output")
    assert output[2]["t"] == "5.000"
    assert output[2]["an"] is None


def test_match_duration_clamped_clip_holds_last_frame(monkeypatch):
    fake = FakeFfmpeg()
    monkeypatch.setattr(DurationMatching, "ffmpeg", fake)

    # 10s of footage for 30s of voice: 0.5x covers 20s, the last frame fills the rest
    result = match_duration("cropped.mp4", 30.0, "matched.mp4", {}, current_duration=10.0)
    assert result.speed == 0.5
    assert result.expected_duration == 30.0
    assert result.padded_duration == pytest.approx(10.0)
    assert ("filter", "tpad", (), {"stop_mode": "clone", "stop_duration": "10.000"}) in fake.log
    output = next(entry for entry in fake.log if entry[0] == "output")
    assert output[2]["t"] == "30.000"


def test_match_duration_fast_clip_is_cut_not_padded(monkeypatch):
    fake = FakeFfmpeg()
    monkeypatch.setattr(DurationMatching, "ffmpeg", fake)

    # 10s of footage for 2s of voice: sped up to 2x and cut at the target
    result = match_duration("cropped.mp4", 2.0, "matched.mp4", {}, current_duration=10.0)
    assert result.speed == 2.0
    assert result.expected_duration == 2.0
    assert result.padded_duration == 0.0
    assert not any(entry[0] == "filter" and entry[1] == "tpad" for entry in fake.log)


def test_match_duration_probes_when_length_unknown(monkeypatch):
    monkeypatch.setattr(DurationMatching, "ffmpeg", FakeFfmpeg())
    monkeypatch.setattr(DurationMatching, "get_media_duration", lambda path: 8.0)

    result = match_duration("cropped.mp4", 10.0, "matched.mp4", {})
    assert result.speed == pytest.approx(0.8)
    assert result.expected_duration == pytest.approx(10.0)
