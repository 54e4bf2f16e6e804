#!/usr/bin/env python3
"""
Quick test of asset resolution, scratch workspaces and clip window checks
"""

import os

import pytest

from shorts_pipeline.Errors import FetchError, OutOfRangeError
from shorts_pipeline.VideoIO import extract_clip, fetch_asset, is_youtube_url, scratch_workspace


def test_scratch_workspace_removed_on_success_and_failure(tmp_path):
    with scratch_workspace(str(tmp_path), "job-1") as work_dir:
        with open(os.path.join(work_dir, "frame.bin"), "wb") as f:
            f.write(b"x")
    assert not os.path.exists(work_dir)

    with pytest.raises(RuntimeError):
        with scratch_workspace(str(tmp_path), "job-2") as work_dir:
            os.makedirs(os.path.join(work_dir, "nested"))
            raise RuntimeError("step failed")
    assert not os.path.exists(work_dir)


def test_local_assets_are_used_in_place(tmp_path):
    music = tmp_path / "calm.wav"
    music.write_bytes(b"RIFF")

    assert fetch_asset(str(music), str(tmp_path / "dl"), "music.wav") == str(music)
    assert fetch_asset(f"file://{music}", str(tmp_path / "dl"), "music.wav") == str(music)
    assert not os.path.exists(tmp_path / "dl")


def test_missing_assets_raise_fetch_error(tmp_path):
    with pytest.raises(FetchError):
        fetch_asset(str(tmp_path / "nope.mp4"), str(tmp_path), "source.mp4")
    with pytest.raises(FetchError):
        fetch_asset("", str(tmp_path), "source.mp4")


def test_is_youtube_url():
    assert is_youtube_url("https://www.youtube.com/watch?v=abc")
    assert is_youtube_url("https://youtu.be/abc")
    assert not is_youtube_url("https://cdn.example.com/video.mp4")
    assert not is_youtube_url("/data/video.mp4")


def test_extract_clip_window_checks(tmp_path):
    out = str(tmp_path / "clip.mp4")
    with pytest.raises(ValueError):
        extract_clip("source.mp4", -1.0, 10.0, out, source_duration=60.0)
    with pytest.raises(ValueError):
        extract_clip("source.mp4", 5.0, 0.0, out, source_duration=60.0)
    with pytest.raises(OutOfRangeError):
        extract_clip("source.mp4", 60.0, 10.0, out, source_duration=60.0)
    with pytest.raises(OutOfRangeError):
        extract_clip("source.mp4", 90.0, 10.0, out, source_duration=60.0)
    assert not os.path.exists(out)
