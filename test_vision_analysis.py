#!/usr/bin/env python3
"""
Quick test of subject location: primary face choice, detector failures and the shared model build
"""

import sys
import threading
import time
import types

import numpy as np
import pytest

from shorts_pipeline.Errors import AssetLoadError
from shorts_pipeline.Models import FacePoint
from shorts_pipeline.VisionAnalysis import SubjectLocator, pick_primary_face, face_center


FRAME = np.zeros((8, 8, 3), dtype=np.uint8)


def test_face_center():
    assert face_center([10, 20, 30, 60]) == (20.0, 40.0)


def test_pick_primary_face_prefers_highest_score():
    detections = {
        "face_1": {"score": 0.6, "facial_area": [0, 0, 10, 10], "landmarks": {}},
        "face_2": {"score": 0.95, "facial_area": [100, 200, 140, 260], "landmarks": {}},
    }
    assert pick_primary_face(detections) == FacePoint(120.0, 230.0, 0.95)


def test_pick_primary_face_without_faces():
    # RetinaFace answers with a tuple when it finds nothing
    assert pick_primary_face(()) is None
    assert pick_primary_face({}) is None
    assert pick_primary_face(None) is None


def test_injected_detector_is_ready_without_model():
    locator = SubjectLocator({"FACE_DETECTION_THRESHOLD": 0.7}, detector=lambda frame: ())
    assert locator.threshold == 0.7
    assert locator.is_ready()
    locator.warm_up()
    assert locator.locate(FRAME) is None


def test_detector_failure_on_one_frame_is_no_subject():
    calls = []

    def detector(frame):
        calls.append(frame)
        if len(calls) == 2:
            raise RuntimeError("corrupt frame")
        return {"face_1": {"score": 0.8, "facial_area": [0, 0, 4, 4], "landmarks": {}}}

    points = SubjectLocator({}, detector=detector).locate_all([FRAME, FRAME, FRAME])
    assert points == [FacePoint(2.0, 2.0, 0.8), None, FacePoint(2.0, 2.0, 0.8)]


def test_model_build_failure_is_asset_load_error(monkeypatch):
    failing = types.ModuleType("retinaface")

    class BrokenRetinaFace:
        @staticmethod
        def build_model():
            raise OSError("weights download failed")

    failing.RetinaFace = BrokenRetinaFace
    monkeypatch.setitem(sys.modules, "retinaface", failing)

    locator = SubjectLocator({})
    with pytest.raises(AssetLoadError):
        locator.warm_up()
    # Load failures are not per-frame failures: they propagate out of locate()
    with pytest.raises(AssetLoadError):
        locator.locate(FRAME)
    assert not locator.is_ready()


def test_concurrent_warm_up_builds_model_once(monkeypatch):
    builds = []

    class FakeRetinaFace:
        @staticmethod
        def build_model():
            time.sleep(0.05)
            builds.append(1)
            return object()

        @staticmethod
        def detect_faces(frame, threshold, model):
            return {"face_1": {"score": 0.99, "facial_area": [2, 2, 6, 6], "landmarks": {}}}

    module = types.ModuleType("retinaface")
    module.RetinaFace = FakeRetinaFace
    monkeypatch.setitem(sys.modules, "retinaface", module)

    locator = SubjectLocator({})
    threads = [threading.Thread(target=locator.warm_up) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(builds) == 1
    assert locator.is_ready()
    assert locator.locate(FRAME) == FacePoint(4.0, 4.0, 0.99)


if __name__ == "__main__":
    print("🧪 Testing primary face selection...")
    test_pick_primary_face_prefers_highest_score()
    test_pick_primary_face_without_faces()
    test_detector_failure_on_one_frame_is_no_subject()
    print("✅ Vision analysis checks passed")
