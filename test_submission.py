#!/usr/bin/env python3
"""
Quick test of request validation and background job execution
"""

import threading

import pytest

from shorts_pipeline.config import CONFIG
from shorts_pipeline.Errors import JobNotFoundError, JobValidationError
from shorts_pipeline.JobTracker import InMemoryJobTracker
from shorts_pipeline.Models import JobStatus, ProcessingStage
from shorts_pipeline.Orchestrator import PipelineEngines
from shorts_pipeline.SpeechSynthesis import VoiceEngine
from shorts_pipeline.Submission import JobRunner, new_job, validate_request
from shorts_pipeline.VisionAnalysis import SubjectLocator


def valid_payload(**overrides):
    payload = {
        "video_url": "https://www.youtube.com/watch?v=abc123",
        "segments": [
            {"id": "intro", "script": "Welcome back.", "source_timestamp": "00:01:30"},
            {"script": "Here is the twist.", "source_timestamp": 200.5, "output_time": 3},
        ],
        "voice_id": "en_US-lessac-medium",
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize("payload, message", [
    ({"segments": [{"script": "x", "source_timestamp": 0}], "voice_id": "v"}, "video_url is required"),
    ({"video_url": "v.mp4", "segments": [], "voice_id": "v"}, "segments array is required and must not be empty"),
    ({"video_url": "v.mp4", "voice_id": "v"}, "segments array is required and must not be empty"),
    ({"video_url": "v.mp4", "segments": [{"script": "x", "source_timestamp": 0}]}, "voice_id is required"),
])
def test_missing_fields(payload, message):
    with pytest.raises(JobValidationError, match=message):
        validate_request(payload)


def test_malformed_segments():
    with pytest.raises(JobValidationError, match="empty script"):
        validate_request(valid_payload(segments=[{"script": "  ", "source_timestamp": 1}]))
    with pytest.raises(JobValidationError, match="missing source_timestamp"):
        validate_request(valid_payload(segments=[{"script": "hi"}]))
    with pytest.raises(JobValidationError, match="invalid timestamp"):
        validate_request(valid_payload(segments=[{"script": "hi", "source_timestamp": "ab:cd"}]))
    with pytest.raises(JobValidationError, match="negative"):
        validate_request(valid_payload(segments=[{"script": "hi", "source_timestamp": -4}]))
    with pytest.raises(JobValidationError, match="must be an object"):
        validate_request(valid_payload(segments=["just text"]))


def test_music_volume_range():
    with pytest.raises(JobValidationError):
        validate_request(valid_payload(music_volume=1.2))
    with pytest.raises(JobValidationError):
        validate_request(valid_payload(music_volume="loud"))
    assert validate_request(valid_payload(music_volume=0)).music_volume == 0.0


def test_valid_request_defaults():
    request = validate_request(valid_payload())

    assert request.music_url is None
    assert request.music_volume == CONFIG["DEFAULT_MUSIC_VOLUME"]
    assert request.include_captions is False
    assert [s.id for s in request.segments] == ["intro", "2"]
    assert request.segments[0].source_timestamp == 90.0
    assert request.segments[1].output_time == 3.0


def test_camel_case_fields():
    request = validate_request({
        "videoUrl": "clip.mp4",
        "segments": [{"id": 7, "script": "Hi", "sourceTimestamp": 4, "outputTime": 0}],
        "voiceId": "en_US-amy-medium",
        "musicUrl": "calm-2",
        "musicVolume": 0.1,
        "includeCaptions": True,
    })
    assert request.video_url == "clip.mp4"
    assert request.segments[0].id == "7"
    assert request.music_url == "calm-2"
    assert request.music_volume == 0.1
    assert request.include_captions is True


def test_segment_id_zero_is_kept():
    request = validate_request(valid_payload(segments=[
        {"id": 0, "script": "Zero", "source_timestamp": 1},
        {"id": "  ", "script": "Blank", "source_timestamp": 2},
    ]))
    assert [s.id for s in request.segments] == ["0", "2"]


@pytest.mark.parametrize("raw, expected", [
    ("false", False), ("False", False), ("0", False), (0, False), (None, False),
    ("true", True), ("yes", True), (1, True), (True, True),
])
def test_include_captions_flag_parsing(raw, expected):
    assert validate_request(valid_payload(include_captions=raw)).include_captions is expected


def test_include_captions_rejects_ambiguous_values():
    for raw in ("maybe", 2, [True]):
        with pytest.raises(JobValidationError, match="include_captions"):
            validate_request(valid_payload(include_captions=raw))


def test_new_job_is_pending():
    job = new_job(validate_request(valid_payload()))
    assert job.status == JobStatus.PENDING
    assert job.stage == ProcessingStage.QUEUED
    assert job.total_segments == 2
    assert job.message == "Job queued"
    assert new_job(validate_request(valid_payload())).id != job.id


class FakeOrchestrator:
    """Completes every job it is handed, optionally waiting for a signal first."""

    def __init__(self, tracker, gate=None):
        self.tracker = tracker
        self.gate = gate
        self.runs = []

    def run(self, job):
        self.runs.append(job.id)
        if self.gate is not None:
            self.gate.wait(5)
        return self.tracker.complete_job(job.id, f"/outputs/{job.id}/final.mp4")


def make_runner(tracker):
    config = dict(CONFIG)
    config.update({"TTS_ENGINE": "estimate", "MAX_CONCURRENT_JOBS": 2})
    engines = PipelineEngines(VoiceEngine(config), SubjectLocator(config, detector=lambda frame: ()))
    return JobRunner(tracker, engines, config)


def test_invalid_submission_creates_no_job():
    tracker = InMemoryJobTracker()
    with make_runner(tracker) as runner:
        with pytest.raises(JobValidationError):
            runner.submit(valid_payload(voice_id=""))
    assert tracker._jobs == {}


def test_submit_runs_in_background_and_can_be_retried():
    tracker = InMemoryJobTracker()
    with make_runner(tracker) as runner:
        gate = threading.Event()
        runner.orchestrator = FakeOrchestrator(tracker, gate)

        job_id = runner.submit(valid_payload())
        # Submission returns before the job finishes
        assert runner.get_status(job_id)["status"] == "pending"
        assert runner.active_jobs() == [job_id]
        gate.set()

        seen = []
        job = runner.wait_for_job(job_id, poll_interval=0.01, timeout=5, on_update=seen.append)
        assert job.status == JobStatus.COMPLETE
        assert job.output_url == f"/outputs/{job_id}/final.mp4"
        assert seen[-1].status == JobStatus.COMPLETE

        assert runner.retry(job_id) == job_id
        job = runner.wait_for_job(job_id, poll_interval=0.01, timeout=5)
        assert job.status == JobStatus.COMPLETE
        assert runner.orchestrator.runs == [job_id, job_id]
    # Finished jobs are forgotten once the workers have drained
    assert runner.active_jobs() == []


def test_retry_rules():
    tracker = InMemoryJobTracker()
    with make_runner(tracker) as runner:
        with pytest.raises(JobNotFoundError):
            runner.retry("nope")

        job = new_job(validate_request(valid_payload()))
        tracker.create_job(job)
        with pytest.raises(JobValidationError):
            runner.retry(job.id)

        tracker.fail_job(job.id, "Stage 'extracting' failed: boom")
        runner.orchestrator = FakeOrchestrator(tracker, threading.Event())
        runner.retry(job.id)
        reset = tracker.get_job(job.id)
        assert reset.error is None
        assert reset.output_url is None
        assert reset.progress == 0.0
        runner.orchestrator.gate.set()


def test_status_and_wait_errors():
    tracker = InMemoryJobTracker()
    with make_runner(tracker) as runner:
        assert runner.get_status("nope") is None
        with pytest.raises(JobNotFoundError):
            runner.wait_for_job("nope", poll_interval=0.01)

        job = new_job(validate_request(valid_payload()))
        tracker.create_job(job)
        with pytest.raises(TimeoutError):
            runner.wait_for_job(job.id, poll_interval=0.01, timeout=0.05)
