"""
Job submission and background execution.

`validate_request` rejects malformed requests before any job record exists.
`JobRunner` creates the record and runs the orchestrator on a worker thread,
so a job keeps going after the submitting call has returned; callers follow it
only through the job tracker.
"""
import time
import uuid
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from .config import CONFIG
from .Errors import JobValidationError, JobNotFoundError
from .Models import CreateJobRequest, ProcessingJob, ScriptSegment, JobStatus, ProcessingStage
from .JobTracker import JobTracker
from .Orchestrator import PipelineOrchestrator, PipelineEngines
from .Storage import LocalArtifactStore
from .utils import timestamp_to_seconds

logger = logging.getLogger(__name__)


def _get(data: Dict[str, Any], name: str, camel_name: str, default: Any = None) -> Any:
    """Reads a field given either in snake_case or in the camelCase used by web clients."""
    if name in data:
        return data[name]
    return data.get(camel_name, default)


def _segment_id(index: int, raw_id: Any) -> str:
    # 0 is a valid id; only a missing or blank id falls back to the 1-based position
    if raw_id is None or (isinstance(raw_id, str) and not raw_id.strip()):
        return str(index + 1)
    return str(raw_id).strip()


_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0", ""}


def _parse_flag(name: str, value: Any) -> bool:
    """Reads a JSON or form-style boolean; anything ambiguous is rejected."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise JobValidationError(f"{name} must be a boolean, got {value!r}")


def _parse_segment(index: int, raw: Any) -> ScriptSegment:
    if not isinstance(raw, dict):
        raise JobValidationError(f"Segment {index + 1} must be an object")

    script = raw.get("script")
    if not isinstance(script, str) or not script.strip():
        raise JobValidationError(f"Segment {index + 1} has an empty script")

    raw_ts = _get(raw, "source_timestamp", "sourceTimestamp")
    if raw_ts is None:
        raise JobValidationError(f"Segment {index + 1} is missing source_timestamp")
    try:
        source_timestamp = timestamp_to_seconds(raw_ts)
        output_time = timestamp_to_seconds(_get(raw, "output_time", "outputTime", 0.0))
    except (TypeError, ValueError) as e:
        raise JobValidationError(f"Segment {index + 1} has an invalid timestamp: {e}") from e
    if source_timestamp < 0:
        raise JobValidationError(f"Segment {index + 1} has a negative source_timestamp")

    return ScriptSegment(
        id=_segment_id(index, raw.get("id")),
        script=script.strip(),
        source_timestamp=source_timestamp,
        output_time=output_time,
        source_description=_get(raw, "source_description", "sourceDescription"),
    )


def validate_request(payload: Dict[str, Any]) -> CreateJobRequest:
    """
    Checks a job request and converts it into a `CreateJobRequest`.

    Args:
        payload (Dict[str, Any]): Request body. Fields may be snake_case or camelCase.

    Returns:
        CreateJobRequest: The validated request.

    Raises:
        JobValidationError: If the video reference, segments or voice id is missing,
                            a segment is malformed, the music volume is out of range
                            or include_captions is not a boolean.
    """
    if not isinstance(payload, dict):
        raise JobValidationError("Request body must be an object")

    video_url = _get(payload, "video_url", "videoUrl")
    if not video_url:
        raise JobValidationError("video_url is required")

    raw_segments = payload.get("segments")
    if not isinstance(raw_segments, list) or not raw_segments:
        raise JobValidationError("segments array is required and must not be empty")

    voice_id = _get(payload, "voice_id", "voiceId")
    if not voice_id:
        raise JobValidationError("voice_id is required")

    segments = [_parse_segment(i, raw) for i, raw in enumerate(raw_segments)]

    music_volume = _get(payload, "music_volume", "musicVolume")
    if music_volume is None:
        music_volume = CONFIG.get("DEFAULT_MUSIC_VOLUME", 0.3)
    try:
        music_volume = float(music_volume)
    except (TypeError, ValueError) as e:
        raise JobValidationError(f"music_volume must be a number: {e}") from e
    if not 0.0 <= music_volume <= 1.0:
        raise JobValidationError(f"music_volume must be within [0, 1], got {music_volume}")

    return CreateJobRequest(
        video_url=str(video_url),
        segments=segments,
        voice_id=str(voice_id),
        music_url=_get(payload, "music_url", "musicUrl") or None,
        music_volume=music_volume,
        include_captions=_parse_flag("include_captions", _get(payload, "include_captions", "includeCaptions", False)),
    )


def new_job(request: CreateJobRequest) -> ProcessingJob:
    """A fresh `pending`/`queued` job record for a validated request."""
    return ProcessingJob(
        id=str(uuid.uuid4()),
        video_url=request.video_url,
        segments=request.segments,
        voice_id=request.voice_id,
        music_url=request.music_url,
        music_volume=request.music_volume,
        include_captions=request.include_captions,
        total_segments=len(request.segments),
    )


class JobRunner:
    """
    Accepts jobs and runs them in the background.

    Args:
        tracker (JobTracker): Stores job records.
        engines (PipelineEngines): Shared engines handed to every run.
        config (Optional[Dict[str, Any]]): Pipeline configuration; defaults to CONFIG.
        store (Optional[LocalArtifactStore]): Output store for finished videos.
    """

    def __init__(
        self,
        tracker: JobTracker,
        engines: PipelineEngines,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[LocalArtifactStore] = None
    ):
        self.tracker = tracker
        self.config = config if config is not None else CONFIG
        self.orchestrator = PipelineOrchestrator(tracker, engines, self.config, store)
        self._executor = ThreadPoolExecutor(
            max_workers=int(self.config.get("MAX_CONCURRENT_JOBS", 2)),
            thread_name_prefix="shorts-job",
        )
        self._futures: Dict[str, Future] = {}
        self._futures_lock = threading.Lock()

    def __enter__(self) -> "JobRunner":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _start(self, job: ProcessingJob) -> None:
        future = self._executor.submit(self.orchestrator.run, job)
        with self._futures_lock:
            self._futures[job.id] = future
        future.add_done_callback(lambda f, job_id=job.id: self._on_done(job_id, f))

    def _on_done(self, job_id: str, future: Future) -> None:
        with self._futures_lock:
            if self._futures.get(job_id) is future:
                del self._futures[job_id]
        error = future.exception()
        if error is not None:
            # The orchestrator records ordinary failures itself; only tracker-level failures land here.
            logger.critical(f"Job {job_id} ended without a recorded terminal state: {error}", exc_info=error)

    def active_jobs(self) -> List[str]:
        """Ids of the jobs this runner is currently executing."""
        with self._futures_lock:
            return list(self._futures)

    def submit(self, payload: Dict[str, Any]) -> str:
        """
        Validates `payload`, records a pending job and starts it in the background.

        Returns:
            str: The new job id.

        Raises:
            JobValidationError: If the request is invalid. No job record is created.
        """
        request = validate_request(payload)
        job = new_job(request)
        self.tracker.create_job(job)
        logger.info(f"📥 Job {job.id} queued ({job.total_segments} segments)")
        self._start(job)
        return job.id

    def retry(self, job_id: str) -> str:
        """
        Runs a finished job again from the `loading` stage with its original input.

        Raises:
            JobNotFoundError: If the job does not exist.
            JobValidationError: If the job has not reached a terminal state yet.
        """
        job = self.tracker.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        if not job.is_terminal:
            raise JobValidationError(f"Job {job_id} is still {job.status.value}; only finished jobs can be retried")

        reset = self.tracker.update_job(
            job_id,
            status=JobStatus.PENDING,
            stage=ProcessingStage.QUEUED,
            progress=0.0,
            current_segment=0,
            message="Job queued",
            error=None,
            output_url=None,
            captions=None,
            completed_at=None,
        )
        logger.info(f"🔁 Retrying job {job_id}")
        self._start(reset)
        return job_id

    def get_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """The polling view of a job, or None if it does not exist."""
        job = self.tracker.get_job(job_id)
        return job.to_status() if job is not None else None

    def wait_for_job(
        self,
        job_id: str,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        on_update: Optional[Callable[[ProcessingJob], None]] = None
    ) -> ProcessingJob:
        """
        Polls the tracker until the job is `complete` or `error`.

        Args:
            job_id (str): Job to follow.
            poll_interval (Optional[float]): Seconds between reads; CONFIG['STATUS_POLL_INTERVAL_SEC'] by default.
            timeout (Optional[float]): Give up after this many seconds.
            on_update (Optional[Callable]): Called with every job snapshot read.

        Returns:
            ProcessingJob: The terminal job.

        Raises:
            JobNotFoundError: If the job disappears.
            TimeoutError: If `timeout` elapses first.
        """
        interval = poll_interval if poll_interval is not None else self.config.get("STATUS_POLL_INTERVAL_SEC", 2.0)
        deadline = time.monotonic() + timeout if timeout is not None else None

        while True:
            job = self.tracker.get_job(job_id)
            if job is None:
                raise JobNotFoundError(f"Job not found: {job_id}")
            if on_update:
                on_update(job)
            if job.is_terminal:
                return job
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"Job {job_id} did not finish within {timeout}s")
            time.sleep(interval)
