"""
Pipeline orchestration for one short.

A job moves through a fixed sequence of stages:

    queued -> loading -> tts -> extracting -> detecting -> cropping -> stitching -> complete

with `error` reachable from any non-terminal stage. Segments are handled one
at a time in their original order inside each stage, and every stage pass
reports progress to the job tracker. Any failure ends the job in `error`;
there is no partial output and no per-segment skip.
"""
import os
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .config import CONFIG
from .Errors import AssetLoadError, JobNotFoundError
from .Models import (
    ProcessingJob, ProcessingStage, STAGE_ORDER, ScriptSegment, Voice,
    CropRegion, FacePoint, SegmentCaptions
)
from .Catalog import get_voice_by_id, get_music_track_by_id
from .SpeechSynthesis import VoiceEngine, write_wav
from .VisionAnalysis import SubjectLocator
from .VideoIO import fetch_asset, probe_video, extract_clip, scratch_workspace, VideoInfo
from .CropProcessing import (
    analyze_frames_for_subject, calculate_optimal_crop, smooth_crop_regions,
    validate_crop_region, apply_crop
)
from .DurationMatching import match_duration
from .Stitching import StitchSegment, stitch_segments
from .Captions import generate_captions, write_srt
from .Storage import LocalArtifactStore
from .JobTracker import JobTracker

logger = logging.getLogger(__name__)

# Share of the overall 0-100 progress owned by each working stage.
STAGE_PROGRESS: Dict[ProcessingStage, Tuple[float, float]] = {
    ProcessingStage.LOADING: (0.0, 5.0),
    ProcessingStage.TTS: (5.0, 30.0),
    ProcessingStage.EXTRACTING: (30.0, 45.0),
    ProcessingStage.DETECTING: (45.0, 60.0),
    ProcessingStage.CROPPING: (60.0, 85.0),
    ProcessingStage.STITCHING: (85.0, 100.0),
}


def stage_progress(stage: ProcessingStage, done: int, total: int) -> float:
    """Global progress after `done` of `total` units of work in `stage`."""
    low, high = STAGE_PROGRESS[stage]
    if total <= 0:
        return low
    return round(low + (high - low) * min(done, total) / total, 1)


@dataclass
class PipelineEngines:
    """
    Process-wide handle on the expensive engines.

    Built once by the host process and passed to every orchestrator run, so
    concurrent jobs share one loaded voice model and one face detector.
    """
    voice_engine: VoiceEngine
    subject_locator: SubjectLocator

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelineEngines":
        return cls(voice_engine=VoiceEngine(config), subject_locator=SubjectLocator(config))

    def warm_up(self, voice: Voice) -> None:
        """
        Loads `voice` and the face detection model.

        Raises:
            AssetLoadError: If either cannot be loaded.
        """
        self.voice_engine.load_voice(voice)
        self.subject_locator.warm_up()


class ProgressReporter:
    """
    Pushes stage progress for one job run to the tracker.

    Progress never decreases and the stage never moves backward within a run.
    A failed write is logged and dropped, except when the job record itself is
    gone, which aborts the run.
    """

    def __init__(self, tracker: JobTracker, job_id: str):
        self.tracker = tracker
        self.job_id = job_id
        self.stage_index = 0
        self.progress = 0.0

    def report(
        self,
        stage: ProcessingStage,
        progress: float,
        message: str,
        current_segment: Optional[int] = None
    ) -> None:
        index = STAGE_ORDER.index(stage)
        if index < self.stage_index:
            raise RuntimeError(f"Stage cannot move backward to '{stage.value}'")
        self.stage_index = index
        self.progress = max(self.progress, progress)

        try:
            self.tracker.update_progress(self.job_id, stage, self.progress, message, current_segment)
        except JobNotFoundError:
            raise
        except Exception as e:
            logger.warning(f"⚠️ Could not record progress for job {self.job_id}: {e}")


@dataclass
class _RunPosition:
    """Where a run currently is, for error messages."""
    stage: ProcessingStage = ProcessingStage.QUEUED
    segment_index: Optional[int] = None
    segment_id: Optional[str] = None
    total_segments: int = 0

    def enter(self, stage: ProcessingStage) -> None:
        self.stage = stage
        self.segment_index = None
        self.segment_id = None

    def at_segment(self, index: int, segment: ScriptSegment) -> None:
        self.segment_index = index
        self.segment_id = segment.id

    def describe_failure(self, error: Exception) -> str:
        where = f"Stage '{self.stage.value}' failed"
        if self.segment_index is not None:
            where += f" on segment {self.segment_index + 1}/{self.total_segments} (id '{self.segment_id}')"
        return f"{where}: {error}"


@dataclass
class _VoiceTrack:
    path: str
    duration: float


class PipelineOrchestrator:
    """
    Runs one job through every stage and records the outcome.

    Args:
        tracker (JobTracker): Receives progress and the terminal state.
        engines (PipelineEngines): Shared voice engine and subject locator.
        config (Optional[Dict[str, Any]]): Pipeline configuration; defaults to CONFIG.
        store (Optional[LocalArtifactStore]): Where finished artifacts go; defaults to
                                              a store rooted at CONFIG['BASE_OUTPUT_DIR'].
    """

    def __init__(
        self,
        tracker: JobTracker,
        engines: PipelineEngines,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[LocalArtifactStore] = None
    ):
        self.tracker = tracker
        self.engines = engines
        self.config = config if config is not None else CONFIG
        self.store = store or LocalArtifactStore(self.config.get("BASE_OUTPUT_DIR", "output"))

    def run(self, job: ProcessingJob) -> ProcessingJob:
        """
        Executes the job and writes exactly one terminal state.

        Returns:
            ProcessingJob: The stored job after the terminal write.

        Raises:
            JobNotFoundError: If the job record disappears mid-run.
        """
        reporter = ProgressReporter(self.tracker, job.id)
        position = _RunPosition(total_segments=len(job.segments))
        scratch_root = self.config.get("SCRATCH_DIR", os.path.join("output", "scratch"))
        os.makedirs(scratch_root, exist_ok=True)

        logger.info(f"--- JOB {job.id}: {len(job.segments)} segments, voice '{job.voice_id}' ---")
        start_time = time.time()
        try:
            with scratch_workspace(scratch_root, job.id) as work_dir:
                voice = self._load(job, reporter, position)
                tracks = self._synthesize(job, voice, work_dir, reporter, position)
                source_info, clips = self._extract(job, work_dir, reporter, position)
                points = self._detect(job, clips, reporter, position)
                matched = self._crop(job, source_info, clips, points, tracks, work_dir, reporter, position)
                output_url, captions = self._stitch(job, matched, tracks, work_dir, reporter, position)
        except JobNotFoundError:
            logger.error(f"❌ Job {job.id} no longer exists in the tracker. Aborting run.")
            raise
        except Exception as e:
            message = position.describe_failure(e)
            logger.error(f"❌ Job {job.id} failed. {message}", exc_info=True)
            self._write_terminal(job.id, lambda: self.tracker.fail_job(job.id, message))
            return self.tracker.get_job(job.id)

        self._write_terminal(job.id, lambda: self.tracker.complete_job(job.id, output_url, captions))
        logger.info(f"🎉 Job {job.id} complete in {time.time() - start_time:.1f}s: {output_url}")
        return self.tracker.get_job(job.id)

    def _write_terminal(self, job_id: str, write: Callable[[], Any]) -> None:
        """Retries the terminal write; it is the one status write that must not be lost."""
        attempts = max(1, int(self.config.get("TERMINAL_WRITE_RETRIES", 3)))
        backoff = float(self.config.get("TERMINAL_WRITE_BACKOFF_SEC", 0.5))
        for attempt in range(1, attempts + 1):
            try:
                write()
                return
            except JobNotFoundError:
                raise
            except Exception as e:
                if attempt == attempts:
                    logger.critical(f"Terminal status write for job {job_id} failed after {attempts} attempts: {e}")
                    raise
                logger.warning(f"⚠️ Terminal status write for job {job_id} failed (attempt {attempt}/{attempts}): {e}")
                time.sleep(backoff * attempt)

    # --- STAGE 1: LOADING ---
    def _load(self, job: ProcessingJob, reporter: ProgressReporter, position: _RunPosition) -> Voice:
        position.enter(ProcessingStage.LOADING)
        logger.info("--- STAGE 1: Loading Voice & Face Detection Models ---")
        reporter.report(ProcessingStage.LOADING, stage_progress(ProcessingStage.LOADING, 0, 1), "Loading models...")

        voice = get_voice_by_id(job.voice_id)
        if voice is None:
            raise AssetLoadError(f"Unknown voice '{job.voice_id}'")
        self.engines.warm_up(voice)

        reporter.report(ProcessingStage.LOADING, stage_progress(ProcessingStage.LOADING, 1, 1), "Models loaded")
        return voice

    # --- STAGE 2: TTS ---
    def _synthesize(
        self,
        job: ProcessingJob,
        voice: Voice,
        work_dir: str,
        reporter: ProgressReporter,
        position: _RunPosition
    ) -> List[_VoiceTrack]:
        stage = ProcessingStage.TTS
        position.enter(stage)
        logger.info("--- STAGE 2: Generating Voiceovers ---")
        audio_dir = os.path.join(work_dir, "audio")
        os.makedirs(audio_dir, exist_ok=True)
        total = len(job.segments)

        tracks: List[_VoiceTrack] = []
        for i, segment in enumerate(job.segments):
            position.at_segment(i, segment)
            reporter.report(stage, stage_progress(stage, i, total), f"Generating voiceover {i + 1}/{total}", i + 1)

            result = self.engines.voice_engine.synthesize(segment.script, voice)
            audio_path = os.path.join(audio_dir, f"{i:03d}_{self.config.get('SEGMENT_AUDIO_FILENAME', 'voice.wav')}")
            write_wav(result, audio_path)
            tracks.append(_VoiceTrack(path=audio_path, duration=result.duration))
            logger.info(f"🗣️ Segment {i + 1}/{total} voiceover: {result.duration:.2f}s")

        reporter.report(stage, stage_progress(stage, total, total), "Voiceovers ready", total)
        return tracks

    # --- STAGE 3: EXTRACTING ---
    def _extract(
        self,
        job: ProcessingJob,
        work_dir: str,
        reporter: ProgressReporter,
        position: _RunPosition
    ) -> Tuple[VideoInfo, List[str]]:
        stage = ProcessingStage.EXTRACTING
        position.enter(stage)
        logger.info("--- STAGE 3: Extracting Source Clips ---")
        total = len(job.segments)
        reporter.report(stage, stage_progress(stage, 0, total), "Fetching source video...")

        source_path = fetch_asset(
            job.video_url,
            os.path.join(work_dir, "source"),
            "source_video.mp4",
            timeout=self.config.get("FETCH_TIMEOUT_SEC", 120.0),
        )
        source_info = probe_video(source_path)
        logger.info(
            f"🎞️ Source video: {source_info.width}x{source_info.height}, "
            f"{source_info.duration:.1f}s @ {source_info.fps:.2f} fps"
        )

        clip_dir = os.path.join(work_dir, "clips")
        os.makedirs(clip_dir, exist_ok=True)
        window = self.config.get("CLIP_WINDOW_SEC", 10.0)

        clips: List[str] = []
        for i, segment in enumerate(job.segments):
            position.at_segment(i, segment)
            reporter.report(stage, stage_progress(stage, i, total), f"Extracting clip {i + 1}/{total}", i + 1)
            clip_path = os.path.join(clip_dir, f"{i:03d}_{self.config.get('SEGMENT_CLIP_FILENAME', 'clip.mp4')}")
            extract_clip(
                source_path,
                segment.source_timestamp,
                window,
                clip_path,
                source_duration=source_info.duration,
                config=self.config,
            )
            clips.append(clip_path)

        reporter.report(stage, stage_progress(stage, total, total), "Clips extracted", total)
        return source_info, clips

    # --- STAGE 4: DETECTING ---
    def _detect(
        self,
        job: ProcessingJob,
        clips: List[str],
        reporter: ProgressReporter,
        position: _RunPosition
    ) -> List[List[Optional[FacePoint]]]:
        stage = ProcessingStage.DETECTING
        position.enter(stage)
        logger.info("--- STAGE 4: Locating Subjects ---")
        total = len(job.segments)
        interval = self.config.get("FRAME_SAMPLE_INTERVAL_SEC", 0.5)

        all_points: List[List[Optional[FacePoint]]] = []
        for i, (segment, clip_path) in enumerate(zip(job.segments, clips)):
            position.at_segment(i, segment)
            reporter.report(stage, stage_progress(stage, i, total), f"Detecting faces {i + 1}/{total}", i + 1)
            points = analyze_frames_for_subject(clip_path, self.engines.subject_locator, interval)
            found = sum(1 for p in points if p is not None)
            if found == 0:
                logger.warning(f"⚠️ No face found in segment {i + 1}/{total}; using the default framing.")
            else:
                logger.info(f"👤 Segment {i + 1}/{total}: face found in {found}/{len(points)} sampled frames")
            all_points.append(points)

        reporter.report(stage, stage_progress(stage, total, total), "Subjects located", total)
        return all_points

    def _crop_regions(self, source_info: VideoInfo, all_points: List[List[Optional[FacePoint]]]) -> List[CropRegion]:
        regions = [
            calculate_optimal_crop(
                points,
                source_info.width,
                source_info.height,
                self.config.get("RECENCY_WEIGHT_BASE", 1.2),
                self.config.get("SUBJECT_VERTICAL_ANCHOR", 1 / 3),
            )
            for points in all_points
        ]
        if self.config.get("ENABLE_CROP_SMOOTHING", True):
            regions = smooth_crop_regions(regions, self.config.get("CROP_SMOOTHING_FACTOR", 0.3))
        return [validate_crop_region(r, source_info.width, source_info.height) for r in regions]

    # --- STAGE 5: CROPPING + DURATION MATCHING ---
    def _crop(
        self,
        job: ProcessingJob,
        source_info: VideoInfo,
        clips: List[str],
        all_points: List[List[Optional[FacePoint]]],
        tracks: List[_VoiceTrack],
        work_dir: str,
        reporter: ProgressReporter,
        position: _RunPosition
    ) -> List[str]:
        stage = ProcessingStage.CROPPING
        position.enter(stage)
        logger.info("--- STAGE 5: Cropping & Matching Durations ---")
        total = len(job.segments)
        regions = self._crop_regions(source_info, all_points)

        matched_dir = os.path.join(work_dir, "matched")
        os.makedirs(matched_dir, exist_ok=True)

        matched: List[str] = []
        for i, segment in enumerate(job.segments):
            position.at_segment(i, segment)
            reporter.report(stage, stage_progress(stage, i, total), f"Cropping clip {i + 1}/{total}", i + 1)
            region = regions[i]
            logger.info(f"✂️ Segment {i + 1}/{total} crop: {region.to_dict()}")

            matched_path = os.path.join(matched_dir, f"{i:03d}_{self.config.get('SEGMENT_MATCHED_FILENAME', 'matched.mp4')}")
            try:
                with scratch_workspace(work_dir, f"crop_{i:03d}") as step_dir:
                    cropped_path = os.path.join(step_dir, self.config.get("SEGMENT_CROPPED_FILENAME", "cropped.mp4"))
                    apply_crop(clips[i], region, cropped_path, self.config)
                    result = match_duration(cropped_path, tracks[i].duration, matched_path, self.config)
            finally:
                # Extracted clips stay on disk from extraction through detection so each
                # stage runs as one pass; each is removed here once cropped, even on failure.
                if os.path.exists(clips[i]):
                    os.remove(clips[i])
            logger.info(
                f"⏱️ Segment {i + 1}/{total}: speed {result.speed:.3f}x, {result.expected_duration:.2f}s "
                f"({result.padded_duration:.2f}s held on the last frame)"
            )
            matched.append(result.path)

        reporter.report(stage, stage_progress(stage, total, total), "Clips cropped", total)
        return matched

    def _resolve_music(self, music_ref: str, work_dir: str) -> str:
        track = get_music_track_by_id(music_ref)
        if track is not None:
            music_ref = os.path.join(self.config.get("MUSIC_DIR", "music"), track.file_path)
        filename = os.path.basename(urlparse(music_ref).path) or "music_track"
        return fetch_asset(
            music_ref,
            os.path.join(work_dir, "music"),
            filename,
            timeout=self.config.get("FETCH_TIMEOUT_SEC", 120.0),
        )

    # --- STAGE 6: STITCHING ---
    def _stitch(
        self,
        job: ProcessingJob,
        matched: List[str],
        tracks: List[_VoiceTrack],
        work_dir: str,
        reporter: ProgressReporter,
        position: _RunPosition
    ) -> Tuple[str, Optional[List[SegmentCaptions]]]:
        stage = ProcessingStage.STITCHING
        position.enter(stage)
        logger.info("--- STAGE 6: Stitching Final Video ---")
        reporter.report(stage, stage_progress(stage, 0, 3), "Stitching final video...")

        music_path = None
        if job.music_url:
            music_path = self._resolve_music(job.music_url, work_dir)
        reporter.report(stage, stage_progress(stage, 1, 3), "Mixing audio and video...")

        final_path = os.path.join(work_dir, self.config.get("FINAL_VIDEO_FILENAME", "final.mp4"))
        stitch_segments(
            [StitchSegment(video_path=v, audio_path=t.path, duration=t.duration) for v, t in zip(matched, tracks)],
            final_path,
            os.path.join(work_dir, "stitch"),
            music_path=music_path,
            music_volume=job.music_volume,
            config=self.config,
        )
        reporter.report(stage, stage_progress(stage, 2, 3), "Saving output...")

        output_url = self.store.put(job.id, final_path, self.config.get("FINAL_VIDEO_FILENAME", "final.mp4"))

        captions: Optional[List[SegmentCaptions]] = None
        if job.include_captions:
            captions = generate_captions(job.segments, [t.duration for t in tracks])
            srt_name = self.config.get("CAPTIONS_FILENAME", "captions.srt")
            srt_path = write_srt(captions, os.path.join(work_dir, srt_name))
            self.store.put(job.id, srt_path, srt_name)

        total_duration = sum(t.duration for t in tracks)
        logger.info(f"✅ Stitched {len(matched)} segments, voice track {total_duration:.1f}s")
        return output_url, captions
