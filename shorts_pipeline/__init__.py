# shorts_pipeline/__init__.py

"""
The 'shorts_pipeline' package: long-form video + timestamped script -> one 9:16 short.

Key classes and functions from the submodules are re-exported here so callers
can simply `import shorts_pipeline` and reach, for example,
`shorts_pipeline.JobRunner` or `shorts_pipeline.calculate_optimal_crop`
without knowing the internal file layout.

The `__all__` variable explicitly defines which names are part of this public API.
"""

# --- Configuration, Logging and Errors ---
from .config import CONFIG
from .LoggerSetup import setup_logging
from .Errors import (
    PipelineError,
    JobValidationError,
    AssetLoadError,
    SynthesisError,
    FetchError,
    MediaOperationError,
    OutOfRangeError,
    JobNotFoundError
)

# --- Data Model and Catalogs ---
from .Models import (
    JobStatus,
    ProcessingStage,
    ScriptSegment,
    Voice,
    MusicTrack,
    FacePoint,
    CropRegion,
    CaptionWord,
    SegmentCaptions,
    SynthesisResult,
    CreateJobRequest,
    ProcessingJob
)
from .Catalog import (
    VOICES,
    MUSIC_TRACKS,
    get_voice_by_id,
    get_default_voice,
    get_music_track_by_id,
    get_music_tracks_by_category
)

# --- Utility Functions ---
from .utils import timestamp_to_seconds, format_timestamp, format_duration, estimate_tts_duration, log_run_summary

# --- Speech Synthesis ---
from .SpeechSynthesis import VoiceEngine, write_wav

# --- I/O Module ---
# Asset fetching, probing, clip extraction and frame sampling.
from .VideoIO import VideoInfo, fetch_asset, probe_video, extract_clip, sample_frames, scratch_workspace

# --- Vision Analysis Module ---
from .VisionAnalysis import SubjectLocator

# --- Cropping, Duration Matching, Captions and Stitching ---
from .CropProcessing import (
    calculate_optimal_crop,
    calculate_crop_region,
    get_center_crop,
    validate_crop_region,
    smooth_crop_regions,
    apply_crop
)
from .DurationMatching import DurationMatchResult, compute_speed_factor, match_duration
from .Captions import estimate_word_timings, generate_captions, captions_to_srt
from .Stitching import StitchSegment, stitch_segments

# --- Jobs ---
from .Storage import LocalArtifactStore
from .JobTracker import JobTracker, InMemoryJobTracker, RedisJobTracker, create_job_tracker
from .Orchestrator import PipelineEngines, PipelineOrchestrator
from .Submission import JobRunner, validate_request


# Define the public API of the 'shorts_pipeline' package.
__all__ = [
    # Config / logging / errors
    "CONFIG",
    "setup_logging",
    "PipelineError",
    "JobValidationError",
    "AssetLoadError",
    "SynthesisError",
    "FetchError",
    "MediaOperationError",
    "OutOfRangeError",
    "JobNotFoundError",
    # Models
    "JobStatus",
    "ProcessingStage",
    "ScriptSegment",
    "Voice",
    "MusicTrack",
    "FacePoint",
    "CropRegion",
    "CaptionWord",
    "SegmentCaptions",
    "SynthesisResult",
    "CreateJobRequest",
    "ProcessingJob",
    # Catalogs
    "VOICES",
    "MUSIC_TRACKS",
    "get_voice_by_id",
    "get_default_voice",
    "get_music_track_by_id",
    "get_music_tracks_by_category",
    # Utils
    "timestamp_to_seconds",
    "format_timestamp",
    "format_duration",
    "estimate_tts_duration",
    "log_run_summary",
    # Speech
    "VoiceEngine",
    "write_wav",
    # I/O
    "VideoInfo",
    "fetch_asset",
    "probe_video",
    "extract_clip",
    "sample_frames",
    "scratch_workspace",
    # Vision
    "SubjectLocator",
    # Editing
    "calculate_optimal_crop",
    "calculate_crop_region",
    "get_center_crop",
    "validate_crop_region",
    "smooth_crop_regions",
    "apply_crop",
    "DurationMatchResult",
    "compute_speed_factor",
    "match_duration",
    "estimate_word_timings",
    "generate_captions",
    "captions_to_srt",
    "StitchSegment",
    "stitch_segments",
    # Jobs
    "LocalArtifactStore",
    "JobTracker",
    "InMemoryJobTracker",
    "RedisJobTracker",
    "create_job_tracker",
    "PipelineEngines",
    "PipelineOrchestrator",
    "JobRunner",
    "validate_request",
]
