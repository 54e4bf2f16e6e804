# shorts_pipeline/config.py
import os

from dotenv import load_dotenv

# Load overrides from a local .env file before reading the environment
load_dotenv()

# --- Static Configuration ---
# All pipeline settings are stored in this dictionary.
CONFIG = {
    # --- Input & Output ---
    "BASE_OUTPUT_DIR": os.getenv("SHORTS_OUTPUT_DIR", "output"),
    "SCRATCH_DIR": os.getenv("SHORTS_SCRATCH_DIR", os.path.join("output", "_scratch")),
    "VOICES_DIR": os.getenv("SHORTS_VOICES_DIR", "voices"),
    "MUSIC_DIR": os.getenv("SHORTS_MUSIC_DIR", "music"),

    # --- Speech Synthesis ---
    "TTS_ENGINE": os.getenv("SHORTS_TTS_ENGINE", "piper"),  # 'piper' or 'estimate'
    "DEFAULT_VOICE_ID": "en_US-lessac-medium",
    "WORDS_PER_SECOND": 2.5,  # ~150 wpm speaking rate used for estimates
    "ESTIMATE_SAMPLE_RATE": 22050,

    # --- Clip Extraction & Subject Location ---
    "CLIP_WINDOW_SEC": 10.0,
    "FRAME_SAMPLE_INTERVAL_SEC": 0.5,
    "FACE_DETECTION_THRESHOLD": 0.5,
    "FETCH_TIMEOUT_SEC": 120.0,

    # --- Smart Crop ---
    "RECENCY_WEIGHT_BASE": 1.2,
    "SUBJECT_VERTICAL_ANCHOR": 1.0 / 3.0,  # subject sits on the upper third of the crop
    "ENABLE_CROP_SMOOTHING": True,
    "CROP_SMOOTHING_FACTOR": 0.3,

    # --- Duration Matching ---
    "MIN_SPEED_FACTOR": 0.5,
    "MAX_SPEED_FACTOR": 2.0,

    # --- Output Rendering ---
    "OUTPUT_WIDTH": 720,
    "OUTPUT_HEIGHT": 1280,
    "OUTPUT_FPS": 30,
    "FFMPEG_PRESET": "fast",
    "FFMPEG_CRF": 23,
    "AUDIO_BITRATE": "192k",
    "DEFAULT_MUSIC_VOLUME": 0.3,

    # --- Job Tracking ---
    "JOB_STORE": os.getenv("SHORTS_JOB_STORE", "memory"),  # 'memory' or 'redis'
    "REDIS_URL": os.getenv("SHORTS_REDIS_URL", "redis://localhost:6379/0"),
    "JOB_TTL_SEC": 86400,
    "STATUS_POLL_INTERVAL_SEC": 2.0,
    "TERMINAL_WRITE_RETRIES": 3,
    "TERMINAL_WRITE_BACKOFF_SEC": 0.5,
    "MAX_CONCURRENT_JOBS": 2,

    # --- Filenames (can be left as default) ---
    "SEGMENT_AUDIO_FILENAME": "voice.wav",
    "SEGMENT_CLIP_FILENAME": "clip.mp4",
    "SEGMENT_CROPPED_FILENAME": "cropped.mp4",
    "SEGMENT_MATCHED_FILENAME": "matched.mp4",
    "FINAL_VIDEO_FILENAME": "final.mp4",
    "CAPTIONS_FILENAME": "captions.srt",
}
