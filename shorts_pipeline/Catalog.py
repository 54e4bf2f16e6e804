"""
Built-in voice and background-music catalogs.

Voice assets are Piper ONNX models; their locators are relative to
CONFIG["VOICES_DIR"]. Music locators are relative to CONFIG["MUSIC_DIR"].
"""
from typing import List, Optional

from .Models import Voice, MusicTrack

VOICES: List[Voice] = [
    Voice(
        id="en_US-lessac-medium",
        name="Lessac",
        language="English (US)",
        gender="neutral",
        description="Clear, professional narrator voice. Great for educational content.",
        model_path="en_US-lessac-medium.onnx",
        config_path="en_US-lessac-medium.onnx.json",
    ),
    Voice(
        id="en_US-amy-medium",
        name="Amy",
        language="English (US)",
        gender="female",
        description="Friendly female voice with natural, warm tone.",
        model_path="en_US-amy-medium.onnx",
        config_path="en_US-amy-medium.onnx.json",
    ),
    Voice(
        id="en_US-ryan-medium",
        name="Ryan",
        language="English (US)",
        gender="male",
        description="Deep, authoritative male voice. Good for documentary style.",
        model_path="en_US-ryan-medium.onnx",
        config_path="en_US-ryan-medium.onnx.json",
    ),
    Voice(
        id="en_GB-alan-medium",
        name="Alan",
        language="English (UK)",
        gender="male",
        description="British accent with clear articulation. Formal and engaging.",
        model_path="en_GB-alan-medium.onnx",
        config_path="en_GB-alan-medium.onnx.json",
    ),
]

MUSIC_TRACKS: List[MusicTrack] = [
    MusicTrack("upbeat-1", "Energetic Rise", "upbeat", 120, "upbeat-1.wav"),
    MusicTrack("upbeat-2", "Positive Vibes", "upbeat", 90, "upbeat-2.wav"),
    MusicTrack("upbeat-3", "Happy Days", "upbeat", 105, "upbeat-3.wav"),
    MusicTrack("calm-1", "Peaceful Journey", "calm", 150, "calm-1.wav"),
    MusicTrack("calm-2", "Gentle Breeze", "calm", 120, "calm-2.wav"),
    MusicTrack("calm-3", "Soft Focus", "calm", 135, "calm-3.wav"),
    MusicTrack("dramatic-1", "Epic Discovery", "dramatic", 90, "dramatic-1.wav"),
    MusicTrack("dramatic-2", "Tension Build", "dramatic", 105, "dramatic-2.wav"),
    MusicTrack("dramatic-3", "Cinematic Rise", "dramatic", 120, "dramatic-3.wav"),
    MusicTrack("mystery-1", "Curious Mind", "mystery", 110, "mystery-1.wav"),
    MusicTrack("mystery-2", "Hidden Secrets", "mystery", 95, "mystery-2.wav"),
    MusicTrack("mystery-3", "Strange Tales", "mystery", 100, "mystery-3.wav"),
]


def get_voice_by_id(voice_id: str) -> Optional[Voice]:
    return next((v for v in VOICES if v.id == voice_id), None)


def get_voices_by_language(language: str) -> List[Voice]:
    return [v for v in VOICES if language.lower() in v.language.lower()]


def get_voices_by_gender(gender: str) -> List[Voice]:
    return [v for v in VOICES if v.gender == gender]


def get_default_voice() -> Voice:
    return VOICES[0]


def get_music_track_by_id(track_id: str) -> Optional[MusicTrack]:
    return next((t for t in MUSIC_TRACKS if t.id == track_id), None)


def get_music_tracks_by_category(category: str) -> List[MusicTrack]:
    if category == "all":
        return list(MUSIC_TRACKS)
    return [t for t in MUSIC_TRACKS if t.category == category]
