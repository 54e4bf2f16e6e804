#!/usr/bin/env python3
"""
Quick test of the built-in voice and music catalogs
"""

from shorts_pipeline.Catalog import (
    VOICES, MUSIC_TRACKS, get_voice_by_id, get_voices_by_language, get_voices_by_gender,
    get_default_voice, get_music_track_by_id, get_music_tracks_by_category
)
from shorts_pipeline.config import CONFIG


def test_default_voice_is_in_catalog():
    assert get_default_voice().id == CONFIG["DEFAULT_VOICE_ID"]
    assert get_voice_by_id(CONFIG["DEFAULT_VOICE_ID"]) is get_default_voice()
    assert get_voice_by_id("nope") is None


def test_voice_filters():
    assert [v.id for v in get_voices_by_language("uk")] == ["en_GB-alan-medium"]
    assert len(get_voices_by_language("english")) == len(VOICES)
    assert {v.id for v in get_voices_by_gender("male")} == {"en_US-ryan-medium", "en_GB-alan-medium"}
    for voice in VOICES:
        assert voice.model_path.endswith(".onnx")
        assert voice.config_path == voice.model_path + ".json"


def test_music_catalog():
    assert len(MUSIC_TRACKS) == 12
    for category in ("upbeat", "calm", "dramatic", "mystery"):
        assert len(get_music_tracks_by_category(category)) == 3
    assert len(get_music_tracks_by_category("all")) == 12
    assert get_music_track_by_id("dramatic-2").name == "Tension Build"
    assert get_music_track_by_id("polka-9") is None


if __name__ == "__main__":
    print("🧪 Testing catalogs...")
    test_default_voice_is_in_catalog()
    test_voice_filters()
    test_music_catalog()
    print("✅ Catalog checks passed")
