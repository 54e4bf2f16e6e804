#!/usr/bin/env python3
"""
Quick test of the voice engine: one hot voice, single-flight loading and error handling
"""

import threading
import time
import wave

import numpy as np
import pytest

from shorts_pipeline.Catalog import get_voice_by_id
from shorts_pipeline.Errors import SynthesisError
from shorts_pipeline.Models import SynthesisResult
from shorts_pipeline.SpeechSynthesis import VoiceEngine, synthesize_multiple, write_wav

AMY = get_voice_by_id("en_US-amy-medium")
RYAN = get_voice_by_id("en_US-ryan-medium")


def estimate_engine(**overrides):
    config = {"TTS_ENGINE": "estimate", "WORDS_PER_SECOND": 2.5, "ESTIMATE_SAMPLE_RATE": 16000}
    config.update(overrides)
    return VoiceEngine(config)


def test_estimate_engine_duration_follows_word_count():
    result = estimate_engine().synthesize("one two three four five", AMY)
    assert result.sample_rate == 16000
    assert result.samples.dtype == np.int16
    assert len(result.samples) == 32000
    assert result.duration == pytest.approx(2.0)


def test_empty_text_is_rejected():
    engine = estimate_engine()
    with pytest.raises(SynthesisError):
        engine.synthesize("   ", AMY)
    with pytest.raises(SynthesisError):
        engine.synthesize("", AMY)


def test_switching_voice_replaces_loaded_voice():
    engine = estimate_engine()
    assert not engine.is_voice_loaded()
    engine.load_voice(AMY)
    assert engine.current_voice == AMY
    engine.synthesize("hello there", RYAN)
    assert engine.current_voice == RYAN
    engine.unload_voice()
    assert engine.current_voice is None
    assert not engine.is_voice_loaded()


def test_missing_piper_assets_keep_previous_voice(tmp_path):
    engine = estimate_engine()
    engine.load_voice(AMY)

    engine._config["TTS_ENGINE"] = "piper"
    engine._config["VOICES_DIR"] = str(tmp_path)
    with pytest.raises(SynthesisError, match="not found"):
        engine.load_voice(RYAN)
    assert engine.current_voice == AMY
    assert engine.is_voice_loaded()


def test_unknown_engine():
    with pytest.raises(SynthesisError, match="Unknown TTS engine"):
        estimate_engine(TTS_ENGINE="festival").load_voice(AMY)


def test_concurrent_loads_share_one_load(monkeypatch):
    engine = estimate_engine()
    real_load = engine._load_model
    loads = []

    def slow_load(voice):
        time.sleep(0.05)
        loads.append(voice.id)
        return real_load(voice)

    monkeypatch.setattr(engine, "_load_model", slow_load)
    threads = [threading.Thread(target=engine.load_voice, args=(AMY,)) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert loads == ["en_US-amy-medium"]


def test_synthesize_multiple_reports_progress():
    seen = []
    results = synthesize_multiple(
        estimate_engine(), ["one", "two words", "three more words"], AMY,
        on_progress=lambda done, total: seen.append((done, total))
    )
    assert len(results) == 3
    assert seen == [(1, 3), (2, 3), (3, 3)]


def test_write_wav(tmp_path):
    samples = (np.sin(np.linspace(0, 100, 8000)) * 10000).astype(np.int16)
    path = write_wav(SynthesisResult(samples=samples, sample_rate=8000, duration=1.0), str(tmp_path / "voice.wav"))

    with wave.open(path, "rb") as f:
        assert f.getnchannels() == 1
        assert f.getsampwidth() == 2
        assert f.getframerate() == 8000
        assert f.getnframes() == 8000


if __name__ == "__main__":
    print("🧪 Testing voice engine...")
    test_estimate_engine_duration_follows_word_count()
    test_switching_voice_replaces_loaded_voice()
    test_unknown_engine()
    print("✅ Voice engine checks passed")
