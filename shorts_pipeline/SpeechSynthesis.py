"""
Speech synthesis for segment voiceovers.

A single `VoiceEngine` per process owns the loaded voice model. Only one voice
is "hot" at a time: requesting a different voice replaces the loaded state
once the new model has loaded successfully, and concurrent load requests wait
on the one already in flight instead of loading twice.
"""
import os
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
from pydub import AudioSegment

from .Errors import SynthesisError
from .Models import SynthesisResult, Voice
from .utils import estimate_tts_duration

logger = logging.getLogger(__name__)


class _PiperModel:
    """Adapter around a loaded `piper.PiperVoice`."""

    def __init__(self, piper_voice: Any):
        self._voice = piper_voice

    def synthesize(self, text: str) -> Tuple[np.ndarray, int]:
        chunks = list(self._voice.synthesize(text))
        if not chunks:
            return np.zeros(0, dtype=np.int16), self._voice.config.sample_rate
        sample_rate = chunks[0].sample_rate
        samples = np.concatenate([chunk.audio_int16_array for chunk in chunks])
        return samples.astype(np.int16), sample_rate


class _EstimateModel:
    """
    Silent placeholder voice whose length follows the spoken-duration estimate.

    Used for dry runs and tests where no voice assets are installed.
    """

    def __init__(self, words_per_second: float, sample_rate: int):
        self.words_per_second = words_per_second
        self.sample_rate = sample_rate

    def synthesize(self, text: str) -> Tuple[np.ndarray, int]:
        duration = estimate_tts_duration(text, self.words_per_second)
        return np.zeros(int(duration * self.sample_rate), dtype=np.int16), self.sample_rate


class VoiceEngine:
    """
    Process-wide speech engine holding at most one loaded voice.

    Args:
        config (Dict[str, Any]): Pipeline configuration. Reads 'TTS_ENGINE',
                                 'VOICES_DIR', 'WORDS_PER_SECOND' and
                                 'ESTIMATE_SAMPLE_RATE'.
    """

    def __init__(self, config: Dict[str, Any]):
        self._config = config
        # Re-entrant so synthesize() can call load_voice() while holding it.
        self._lock = threading.RLock()
        self._voice: Optional[Voice] = None
        self._model: Optional[Any] = None

    @property
    def current_voice(self) -> Optional[Voice]:
        return self._voice

    def is_voice_loaded(self) -> bool:
        return self._model is not None

    def load_voice(self, voice: Voice) -> None:
        """
        Loads `voice`, replacing any other loaded voice.

        Raises:
            SynthesisError: If the voice assets are missing or the engine fails to load them.
        """
        with self._lock:
            if self._voice is not None and self._voice.id == voice.id and self._model is not None:
                logger.debug(f"Voice '{voice.id}' already loaded.")
                return

            logger.info(f"🗣️ Loading voice: {voice.name} ({voice.id})")
            model = self._load_model(voice)
            # Swap only after a successful load so a failure leaves the previous voice intact.
            self._model = model
            self._voice = voice
            logger.info(f"✅ Voice loaded: {voice.name}")

    def unload_voice(self) -> None:
        with self._lock:
            self._model = None
            self._voice = None

    def _load_model(self, voice: Voice) -> Any:
        engine = self._config.get("TTS_ENGINE", "piper")

        if engine == "estimate":
            return _EstimateModel(
                self._config.get("WORDS_PER_SECOND", 2.5),
                self._config.get("ESTIMATE_SAMPLE_RATE", 22050),
            )

        if engine != "piper":
            raise SynthesisError(f"Unknown TTS engine '{engine}'. Expected 'piper' or 'estimate'.")

        voices_dir = self._config.get("VOICES_DIR", "voices")
        model_path = os.path.join(voices_dir, voice.model_path)
        config_path = os.path.join(voices_dir, voice.config_path)
        for path in (model_path, config_path):
            if not os.path.exists(path):
                raise SynthesisError(f"Voice asset for '{voice.id}' not found: {path}")

        try:
            from piper import PiperVoice
            piper_voice = PiperVoice.load(model_path, config_path=config_path)
        except Exception as e:
            raise SynthesisError(f"Failed to load voice '{voice.id}': {e}") from e
        return _PiperModel(piper_voice)

    def synthesize(self, text: str, voice: Voice) -> SynthesisResult:
        """
        Synthesizes `text` with `voice`.

        Args:
            text (str): Voiceover text. Must contain at least one non-space character.
            voice (Voice): The voice profile to speak with. Loaded on demand.

        Returns:
            SynthesisResult: Mono int16 samples, their sample rate and duration in seconds.

        Raises:
            SynthesisError: If the voice cannot be loaded or the engine rejects the text.
        """
        if not text or not text.strip():
            raise SynthesisError("Cannot synthesize empty text.")

        with self._lock:
            self.load_voice(voice)
            try:
                samples, sample_rate = self._model.synthesize(text)
            except Exception as e:
                raise SynthesisError(f"Voice '{voice.id}' rejected the input: {e}") from e

        if samples.size == 0:
            raise SynthesisError(f"Voice '{voice.id}' produced no audio for: '{text[:50]}'")

        duration = len(samples) / float(sample_rate)
        logger.debug(f"Synthesized {duration:.2f}s of audio for: '{text[:50]}...'")
        return SynthesisResult(samples=samples, sample_rate=sample_rate, duration=duration)


def synthesize_multiple(
    engine: VoiceEngine,
    texts: List[str],
    voice: Voice,
    on_progress: Optional[Callable[[int, int], None]] = None
) -> List[SynthesisResult]:
    """Synthesizes each text in order, reporting (done, total) after each one."""
    engine.load_voice(voice)
    results: List[SynthesisResult] = []
    for i, text in enumerate(texts):
        results.append(engine.synthesize(text, voice))
        if on_progress:
            on_progress(i + 1, len(texts))
    return results


def write_wav(result: SynthesisResult, output_path: str) -> str:
    """
    Writes a synthesis result as a 16-bit mono WAV file.

    Returns:
        str: `output_path`, for chaining.
    """
    segment = AudioSegment(
        data=result.samples.astype(np.int16).tobytes(),
        sample_width=2,
        frame_rate=result.sample_rate,
        channels=1,
    )
    with open(output_path, "wb") as f:
        segment.export(f, format="wav")
    return output_path
