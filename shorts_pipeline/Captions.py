"""
Word-level caption timing.

Without forced alignment, each word's share of a segment's voiceover is
estimated from its length, with extra weight for the pause that follows
sentence and clause punctuation. The words of a segment tile its duration
exactly; segments are laid end to end in order.
"""
import os
import logging
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

import srt

from .Models import CaptionWord, SegmentCaptions, ScriptSegment

logger = logging.getLogger(__name__)

SENTENCE_END_PAUSE_WEIGHT = 3.0
CLAUSE_PAUSE_WEIGHT = 1.5
DEFAULT_SEGMENT_DURATION = 3.0


def word_weight(word: str) -> float:
    weight = float(len(word))
    if word.endswith(('.', '!', '?')):
        weight += SENTENCE_END_PAUSE_WEIGHT
    elif word.endswith((',', ';', ':')):
        weight += CLAUSE_PAUSE_WEIGHT
    return weight


def estimate_word_timings(text: str, start_time: float, duration: float) -> List[CaptionWord]:
    """
    Spreads `duration` seconds over the words of `text`.

    Args:
        text (str): Segment script.
        start_time (float): Where the segment starts on the output timeline.
        duration (float): Voiceover duration of the segment.

    Returns:
        List[CaptionWord]: Consecutive, non-overlapping windows. The last word ends
                           exactly at `start_time + duration`.
    """
    words = text.split()
    if not words:
        return []

    weights = [word_weight(w) for w in words]
    time_per_weight = duration / sum(weights)

    timings: List[CaptionWord] = []
    current = start_time
    for word, weight in zip(words, weights):
        end = current + weight * time_per_weight
        timings.append(CaptionWord(text=word, start_time=current, end_time=end))
        current = end

    # Absorb floating point drift in the last word.
    timings[-1].end_time = start_time + duration
    return timings


def generate_captions(segments: Sequence[ScriptSegment], durations: Sequence[Optional[float]]) -> List[SegmentCaptions]:
    """
    Builds captions for every segment on one continuous timeline.

    Args:
        segments (Sequence[ScriptSegment]): Segments in output order.
        durations (Sequence[Optional[float]]): Voiceover duration per segment. A missing
                                               or non-positive entry counts as 3 seconds.

    Returns:
        List[SegmentCaptions]: One entry per segment, offset by the durations before it.
    """
    captions: List[SegmentCaptions] = []
    cumulative = 0.0
    for i, segment in enumerate(segments):
        duration = durations[i] if i < len(durations) else None
        if not duration or duration <= 0:
            duration = DEFAULT_SEGMENT_DURATION
        captions.append(SegmentCaptions(
            segment_id=segment.id,
            words=estimate_word_timings(segment.script, cumulative, duration),
        ))
        cumulative += duration
    logger.debug(f"Generated captions for {len(captions)} segments covering {cumulative:.2f}s.")
    return captions


def _locate(captions: Sequence[SegmentCaptions], current_time: float) -> Optional[Tuple[int, int]]:
    for s, segment in enumerate(captions):
        for w, word in enumerate(segment.words):
            if word.start_time <= current_time < word.end_time:
                return s, w
    return None


def get_current_word(captions: Sequence[SegmentCaptions], current_time: float) -> Optional[CaptionWord]:
    """The word being spoken at `current_time`, if any."""
    found = _locate(captions, current_time)
    if found is None:
        return None
    s, w = found
    return captions[s].words[w]


def get_visible_caption(
    captions: Sequence[SegmentCaptions],
    current_time: float,
    window_size: int = 6
) -> Optional[Tuple[List[CaptionWord], int]]:
    """
    The run of words to display at `current_time` and the index of the active one in it.

    The window spans segment boundaries and starts `window_size // 2` words before
    the active word where possible.
    """
    found = _locate(captions, current_time)
    if found is None:
        return None

    s, w = found
    all_words = [word for segment in captions for word in segment.words]
    flat_index = sum(len(segment.words) for segment in captions[:s]) + w

    start = max(0, flat_index - window_size // 2)
    end = min(len(all_words), start + window_size)
    return all_words[start:end], flat_index - start


def format_caption_text(words: Sequence[CaptionWord], current_index: int) -> str:
    """Joins words with the active one wrapped in <mark> tags."""
    return ' '.join(
        f"<mark>{word.text}</mark>" if i == current_index else word.text
        for i, word in enumerate(words)
    )


def captions_to_srt(captions: Sequence[SegmentCaptions], words_per_cue: int = 6) -> str:
    """
    Renders captions as SubRip text, grouping up to `words_per_cue` words per cue.

    Cues never span two segments.
    """
    subtitles: List[srt.Subtitle] = []
    for segment in captions:
        for i in range(0, len(segment.words), words_per_cue):
            chunk = segment.words[i:i + words_per_cue]
            subtitles.append(srt.Subtitle(
                index=len(subtitles) + 1,
                start=timedelta(seconds=chunk[0].start_time),
                end=timedelta(seconds=chunk[-1].end_time),
                content=' '.join(word.text for word in chunk),
            ))
    return srt.compose(subtitles)


def write_srt(captions: Sequence[SegmentCaptions], output_path: str) -> str:
    """Writes `captions_to_srt` output to `output_path` and returns the path."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(captions_to_srt(captions))
    logger.info(f"📝 Captions saved to {output_path}")
    return output_path
