import os
import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Sequence

import ffmpeg

from .Errors import MediaOperationError
from .VideoIO import ffmpeg_stderr

logger = logging.getLogger(__name__)


@dataclass
class StitchSegment:
    """A duration-matched clip and the voiceover that plays over it."""
    video_path: str
    audio_path: str
    duration: float


def _remove_if_exists(*paths: str) -> None:
    for path in paths:
        if path and os.path.exists(path):
            os.remove(path)


def _run(stream, step: str) -> None:
    try:
        stream.overwrite_output().run(capture_stdout=True, capture_stderr=True)
    except ffmpeg.Error as e:
        stderr_info = ffmpeg_stderr(e)
        logger.error(f"❌ FFMPEG ERROR during {step}: {stderr_info}")
        raise MediaOperationError(f"Stitching failed while {step}: {stderr_info}") from e


def _concat_list_entry(path: str) -> str:
    # The concat demuxer reads single-quoted paths; embedded quotes are closed, escaped and reopened.
    escaped = os.path.abspath(path).replace("'", "'\\''")
    return f"file '{escaped}'"


def concat_videos(video_paths: Sequence[str], output_path: str, work_dir: str) -> str:
    """
    Joins clips that share one encoding profile with the concat demuxer (stream copy).
    """
    list_path = os.path.join(work_dir, "concat.txt")
    with open(list_path, "w", encoding="utf-8") as f:
        f.write("\n".join(_concat_list_entry(p) for p in video_paths))
    try:
        _run(
            ffmpeg.input(list_path, format='concat', safe=0).output(output_path, c='copy'),
            "concatenating video clips"
        )
    finally:
        _remove_if_exists(list_path)
    return output_path


def build_audio_track(
    audio_paths: Sequence[str],
    output_path: str,
    music_path: Optional[str] = None,
    music_volume: float = 0.3
) -> str:
    """
    Concatenates voiceovers in order and optionally mixes in background music.

    Music is scaled by `music_volume` and summed with the voice track. The mix
    lasts exactly as long as the voice track: shorter music simply ends early
    and longer music is cut.
    """
    voice_inputs = [ffmpeg.input(p).audio for p in audio_paths]
    voice = ffmpeg.concat(*voice_inputs, v=0, a=1)

    if music_path and music_volume > 0:
        music = ffmpeg.input(music_path).audio.filter('volume', music_volume)
        mixed = ffmpeg.filter([voice, music], 'amix', inputs=2, duration='first', normalize=0)
        logger.info(f"🎵 Mixing background music at gain {music_volume}")
    else:
        mixed = voice

    _run(ffmpeg.output(mixed, output_path, acodec='pcm_s16le'), "building the audio track")
    return output_path


def add_audio_to_video(
    video_path: str,
    audio_path: str,
    output_path: str,
    config: Optional[Dict[str, Any]] = None
) -> str:
    """
    Muxes an audio track onto a video without re-encoding the video.

    The result is trimmed to the shorter of the two streams.
    """
    config = config or {}
    input_video_stream = ffmpeg.input(video_path)
    input_audio_stream = ffmpeg.input(audio_path)
    _run(
        ffmpeg.output(
            input_video_stream.video,
            input_audio_stream.audio,
            output_path,
            vcodec='copy',
            acodec='aac',
            audio_bitrate=config.get("AUDIO_BITRATE", "192k"),
            shortest=None,
            movflags='+faststart'
        ),
        "muxing audio and video"
    )
    return output_path


def stitch_segments(
    segments: List[StitchSegment],
    output_path: str,
    work_dir: str,
    music_path: Optional[str] = None,
    music_volume: float = 0.3,
    config: Optional[Dict[str, Any]] = None
) -> str:
    """
    Produces the final short from ordered (clip, voiceover) pairs.

    Video clips are concatenated in list order, voiceovers likewise, optional
    music is mixed under the voice, and the two tracks are muxed.

    Args:
        segments (List[StitchSegment]): Ordered pairs; all clips must share one encoding profile.
        output_path (str): Path of the final video.
        work_dir (str): Directory for intermediate files; they are removed before returning.
        music_path (Optional[str]): Local background music file.
        music_volume (float): Music gain in [0, 1].
        config (Optional[Dict[str, Any]]): Reads 'AUDIO_BITRATE'.

    Returns:
        str: `output_path`.

    Raises:
        ValueError: If `segments` is empty or `music_volume` is outside [0, 1].
        MediaOperationError: If any ffmpeg step fails. No output file is left behind.
    """
    if not segments:
        raise ValueError("Cannot stitch an empty segment list.")
    if not 0.0 <= music_volume <= 1.0:
        raise ValueError(f"Music volume must be within [0, 1], got {music_volume}")

    os.makedirs(work_dir, exist_ok=True)
    video_only_path = os.path.join(work_dir, "video_only.mp4")
    audio_mixed_path = os.path.join(work_dir, "audio_mixed.wav")
    total_duration = sum(s.duration for s in segments)

    logger.info(f"🧵 Stitching {len(segments)} segments (~{total_duration:.1f}s)...")
    try:
        concat_videos([s.video_path for s in segments], video_only_path, work_dir)
        build_audio_track([s.audio_path for s in segments], audio_mixed_path, music_path, music_volume)
        add_audio_to_video(video_only_path, audio_mixed_path, output_path, config)
    except Exception:
        _remove_if_exists(output_path)
        raise
    finally:
        _remove_if_exists(video_only_path, audio_mixed_path)

    if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
        _remove_if_exists(output_path)
        raise MediaOperationError(f"Final video '{output_path}' was not created or is empty.")

    logger.info(f"✅ Final video saved: {output_path}")
    return output_path
