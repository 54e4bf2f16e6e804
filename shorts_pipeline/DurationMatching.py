import os
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

import ffmpeg

from .Errors import MediaOperationError
from .VideoIO import get_media_duration, ffmpeg_stderr

logger = logging.getLogger(__name__)


@dataclass
class DurationMatchResult:
    path: str
    speed: float
    expected_duration: float
    padded_duration: float = 0.0


def compute_speed_factor(
    current_duration: float,
    target_duration: float,
    min_speed: float = 0.5,
    max_speed: float = 2.0
) -> float:
    """
    Playback speed that turns `current_duration` into `target_duration`, clamped.

    A value above 1 speeds the clip up, below 1 slows it down. Outside the
    clamp the output simply ends up longer or shorter than the target.

    Raises:
        ValueError: If either duration is not positive.
    """
    if current_duration <= 0 or target_duration <= 0:
        raise ValueError(
            f"Durations must be positive (current={current_duration}, target={target_duration})"
        )
    return max(min_speed, min(max_speed, current_duration / target_duration))


def match_duration(
    input_clip_path: str,
    target_duration: float,
    output_clip_path: str,
    config: Dict[str, Any],
    current_duration: Optional[float] = None
) -> DurationMatchResult:
    """
    Linearly re-times a silent clip so it plays for `target_duration` seconds.

    The timeline is scaled with `setpts`; no frame interpolation is done. When the
    natural ratio falls outside the allowed speed range, a clip that is still too
    long is cut at the target and one that is still too short holds its last frame
    until the target is reached. The output always plays for `target_duration`, so
    it stays aligned with its voiceover after concatenation.

    Args:
        input_clip_path (str): Cropped, silent clip.
        target_duration (float): Voiceover duration to match, in seconds.
        output_clip_path (str): Destination path.
        config (Dict[str, Any]): Reads 'MIN_SPEED_FACTOR', 'MAX_SPEED_FACTOR',
                                 'OUTPUT_FPS', 'FFMPEG_PRESET' and 'FFMPEG_CRF'.
        current_duration (Optional[float]): Clip length; probed when omitted.

    Returns:
        DurationMatchResult: Output path, applied speed, output duration and the
                             seconds of held last frame appended.

    Raises:
        ValueError: If a duration is not positive.
        MediaOperationError: If probing or ffmpeg fails.
    """
    if current_duration is None:
        current_duration = get_media_duration(input_clip_path)

    speed = compute_speed_factor(
        current_duration,
        target_duration,
        config.get("MIN_SPEED_FACTOR", 0.5),
        config.get("MAX_SPEED_FACTOR", 2.0),
    )
    stretched = current_duration / speed
    padding = target_duration - stretched
    # Sub-frame rounding gaps are absorbed by the fps filter
    if padding < 0.001:
        padding = 0.0
    pts_multiplier = 1 / speed

    if speed != current_duration / target_duration:
        logger.warning(
            f"⚠️ Speed {current_duration / target_duration:.3f}x is outside the allowed range; "
            f"clamped to {speed:.3f}x."
        )
    if padding > 0:
        logger.warning(f"⚠️ Clip covers {stretched:.2f}s of {target_duration:.2f}s; holding the last frame for {padding:.2f}s.")
    logger.info(f"⏱️ Matching duration: {current_duration:.2f}s -> {target_duration:.2f}s (speed {speed:.3f}x)")

    v = ffmpeg.input(input_clip_path).video
    v = v.filter('setpts', f'{pts_multiplier:.4f}*PTS')
    if padding > 0:
        v = v.filter('tpad', stop_mode='clone', stop_duration=f'{padding:.3f}')
    v = v.filter('fps', fps=config.get("OUTPUT_FPS", 30))
    try:
        (ffmpeg.output(
            v,
            output_clip_path,
            t=f"{target_duration:.3f}",
            vcodec='libx264',
            preset=config.get("FFMPEG_PRESET", "fast"),
            crf=config.get("FFMPEG_CRF", 23),
            pix_fmt='yuv420p',
            an=None
        )
        .overwrite_output()
        .run(capture_stdout=True, capture_stderr=True))
    except ffmpeg.Error as e:
        stderr_info = ffmpeg_stderr(e)
        logger.error(f"❌ FFMPEG ERROR during time stretch: {stderr_info}")
        raise MediaOperationError(f"Time stretch of '{os.path.basename(input_clip_path)}' failed: {stderr_info}") from e

    return DurationMatchResult(
        path=output_clip_path,
        speed=speed,
        expected_duration=target_duration,
        padded_duration=padding,
    )
