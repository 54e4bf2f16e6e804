"""
Smart 9:16 cropping.

A crop rectangle is computed once per clip from the subject points located in
its sampled frames and applied identically to every frame: one static
rectangle per clip, no per-frame tracking. An optional pass smooths the
rectangles of consecutive segments so framing does not jump between cuts.
"""
import os
import logging
from typing import List, Dict, Any, Optional, Sequence, Tuple

import ffmpeg

from .Errors import MediaOperationError
from .Models import CropRegion, FacePoint
from .VideoIO import sample_frames, ffmpeg_stderr
from .VisionAnalysis import SubjectLocator

logger = logging.getLogger(__name__)

TARGET_ASPECT: float = 9 / 16


def crop_dimensions(video_width: int, video_height: int, aspect: float = TARGET_ASPECT) -> Tuple[int, int]:
    """
    Largest (width, height) with the target aspect that fits inside the frame.

    Whichever source dimension is oversized relative to the aspect is shrunk;
    the frame is never padded.
    """
    if video_width <= 0 or video_height <= 0:
        raise ValueError(f"Invalid frame size {video_width}x{video_height}")

    if video_width / video_height > aspect:
        # Wider than 9:16, crop horizontally
        crop_h = video_height
        crop_w = min(video_width, int(round(video_height * aspect)))
    else:
        # Taller than 9:16, crop vertically
        crop_w = video_width
        crop_h = min(video_height, int(round(video_width / aspect)))
    return crop_w, crop_h


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def place_crop(
    target_x: float,
    target_y: float,
    video_width: int,
    video_height: int,
    vertical_anchor: float = 1 / 3
) -> CropRegion:
    """Positions a 9:16 crop so the target sits at its horizontal center and `vertical_anchor` of its height."""
    crop_w, crop_h = crop_dimensions(video_width, video_height)
    x = int(round(target_x - crop_w / 2))
    y = int(round(target_y - crop_h * vertical_anchor))
    return CropRegion(
        x=_clamp(x, 0, video_width - crop_w),
        y=_clamp(y, 0, video_height - crop_h),
        width=crop_w,
        height=crop_h,
    )


def weighted_subject_center(
    points: Sequence[Optional[FacePoint]],
    recency_base: float = 1.2
) -> Optional[Tuple[float, float]]:
    """
    Confidence and recency weighted centroid of the located points.

    Point i of the n valid points gets weight `confidence * base**(i/n)`, so
    later frames count more than early transient detections.

    Returns:
        Optional[Tuple[float, float]]: (x, y), or None when no point is valid.
    """
    valid = [p for p in points if p is not None]
    if not valid:
        return None

    n = len(valid)
    weights = [p.confidence * recency_base ** (i / n) for i, p in enumerate(valid)]
    total = sum(weights)
    if total <= 0:
        # Zero-confidence detections still carry position; fall back to recency alone.
        weights = [recency_base ** (i / n) for i in range(n)]
        total = sum(weights)

    cx = sum(p.x * w for p, w in zip(valid, weights)) / total
    cy = sum(p.y * w for p, w in zip(valid, weights)) / total
    return cx, cy


def calculate_optimal_crop(
    points: Sequence[Optional[FacePoint]],
    video_width: int,
    video_height: int,
    recency_base: float = 1.2,
    vertical_anchor: float = 1 / 3
) -> CropRegion:
    """
    Computes the static 9:16 crop for one clip.

    Args:
        points (Sequence[Optional[FacePoint]]): Located subject per sampled frame,
                                                None where nothing was found.
        video_width (int): Source frame width in pixels.
        video_height (int): Source frame height in pixels.
        recency_base (float): Base of the geometric recency weight.
        vertical_anchor (float): Fraction of the crop height where the subject sits.

    Returns:
        CropRegion: A rectangle fully inside the frame. With no points, it targets
                    the horizontal center and upper third of the frame.
    """
    center = weighted_subject_center(points, recency_base)
    if center is None:
        target_x, target_y = video_width / 2, video_height / 3
    else:
        target_x, target_y = center
    return place_crop(target_x, target_y, video_width, video_height, vertical_anchor)


def calculate_crop_region(
    video_width: int,
    video_height: int,
    center: Optional[Tuple[float, float]] = None
) -> CropRegion:
    """
    Simple crop around a single point, or a true center crop when no point is given.
    """
    if center is None:
        crop_w, crop_h = crop_dimensions(video_width, video_height)
        return CropRegion(
            x=int(round((video_width - crop_w) / 2)),
            y=int(round((video_height - crop_h) / 2)),
            width=crop_w,
            height=crop_h,
        )
    return place_crop(center[0], center[1], video_width, video_height)


def get_center_crop(video_width: int, video_height: int) -> CropRegion:
    """Crop used when no subject information exists at all."""
    return calculate_optimal_crop([], video_width, video_height)


def validate_crop_region(region: CropRegion, video_width: int, video_height: int) -> CropRegion:
    """Clamps a region so it lies inside a `video_width` x `video_height` frame."""
    width = min(region.width, video_width)
    height = min(region.height, video_height)
    return CropRegion(
        x=_clamp(region.x, 0, video_width - width),
        y=_clamp(region.y, 0, video_height - height),
        width=width,
        height=height,
    )


def smooth_crop_regions(regions: List[CropRegion], smoothing_factor: float = 0.3) -> List[CropRegion]:
    """
    Eases crop positions between consecutive segments.

    Each region moves from the previous (already smoothed) region toward its own
    position by `1 - smoothing_factor`. Dimensions are kept as computed.
    """
    if len(regions) <= 1:
        return list(regions)

    smoothed: List[CropRegion] = [regions[0]]
    for curr in regions[1:]:
        prev = smoothed[-1]
        smoothed.append(CropRegion(
            x=int(round(prev.x + (curr.x - prev.x) * (1 - smoothing_factor))),
            y=int(round(prev.y + (curr.y - prev.y) * (1 - smoothing_factor))),
            width=curr.width,
            height=curr.height,
        ))
    return smoothed


def analyze_frames_for_subject(
    clip_path: str,
    locator: SubjectLocator,
    interval_sec: float = 0.5
) -> List[Optional[FacePoint]]:
    """
    Samples frames from a clip and locates the subject in each.

    Returns:
        List[Optional[FacePoint]]: One entry per sampled frame, in order.
    """
    frames = sample_frames(clip_path, interval_sec)
    try:
        return locator.locate_all(frames)
    finally:
        # Decoded frames are large; drop them before the next segment is sampled.
        frames.clear()


def apply_crop(
    input_clip_path: str,
    region: CropRegion,
    output_clip_path: str,
    config: Dict[str, Any]
) -> str:
    """
    Crops a clip to `region` and scales it to the output resolution.

    Every clip leaving this step shares one encoding profile (size, fps, SAR,
    pixel format) so the stitcher can concatenate them without re-encoding.

    Args:
        input_clip_path (str): Silent source clip.
        region (CropRegion): Static crop rectangle in source pixels.
        output_clip_path (str): Destination for the cropped clip.
        config (Dict[str, Any]): Reads 'OUTPUT_WIDTH', 'OUTPUT_HEIGHT', 'OUTPUT_FPS',
                                 'FFMPEG_PRESET' and 'FFMPEG_CRF'.

    Returns:
        str: `output_clip_path`.

    Raises:
        MediaOperationError: If ffmpeg fails.
    """
    out_w = config.get("OUTPUT_WIDTH", 720)
    out_h = config.get("OUTPUT_HEIGHT", 1280)
    logger.info(
        f"✂️ Cropping '{os.path.basename(input_clip_path)}' to "
        f"{region.width}x{region.height}+{region.x}+{region.y} -> {out_w}x{out_h}"
    )

    v = ffmpeg.input(input_clip_path).video
    v = v.filter('crop', region.width, region.height, region.x, region.y) \
         .filter('scale', out_w, out_h) \
         .filter('setsar', 1) \
         .filter('fps', fps=config.get("OUTPUT_FPS", 30))
    try:
        (ffmpeg.output(
            v,
            output_clip_path,
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
        logger.error(f"❌ FFMPEG ERROR during crop: {stderr_info}")
        raise MediaOperationError(f"Cropping '{os.path.basename(input_clip_path)}' failed: {stderr_info}") from e

    logger.debug(f"Cropped clip saved: {output_clip_path}")
    return output_clip_path
