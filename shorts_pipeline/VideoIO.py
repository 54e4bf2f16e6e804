import yt_dlp
import ffmpeg
import cv2
import httpx
import numpy as np
import os
import shutil
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional, Dict, Any, Iterator
from urllib.parse import urlparse

from .Errors import FetchError, MediaOperationError, OutOfRangeError

logger = logging.getLogger(__name__)

_YOUTUBE_HOSTS = ("youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be")


@dataclass
class VideoInfo:
    width: int
    height: int
    duration: float
    fps: float
    has_audio: bool


def ffmpeg_stderr(e: ffmpeg.Error) -> str:
    """Decodes the stderr captured on an `ffmpeg.Error` for logging."""
    if not e.stderr:
        return "None"
    return e.stderr.decode('utf8', errors='ignore').strip().replace('\n', '\n     ')


@contextmanager
def scratch_workspace(root_dir: str, name: str) -> Iterator[str]:
    """
    Creates a scratch directory and removes it when the block exits.

    The directory is deleted on both the success and the failure path, so
    intermediate artifacts never outlive the step that created them.
    """
    path = os.path.join(root_dir, name)
    os.makedirs(path, exist_ok=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug(f"Scratch directory removed: {path}")


def is_youtube_url(reference: str) -> bool:
    return urlparse(reference).netloc.lower() in _YOUTUBE_HOSTS


# Best mp4 video + m4a audio, merged into one mp4; single video only
_YTDLP_OPTIONS: Dict[str, Any] = {
    'format': 'bestvideo[ext=mp4]+bestaudio[ext=m4a]/mp4',
    'merge_output_format': 'mp4',
    'noplaylist': True,
    'quiet': True,
}


def download_youtube_video(youtube_url: str, output_dir: str, filename: str = "source_video.mp4") -> str:
    """
    Fetches a YouTube source video with yt-dlp into `output_dir/filename`.

    An existing file at that path is reused.

    Raises:
        FetchError: If yt-dlp cannot retrieve the video.
    """
    target = os.path.join(output_dir, filename)
    if os.path.exists(target):
        logger.info(f"☑️ Source video already present at '{target}', reusing it.")
        return target

    os.makedirs(output_dir, exist_ok=True)
    logger.info(f"⬇️ Downloading source video {youtube_url} ...")
    try:
        with yt_dlp.YoutubeDL({**_YTDLP_OPTIONS, 'outtmpl': target}) as downloader:
            downloader.download([youtube_url])
    except yt_dlp.utils.DownloadError as e:
        raise FetchError(f"Could not download {youtube_url}: {e}") from e
    if not os.path.exists(target):
        raise FetchError(f"yt-dlp finished but '{target}' was not written.")

    logger.info(f"✅ Source video saved to {target}")
    return target


def fetch_asset(reference: str, dest_dir: str, filename: str, timeout: float = 120.0) -> str:
    """
    Resolves an asset reference to a local file path.

    Local paths and file:// URLs are used in place. YouTube links are fetched
    with yt-dlp; any other http(s) URL is streamed to `dest_dir/filename`.

    Args:
        reference (str): Path or URL of the asset.
        dest_dir (str): Directory that receives downloaded files.
        filename (str): Name for the downloaded file.
        timeout (float): Network timeout in seconds.

    Returns:
        str: Path to a readable local copy of the asset.

    Raises:
        FetchError: If the asset is missing or cannot be downloaded.
    """
    if not reference:
        raise FetchError("Empty asset reference.")

    parsed = urlparse(reference)
    if parsed.scheme == "file":
        reference = parsed.path
        parsed = urlparse(reference)

    if parsed.scheme not in ("http", "https"):
        if not os.path.isfile(reference):
            raise FetchError(f"Asset not found: {reference}")
        logger.debug(f"Using local asset: {reference}")
        return reference

    if is_youtube_url(reference):
        return download_youtube_video(reference, dest_dir, filename)

    os.makedirs(dest_dir, exist_ok=True)
    output_path = os.path.join(dest_dir, filename)
    logger.info(f"⬇️ Fetching asset: {reference}")
    try:
        with httpx.stream("GET", reference, timeout=timeout, follow_redirects=True) as response:
            response.raise_for_status()
            with open(output_path, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
    except (httpx.HTTPError, OSError) as e:
        if os.path.exists(output_path):
            os.remove(output_path)
        raise FetchError(f"Failed to download {reference}: {e}") from e

    logger.info(f"✅ Asset saved to {output_path} ({os.path.getsize(output_path)} bytes)")
    return output_path


def probe_video(video_path: str) -> VideoInfo:
    """
    Reads the resolution, duration, frame rate and audio presence of a video file.

    Raises:
        MediaOperationError: If ffprobe fails or the file has no video stream.
    """
    try:
        probe = ffmpeg.probe(video_path)
    except ffmpeg.Error as e:
        raise MediaOperationError(f"Could not probe '{video_path}': {ffmpeg_stderr(e)}") from e

    video_stream = next((s for s in probe['streams'] if s['codec_type'] == 'video'), None)
    if video_stream is None:
        raise MediaOperationError(f"No video stream found in {video_path}")

    duration = float(probe['format'].get('duration') or video_stream.get('duration') or 0.0)
    fps = 0.0
    rate = video_stream.get('avg_frame_rate') or video_stream.get('r_frame_rate') or '0/1'
    num, _, den = rate.partition('/')
    if den and float(den) != 0:
        fps = float(num) / float(den)

    return VideoInfo(
        width=int(video_stream['width']),
        height=int(video_stream['height']),
        duration=duration,
        fps=fps,
        has_audio=any(s['codec_type'] == 'audio' for s in probe['streams']),
    )


def get_media_duration(media_path: str) -> float:
    """Duration in seconds of any audio or video file, via ffprobe."""
    try:
        probe = ffmpeg.probe(media_path)
    except ffmpeg.Error as e:
        raise MediaOperationError(f"Could not probe '{media_path}': {ffmpeg_stderr(e)}") from e
    return float(probe['format']['duration'])


def extract_clip(
    input_video_path: str,
    start_time: float,
    duration: float,
    output_clip_path: str,
    source_duration: Optional[float] = None,
    config: Optional[Dict[str, Any]] = None
) -> str:
    """
    Cuts a fixed-length silent window out of the source video.

    The window length does not depend on the segment's voiceover; the duration
    matcher reconciles the two later. A window that runs past the end of the
    source is shortened by ffmpeg, but a window that starts at or beyond the end
    is rejected.

    Args:
        input_video_path (str): Path to the source video.
        start_time (float): Seconds into the source where the window starts.
        duration (float): Window length in seconds.
        output_clip_path (str): Where the H.264 clip (no audio) is written.
        source_duration (Optional[float]): Known source length; probed when omitted.
        config (Optional[Dict[str, Any]]): Reads 'FFMPEG_PRESET' and 'FFMPEG_CRF'.

    Returns:
        str: `output_clip_path`.

    Raises:
        ValueError: If `start_time` is negative or `duration` is not positive.
        OutOfRangeError: If the window lies entirely beyond the source's end.
        MediaOperationError: If ffmpeg fails or produces an empty file.
    """
    if start_time < 0:
        raise ValueError(f"Start time must be >= 0, got {start_time}")
    if duration <= 0:
        raise ValueError(f"Clip duration must be positive, got {duration}")
    config = config or {}

    if source_duration is None:
        source_duration = probe_video(input_video_path).duration
    if start_time >= source_duration:
        raise OutOfRangeError(
            f"Requested window at {start_time:.2f}s lies beyond the end of the source video ({source_duration:.2f}s)."
        )

    logger.info(f"-> Extracting {duration:.1f}s clip at {start_time:.2f}s from '{os.path.basename(input_video_path)}'...")
    try:
        ffmpeg.input(input_video_path, ss=start_time, t=duration)\
            .output(
                output_clip_path,
                an=None, # Clips are silent; voiceover is added at stitch time
                vcodec='libx264',
                preset=config.get("FFMPEG_PRESET", "fast"),
                crf=config.get("FFMPEG_CRF", 23),
                pix_fmt='yuv420p'
            )\
            .overwrite_output()\
            .run(capture_stdout=True, capture_stderr=True)
    except ffmpeg.Error as e:
        stderr_info = ffmpeg_stderr(e)
        logger.error(f"❌ FFMPEG ERROR during clip extraction: {stderr_info}")
        raise MediaOperationError(f"Clip extraction at {start_time:.2f}s failed: {stderr_info}") from e

    if not os.path.exists(output_clip_path) or os.path.getsize(output_clip_path) == 0:
        raise MediaOperationError(f"Clip file '{output_clip_path}' was not created or is empty.")

    logger.debug(f"Clip extracted to '{os.path.basename(output_clip_path)}'.")
    return output_clip_path


def sample_frames(clip_path: str, interval_sec: float = 0.5) -> List[np.ndarray]:
    """
    Samples BGR frames from a clip at a fixed time interval.

    Args:
        clip_path (str): Path to the video clip.
        interval_sec (float): Seconds between sampled frames.

    Returns:
        List[np.ndarray]: Frames in playback order, starting with the first frame.

    Raises:
        MediaOperationError: If OpenCV cannot open the clip.
    """
    cap = cv2.VideoCapture(clip_path)
    if not cap.isOpened():
        raise MediaOperationError(f"Could not open video file {clip_path} with OpenCV.")

    frames: List[np.ndarray] = []
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        step = max(1, int(round(fps * interval_sec)))
        frame_idx = 0
        while True:
            # grab() skips decoding of frames we do not keep
            if not cap.grab():
                break
            if frame_idx % step == 0:
                ok, frame = cap.retrieve()
                if ok:
                    frames.append(frame)
            frame_idx += 1
    finally:
        cap.release()

    logger.debug(f"Sampled {len(frames)} frames every {interval_sec}s from {os.path.basename(clip_path)}.")
    return frames
