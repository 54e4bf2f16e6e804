# main.py
"""
Command-line entry point for the shorts pipeline.

Workflow:
1.  Parses command-line arguments (source video, script file, voice, music).
2.  Sets up a dedicated output directory and logging for the current run.
3.  Builds the shared engines (voice model, face detector) and the job tracker.
4.  Submits the job, which runs in the background.
5.  Polls the job status every couple of seconds until it completes or fails.
"""

import os
import sys
import time
import json
import argparse
import logging
from typing import Dict, Any, List, Optional

import shorts_pipeline
from shorts_pipeline import setup_logging, log_run_summary


def load_script(script_path: str) -> List[Dict[str, Any]]:
    """
    Reads script segments from a JSON file.

    The file holds either a list of segments or an object with a "segments" list.
    """
    with open(script_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("segments", [])
    return data


def run_job(
    video: str,
    script_path: str,
    voice_id: str,
    music: Optional[str],
    music_volume: float,
    include_captions: bool,
    output_dir: str,
    run_name: str,
    config_overrides: Dict[str, Any]
) -> int:
    """
    Runs one job end to end and returns the process exit code.

    Args:
        video: Path or URL of the source video.
        script_path: JSON file with the script segments.
        voice_id: Catalog id of the narration voice.
        music: Optional catalog id, path or URL of the background music.
        music_volume: Background music gain in [0, 1].
        include_captions: Also produce word-level captions (+ an SRT file).
        output_dir: Root directory for outputs and scratch files.
        run_name: Name of the log directory for this run.
        config_overrides: CONFIG keys set from the command line.

    Returns:
        int: 0 when the job completes, 1 otherwise.
    """
    # --- STAGE 0: SETUP AND VALIDATION ---
    CONFIG: Dict[str, Any] = dict(shorts_pipeline.CONFIG)
    CONFIG.update(config_overrides)
    CONFIG["BASE_OUTPUT_DIR"] = output_dir
    CONFIG["SCRATCH_DIR"] = os.path.join(output_dir, "_scratch")

    run_dir: str = os.path.join(output_dir, "runs", run_name)
    os.makedirs(run_dir, exist_ok=True)

    setup_logging(run_dir)
    logger = logging.getLogger('shorts_pipeline.main')

    logger.info("--- SHORTS PIPELINE ---")
    logger.info(f"Source video: {video}")
    logger.info(f"Script:       {script_path}")
    logger.info(f"Voice:        {voice_id}")
    logger.info(f"Music:        {music or 'none'} (volume {music_volume})")
    logger.info(f"Captions:     {include_captions}")
    logger.info(f"TTS engine:   {CONFIG['TTS_ENGINE']}, job store: {CONFIG['JOB_STORE']}")
    logger.info("-----------------------")

    try:
        segments = load_script(script_path)
    except FileNotFoundError:
        logger.critical(f"Script file not found at {script_path}.")
        return 1
    except json.JSONDecodeError as e:
        logger.critical(f"Error parsing script file {script_path}: {e}")
        return 1

    payload: Dict[str, Any] = {
        "video_url": video,
        "segments": segments,
        "voice_id": voice_id,
        "music_url": music,
        "music_volume": music_volume,
        "include_captions": include_captions,
    }
    log_run_summary(run_dir, CONFIG, payload)

    # --- STAGE 1: ENGINES AND JOB TRACKER ---
    tracker = shorts_pipeline.create_job_tracker(CONFIG)
    engines = shorts_pipeline.PipelineEngines.from_config(CONFIG)
    store = shorts_pipeline.LocalArtifactStore(output_dir)

    with shorts_pipeline.JobRunner(tracker, engines, CONFIG, store) as runner:
        # --- STAGE 2: SUBMIT ---
        try:
            job_id = runner.submit(payload)
        except shorts_pipeline.JobValidationError as e:
            logger.critical(f"Job rejected: {e}")
            return 1
        logger.info(f"Job submitted: {job_id}")

        # --- STAGE 3: POLL UNTIL DONE ---
        last_seen: Dict[str, Any] = {}

        def print_progress(job: shorts_pipeline.ProcessingJob) -> None:
            key = {"stage": job.stage.value, "progress": job.progress, "message": job.message}
            if key != last_seen:
                last_seen.update(key)
                logger.info(
                    f"[{job.progress:5.1f}%] {job.stage.value:<10} "
                    f"({job.current_segment}/{job.total_segments}) {job.message}"
                )

        job = runner.wait_for_job(job_id, CONFIG["STATUS_POLL_INTERVAL_SEC"], on_update=print_progress)

    if job.status == shorts_pipeline.JobStatus.COMPLETE:
        logger.info("🎉🎉🎉 PIPELINE COMPLETE! 🎉🎉🎉")
        logger.info(f"Final video available at: {job.output_url}")
        return 0

    logger.error(f"❌ Job failed: {job.error}")
    return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Turn a long-form video and a timestamped script into a narrated 9:16 short.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        "--video",
        type=str,
        required=True,
        help="Path or URL of the source video (YouTube links are downloaded with yt-dlp)."
    )
    parser.add_argument(
        "--script",
        type=str,
        required=True,
        help="JSON file with the script segments: a list of\n"
             "{\"id\", \"script\", \"source_timestamp\", \"output_time\"} objects,\n"
             "or an object with a \"segments\" list."
    )
    parser.add_argument(
        "--voice",
        type=str,
        default=shorts_pipeline.CONFIG["DEFAULT_VOICE_ID"],
        choices=[v.id for v in shorts_pipeline.VOICES],
        help="Narration voice. Defaults to the catalog's default voice."
    )
    parser.add_argument(
        "--music",
        type=str,
        help="Background music: a catalog track id, a file path or a URL."
    )
    parser.add_argument(
        "--music-volume",
        type=float,
        default=shorts_pipeline.CONFIG["DEFAULT_MUSIC_VOLUME"],
        help="Background music gain between 0 and 1. Defaults to 0.3."
    )
    parser.add_argument(
        "--captions",
        action="store_true",
        help="Generate word-level captions and save them as an SRT file next to the video."
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=shorts_pipeline.CONFIG["BASE_OUTPUT_DIR"],
        help="Root directory for outputs, logs and scratch files."
    )
    parser.add_argument(
        "--run-name",
        type=str,
        default=f"run_{int(time.time())}",
        help="Name for this run's log directory. Defaults to a timestamp."
    )
    parser.add_argument(
        "--job-store",
        type=str,
        choices=["memory", "redis"],
        default=shorts_pipeline.CONFIG["JOB_STORE"],
        help="Where job status is kept."
    )
    parser.add_argument(
        "--redis-url",
        type=str,
        default=shorts_pipeline.CONFIG["REDIS_URL"],
        help="Redis connection URL, used with --job-store redis."
    )
    parser.add_argument(
        "--tts-engine",
        type=str,
        choices=["piper", "estimate"],
        default=shorts_pipeline.CONFIG["TTS_ENGINE"],
        help="'piper' synthesizes speech; 'estimate' writes silent placeholders of the estimated length."
    )
    args = parser.parse_args()

    start_time = time.time()
    exit_code = run_job(
        video=args.video,
        script_path=args.script,
        voice_id=args.voice,
        music=args.music,
        music_volume=args.music_volume,
        include_captions=args.captions,
        output_dir=args.output_dir,
        run_name=args.run_name,
        config_overrides={
            "JOB_STORE": args.job_store,
            "REDIS_URL": args.redis_url,
            "TTS_ENGINE": args.tts_engine,
        }
    )
    end_time = time.time()

    logging.getLogger('shorts_pipeline').info(f"Total execution time: {end_time - start_time:.2f} seconds.")
    sys.exit(exit_code)
