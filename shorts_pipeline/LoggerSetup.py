import logging
import os
import sys

PACKAGE_LOGGER = 'shorts_pipeline'
LOG_FILENAME = 'pipeline.log'


def _console_handler(verbose: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    return handler


def _file_handler(log_path: str) -> logging.Handler:
    # Stage messages carry emoji markers
    handler = logging.FileHandler(log_path, encoding='utf-8')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    return handler


def setup_logging(run_output_dir: str, verbose: bool = False):
    """
    Routes every `shorts_pipeline.*` logger to the console and to a per-run log file.

    The console shows progress at INFO (DEBUG when `verbose` is set); the file
    `pipeline.log` in `run_output_dir` keeps the full DEBUG trace with timestamps
    and module names. Calling it again for a new run replaces the previous handlers.

    Args:
        run_output_dir (str): Directory of the current run; created if missing.
        verbose (bool): Mirror DEBUG messages to the console as well.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    logger.addHandler(_console_handler(verbose))

    # One INFO line per asset request from httpx is noise next to the stage logs
    logging.getLogger("httpx").setLevel(logging.WARNING)

    log_path = os.path.join(run_output_dir, LOG_FILENAME)
    try:
        os.makedirs(run_output_dir, exist_ok=True)
        logger.addHandler(_file_handler(log_path))
    except OSError as e:
        logger.error(f"Could not open log file {log_path}: {e}. Logging to console only.")
        return
    logger.info(f"Logging initialized. Full debug log: {log_path}")
