"""
Exception taxonomy for the shorts pipeline.

Media and engine functions raise these instead of returning sentinel values;
the orchestrator is the one place that turns them into a terminal job error.
"""


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class JobValidationError(PipelineError):
    """A job request is missing required fields or carries malformed values."""


class AssetLoadError(PipelineError):
    """A shared engine (voice model, face detector) failed to initialize."""


class SynthesisError(AssetLoadError):
    """The speech engine could not load a voice or rejected the input text."""


class FetchError(PipelineError):
    """A source video or music asset could not be retrieved."""


class MediaOperationError(PipelineError):
    """An ffmpeg/OpenCV operation (extract, crop, stretch, stitch) failed."""


class OutOfRangeError(MediaOperationError):
    """The requested extraction window lies entirely beyond the source's end."""


class JobNotFoundError(PipelineError):
    """The job tracker has no record for the given job id."""
