"""
Data model shared by every stage of the shorts pipeline.

Plain dataclasses with `to_dict` / `from_dict` helpers so that jobs can be
persisted as JSON by the job tracker and returned verbatim to polling clients.
"""
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class ProcessingStage(str, Enum):
    QUEUED = "queued"
    LOADING = "loading"
    TTS = "tts"
    EXTRACTING = "extracting"
    DETECTING = "detecting"
    CROPPING = "cropping"
    STITCHING = "stitching"
    COMPLETE = "complete"
    ERROR = "error"


# Forward order of the state machine; ERROR is reachable from any non-terminal stage.
STAGE_ORDER: List[ProcessingStage] = [
    ProcessingStage.QUEUED,
    ProcessingStage.LOADING,
    ProcessingStage.TTS,
    ProcessingStage.EXTRACTING,
    ProcessingStage.DETECTING,
    ProcessingStage.CROPPING,
    ProcessingStage.STITCHING,
    ProcessingStage.COMPLETE,
]

TERMINAL_STATUSES = (JobStatus.COMPLETE, JobStatus.ERROR)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ScriptSegment:
    """One narrated beat of the output short."""
    id: str
    script: str
    source_timestamp: float
    output_time: float = 0.0
    source_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScriptSegment":
        return cls(
            id=str(data["id"]),
            script=data["script"],
            source_timestamp=float(data["source_timestamp"]),
            output_time=float(data.get("output_time", 0.0)),
            source_description=data.get("source_description"),
        )


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    language: str
    gender: str  # 'male' | 'female' | 'neutral'
    description: str
    model_path: str
    config_path: str


@dataclass(frozen=True)
class MusicTrack:
    id: str
    name: str
    category: str  # 'upbeat' | 'calm' | 'dramatic' | 'mystery'
    duration: float
    file_path: str


@dataclass(frozen=True)
class FacePoint:
    """Center of a located subject in source-pixel coordinates."""
    x: float
    y: float
    confidence: float = 1.0


@dataclass(frozen=True)
class CropRegion:
    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class CaptionWord:
    text: str
    start_time: float
    end_time: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SegmentCaptions:
    segment_id: str
    words: List[CaptionWord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"segment_id": self.segment_id, "words": [w.to_dict() for w in self.words]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SegmentCaptions":
        return cls(
            segment_id=data["segment_id"],
            words=[CaptionWord(**w) for w in data.get("words", [])],
        )


@dataclass
class SynthesisResult:
    """Mono 16-bit PCM voiceover for one segment."""
    samples: np.ndarray
    sample_rate: int
    duration: float


@dataclass
class CreateJobRequest:
    video_url: str
    segments: List[ScriptSegment]
    voice_id: str
    music_url: Optional[str] = None
    music_volume: float = 0.3
    include_captions: bool = False


@dataclass
class ProcessingJob:
    id: str
    video_url: str
    segments: List[ScriptSegment]
    voice_id: str
    music_url: Optional[str] = None
    music_volume: float = 0.3
    include_captions: bool = False

    status: JobStatus = JobStatus.PENDING
    stage: ProcessingStage = ProcessingStage.QUEUED
    progress: float = 0.0
    current_segment: int = 0
    total_segments: int = 0
    message: str = "Job queued"
    error: Optional[str] = None

    output_url: Optional[str] = None
    captions: Optional[List[SegmentCaptions]] = None

    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    completed_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["stage"] = self.stage.value
        data["segments"] = [s.to_dict() for s in self.segments]
        data["captions"] = [c.to_dict() for c in self.captions] if self.captions is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingJob":
        fields = dict(data)
        fields["status"] = JobStatus(fields["status"])
        fields["stage"] = ProcessingStage(fields["stage"])
        fields["segments"] = [ScriptSegment.from_dict(s) for s in fields["segments"]]
        if fields.get("captions") is not None:
            fields["captions"] = [SegmentCaptions.from_dict(c) for c in fields["captions"]]
        return cls(**fields)

    def to_status(self) -> Dict[str, Any]:
        """Projection returned to polling clients."""
        return {
            "id": self.id,
            "status": self.status.value,
            "stage": self.stage.value,
            "progress": self.progress,
            "current_segment": self.current_segment,
            "total_segments": self.total_segments,
            "message": self.message,
            "error": self.error,
            "output_url": self.output_url,
            "captions": [c.to_dict() for c in self.captions] if self.captions is not None else None,
        }
