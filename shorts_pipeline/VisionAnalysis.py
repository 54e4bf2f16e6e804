import threading
import logging
import numpy as np
from typing import List, Dict, Any, Optional, Callable, Sequence

from .Errors import AssetLoadError
from .Models import FacePoint

logger = logging.getLogger(__name__)

# A detector takes one BGR frame and returns RetinaFace-style output:
# {"face_1": {"score": float, "facial_area": [x1, y1, x2, y2], "landmarks": {...}}, ...}
Detector = Callable[[np.ndarray], Any]


def face_center(facial_area: Sequence[float]) -> tuple:
    """Center (x, y) of an [x1, y1, x2, y2] bounding box."""
    x1, y1, x2, y2 = facial_area
    return (x1 + x2) / 2.0, (y1 + y2) / 2.0


def pick_primary_face(detections: Any) -> Optional[FacePoint]:
    """
    Chooses the highest-confidence face from a RetinaFace result.

    RetinaFace returns a tuple (not a dict) when nothing is found, so anything
    that is not a non-empty dict means "no subject".
    """
    if not isinstance(detections, dict) or not detections:
        return None

    best: Optional[Dict[str, Any]] = None
    for _fkey, finfo in detections.items():
        if best is None or finfo['score'] > best['score']:
            best = finfo

    x, y = face_center(best['facial_area'])
    return FacePoint(x=float(x), y=float(y), confidence=float(best['score']))


class SubjectLocator:
    """
    Locates the primary on-screen subject (a face) in individual frames.

    The RetinaFace model is expensive to build, so one locator is shared by every
    job in the process. The model is built on first use; concurrent first calls
    wait for a single build instead of racing.

    Args:
        config (Dict[str, Any]): Reads 'FACE_DETECTION_THRESHOLD'.
        detector (Optional[Detector]): Replaces RetinaFace entirely. Used by tests
                                       and by callers with their own model.
    """

    def __init__(self, config: Dict[str, Any], detector: Optional[Detector] = None):
        self.threshold: float = config.get("FACE_DETECTION_THRESHOLD", 0.5)
        self._detector = detector
        self._retinaface: Any = None
        self._model: Any = None
        self._lock = threading.Lock()

    def is_ready(self) -> bool:
        return self._detector is not None or self._model is not None

    def warm_up(self) -> None:
        """
        Builds the detection model if it is not built yet.

        Raises:
            AssetLoadError: If the model or its weights cannot be loaded.
        """
        if self.is_ready():
            return
        with self._lock:
            if self._model is not None:
                return
            logger.info("Initializing face detection model (RetinaFace)...")
            try:
                from retinaface import RetinaFace
                model = RetinaFace.build_model()
            except Exception as e:
                raise AssetLoadError(f"Could not load the face detection model: {e}") from e
            self._retinaface = RetinaFace
            self._model = model
            logger.info("✅ Face detector model initialized successfully.")

    def _detect(self, frame: np.ndarray) -> Any:
        if self._detector is not None:
            return self._detector(frame)
        self.warm_up()
        return self._retinaface.detect_faces(frame, threshold=self.threshold, model=self._model)

    def locate(self, frame: np.ndarray) -> Optional[FacePoint]:
        """
        Returns the center of the most confident face in `frame`, or None.

        A detector failure on one frame is logged and treated as "no subject",
        so a single bad frame never fails the whole segment.

        Raises:
            AssetLoadError: If the model has to be built and cannot be.
        """
        try:
            detections = self._detect(frame)
        except AssetLoadError:
            raise
        except Exception as e:
            logger.error(f"Error in face detection on frame: {e}", exc_info=True)
            return None
        return pick_primary_face(detections)

    def locate_all(self, frames: List[np.ndarray]) -> List[Optional[FacePoint]]:
        """Runs `locate` on each frame, preserving order."""
        points = [self.locate(frame) for frame in frames]
        found = sum(1 for p in points if p is not None)
        logger.debug(f"Subject found in {found}/{len(frames)} sampled frames.")
        return points
