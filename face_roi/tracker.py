"""
Frame-to-frame face angle tracking.

Feeds the angle found in one frame back as the prior angle of the next,
so that a tilted face is aligned before inference on a video stream.
Losing the face resets the prior to 0.
"""

import logging
from typing import Optional

import numpy as np

from face_roi.detection import FaceResult
from face_roi.detector import Detector

logger = logging.getLogger(__name__)


class FaceTracker:
    """Carries the face angle across consecutive frames.

    Usage:
        tracker = FaceTracker(detector)
        for frame in frames:
            roi, angle = tracker.update(frame)
    """

    def __init__(self, detector: Detector, initial_angle: float = 0.0) -> None:
        self._detector = detector
        self._angle = float(initial_angle)

    @property
    def angle(self) -> float:
        """Prior angle (radians) that the next update() will use."""
        return self._angle

    def update(self, frame: Optional[np.ndarray]) -> FaceResult:
        """Detect the face in ``frame`` using the current prior angle.

        The returned angle becomes the prior for the next call; a frame
        without a face resets it to 0.
        """
        result = self._detector.execute(frame, self._angle)
        if result.is_empty and self._angle != 0.0:
            logger.debug("Face lost; resetting prior angle.")
        self._angle = result.angle
        return result

    def reset(self) -> None:
        """Forget the tracked angle; the next update() starts from 0."""
        self._angle = 0.0
