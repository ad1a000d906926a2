"""
Detection data transfer objects.

This module defines the value types that flow out of the detector:

    - Detection: top-1 face box, score and keypoints in image space.
    - FaceResult: the (roi, angle) pair returned by Detector.execute().

Both are frozen and carry no behavior beyond data access. An empty
``roi`` tuple is the "no detection" sentinel.
"""

from dataclasses import dataclass
from typing import NamedTuple, Tuple

ROI = Tuple[int, ...]
Keypoint = Tuple[float, float]

# Keypoint layout of the BlazeFace front model.
RIGHT_EYE = 0
LEFT_EYE = 1
NOSE_TIP = 2
MOUTH_CENTER = 3
RIGHT_EAR_TRAGION = 4
LEFT_EAR_TRAGION = 5


@dataclass(frozen=True)
class Detection:
    """A single detected face.

    Attributes:
        roi: (xmin, ymin, xmax, ymax) in original image pixels, or ()
             when nothing was detected.
        score: Sigmoid-activated confidence in [0.0, 1.0].
        keypoints: (x, y) points in original image pixels, ordered as
                   RIGHT_EYE, LEFT_EYE, NOSE_TIP, MOUTH_CENTER,
                   RIGHT_EAR_TRAGION, LEFT_EAR_TRAGION.
    """

    roi: ROI = ()
    score: float = 0.0
    keypoints: Tuple[Keypoint, ...] = ()

    @classmethod
    def empty(cls) -> "Detection":
        """Return the "no detection" sentinel."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return len(self.roi) == 0

    @property
    def width(self) -> int:
        """Bounding box width in pixels (0 when empty)."""
        return self.roi[2] - self.roi[0] if self.roi else 0

    @property
    def height(self) -> int:
        """Bounding box height in pixels (0 when empty)."""
        return self.roi[3] - self.roi[1] if self.roi else 0

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "roi": list(self.roi),
            "score": round(self.score, 4),
            "keypoints": [[round(x, 2), round(y, 2)] for x, y in self.keypoints],
        }


class FaceResult(NamedTuple):
    """Region of interest and in-plane face angle (radians).

    Unpacks as a pair: ``roi, angle = detector.execute(frame, prior)``.
    """

    roi: ROI
    angle: float

    @property
    def is_empty(self) -> bool:
        return len(self.roi) == 0


NO_FACE = FaceResult((), 0.0)
