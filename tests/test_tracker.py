"""
Tests for frame-to-frame angle tracking.
"""

import numpy as np
import pytest

from face_roi.detection import FaceResult
from face_roi.detector import Detector
from face_roi.tracker import FaceTracker


class ScriptedDetector:
    """Returns queued results and records the prior angles it was given."""

    def __init__(self, results):
        self._results = list(results)
        self.priors = []

    def execute(self, frame, prior_angle=0.0):
        self.priors.append(prior_angle)
        return self._results.pop(0)


def test_angle_feeds_next_frame():
    detector = ScriptedDetector([
        FaceResult((0, 0, 10, 10), 0.2),
        FaceResult((0, 0, 10, 10), 0.25),
        FaceResult((), 0.0),
        FaceResult((0, 0, 10, 10), -0.1),
    ])
    tracker = FaceTracker(detector)
    frame = np.zeros((8, 8, 3), dtype=np.uint8)

    for _ in range(4):
        tracker.update(frame)

    # Losing the face resets the prior to 0
    assert detector.priors == [0.0, 0.2, 0.25, 0.0]
    assert tracker.angle == pytest.approx(-0.1)


def test_initial_angle_and_reset():
    detector = ScriptedDetector([FaceResult((1, 1, 2, 2), 0.5)])
    tracker = FaceTracker(detector, initial_angle=0.4)

    tracker.update(np.zeros((8, 8, 3), dtype=np.uint8))
    assert detector.priors == [0.4]
    assert tracker.angle == pytest.approx(0.5)

    tracker.reset()
    assert tracker.angle == 0.0


def test_tracker_with_detector(config, face_model):
    tracker = FaceTracker(Detector(config=config, model=face_model))

    roi, angle = tracker.update(np.zeros((256, 256, 3), dtype=np.uint8))

    assert roi
    assert tracker.angle == pytest.approx(angle)
    assert face_model.invoke_count == 1
