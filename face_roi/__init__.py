"""
face_roi: single-face region-of-interest and angle detection on top of a
BlazeFace-style detector run through OpenCV DNN.

Public API:
    - Detector: builds the model once and runs preprocess -> infer ->
      postprocess per frame.
    - Detection: top-1 face (ROI, score, keypoints).
    - FaceResult: (roi, angle) pair returned by Detector.execute().
    - FaceTracker: feeds each frame's angle back as the next prior.
    - load_config: layered configuration loader.

Usage:
    from face_roi import Detector

    with Detector() as detector:
        roi, angle = detector.execute(rgb_frame, prior_angle=0.0)
"""

from face_roi.config import AppConfig, load_config
from face_roi.detection import Detection, FaceResult
from face_roi.detector import Detector
from face_roi.errors import InferenceError, ModelBuildError, OutputShapeError
from face_roi.tracker import FaceTracker

__all__ = [
    "AppConfig",
    "Detection",
    "Detector",
    "FaceResult",
    "FaceTracker",
    "InferenceError",
    "ModelBuildError",
    "OutputShapeError",
    "load_config",
]
