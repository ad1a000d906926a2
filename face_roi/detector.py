"""
Detector: the public API for face ROI detection.

Public contract:
    Detector.execute(frame, prior_angle) -> FaceResult(roi, angle)
    Detector.detect(frame, prior_angle) -> Detection

Lifecycle:
    The constructor loads the model (or takes an injected InferenceModel),
    resolves the output indices by name, and builds the anchor table.
    Nothing is rebuilt per call. close() releases the model; the detector
    is also a context manager.

Constraints:
    - Per-call transform parameters travel as values through the pipeline,
      but the model itself is stateful (set input, then forward), so one
      Detector must not be called from several threads at once.
    - Empty frames and below-threshold scores produce the empty result;
      they are not errors.

Non-goals:
    - No file reading, camera access, or I/O of any kind.
    - No visualization.
"""

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from face_roi.anchors import generate_anchors
from face_roi.config import AppConfig, load_config
from face_roi.detection import LEFT_EYE, NO_FACE, RIGHT_EYE, Detection, FaceResult
from face_roi.model_loader import InferenceModel, load_model, resolve_output_indices
from face_roi.postprocessor import postprocess
from face_roi.preprocessor import preprocess

logger = logging.getLogger(__name__)


def face_angle_from_keypoints(keypoints: Sequence[Sequence[float]]) -> float:
    """In-plane face angle (radians) from the right-eye -> left-eye vector."""
    right_eye = keypoints[RIGHT_EYE]
    left_eye = keypoints[LEFT_EYE]
    return math.atan2(left_eye[1] - right_eye[1], left_eye[0] - right_eye[0])


class Detector:
    """Single-face ROI detector around a BlazeFace-style model.

    Usage:
        with Detector() as detector:                      # safe defaults
            roi, angle = detector.execute(frame, 0.0)     # RGB ndarray

        detector = Detector(config=my_config, model=my_model)

    ``roi`` is (xmin, ymin, xmax, ymax) in frame pixels, or () when no face
    was found, in which case ``angle`` is 0.0.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        model: Optional[InferenceModel] = None,
    ) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Detector configuration. If None, safe defaults are used.
            model: Pre-built InferenceModel. If None, the model is loaded
                   from ``config.model.model_path``.

        Raises:
            FileNotFoundError: If the model file is missing.
            ModelBuildError: If the model cannot be built or lacks the
                             regressor/classificator outputs.
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._model = model if model is not None else load_model(config.model)

        try:
            indices = resolve_output_indices(
                self._model.output_names,
                (config.model.regressors_name, config.model.classificators_name),
            )
            self._regressors_index = indices[config.model.regressors_name]
            self._classificators_index = indices[config.model.classificators_name]
            self._input_size = tuple(self._model.input_size)
            self._anchors = generate_anchors(self._input_size, config.anchors)
        except Exception:
            self._model.close()
            raise

        logger.info(
            "Detector initialized (input=%s, anchors=%d, score_threshold=%.2f)",
            self._input_size,
            len(self._anchors),
            config.detection.score_threshold,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(self, frame: Optional[np.ndarray], prior_angle: float = 0.0) -> FaceResult:
        """Find the face ROI and its in-plane angle.

        Args:
            frame: Image (H, W, C) uint8 in ``config.model.input_order``.
                   None or an empty array yields the empty result.
            prior_angle: Rotation estimate in radians, typically the
                         angle returned for the previous frame.

        Returns:
            FaceResult(roi, angle); FaceResult((), 0.0) when no face
            scores above the threshold.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has the wrong rank or channel count.
            InferenceError: If the forward pass fails.
            OutputShapeError: If model outputs do not match the anchors.
        """
        detection = self.detect(frame, prior_angle)
        if detection.is_empty:
            return NO_FACE

        return FaceResult(detection.roi, face_angle_from_keypoints(detection.keypoints))

    def detect(self, frame: Optional[np.ndarray], prior_angle: float = 0.0) -> Detection:
        """Run the full pipeline and return the top-1 Detection.

        Same contract as execute(), but returns the score and keypoints
        instead of the face angle.
        """
        if self._is_empty(frame):
            return Detection.empty()

        self._validate_frame(frame)
        model = self._require_model()

        blob, transform = preprocess(frame, prior_angle, self._input_size, self._config.model)

        model.set_input(blob)
        model.invoke()

        return postprocess(
            regressors=model.output(self._regressors_index),
            scores=model.output(self._classificators_index),
            anchors=self._anchors,
            transform=transform,
            rotation=prior_angle,
            config=self._config,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def anchors(self) -> np.ndarray:
        """The (N, 2) anchor table, one row per model output row."""
        return self._anchors

    @property
    def input_size(self) -> Tuple[int, int]:
        """Model input (height, width)."""
        return self._input_size

    def close(self) -> None:
        """Release the model. Further calls raise RuntimeError."""
        if self._model is not None:
            self._model.close()
            self._model = None
            logger.debug("Detector closed.")

    def __enter__(self) -> "Detector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_model(self) -> InferenceModel:
        if self._model is None:
            raise RuntimeError("Detector is closed.")
        return self._model

    @staticmethod
    def _is_empty(frame) -> bool:
        return frame is None or (isinstance(frame, np.ndarray) and frame.size == 0)

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}. "
                f"Grayscale images must be converted to RGB first."
            )
