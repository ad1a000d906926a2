"""
Visualization for the face ROI pipeline.

Responsibility:
    Draw the face ROI rotated by the face angle, optional keypoints and
    an optional angle label onto a frame. This is a pure rendering module:
    it produces an annotated copy of the frame and performs no I/O.

Non-goals:
    - No file writing, window management, or display logic.
    - No detection or model logic.
"""

import math
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from face_roi.config import VisualizationConfig
from face_roi.detection import FaceResult

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 4
_KEYPOINT_RADIUS = 2


def rotated_box_points(roi: Sequence[int], angle: float) -> np.ndarray:
    """Corners of ``roi`` rotated by ``angle`` (radians) about its center.

    Returns:
        int32 array of shape (4, 2).
    """
    x0, y0, x1, y1 = roi
    center = ((x0 + x1) / 2.0, (y0 + y1) / 2.0)
    size = (float(x1 - x0), float(y1 - y0))
    corners = cv2.boxPoints((center, size, math.degrees(angle)))
    return np.round(corners).astype(np.int32)


def draw_face(
    frame: np.ndarray,
    result: FaceResult,
    config: VisualizationConfig,
    keypoints: Optional[Sequence[Tuple[float, float]]] = None,
) -> np.ndarray:
    """Draw a detected face onto a frame.

    Args:
        frame: Input image (not modified; a copy is returned).
        result: FaceResult from Detector.execute().
        config: Visualization parameters (colors, thickness, labels).
        keypoints: Optional keypoints, e.g. Detection.keypoints.

    Returns:
        A new array with the face drawn. An empty result returns an
        unmodified copy.
    """
    annotated = frame.copy()
    if result.is_empty:
        return annotated

    corners = rotated_box_points(result.roi, result.angle)
    cv2.polylines(
        annotated,
        [corners.reshape(-1, 1, 2)],
        isClosed=True,
        color=config.box_color,
        thickness=config.thickness,
    )

    if config.show_keypoints and keypoints:
        for x, y in keypoints:
            cv2.circle(
                annotated,
                (int(round(x)), int(round(y))),
                _KEYPOINT_RADIUS,
                config.keypoint_color,
                cv2.FILLED,
            )

    if config.show_angle:
        label = f"{math.degrees(result.angle):.1f} deg"
        (_, text_h), _ = cv2.getTextSize(label, _FONT, _FONT_SCALE, _FONT_THICKNESS)

        # Above the box, or below if too close to the top
        x0, y0, _, y1 = result.roi
        label_y = y0 - _LABEL_PADDING
        if label_y - text_h < 0:
            label_y = y1 + text_h + _LABEL_PADDING

        cv2.putText(
            annotated,
            label,
            (x0, label_y),
            _FONT,
            _FONT_SCALE,
            config.box_color,
            _FONT_THICKNESS,
            cv2.LINE_AA,
        )

    return annotated
