"""
Postprocessing for the face ROI pipeline.

Responsibility:
    Turn the raw regressor/classificator outputs into a single Detection
    in original image coordinates: shape checks, top-1 selection, sigmoid
    scoring, thresholding, decoding and realignment.

Non-goals:
    - No non-maximum suppression: only the best anchor is decoded.
    - No drawing, saving, or display logic.
    - No model loading or inference.

Realignment undoes, in reverse order, the rotation and letterbox applied
in preprocessing. Only the box center is rotated; the half extents are
kept, so the ROI stays axis-aligned even for a tilted face.
"""

import logging
from typing import Tuple

import numpy as np

from face_roi.config import AppConfig
from face_roi.decoder import decode_box, select_top, sigmoid
from face_roi.detection import ROI, Detection
from face_roi.errors import OutputShapeError
from face_roi.geometry import LetterboxTransform, rotate_about

logger = logging.getLogger(__name__)


def _round_half_away(values: np.ndarray) -> np.ndarray:
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def realign_outputs(
    box: np.ndarray,
    keypoints: np.ndarray,
    rotation: float,
    transform: LetterboxTransform,
) -> Tuple[ROI, np.ndarray]:
    """Map a decoded box and keypoints from model space to image space.

    Args:
        box: [xmin, ymin, xmax, ymax] in model input pixels.
        keypoints: (K, 2) points in model input pixels.
        rotation: Angle (radians) the input was rotated by in preprocessing.
        transform: Letterbox parameters recorded in preprocessing.

    Returns:
        (roi, keypoints): integer ROI and float (K, 2) keypoints in
        original image pixels.
    """
    box = np.asarray(box, dtype=np.float64)
    center = np.array([(box[0] + box[2]) / 2.0, (box[1] + box[3]) / 2.0])
    half_extent = center - box[:2]

    pad = np.array([transform.pad_left, transform.pad_top], dtype=np.float64)
    anchor = transform.rotation_anchor

    new_center = rotate_about(center, rotation, anchor)[0] - pad
    corners = np.concatenate([new_center - half_extent, new_center + half_extent])
    roi = tuple(int(v) for v in _round_half_away(corners / transform.resize_ratio))

    points = (rotate_about(keypoints, rotation, anchor) - pad) / transform.resize_ratio

    return roi, points


def check_output_shapes(
    regressors: np.ndarray,
    scores: np.ndarray,
    anchor_count: int,
    values_per_box: int,
) -> None:
    """Fail fast when model outputs do not line up with the anchor table.

    Raises:
        OutputShapeError: On any size mismatch.
    """
    if regressors.size % values_per_box != 0:
        raise OutputShapeError(
            f"Regressor output holds {regressors.size} values, "
            f"not a multiple of the {values_per_box}-value row layout."
        )

    rows = regressors.size // values_per_box
    if rows != anchor_count:
        raise OutputShapeError(
            f"Regressor output has {rows} rows but the anchor table has "
            f"{anchor_count} anchors. Check anchors.strides and model.input_size."
        )

    if scores.size != anchor_count:
        raise OutputShapeError(
            f"Classificator output has {scores.size} scores but the anchor "
            f"table has {anchor_count} anchors."
        )


def postprocess(
    regressors: np.ndarray,
    scores: np.ndarray,
    anchors: np.ndarray,
    transform: LetterboxTransform,
    rotation: float,
    config: AppConfig,
) -> Detection:
    """Parse raw detector outputs into the best face Detection.

    Args:
        regressors: Regression output, any shape with N * row values.
        scores: Classification logits, any shape with N values.
        anchors: (N, 2) anchor table.
        transform: Letterbox parameters of this call.
        rotation: Prior angle the input was aligned with.
        config: Detector configuration (decoder layout, threshold).

    Returns:
        The top-1 Detection, or Detection.empty() when its score is below
        the threshold.

    Raises:
        OutputShapeError: If output sizes do not match the anchor table.
    """
    decoder = config.decoder
    regressors = np.asarray(regressors, dtype=np.float32).ravel()
    scores = np.asarray(scores, dtype=np.float32).ravel()

    check_output_shapes(regressors, scores, len(anchors), decoder.num_values_per_box)

    best = select_top(scores)
    score = sigmoid(float(scores[best]))

    # NaN scores fail this comparison and count as no face
    if not score >= config.detection.score_threshold:
        logger.debug("Score under threshold: score=%.4f (anchor %d)", score, best)
        return Detection.empty()

    row_len = decoder.num_values_per_box
    raw_box = regressors[row_len * best:row_len * (best + 1)]

    box, keypoints = decode_box(
        raw_box,
        anchors[best],
        scale=decoder.scale,
        num_keypoints=decoder.num_keypoints,
        keypoint_coord_offset=decoder.keypoint_coord_offset,
    )
    roi, points = realign_outputs(box, keypoints, rotation, transform)

    return Detection(
        roi=roi,
        score=score,
        keypoints=tuple((float(x), float(y)) for x, y in points),
    )
