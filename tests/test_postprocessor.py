"""
Tests for the postprocessing module: realignment and top-1 scoring.
"""

import math

import cv2
import numpy as np
import pytest

from face_roi.anchors import generate_anchors
from face_roi.config import AppConfig, DetectionConfig
from face_roi.errors import OutputShapeError
from face_roi.geometry import LetterboxTransform
from face_roi.postprocessor import check_output_shapes, postprocess, realign_outputs

# Half-scale letterbox with 16 rows of top padding on a 128x128 canvas
TRANSFORM = LetterboxTransform(resize_ratio=0.5, pad_left=0, pad_top=16, rotation_anchor=(64.0, 64.0))
BOX = np.array([72.0, 81.0, 76.0, 87.0])
KEYPOINTS = np.array([[65.0, 66.0]])


# ---------------------------------------------------------------------------
# realign_outputs
# ---------------------------------------------------------------------------

def test_realign_zero_rotation_is_letterbox_inverse():
    roi, points = realign_outputs(BOX, KEYPOINTS, 0.0, TRANSFORM)

    # center (74, 84) -> (74, 68) after padding -> x2
    assert roi == (144, 130, 152, 142)
    np.testing.assert_allclose(points, [[130.0, 100.0]])


def test_realign_recovers_letterboxed_point():
    transform = LetterboxTransform(resize_ratio=0.25, pad_left=0, pad_top=32, rotation_anchor=(64.0, 64.0))
    x, y = transform.to_canvas(100, 60)

    roi, points = realign_outputs(np.array([x, y, x, y]), np.array([[x, y]]), 0.0, transform)

    assert roi == (100, 60, 100, 60)
    np.testing.assert_allclose(points, [[100.0, 60.0]])


def test_realign_quarter_turn_rotates_center_only():
    roi, points = realign_outputs(BOX, KEYPOINTS, math.pi / 2, TRANSFORM)

    # center rel. anchor (10, 20) -> (-20, 10); half extents (2, 3) kept
    assert roi == (84, 110, 92, 122)
    assert roi[2] - roi[0] == 8
    assert roi[3] - roi[1] == 12
    np.testing.assert_allclose(points, [[124.0, 98.0]], atol=1e-9)


@pytest.mark.parametrize("angle", [0.3, -0.7, math.pi / 4, 2.5])
def test_realign_undoes_preprocessing_rotation(angle):
    """Sign convention: aligning by +angle and realigning by +angle round-trips."""
    transform = LetterboxTransform(resize_ratio=0.25, pad_left=0, pad_top=32, rotation_anchor=(64.0, 64.0))
    canvas = np.array([*transform.to_canvas(100, 60), 1.0])

    matrix = cv2.getRotationMatrix2D(transform.rotation_anchor, math.degrees(angle), 1.0)
    qx, qy = matrix @ canvas

    roi, points = realign_outputs(np.array([qx, qy, qx, qy]), np.array([[qx, qy]]), angle, transform)

    assert roi == (100, 60, 100, 60)
    np.testing.assert_allclose(points, [[100.0, 60.0]], atol=1e-6)


def test_realign_rounds_half_away_from_zero():
    transform = LetterboxTransform(resize_ratio=1.0, pad_left=0, pad_top=0, rotation_anchor=(64.0, 64.0))

    roi, _ = realign_outputs(np.array([0.5, -0.5, 2.5, 3.5]), np.zeros((1, 2)), 0.0, transform)

    assert roi == (1, -1, 3, 4)


# ---------------------------------------------------------------------------
# check_output_shapes / postprocess
# ---------------------------------------------------------------------------

def _outputs(best_logit):
    regressors = np.zeros((896, 16), dtype=np.float32)
    regressors[512, :8] = [10, 20, 4, 6, 0, 0, 4, 4]
    scores = np.full(896, -10.0, dtype=np.float32)
    scores[512] = best_logit
    return regressors, scores


def test_postprocess_valid_detection():
    regressors, scores = _outputs(2.0)
    transform = LetterboxTransform(resize_ratio=0.5, pad_left=0, pad_top=0, rotation_anchor=(64.0, 64.0))

    detection = postprocess(regressors, scores, generate_anchors((128, 128)), transform, 0.0, AppConfig())

    assert not detection.is_empty
    assert detection.score == pytest.approx(1.0 / (1.0 + math.exp(-2.0)))
    # anchor 512 sits at (8, 8); center (18, 28); box [16, 25, 20, 31] x2
    assert detection.roi == (32, 50, 40, 62)
    assert len(detection.keypoints) == 6
    assert detection.keypoints[0] == pytest.approx((16.0, 16.0))
    assert detection.keypoints[1] == pytest.approx((24.0, 24.0))


def test_postprocess_score_gating():
    """Below-threshold scores return the empty detection whatever the box."""
    regressors, scores = _outputs(-1.0)  # sigmoid ~ 0.27

    detection = postprocess(regressors, scores, generate_anchors((128, 128)), TRANSFORM, 0.0, AppConfig())

    assert detection.is_empty
    assert detection.roi == ()
    assert detection.keypoints == ()


def test_postprocess_threshold_is_configurable():
    regressors, scores = _outputs(0.0)  # sigmoid = 0.5
    anchors = generate_anchors((128, 128))

    accepted = postprocess(regressors, scores, anchors, TRANSFORM, 0.0, AppConfig())
    rejected = postprocess(
        regressors, scores, anchors, TRANSFORM, 0.0,
        AppConfig(detection=DetectionConfig(score_threshold=0.6)),
    )

    assert not accepted.is_empty
    assert rejected.is_empty


def test_postprocess_rejects_anchor_mismatch():
    regressors = np.zeros((100, 16), dtype=np.float32)
    scores = np.zeros(100, dtype=np.float32)

    with pytest.raises(OutputShapeError, match="anchor table"):
        postprocess(regressors, scores, generate_anchors((128, 128)), TRANSFORM, 0.0, AppConfig())


def test_check_output_shapes_row_layout():
    with pytest.raises(OutputShapeError, match="multiple"):
        check_output_shapes(np.zeros(17), np.zeros(1), 1, 16)


def test_check_output_shapes_score_count():
    with pytest.raises(OutputShapeError, match="Classificator"):
        check_output_shapes(np.zeros(32), np.zeros(3), 2, 16)


def test_postprocess_nan_score_is_no_face():
    regressors, scores = _outputs(float("nan"))
    scores[:] = np.nan

    detection = postprocess(regressors, scores, generate_anchors((128, 128)), TRANSFORM, 0.0, AppConfig())

    assert detection.is_empty
