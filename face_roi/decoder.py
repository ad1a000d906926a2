"""
Decoding of raw detector rows into boxes and keypoints.

Row layout (16 floats by default):
    [x_center, y_center, width, height, kp0_x, kp0_y, ..., kp5_x, kp5_y]

Centers and keypoints are pixel offsets from the anchor position
(anchor * scale). Width and height are absolute pixel extents and are
not scaled by the anchor.
"""

import math
from typing import Sequence, Tuple

import numpy as np


def sigmoid(x: float) -> float:
    """Logistic function, stable for large magnitudes."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def select_top(scores: np.ndarray) -> int:
    """Index of the highest raw score (first one on ties)."""
    return int(np.argmax(scores))


def decode_box(
    raw_box: Sequence[float],
    anchor: Sequence[float],
    scale: float = 128.0,
    num_keypoints: int = 6,
    keypoint_coord_offset: int = 4,
) -> Tuple[np.ndarray, np.ndarray]:
    """Decode one regression row against its anchor.

    Args:
        raw_box: One regression row.
        anchor: Normalized (x, y) anchor center.
        scale: Model input resolution the anchor is scaled by.
        num_keypoints: Keypoints stored in the row.
        keypoint_coord_offset: Index of the first keypoint value.

    Returns:
        (box, keypoints): box is [xmin, ymin, xmax, ymax] and keypoints
        is a (num_keypoints, 2) array, both in model input pixels.
    """
    row = np.asarray(raw_box, dtype=np.float32)
    offset = np.asarray(anchor, dtype=np.float32) * np.float32(scale)

    center = row[0:2] + offset
    half_w = row[2] / 2.0
    half_h = row[3] / 2.0

    box = np.array(
        [center[0] - half_w, center[1] - half_h, center[0] + half_w, center[1] + half_h],
        dtype=np.float32,
    )

    end = keypoint_coord_offset + 2 * num_keypoints
    keypoints = row[keypoint_coord_offset:end].reshape(num_keypoints, 2) + offset

    return box, keypoints
