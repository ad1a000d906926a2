"""
Geometric transforms between image space and model space.

Responsibility:
    Letterbox resizing, rotate/crop alignment and pixel normalization on
    the way in; point rotation helpers for the way back out. The forward
    transforms record their parameters in a LetterboxTransform value so
    that postprocessing can invert them without shared state.

Non-goals:
    - No resampling primitives of our own: resize, warp, border padding
      and rotation matrices come from OpenCV.
    - No model or inference awareness.

Conventions:
    - Sizes are (height, width), matching ndarray shapes.
    - Points are (x, y).
    - Angles are radians; positive is counter-clockwise as seen on screen,
      the sense used by cv2.getRotationMatrix2D.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import cv2
import numpy as np


@dataclass(frozen=True)
class LetterboxTransform:
    """Parameters of one letterbox resize, needed to map points back.

    Attributes:
        resize_ratio: Uniform scale applied to the source image.
        pad_left: Columns of zero padding added on the left.
        pad_top: Rows of zero padding added on top.
        rotation_anchor: (x, y) center of the model input canvas.
    """

    resize_ratio: float
    pad_left: int
    pad_top: int
    rotation_anchor: Tuple[float, float]

    def to_canvas(self, x: float, y: float) -> Tuple[float, float]:
        """Map an image point onto the padded canvas."""
        return (
            x * self.resize_ratio + self.pad_left,
            y * self.resize_ratio + self.pad_top,
        )


def resize_with_letterbox(
    image: np.ndarray,
    target_size: Sequence[int],
) -> Tuple[np.ndarray, LetterboxTransform]:
    """Fit an image inside ``target_size`` preserving aspect ratio.

    The image is scaled by a single factor so that neither side exceeds
    the target, then padded with zeros to exactly ``target_size``. Left
    and top padding take half the deficit; right and bottom absorb the
    odd pixel.

    Args:
        image: Source image (H, W[, C]).
        target_size: (height, width) of the output canvas.

    Returns:
        The padded image and the transform that produced it.
    """
    target_h, target_w = int(target_size[0]), int(target_size[1])
    src_h, src_w = image.shape[:2]

    target_ratio = target_w / target_h
    input_ratio = src_w / src_h

    if input_ratio >= target_ratio:
        new_w = target_w
        new_h = max(1, int(new_w / input_ratio))
        resize_ratio = new_w / src_w
    else:
        new_h = target_h
        new_w = max(1, int(new_h * input_ratio))
        resize_ratio = new_h / src_h

    resized = cv2.resize(image, (new_w, new_h))

    width_diff = target_w - new_w
    height_diff = target_h - new_h
    pad_left = max(0, width_diff) // 2
    pad_top = max(0, height_diff) // 2
    pad_right = pad_left + width_diff % 2
    pad_bottom = pad_top + height_diff % 2

    padded = cv2.copyMakeBorder(
        resized,
        pad_top,
        pad_bottom,
        pad_left,
        pad_right,
        cv2.BORDER_CONSTANT,
        value=(0, 0, 0, 0),
    )

    transform = LetterboxTransform(
        resize_ratio=resize_ratio,
        pad_left=pad_left,
        pad_top=pad_top,
        rotation_anchor=(target_w / 2.0, target_h / 2.0),
    )
    return padded, transform


def align_and_crop(
    image: np.ndarray,
    angle: float,
    dst_size: Sequence[int],
    roi: Sequence[int] = (),
) -> np.ndarray:
    """Rotate an image (or a crop of it) onto a ``dst_size`` canvas.

    With an empty ``roi`` the whole image is rotated about the center of
    the destination canvas. Otherwise the ``roi`` rectangle
    (xmin, ymin, xmax, ymax) is cut out first, with any part lying outside
    the image left black, and rotated about its own center.

    The warp only sets the output canvas size; it does not rescale.

    Args:
        image: Source image (H, W[, C]).
        angle: Rotation in radians.
        dst_size: (height, width) of the output.
        roi: Optional crop rectangle in source pixels.

    Returns:
        The aligned image with shape (dst_h, dst_w[, C]).
    """
    dst_h, dst_w = int(dst_size[0]), int(dst_size[1])

    if len(roi) == 0:
        center = (dst_w / 2.0, dst_h / 2.0)
        source = image
    else:
        source = crop_with_padding(image, roi)
        crop_h, crop_w = source.shape[:2]
        center = (crop_w / 2.0, crop_h / 2.0)

    matrix = cv2.getRotationMatrix2D(center, math.degrees(angle), 1.0)
    return cv2.warpAffine(source, matrix, (dst_w, dst_h))


def crop_with_padding(image: np.ndarray, roi: Sequence[int]) -> np.ndarray:
    """Cut ``roi`` out of ``image``; area outside the image is zero."""
    x0, y0, x1, y1 = (int(v) for v in roi)
    crop_w, crop_h = x1 - x0, y1 - y0
    if crop_w <= 0 or crop_h <= 0:
        raise ValueError(f"ROI must have positive area, got {tuple(roi)}.")

    out = np.zeros((crop_h, crop_w) + image.shape[2:], dtype=image.dtype)

    img_h, img_w = image.shape[:2]
    ix0, iy0 = max(x0, 0), max(y0, 0)
    ix1, iy1 = min(x1, img_w), min(y1, img_h)
    if ix1 > ix0 and iy1 > iy0:
        out[iy0 - y0:iy1 - y0, ix0 - x0:ix1 - x0] = image[iy0:iy1, ix0:ix1]

    return out


def normalize_pixels(image: np.ndarray) -> np.ndarray:
    """Map 8-bit pixel values to float32 in [-1, 1]."""
    return image.astype(np.float32) / 127.5 - 1.0


def rotate_about(
    points: np.ndarray,
    angle: float,
    center: Sequence[float],
) -> np.ndarray:
    """Rotate (N, 2) points by ``angle`` about ``center``.

    Uses x' = x cos - y sin, y' = x sin + y cos, the inverse of the
    matrix cv2.getRotationMatrix2D builds for the same angle.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    c, s = math.cos(angle), math.sin(angle)
    rel = pts - np.asarray(center, dtype=np.float64)
    x, y = rel[:, 0], rel[:, 1]
    rotated = np.stack([x * c - y * s, x * s + y * c], axis=1)
    return rotated + np.asarray(center, dtype=np.float64)
