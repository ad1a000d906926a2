"""
Preprocessing for the face ROI pipeline.

Responsibility:
    Convert a raw frame into the model input tensor:
    color conversion to RGB -> letterbox resize -> rotation alignment by
    the prior angle -> normalization to [-1, 1] -> 4D blob.

    Returns the LetterboxTransform of the call alongside the tensor so the
    postprocessor can map results back.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.
"""

from typing import Sequence, Tuple

import cv2
import numpy as np

from face_roi.config import ModelConfig
from face_roi.geometry import (
    LetterboxTransform,
    align_and_crop,
    normalize_pixels,
    resize_with_letterbox,
)

_TO_RGB = {
    "bgr": cv2.COLOR_BGR2RGB,
    "rgba": cv2.COLOR_RGBA2RGB,
    "bgra": cv2.COLOR_BGRA2RGB,
}

_CHANNELS = {"rgb": 3, "bgr": 3, "rgba": 4, "bgra": 4}


def to_rgb(frame: np.ndarray, input_order: str) -> np.ndarray:
    """Convert a frame in ``input_order`` channel order to RGB.

    Raises:
        ValueError: If the channel count does not match ``input_order``.
    """
    expected = _CHANNELS[input_order]
    if frame.ndim != 3 or frame.shape[2] != expected:
        raise ValueError(
            f"Expected a {input_order.upper()} frame with shape (H, W, {expected}), "
            f"got shape {frame.shape}."
        )

    if input_order == "rgb":
        return frame
    return cv2.cvtColor(frame, _TO_RGB[input_order])


def to_blob(tensor: np.ndarray, layout: str) -> np.ndarray:
    """Add the batch axis, transposing HWC -> CHW for 'nchw'."""
    if layout == "nchw":
        tensor = np.transpose(tensor, (2, 0, 1))
    return np.ascontiguousarray(tensor[np.newaxis, ...], dtype=np.float32)


def preprocess(
    frame: np.ndarray,
    prior_angle: float,
    input_size: Sequence[int],
    config: ModelConfig,
) -> Tuple[np.ndarray, LetterboxTransform]:
    """Convert a raw frame into a model input blob.

    Args:
        frame: Input image (H, W, C) uint8 in ``config.input_order``.
        prior_angle: Rotation estimate in radians, e.g. from the last frame.
        input_size: (height, width) of the model input.
        config: ModelConfig providing input_order and layout.

    Returns:
        (blob, transform): float32 blob of shape (1, 3, H, W) or
        (1, H, W, 3), and the letterbox parameters of this call.

    Raises:
        ValueError: If the frame is empty or has unexpected dimensions.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    rgb = to_rgb(frame, config.input_order)
    letterboxed, transform = resize_with_letterbox(rgb, input_size)
    aligned = align_and_crop(letterboxed, prior_angle, input_size)
    normalized = normalize_pixels(aligned)

    return to_blob(normalized, config.layout), transform
