"""
Anchor table generation for the single-shot face detector.

The detector predicts one regression row per anchor. Rows are emitted
layer group by layer group (consecutive layers with the same stride
share one feature map), cells in row-major order, and each cell repeats
its center once per anchor of every layer in the group. The table built
here must follow exactly that order.
"""

from typing import Iterator, Sequence, Tuple

import numpy as np

from face_roi.config import AnchorConfig


def _stride_groups(
    strides: Sequence[int],
    anchors_per_layer: int,
) -> Iterator[Tuple[int, int]]:
    """Yield (stride, anchors_per_cell) for runs of equal strides."""
    layer_id = 0
    while layer_id < len(strides):
        last_same_stride_layer = layer_id
        anchors_per_cell = 0
        while (
            last_same_stride_layer < len(strides)
            and strides[last_same_stride_layer] == strides[layer_id]
        ):
            anchors_per_cell += anchors_per_layer
            last_same_stride_layer += 1

        yield strides[layer_id], anchors_per_cell
        layer_id = last_same_stride_layer


def generate_anchors(
    input_size: Sequence[int],
    config: AnchorConfig = AnchorConfig(),
) -> np.ndarray:
    """Build the anchor centers for a model input of ``input_size``.

    Args:
        input_size: (height, width) of the model input tensor.
        config: Stride schedule and per-layer anchor count.

    Returns:
        float32 array of shape (N, 2) holding normalized (x, y) centers.

    Raises:
        ValueError: If the stride schedule is empty or a stride does not
                    fit the input.
    """
    input_h, input_w = int(input_size[0]), int(input_size[1])

    if not config.strides:
        raise ValueError("Anchor strides must not be empty.")
    for stride in config.strides:
        if stride <= 0 or stride > min(input_h, input_w):
            raise ValueError(
                f"Anchor stride {stride} does not fit a {input_w}x{input_h} input."
            )

    groups = []
    for stride, anchors_per_cell in _stride_groups(config.strides, config.anchors_per_layer):
        fm_h = input_h // stride
        fm_w = input_w // stride

        xs = (np.arange(fm_w, dtype=np.float32) + config.anchor_offset) / fm_w
        ys = (np.arange(fm_h, dtype=np.float32) + config.anchor_offset) / fm_h
        grid_x, grid_y = np.meshgrid(xs, ys)  # row-major: y outer, x inner
        centers = np.stack([grid_x.ravel(), grid_y.ravel()], axis=1)

        groups.append(np.repeat(centers, anchors_per_cell, axis=0))

    return np.concatenate(groups, axis=0).astype(np.float32)


def expected_anchor_count(
    input_size: Sequence[int],
    config: AnchorConfig = AnchorConfig(),
) -> int:
    """Number of rows generate_anchors() would produce."""
    input_h, input_w = int(input_size[0]), int(input_size[1])
    return sum(
        (input_h // stride) * (input_w // stride) * anchors_per_cell
        for stride, anchors_per_cell in _stride_groups(config.strides, config.anchors_per_layer)
    )
