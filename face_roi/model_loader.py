"""
Model loading for the face ROI detector.

Responsibility:
    Load the detector network through OpenCV DNN, configure the compute
    backend and thread pool, and expose it through the small
    InferenceModel interface the detector drives:

        set_input(blob) -> invoke() -> output(index)

Non-goals:
    - No preprocessing, decoding or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models or backends.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path.
    - Unparseable models, unavailable backends and missing output names
      raise ModelBuildError.
    - Failed forward passes raise InferenceError.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from face_roi.config import ModelConfig, get_project_root
from face_roi.errors import InferenceError, ModelBuildError

logger = logging.getLogger(__name__)

_SUPPORTED_FORMATS = ("tflite", "onnx")


class InferenceModel:
    """Owned handle on a loaded cv2.dnn.Net.

    Output tensors are requested by name on every forward pass, so the
    order of ``output_names`` is the order ``output(index)`` indexes.
    """

    def __init__(self, net: cv2.dnn.Net, config: ModelConfig) -> None:
        self._net: Optional[cv2.dnn.Net] = net
        width, height = config.input_size
        self._input_size = (int(height), int(width))
        self._output_names: List[str] = list(net.getUnconnectedOutLayersNames())
        self._outputs: List[np.ndarray] = []

    @property
    def input_size(self) -> Tuple[int, int]:
        """Model input (height, width)."""
        return self._input_size

    @property
    def output_names(self) -> List[str]:
        return list(self._output_names)

    def set_input(self, blob: np.ndarray) -> None:
        self._require_open().setInput(blob)

    def invoke(self) -> None:
        """Run a forward pass.

        Raises:
            InferenceError: If OpenCV fails to run the network.
        """
        net = self._require_open()
        try:
            self._outputs = list(net.forward(self._output_names))
        except cv2.error as e:
            raise InferenceError(f"Forward pass failed: {e}") from e

    def output(self, index: int) -> np.ndarray:
        """Return output ``index`` of the last invoke() as a flat float32 array."""
        if not self._outputs:
            raise InferenceError("No outputs available; invoke() has not run.")
        return np.asarray(self._outputs[index], dtype=np.float32).ravel()

    def summarize(self) -> str:
        return (
            f"input(h, w)={self._input_size}, "
            f"outputs={self._output_names}"
        )

    def close(self) -> None:
        """Drop the network and any cached outputs."""
        self._net = None
        self._outputs = []

    @property
    def closed(self) -> bool:
        return self._net is None

    def _require_open(self) -> cv2.dnn.Net:
        if self._net is None:
            raise RuntimeError("InferenceModel is closed.")
        return self._net


def resolve_output_indices(
    output_names: Sequence[str],
    wanted: Sequence[str],
) -> Dict[str, int]:
    """Map each wanted output name to its index in ``output_names``.

    Raises:
        ModelBuildError: If a wanted name is missing.
    """
    indices = {}
    for name in wanted:
        if name not in output_names:
            raise ModelBuildError(
                f"Model has no output named '{name}'. "
                f"Available outputs: {list(output_names)}."
            )
        indices[name] = list(output_names).index(name)
    return indices


def _configure(net: cv2.dnn.Net, config: ModelConfig) -> InferenceModel:
    """Apply backend/target and thread settings, then wrap the net."""
    cv2.setNumThreads(config.num_threads)

    try:
        if config.backend == "cuda":
            logger.info("Setting CUDA backend and target.")
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        elif config.backend == "opencl":
            logger.info("Setting OpenCL target.")
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_OPENCL)
        else:
            logger.info("Using CPU backend (%d threads).", config.num_threads)
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)
    except cv2.error as e:
        raise ModelBuildError(
            f"Failed to set '{config.backend}' backend. Ensure OpenCV was "
            f"built with support for it.\n"
            f"  OpenCV error: {e}"
        ) from e

    model = InferenceModel(net, config)
    logger.info("Model loaded successfully: %s", model.summarize())
    return model


def load_model(config: ModelConfig) -> InferenceModel:
    """Load and configure the face detection model from disk.

    Args:
        config: ModelConfig containing the model path and backend preference.

    Returns:
        A configured InferenceModel ready for inference.

    Raises:
        FileNotFoundError: If the model file does not exist.
        ModelBuildError: If OpenCV cannot parse the model or set the backend.
    """
    path = Path(config.model_path)
    if not path.is_absolute():
        path = get_project_root() / path

    if not path.is_file():
        raise FileNotFoundError(
            f"Model file not found.\n"
            f"  Expected: {path}\n"
            f"  Provide the file or update 'model.model_path' in your config."
        )

    logger.info("Loading model: %s", path)
    try:
        net = cv2.dnn.readNet(str(path))
    except cv2.error as e:
        raise ModelBuildError(f"OpenCV could not load model {path}: {e}") from e

    return _configure(net, config)


def load_model_from_bytes(
    data: bytes,
    model_format: str,
    config: ModelConfig,
) -> InferenceModel:
    """Load the model from an in-memory buffer (e.g. a packaged resource).

    Args:
        data: Serialized model.
        model_format: 'tflite' or 'onnx'.
        config: ModelConfig with backend and input settings.

    Raises:
        ModelBuildError: If the buffer is empty or cannot be parsed.
    """
    if not data:
        raise ModelBuildError("Model buffer is empty.")

    if model_format not in _SUPPORTED_FORMATS:
        raise ModelBuildError(
            f"Unsupported model format '{model_format}'. "
            f"Expected one of {list(_SUPPORTED_FORMATS)}."
        )

    logger.info("Loading %s model from buffer (%d bytes)", model_format, len(data))
    try:
        net = cv2.dnn.readNet(model_format, np.frombuffer(data, dtype=np.uint8))
    except cv2.error as e:
        raise ModelBuildError(f"OpenCV could not parse {model_format} model: {e}") from e

    return _configure(net, config)
