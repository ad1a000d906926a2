"""
Configuration management for the face ROI detector.

Provides a layered configuration system with the following precedence
(highest to lowest):

    Environment variables > YAML config file > Defaults

Design constraints:
    - The detector MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

The defaults describe the front-camera BlazeFace detector: 128x128 RGB
input, 896 anchors over strides (8, 16, 16, 16), 16 regression values
per anchor (4 box + 6 keypoints).
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: face_roi/config.py -> repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_path: Path to the detector model (.tflite or .onnx), relative
                    to project root unless absolute.
        backend: Compute backend: 'cpu', 'cuda' or 'opencl'.
        num_threads: Size of OpenCV's worker thread pool. Applied with
                     cv2.setNumThreads when the model is loaded, which
                     affects every OpenCV call in the process.
        input_size: Spatial dimensions (width, height) of the model input.
        input_order: Channel order of frames handed to the detector:
                     'rgb', 'bgr', 'rgba' or 'bgra'.
        layout: Input tensor layout expected by the model: 'nchw' or 'nhwc'.
        regressors_name: Name of the box regression output.
        classificators_name: Name of the classification score output.
    """

    model_path: str = "models/face_detection_front.tflite"
    backend: str = "cpu"
    num_threads: int = 2
    input_size: Tuple[int, int] = (128, 128)
    input_order: str = "rgb"
    layout: str = "nchw"
    regressors_name: str = "regressors"
    classificators_name: str = "classificators"


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        score_threshold: Minimum sigmoid score of the top-1 anchor.
    """

    score_threshold: float = 0.40


@dataclass(frozen=True)
class AnchorConfig:
    """Anchor grid layout.

    Attributes:
        strides: Stride of each feature-map layer. Consecutive equal
                 strides share one grid.
        anchor_offset: Offset of the anchor center inside its grid cell.
        anchors_per_layer: Anchors emitted per cell for each layer.
    """

    strides: Tuple[int, ...] = (8, 16, 16, 16)
    anchor_offset: float = 0.5
    anchors_per_layer: int = 2


@dataclass(frozen=True)
class DecoderConfig:
    """Regression row layout.

    Attributes:
        scale: Pixel scale applied to normalized anchor centers.
        num_keypoints: Number of (x, y) keypoints per row.
        keypoint_coord_offset: Index of the first keypoint value in a row.
        num_values_per_box: Length of one regression row.
    """

    scale: float = 128.0
    num_keypoints: int = 6
    keypoint_coord_offset: int = 4
    num_values_per_box: int = 16


@dataclass(frozen=True)
class VisualizationConfig:
    """Visualization rendering parameters.

    Attributes:
        box_color: Color tuple for the face box (same channel order as frame).
        keypoint_color: Color tuple for keypoints.
        thickness: Line thickness in pixels.
        show_keypoints: Whether to render keypoints.
        show_angle: Whether to render the face angle label.
    """

    box_color: Tuple[int, int, int] = (0, 255, 0)
    keypoint_color: Tuple[int, int, int] = (255, 0, 0)
    thickness: int = 2
    show_keypoints: bool = True
    show_angle: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    anchors: AnchorConfig = field(default_factory=AnchorConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda", "opencl"}
_VALID_INPUT_ORDERS = {"rgb", "bgr", "rgba", "bgra"}
_VALID_LAYOUTS = {"nchw", "nhwc"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    model = config.model
    if model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if model.input_order not in _VALID_INPUT_ORDERS:
        raise ValueError(
            f"Invalid model.input_order: '{model.input_order}'. "
            f"Must be one of {_VALID_INPUT_ORDERS}."
        )

    if model.layout not in _VALID_LAYOUTS:
        raise ValueError(
            f"Invalid model.layout: '{model.layout}'. "
            f"Must be one of {_VALID_LAYOUTS}."
        )

    if model.num_threads <= 0:
        raise ValueError(
            f"model.num_threads must be positive, got {model.num_threads}."
        )

    if len(model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {model.input_size}."
        )

    if any(d <= 0 for d in model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {model.input_size}."
        )

    if not (0.0 <= config.detection.score_threshold <= 1.0):
        raise ValueError(
            f"detection.score_threshold must be in [0.0, 1.0], "
            f"got {config.detection.score_threshold}."
        )

    anchors = config.anchors
    if not anchors.strides or any(s <= 0 for s in anchors.strides):
        raise ValueError(
            f"anchors.strides must be a non-empty list of positive integers, "
            f"got {anchors.strides}."
        )

    if any(s > min(model.input_size) for s in anchors.strides):
        raise ValueError(
            f"anchors.strides must not exceed the model input size "
            f"{model.input_size}, got {anchors.strides}."
        )

    if anchors.anchors_per_layer <= 0:
        raise ValueError(
            f"anchors.anchors_per_layer must be positive, "
            f"got {anchors.anchors_per_layer}."
        )

    decoder = config.decoder
    if decoder.scale <= 0:
        raise ValueError(f"decoder.scale must be positive, got {decoder.scale}.")

    if decoder.num_keypoints < 2:
        raise ValueError(
            f"decoder.num_keypoints must be at least 2 (both eyes), "
            f"got {decoder.num_keypoints}."
        )

    row_end = decoder.keypoint_coord_offset + 2 * decoder.num_keypoints
    if decoder.keypoint_coord_offset < 4 or row_end > decoder.num_values_per_box:
        raise ValueError(
            f"decoder row layout does not fit: keypoints occupy "
            f"[{decoder.keypoint_coord_offset}, {row_end}) but a row holds "
            f"{decoder.num_values_per_box} values."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: Optional[int], cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length.

    ``expected_len=None`` accepts any length.
    """
    if isinstance(value, str):
        value = [v for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        if expected_len is not None and len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "num_threads" in raw:
        kwargs["num_threads"] = int(raw["num_threads"])
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "input_order" in raw:
        kwargs["input_order"] = str(raw["input_order"]).lower()
    if "layout" in raw:
        kwargs["layout"] = str(raw["layout"]).lower()
    if "regressors_name" in raw:
        kwargs["regressors_name"] = str(raw["regressors_name"])
    if "classificators_name" in raw:
        kwargs["classificators_name"] = str(raw["classificators_name"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "score_threshold" in raw:
        kwargs["score_threshold"] = float(raw["score_threshold"])
    return DetectionConfig(**kwargs)


def _build_anchor_config(raw: dict) -> AnchorConfig:
    """Build AnchorConfig from a raw YAML dict."""
    kwargs = {}
    if "strides" in raw:
        kwargs["strides"] = _parse_tuple(raw["strides"], None, int)
    if "anchor_offset" in raw:
        kwargs["anchor_offset"] = float(raw["anchor_offset"])
    if "anchors_per_layer" in raw:
        kwargs["anchors_per_layer"] = int(raw["anchors_per_layer"])
    return AnchorConfig(**kwargs)


def _build_decoder_config(raw: dict) -> DecoderConfig:
    """Build DecoderConfig from a raw YAML dict."""
    kwargs = {}
    if "scale" in raw:
        kwargs["scale"] = float(raw["scale"])
    if "num_keypoints" in raw:
        kwargs["num_keypoints"] = int(raw["num_keypoints"])
    if "keypoint_coord_offset" in raw:
        kwargs["keypoint_coord_offset"] = int(raw["keypoint_coord_offset"])
    if "num_values_per_box" in raw:
        kwargs["num_values_per_box"] = int(raw["num_values_per_box"])
    return DecoderConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "box_color" in raw:
        kwargs["box_color"] = _parse_tuple(raw["box_color"], 3, int)
    if "keypoint_color" in raw:
        kwargs["keypoint_color"] = _parse_tuple(raw["keypoint_color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "show_keypoints" in raw:
        kwargs["show_keypoints"] = _parse_bool(raw["show_keypoints"])
    if "show_angle" in raw:
        kwargs["show_angle"] = _parse_bool(raw["show_angle"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "FACE_ROI_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        FACE_ROI_MODEL_BACKEND=cuda
        FACE_ROI_DETECTION_SCORE_THRESHOLD=0.5
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_NUM_THREADS": ("model", "num_threads"),
        f"{_ENV_PREFIX}MODEL_INPUT_ORDER": ("model", "input_order"),
        f"{_ENV_PREFIX}DETECTION_SCORE_THRESHOLD": ("detection", "score_threshold"),
        f"{_ENV_PREFIX}DECODER_SCALE": ("decoder", "scale"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration.

    Precedence (highest -> lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the detector runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        anchors=_build_anchor_config(raw.get("anchors", {})),
        decoder=_build_decoder_config(raw.get("decoder", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
