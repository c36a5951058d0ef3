"""
Configuration management for the detection overlay system.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
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
# Resolved relative to this file's location: detect_overlay/config.py → repo root
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
        model_path: Path to the ONNX detection model (relative to project root).
        labels_path: Optional path to a newline-separated class names file.
                     None means classes are named "class_<index>".
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        scale_factor: Pixel value scale factor applied during blob creation.
        swap_rb: Whether to convert BGR frames to RGB for the network.
    """

    model_path: str = "models/best.onnx"
    labels_path: Optional[str] = "models/labels.txt"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (640, 640)
    scale_factor: float = 1.0 / 255.0
    swap_rb: bool = True


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        confidence_threshold: Minimum top-label confidence to accept a detection.
        nms_threshold: IoU threshold for non-maximum suppression.
        max_labels: Number of ranked candidate labels kept per detection.
    """

    confidence_threshold: float = 0.5
    nms_threshold: float = 0.45
    max_labels: int = 5


@dataclass(frozen=True)
class ThrottleConfig:
    """Frame throttling.

    Attributes:
        min_interval: Minimum number of seconds between two frames sent
                      to the detector. 1.0 suits still images, 3.0 the
                      live camera overlay.
    """

    min_interval: float = 1.0


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Input source — file path, directory path, video path,
                or integer device index (as string or int).
        resize_width: Optional width to downscale input frames before detection.
                      None means no resizing.
    """

    source: str = "0"
    resize_width: Optional[int] = None


@dataclass(frozen=True)
class OverlayConfig:
    """Overlay rendering parameters.

    Attributes:
        strategy: 'incremental' (layer handles over a live background) or
                  'full_redraw' (one composited raster per result).
        display_size: (width, height) of the display surface. None means
                      the size of each incoming frame.
        clamp_boxes: Clamp normalized boxes into [0, 1] before mapping.
        label_height: Height in pixels of the label strip above each box.
        box_color: BGR color tuple for bounding boxes.
        text_color: BGR color tuple for label text.
        thickness: Line thickness in pixels.
    """

    strategy: str = "incremental"
    display_size: Optional[Tuple[int, int]] = None
    clamp_boxes: bool = True
    label_height: int = 20
    box_color: Tuple[int, int, int] = (0, 0, 255)
    text_color: Tuple[int, int, int] = (0, 0, 255)
    thickness: int = 2


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'display', 'save_image', 'save_video', 'save_json', 'save_csv'.
              Example: "display,save_image,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "display"
    save_path: str = "output/"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    input: InputConfig = field(default_factory=InputConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_STRATEGIES = {"incremental", "full_redraw"}
_VALID_OUTPUT_MODES = {"display", "save_image", "save_video", "save_json", "save_csv"}


def parse_modes(mode: str) -> set:
    """Split a comma-separated output mode string into a set."""
    return {m.strip() for m in mode.split(",") if m.strip()}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if config.overlay.strategy not in _VALID_STRATEGIES:
        raise ValueError(
            f"Invalid overlay.strategy: '{config.overlay.strategy}'. "
            f"Must be one of {_VALID_STRATEGIES}."
        )

    invalid_modes = parse_modes(config.output.mode) - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.confidence_threshold <= 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detection.confidence_threshold}."
        )

    if not (0.0 <= config.detection.nms_threshold <= 1.0):
        raise ValueError(
            f"detection.nms_threshold must be in [0.0, 1.0], "
            f"got {config.detection.nms_threshold}."
        )

    if config.detection.max_labels < 1:
        raise ValueError(
            f"detection.max_labels must be at least 1, "
            f"got {config.detection.max_labels}."
        )

    if config.throttle.min_interval < 0:
        raise ValueError(
            f"throttle.min_interval must be non-negative, "
            f"got {config.throttle.min_interval}."
        )

    if len(config.model.input_size) != 2 or any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size must be a positive (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    display_size = config.overlay.display_size
    if display_size is not None and (
        len(display_size) != 2 or any(d <= 0 for d in display_size)
    ):
        raise ValueError(
            f"overlay.display_size must be a positive (width, height) tuple or None, "
            f"got {display_size}."
        )

    if config.overlay.label_height <= 0:
        raise ValueError(
            f"overlay.label_height must be positive, "
            f"got {config.overlay.label_height}."
        )

    if config.overlay.thickness <= 0:
        raise ValueError(
            f"overlay.thickness must be positive, "
            f"got {config.overlay.thickness}."
        )

    if config.input.resize_width is not None and config.input.resize_width <= 0:
        raise ValueError(
            f"input.resize_width must be positive or None, "
            f"got {config.input.resize_width}."
        )


def validate_config(config: AppConfig) -> AppConfig:
    """Validate a config built or modified outside load_config (e.g. CLI overrides)."""
    _validate(config)
    return config


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, str):
        value = [v for v in value.replace("x", ",").split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Interpret YAML booleans and env-style strings ('true', '0', ...)."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "labels_path" in raw:
        val = raw["labels_path"]
        kwargs["labels_path"] = str(val) if val is not None else None
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "swap_rb" in raw:
        kwargs["swap_rb"] = _parse_bool(raw["swap_rb"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "nms_threshold" in raw:
        kwargs["nms_threshold"] = float(raw["nms_threshold"])
    if "max_labels" in raw:
        kwargs["max_labels"] = int(raw["max_labels"])
    return DetectionConfig(**kwargs)


def _build_throttle_config(raw: dict) -> ThrottleConfig:
    """Build ThrottleConfig from a raw YAML dict."""
    kwargs = {}
    if "min_interval" in raw:
        kwargs["min_interval"] = float(raw["min_interval"])
    return ThrottleConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    if "resize_width" in raw:
        val = raw["resize_width"]
        kwargs["resize_width"] = int(val) if val is not None else None
    return InputConfig(**kwargs)


def _build_overlay_config(raw: dict) -> OverlayConfig:
    """Build OverlayConfig from a raw YAML dict."""
    kwargs = {}
    if "strategy" in raw:
        kwargs["strategy"] = str(raw["strategy"]).lower()
    if "display_size" in raw:
        val = raw["display_size"]
        kwargs["display_size"] = _parse_tuple(val, 2, int) if val is not None else None
    if "clamp_boxes" in raw:
        kwargs["clamp_boxes"] = _parse_bool(raw["clamp_boxes"])
    if "label_height" in raw:
        kwargs["label_height"] = int(raw["label_height"])
    if "box_color" in raw:
        kwargs["box_color"] = _parse_tuple(raw["box_color"], 3, int)
    if "text_color" in raw:
        kwargs["text_color"] = _parse_tuple(raw["text_color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    return OverlayConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "DETECT_OVERLAY_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        DETECT_OVERLAY_MODEL_BACKEND=cuda
        DETECT_OVERLAY_THROTTLE_MIN_INTERVAL=3.0

    Each variable maps to a (section, key) pair in the YAML layout.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DETECTION_NMS_THRESHOLD": ("detection", "nms_threshold"),
        f"{_ENV_PREFIX}THROTTLE_MIN_INTERVAL": ("throttle", "min_interval"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}INPUT_RESIZE_WIDTH": ("input", "resize_width"),
        f"{_ENV_PREFIX}OVERLAY_STRATEGY": ("overlay", "strategy"),
        f"{_ENV_PREFIX}OVERLAY_CLAMP_BOXES": ("overlay", "clamp_boxes"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
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
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

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
        model=_build_model_config(raw.get("model") or {}),
        detection=_build_detection_config(raw.get("detection") or {}),
        throttle=_build_throttle_config(raw.get("throttle") or {}),
        input=_build_input_config(raw.get("input") or {}),
        overlay=_build_overlay_config(raw.get("overlay") or {}),
        output=_build_output_config(raw.get("output") or {}),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
