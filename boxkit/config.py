from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .errors import InvalidConfig
from .labels import load_class_labels
from .layout import ModelFamily
from .nms import NMSConfig, NmsKeep


PathLike = Union[str, Path]

DEFAULT_ANCHOR_FREE_CLASSES = 80
YOLO_STRIDES = (8, 16, 32)
ANCHORS_PER_CELL = 3


def default_num_predictions(family: ModelFamily, input_side: int) -> int:
    """
    Prediction count of a standard 3-head YOLO export: 8400 (anchor-free) or
    25200 (anchor-based) at 640.
    """

    cells = sum((input_side // s) ** 2 for s in YOLO_STRIDES)
    if family is ModelFamily.ANCHOR_BASED:
        return cells * ANCHORS_PER_CELL
    return cells


@dataclass(frozen=True)
class DetectorConfig:
    """
    Detection settings. Built once at startup and shared read-only between requests.

    - num_classes: None derives it from the labels (anchor-based) or uses 80 (anchor-free)
    - num_predictions: None derives it from input_side and the 8/16/32 strides
    - nms_keep: HIGHEST keeps the best box per overlap cluster, LOWEST reproduces
      the legacy service
    """

    confidence_threshold: float = 0.6
    nms_iou_threshold: float = 0.5
    model_family: ModelFamily = ModelFamily.ANCHOR_FREE
    class_labels: Tuple[str, ...] = ()
    input_side: int = 640
    num_classes: Optional[int] = None
    num_predictions: Optional[int] = None
    nms_keep: NmsKeep = NmsKeep.HIGHEST
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        # Normalize loosely typed inputs without breaking immutability for callers.
        object.__setattr__(self, "model_family", ModelFamily.parse(self.model_family))
        object.__setattr__(self, "class_labels", tuple(self.class_labels))
        try:
            object.__setattr__(self, "nms_keep", NmsKeep(self.nms_keep))
        except ValueError as exc:
            raise InvalidConfig(f"nms_keep must be one of {[k.value for k in NmsKeep]}") from exc

        if not 0.0 < self.confidence_threshold <= 1.0:
            raise InvalidConfig("confidence_threshold must be in (0, 1]")
        if not 0.0 < self.nms_iou_threshold <= 1.0:
            raise InvalidConfig("nms_iou_threshold must be in (0, 1]")
        if self.input_side <= 0:
            raise InvalidConfig("input_side must be > 0")
        if self.num_classes is not None and self.num_classes <= 0:
            raise InvalidConfig("num_classes must be > 0")
        if self.num_predictions is not None and self.num_predictions <= 0:
            raise InvalidConfig("num_predictions must be > 0")
        if self.max_detections is not None and self.max_detections <= 0:
            raise InvalidConfig("max_detections must be > 0")

        n = self.resolved_num_classes
        if n <= 0:
            raise InvalidConfig("model has zero classes (anchor-based models take the class count from the labels)")
        if len(self.class_labels) < n:
            raise InvalidConfig(f"{n} classes configured but only {len(self.class_labels)} labels given")
        if self.resolved_num_predictions <= 0:
            raise InvalidConfig(f"input_side {self.input_side} is too small for stride 32")

    @property
    def resolved_num_classes(self) -> int:
        if self.num_classes is not None:
            return self.num_classes
        if self.model_family is ModelFamily.ANCHOR_BASED:
            return len(self.class_labels)
        return DEFAULT_ANCHOR_FREE_CLASSES

    @property
    def resolved_num_predictions(self) -> int:
        if self.num_predictions is not None:
            return self.num_predictions
        return default_num_predictions(self.model_family, self.input_side)

    @property
    def output_shape(self) -> Tuple[int, int, int]:
        """Engine output shape this config expects, batch included."""
        n, c = self.resolved_num_predictions, self.resolved_num_classes
        if self.model_family is ModelFamily.ANCHOR_BASED:
            return (1, n, c + 5)
        return (1, c + 4, n)

    def nms_config(self) -> NMSConfig:
        return NMSConfig(iou_threshold=self.nms_iou_threshold, keep=self.nms_keep, max_detections=self.max_detections)


_ALLOWED_KEYS = {
    "confidence_threshold",
    "nms_iou_threshold",
    "model_family",
    "class_labels",
    "classes_path",
    "input_side",
    "num_classes",
    "num_predictions",
    "nms_keep",
    "max_detections",
}


def _optional_number(payload: Dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfig(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfig(f"{key} must be an integer")
    return int(value)


def config_overrides_from_json(path: PathLike) -> Dict[str, Any]:
    """
    Read a JSON config file into `DetectorConfig` keyword arguments.

    Only keys present in the file are returned so callers can layer CLI flags
    on top. A `classes_path` key is resolved relative to the file and loaded
    into `class_labels`.
    """

    path = Path(path)
    if not path.exists():
        raise InvalidConfig(f"Detector config not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidConfig(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise InvalidConfig("Detector config must be a JSON object")

    unknown = sorted(set(payload.keys()) - _ALLOWED_KEYS)
    if unknown:
        raise InvalidConfig(f"Unknown detector config keys: {unknown}")
    if "class_labels" in payload and "classes_path" in payload:
        raise InvalidConfig("Use either 'class_labels' or 'classes_path', not both.")

    out: Dict[str, Any] = {}
    for key in ("confidence_threshold", "nms_iou_threshold"):
        value = _optional_number(payload, key)
        if value is not None:
            out[key] = value
    for key in ("input_side", "num_classes", "num_predictions", "max_detections"):
        value = _optional_int(payload, key)
        if value is not None:
            out[key] = value
    if payload.get("model_family") is not None:
        out["model_family"] = ModelFamily.parse(payload["model_family"])
    if payload.get("nms_keep") is not None:
        out["nms_keep"] = payload["nms_keep"]

    labels = payload.get("class_labels")
    if labels is not None:
        if not isinstance(labels, list) or not all(isinstance(item, str) for item in labels):
            raise InvalidConfig("class_labels must be a list of strings")
        out["class_labels"] = tuple(labels)
    classes_path = payload.get("classes_path")
    if classes_path is not None:
        if not isinstance(classes_path, str):
            raise InvalidConfig("classes_path must be a string")
        resolved = Path(classes_path)
        if not resolved.is_absolute():
            resolved = path.parent / resolved
        out["class_labels"] = tuple(load_class_labels(resolved))
    return out


def load_detector_config(path: PathLike, class_labels: Optional[Sequence[str]] = None) -> DetectorConfig:
    """
    Load a `DetectorConfig` from JSON. `class_labels`, when given, replaces any labels in the file.
    """

    kwargs = config_overrides_from_json(path)
    if class_labels is not None:
        kwargs["class_labels"] = tuple(class_labels)
    return DetectorConfig(**kwargs)
