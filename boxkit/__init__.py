"""
Single-image YOLO detection: raw output decoding, confidence filtering and
greedy NMS, plus an ONNX Runtime engine, a CLI and an HTTP service.

The decode/suppress core only needs NumPy. OpenCV is used for image decoding
and resampling, onnxruntime for inference, FastAPI for the service.
"""

from .types import Detection
from .errors import BoxkitError, InferenceFailure, InvalidConfig, InvalidImage, LayoutMismatch
from .layout import ModelFamily, RawOutputView
from .nms import NMSConfig, NmsKeep, box_iou, greedy_nms, nms
from .config import DetectorConfig, load_detector_config
from .labels import load_class_labels
from .postprocess import BoxPostprocessor, decode_predictions, filter_by_confidence, scale_to_image
from .preprocess import preprocess
from .runtime import Detector, detect, load_detector
from .visualize import draw_detections

__all__ = [
    "Detection",
    "BoxkitError",
    "InferenceFailure",
    "InvalidConfig",
    "InvalidImage",
    "LayoutMismatch",
    "ModelFamily",
    "RawOutputView",
    "NMSConfig",
    "NmsKeep",
    "box_iou",
    "greedy_nms",
    "nms",
    "DetectorConfig",
    "load_detector_config",
    "load_class_labels",
    "BoxPostprocessor",
    "decode_predictions",
    "filter_by_confidence",
    "scale_to_image",
    "preprocess",
    "Detector",
    "detect",
    "load_detector",
    "draw_detections",
]
