from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from .config import DetectorConfig
from .engine import InferenceEngine
from .errors import BoxkitError, InferenceFailure
from .postprocess import BoxPostprocessor
from .preprocess import ImageInput, preprocess
from .types import Detection


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


def _ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class Detector:
    """
    Plug-and-play pipeline: preprocess (stretch to square) -> inference -> postprocess.

    Accepts BGR images (OpenCV-style) as `np.ndarray` or encoded image bytes and
    returns a list of `Detection` in original image coordinates. One instance
    is safe to share between threads: the config is frozen and per-call state
    stays local.
    """

    def __init__(self, engine: InferenceEngine, handle: Any, cfg: DetectorConfig):
        self.engine = engine
        self.handle = handle
        self.cfg = cfg
        self.post = BoxPostprocessor(cfg)

    def infer(self, blob: np.ndarray) -> np.ndarray:
        try:
            return np.asarray(self.engine.run(self.handle, blob))
        except BoxkitError:
            raise
        except Exception as exc:
            raise InferenceFailure(f"Inference failed: {exc}") from exc

    def detect(self, image: ImageInput) -> List[Detection]:
        t0 = time.perf_counter()
        prep = preprocess(image, self.cfg.input_side)
        logger.debug("prepare_input took %.1f ms", _ms(t0))

        t1 = time.perf_counter()
        preds = self.infer(prep.blob)
        logger.debug("inference took %.1f ms", _ms(t1))

        t2 = time.perf_counter()
        detections = self.post.process(preds, orig_size=prep.orig_size)
        logger.debug("postprocess took %.1f ms", _ms(t2))

        logger.info("detected %d objects in %.1f ms", len(detections), _ms(t0))
        return detections

    __call__ = detect


def detect(image: ImageInput, cfg: DetectorConfig, engine: InferenceEngine, handle: Any) -> List[Detection]:
    """
    Run one image through `engine` and return its detections.
    """

    return Detector(engine, handle, cfg).detect(image)


def load_detector(
    model_path: PathLike,
    cfg: DetectorConfig,
    *,
    providers: Optional[Sequence[str]] = None,
    input_name: Optional[str] = None,
    output_name: Optional[str] = None,
) -> Detector:
    """
    Create a `Detector` for an ONNX model on disk.

    Typical usage:
        det = load_detector("best.onnx", DetectorConfig(class_labels=labels))
        boxes = det(cv2.imread("test.jpg"))
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackendConfig, OnnxRuntimeEngine

    engine = OnnxRuntimeEngine(
        OnnxRuntimeBackendConfig(providers=providers, input_name=input_name, output_name=output_name)
    )
    handle = engine.load(model_path)
    return Detector(engine, handle, cfg)
