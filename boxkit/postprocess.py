from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import DetectorConfig
from .layout import RawOutputView
from .nms import greedy_nms
from .types import Detection


logger = logging.getLogger(__name__)


def cxcywh_to_xyxy(boxes: np.ndarray) -> np.ndarray:
    """
    Convert (N, 4) center-form boxes to corner form. Corners are ordered so
    x1 <= x2 and y1 <= y2 even for a negative width or height.
    """

    cx, cy, w, h = np.asarray(boxes, dtype=np.float64).T
    xa, xb = cx - w / 2, cx + w / 2
    ya, yb = cy - h / 2, cy + h / 2
    return np.stack([np.minimum(xa, xb), np.minimum(ya, yb), np.maximum(xa, xb), np.maximum(ya, yb)], axis=1)


def scale_to_image(boxes_xyxy: np.ndarray, orig_size: Tuple[int, int], input_side: int) -> np.ndarray:
    """
    Map xyxy boxes from the square model input to the original image.

    Width and height are scaled independently since the input was stretched,
    not letterboxed.
    """

    orig_w, orig_h = orig_size
    out = np.array(boxes_xyxy, dtype=np.float64, copy=True)
    out[:, [0, 2]] = out[:, [0, 2]] / input_side * orig_w
    out[:, [1, 3]] = out[:, [1, 3]] / input_side * orig_h
    return out


def decode_predictions(
    view: RawOutputView,
    orig_size: Tuple[int, int],
    input_side: int,
    class_labels: Sequence[str] = (),
    objectness_threshold: Optional[float] = None,
    min_confidence: Optional[float] = None,
) -> List[Detection]:
    """
    Decode every prediction slot of `view` into a `Detection` in original image pixels.

    Args:
        view: layout-checked raw output
        orig_size: (width, height) of the original image
        input_side: side length of the square model input
        class_labels: label per class id; ids without a label fall back to str(id)
        objectness_threshold: anchor-based only, skip slots whose objectness is lower
        min_confidence: skip slots whose best class score is lower

    The class id is the first index holding the highest score (np.argmax), so
    ties go to the lowest class id.
    """

    mask = np.ones(view.num_predictions, dtype=bool)
    objectness = view.objectness_scores()
    if objectness is not None and objectness_threshold is not None:
        mask &= objectness >= objectness_threshold

    idx = np.flatnonzero(mask)
    if idx.size == 0:
        return []

    scores = view.class_scores()[idx]
    class_ids = np.argmax(scores, axis=1)
    confidences = scores[np.arange(idx.size), class_ids]

    if min_confidence is not None:
        keep = confidences >= min_confidence
        idx, class_ids, confidences = idx[keep], class_ids[keep], confidences[keep]
        if idx.size == 0:
            return []

    boxes = cxcywh_to_xyxy(view.boxes_cxcywh()[idx])
    boxes = scale_to_image(boxes, orig_size, input_side)

    out: List[Detection] = []
    for (x1, y1, x2, y2), cls_id, conf in zip(boxes, class_ids, confidences):
        cls_id = int(cls_id)
        label = class_labels[cls_id] if cls_id < len(class_labels) else str(cls_id)
        out.append(
            Detection(
                class_id=cls_id,
                confidence=float(conf),
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                label=label,
            )
        )
    return out


def filter_by_confidence(detections: Iterable[Detection], threshold: float) -> List[Detection]:
    return [d for d in detections if d.confidence >= threshold]


class BoxPostprocessor:
    """
    Raw output -> labeled, de-duplicated detections for one image.

    Steps: layout check (`RawOutputView`) -> decode -> confidence filter -> class-agnostic NMS.
    """

    def __init__(self, cfg: DetectorConfig):
        self.cfg = cfg

    def view(self, preds: object) -> RawOutputView:
        return RawOutputView(
            preds,
            family=self.cfg.model_family,
            num_predictions=self.cfg.resolved_num_predictions,
            num_classes=self.cfg.resolved_num_classes,
        )

    def decode(self, preds: object, orig_size: Tuple[int, int]) -> List[Detection]:
        """
        Decoded and confidence-filtered candidates, before NMS.
        """

        cfg = self.cfg
        view = self.view(preds)
        # Array-level pruning only saves building Detection objects; the filter below is authoritative.
        candidates = decode_predictions(
            view,
            orig_size,
            cfg.input_side,
            class_labels=cfg.class_labels,
            objectness_threshold=cfg.confidence_threshold,
            min_confidence=cfg.confidence_threshold,
        )
        return filter_by_confidence(candidates, cfg.confidence_threshold)

    def process(self, preds: object, orig_size: Tuple[int, int]) -> List[Detection]:
        candidates = self.decode(preds, orig_size)
        kept = greedy_nms(candidates, self.cfg.nms_config())
        logger.debug("postprocess: %d candidates, %d kept after NMS", len(candidates), len(kept))
        return kept
