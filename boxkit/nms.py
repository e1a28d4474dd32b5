from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .types import Detection


class NmsKeep(str, Enum):
    """
    Which box of an overlap cluster greedy NMS keeps.

    HIGHEST sorts by descending confidence (conventional NMS). LOWEST sorts
    ascending and keeps the least confident box of every cluster, which is what
    the legacy detection service did.
    """

    HIGHEST = "highest"
    LOWEST = "lowest"


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.5
    keep: NmsKeep = NmsKeep.HIGHEST
    max_detections: Optional[int] = None


Box = Tuple[float, float, float, float]


def box_iou(a: Box, b: Box) -> float:
    """
    Intersection-over-union of two xyxy boxes. Returns 0.0 for an empty union.
    """

    iw = max(0.0, min(a[2], b[2]) - max(a[0], b[0]))
    ih = max(0.0, min(a[3], b[3]) - max(a[1], b[1]))
    inter = iw * ih
    area_a = (a[2] - a[0]) * (a[3] - a[1])
    area_b = (b[2] - b[0]) * (b[3] - b[1])
    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def _iou_one_to_many(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    xx1 = np.maximum(box[0], boxes[:, 0])
    yy1 = np.maximum(box[1], boxes[:, 1])
    xx2 = np.minimum(box[2], boxes[:, 2])
    yy2 = np.minimum(box[3], boxes[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (boxes[:, 2] - boxes[:, 0]) * (boxes[:, 3] - boxes[:, 1])
    union = area + areas - inter
    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=union > 0)
    return out


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Class-agnostic greedy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of kept boxes in selection order.

    A candidate is dropped when its IoU with the selected box is >= iou_threshold.
    Ties in score keep input order (stable sort).
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)

    if cfg.keep == NmsKeep.LOWEST:
        order = np.argsort(scores, kind="stable")
    else:
        order = np.argsort(-scores, kind="stable")

    keep: List[int] = []
    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(int(i))

        rest = order[1:]
        iou = _iou_one_to_many(boxes[i], boxes[rest])
        order = rest[iou < cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def greedy_nms(detections: Sequence[Detection], cfg: NMSConfig) -> List[Detection]:
    """
    Suppress overlapping detections regardless of class; returns survivors in selection order.
    """

    if not detections:
        return []
    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float64)
    scores = np.array([d.confidence for d in detections], dtype=np.float64)
    return [detections[i] for i in nms(boxes, scores, cfg)]
