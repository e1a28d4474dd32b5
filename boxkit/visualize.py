from __future__ import annotations

import colorsys
from typing import Iterable, Tuple

import numpy as np

from .types import Detection


def class_color(class_id: int) -> Tuple[int, int, int]:
    """
    Deterministic BGR color for a class id (golden-ratio hue walk).
    """

    hue = (class_id * 0.618033988749895) % 1.0
    r, g, b = colorsys.hsv_to_rgb(hue, 0.75, 1.0)
    return int(b * 255), int(g * 255), int(r * 255)


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_confidence: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw boxes and `label confidence` captions on a BGR image and return a copy.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1i = int(np.clip(round(det.x1), 0, w - 1))
        y1i = int(np.clip(round(det.y1), 0, h - 1))
        x2i = int(np.clip(round(det.x2), 0, w - 1))
        y2i = int(np.clip(round(det.y2), 0, h - 1))

        color = class_color(det.class_id)
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=box_thickness)

        caption = det.label or str(det.class_id)
        if show_confidence:
            caption = f"{caption} {det.confidence:.2f}"

        (tw, th), baseline = cv2.getTextSize(caption, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Caption above the box when there is room, inside it otherwise.
        y_top = y1i - th - baseline
        if y_top < 0:
            y_top = y1i

        cv2.rectangle(
            out,
            (x1i, y_top),
            (min(x1i + tw, w - 1), min(y_top + th + baseline, h - 1)),
            color,
            thickness=-1,
        )
        cv2.putText(
            out,
            caption,
            (x1i, min(y_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (0, 0, 0),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
