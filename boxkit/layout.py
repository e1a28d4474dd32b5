from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidConfig, LayoutMismatch


class ModelFamily(str, Enum):
    """
    Raw output layout of a YOLO export.

    - ANCHOR_BASED (YOLOv5 style): (N, 5 + C), one contiguous slot per prediction
      `[cx, cy, w, h, obj, class_scores...]`
    - ANCHOR_FREE (YOLOv8 style): (4 + C, N), channel-major / transposed
    """

    ANCHOR_BASED = "anchor_based"
    ANCHOR_FREE = "anchor_free"

    @classmethod
    def parse(cls, value: object) -> "ModelFamily":
        if isinstance(value, ModelFamily):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {"v5": cls.ANCHOR_BASED, "yolov5": cls.ANCHOR_BASED, "v8": cls.ANCHOR_FREE, "yolov8": cls.ANCHOR_FREE}
        if key in aliases:
            return aliases[key]
        for member in cls:
            if member.value == key:
                return member
        raise InvalidConfig(f"Unknown model family: {value!r}")

    @property
    def class_offset(self) -> int:
        # Index of the first class score inside a slot (anchor-based) or the first class channel (anchor-free).
        return 5 if self is ModelFamily.ANCHOR_BASED else 4


class RawOutputView:
    """
    Read-only view over the flat output buffer of one inference call.

    The buffer length is checked against the declared family and shape when the
    view is built; a buffer that does not match raises `LayoutMismatch` instead
    of being decoded into garbage boxes.
    """

    def __init__(self, buffer: object, family: ModelFamily, num_predictions: int, num_classes: int):
        family = ModelFamily.parse(family)
        if num_classes <= 0:
            raise InvalidConfig(f"num_classes must be > 0 (got {num_classes})")
        if num_predictions <= 0:
            raise InvalidConfig(f"num_predictions must be > 0 (got {num_predictions})")

        flat = np.asarray(buffer, dtype=np.float32).reshape(-1)
        pred_stride = family.class_offset + num_classes
        expected = num_predictions * pred_stride
        if flat.size != expected:
            raise LayoutMismatch(
                f"{family.value} output with {num_predictions} predictions x {pred_stride} values "
                f"expects {expected} floats, got {flat.size}"
            )

        flat = flat.view()
        flat.flags.writeable = False
        self._flat = flat
        self.family = family
        self.num_predictions = int(num_predictions)
        self.num_classes = int(num_classes)
        self.pred_stride = pred_stride

        # (N, stride) for anchor-based, (stride, N) for anchor-free. Both are views, no copy.
        if family is ModelFamily.ANCHOR_BASED:
            self._grid = flat.reshape(self.num_predictions, pred_stride)
        else:
            self._grid = flat.reshape(pred_stride, self.num_predictions)

    def __len__(self) -> int:
        return self.num_predictions

    @property
    def buffer(self) -> np.ndarray:
        return self._flat

    def slot(self, i: int) -> Tuple[float, float, float, float, np.ndarray]:
        """
        Return `(xc, yc, w, h, class_scores)` of prediction `i` in model input space.
        """

        if not 0 <= i < self.num_predictions:
            raise IndexError(f"prediction index {i} out of range [0, {self.num_predictions})")
        if self.family is ModelFamily.ANCHOR_BASED:
            row = self._grid[i]
            return float(row[0]), float(row[1]), float(row[2]), float(row[3]), row[5:]
        col = self._grid[:, i]
        return float(col[0]), float(col[1]), float(col[2]), float(col[3]), col[4:]

    def objectness(self, i: int) -> Optional[float]:
        if not 0 <= i < self.num_predictions:
            raise IndexError(f"prediction index {i} out of range [0, {self.num_predictions})")
        if self.family is ModelFamily.ANCHOR_BASED:
            return float(self._grid[i, 4])
        return None

    # ------------------------------------------------------------------ #
    # Vectorized accessors
    # ------------------------------------------------------------------ #
    def boxes_cxcywh(self) -> np.ndarray:
        """(N, 4) array of `cx, cy, w, h`."""
        if self.family is ModelFamily.ANCHOR_BASED:
            return self._grid[:, 0:4]
        return self._grid[0:4, :].T

    def class_scores(self) -> np.ndarray:
        """(N, C) array of per-class scores."""
        if self.family is ModelFamily.ANCHOR_BASED:
            return self._grid[:, 5:]
        return self._grid[4:, :].T

    def objectness_scores(self) -> Optional[np.ndarray]:
        if self.family is ModelFamily.ANCHOR_BASED:
            return self._grid[:, 4]
        return None
