from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np

from .errors import InvalidImage


ImageInput = Union[np.ndarray, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]


def decode_image(data: Union[bytes, bytearray, memoryview]) -> np.ndarray:
    """
    Decode an encoded image (JPEG, PNG, BMP, ...) into a BGR array.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for decode_image(). Install with `pip install opencv-python`.") from e

    buf = np.frombuffer(bytes(data), dtype=np.uint8)
    if buf.size == 0:
        raise InvalidImage("Empty image payload.")
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if img is None:
        raise InvalidImage("Could not decode image payload.")
    return img


def as_bgr_image(image: ImageInput) -> np.ndarray:
    if isinstance(image, (bytes, bytearray, memoryview)):
        return decode_image(image)
    if image is None or not hasattr(image, "shape"):
        raise InvalidImage("image must be a NumPy array (BGR) or encoded image bytes.")
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidImage(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidImage("Image has zero width or height.")
    if image.dtype != np.uint8:
        raise InvalidImage(f"Expected an 8-bit image (uint8), got dtype {image.dtype}")
    return image


def to_planar_blob(image_bgr: np.ndarray, input_side: int) -> np.ndarray:
    """
    Stretch to (input_side, input_side) with Lanczos resampling and build a
    float32 NCHW blob `[R plane][G plane][B plane]` in [0, 1].
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for to_planar_blob(). Install with `pip install opencv-python`.") from e

    h, w = image_bgr.shape[:2]
    img = image_bgr
    if (w, h) != (input_side, input_side):
        img = cv2.resize(img, (input_side, input_side), interpolation=cv2.INTER_LANCZOS4)

    # BGR -> RGB, normalize, HWC -> CHW, add batch
    blob = img[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
    return blob


def preprocess(image: ImageInput, input_side: int) -> PreprocessResult:
    img = as_bgr_image(image)
    orig_h, orig_w = img.shape[:2]
    return PreprocessResult(blob=to_planar_blob(img, input_side), orig_size=(orig_w, orig_h))
