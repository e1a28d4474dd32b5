import unittest

import cv2
import numpy as np
from fastapi.testclient import TestClient

from boxkit.config import DetectorConfig
from boxkit.runtime import Detector
from boxkit.server import create_app


class StaticEngine:
    def __init__(self, output: np.ndarray):
        self.output = output

    def load(self, model):
        return model

    def run(self, handle, tensor):
        return self.output


def png_bytes(h: int = 40, w: int = 80) -> bytes:
    ok, buf = cv2.imencode(".png", np.zeros((h, w, 3), dtype=np.uint8))
    assert ok
    return buf.tobytes()


class TestDetectionService(unittest.TestCase):
    def setUp(self) -> None:
        cfg = DetectorConfig(class_labels=("dog",), num_classes=1, input_side=32, num_predictions=1)
        output = np.array([[16], [16], [32], [32], [0.75]], dtype=np.float32)[None, ...]
        self.engine = StaticEngine(output)
        self.client = TestClient(create_app(Detector(self.engine, "model.onnx", cfg)))

    def test_detect_returns_rows(self) -> None:
        resp = self.client.post("/detect", files={"image_file": ("image.png", png_bytes(), "image/png")})
        self.assertEqual(resp.status_code, 200)
        rows = resp.json()
        self.assertEqual(len(rows), 1)
        x1, y1, x2, y2, label, confidence = rows[0]
        self.assertEqual((x1, y1, x2, y2), (0.0, 0.0, 80.0, 40.0))
        self.assertEqual(label, "dog")
        self.assertAlmostEqual(confidence, 0.75)

    def test_bad_image_is_400(self) -> None:
        resp = self.client.post("/detect", files={"image_file": ("image.png", b"garbage", "image/png")})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("detail", resp.json())

    def test_layout_mismatch_is_500(self) -> None:
        self.engine.output = np.zeros((1, 5, 2), dtype=np.float32)
        resp = self.client.post("/detect", files={"image_file": ("image.png", png_bytes(), "image/png")})
        self.assertEqual(resp.status_code, 500)

    def test_missing_file_field(self) -> None:
        resp = self.client.post("/detect")
        self.assertEqual(resp.status_code, 422)

    def test_healthz(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["model_family"], "anchor_free")
        self.assertEqual(resp.json()["num_classes"], 1)

    def test_index_page(self) -> None:
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("/detect", resp.text)


if __name__ == "__main__":
    unittest.main()
