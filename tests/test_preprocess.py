import unittest

import cv2
import numpy as np

from boxkit.errors import InvalidImage
from boxkit.preprocess import decode_image, preprocess


class TestPreprocess(unittest.TestCase):
    def test_planar_rgb_blob(self) -> None:
        img = np.zeros((48, 96, 3), dtype=np.uint8)
        img[:, :] = (255, 0, 51)  # BGR: blue 255, red 51
        prep = preprocess(img, 32)
        self.assertEqual(prep.blob.shape, (1, 3, 32, 32))
        self.assertEqual(prep.blob.dtype, np.float32)
        self.assertEqual(prep.orig_size, (96, 48))
        self.assertTrue(np.allclose(prep.blob[0, 0], 51 / 255.0, atol=2 / 255.0))  # R plane
        self.assertTrue(np.allclose(prep.blob[0, 1], 0.0, atol=2 / 255.0))  # G plane
        self.assertTrue(np.allclose(prep.blob[0, 2], 1.0, atol=2 / 255.0))  # B plane
        self.assertGreaterEqual(prep.blob.min(), 0.0)
        self.assertLessEqual(prep.blob.max(), 1.0)

    def test_encoded_bytes(self) -> None:
        img = np.full((20, 30, 3), 128, dtype=np.uint8)
        ok, png = cv2.imencode(".png", img)
        self.assertTrue(ok)
        prep = preprocess(png.tobytes(), 16)
        self.assertEqual(prep.orig_size, (30, 20))
        self.assertEqual(decode_image(png.tobytes()).shape, (20, 30, 3))

    def test_undecodable_bytes(self) -> None:
        with self.assertRaises(InvalidImage):
            preprocess(b"definitely not an image", 32)
        with self.assertRaises(InvalidImage):
            preprocess(b"", 32)

    def test_wrong_shape(self) -> None:
        with self.assertRaises(InvalidImage):
            preprocess(np.zeros((10, 10), dtype=np.uint8), 32)
        with self.assertRaises(InvalidImage):
            preprocess(np.zeros((10, 10, 4), dtype=np.uint8), 32)
        with self.assertRaises(InvalidImage):
            preprocess(None, 32)  # type: ignore[arg-type]

    def test_non_uint8_dtype_rejected(self) -> None:
        for dtype in (np.int64, np.float16, np.float32, np.bool_):
            with self.subTest(dtype=dtype):
                with self.assertRaises(InvalidImage):
                    preprocess(np.zeros((10, 10, 3), dtype=dtype), 32)


if __name__ == "__main__":
    unittest.main()
